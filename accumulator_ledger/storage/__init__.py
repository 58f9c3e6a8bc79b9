"""
Ledger State Storage Layer

RESPONSIBILITY: Transactional key/value persistence of ledger state
ALLOWED INPUTS: Encoded keys and values from the core layer
OUTPUTS: StorageWriteResult, ReplayCheckpoint, state roots

WHAT THIS LAYER MUST NOT DO:
============================
- Interpret keys or values
- Execute business logic
- Decide whether a write is valid
- Expose partially applied change sets

BOUNDARY ENFORCEMENT:
=====================
- Writes reach a backend ONLY through StorageOverlay.commit()
- A change set is applied whole or not at all
- The state root depends on contents only, never on write order
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple
import hashlib
import os
import struct

from ..contracts.base import Error, ErrorCode, Timestamp
from ..contracts.events import (
    StorageWriteResult, ReplayCheckpoint, AuditLogEntry, AuditEventType
)
from .journal import JournalCorrupted, append_lines, read_journal


# =============================================================================
# STORAGE INTERFACES (Dependency Inversion)
# =============================================================================

class StorageBackend:
    """
    Abstract storage backend interface.

    Implementations can use different storage systems (memory, file)
    while keeping the same all-or-nothing change set semantics.
    """

    def get(self, key: bytes) -> Optional[bytes]:
        """Read the value stored under key, None if absent."""
        raise NotImplementedError

    def contains(self, key: bytes) -> bool:
        return self.get(key) is not None

    def apply(self, changes: Dict[bytes, bytes]) -> StorageWriteResult:
        """Apply a complete change set atomically."""
        raise NotImplementedError

    def items(self) -> Iterator[Tuple[bytes, bytes]]:
        """Iterate over all stored entries in key order."""
        raise NotImplementedError

    def state_root(self) -> str:
        """
        Deterministic digest of the whole store.

        Entries are hashed in key order with length prefixes, so equal
        contents always produce equal roots.
        """
        hasher = hashlib.sha256()
        for key, value in self.items():
            hasher.update(struct.pack('<I', len(key)))
            hasher.update(key)
            hasher.update(struct.pack('<I', len(value)))
            hasher.update(value)
        return hasher.hexdigest()


# =============================================================================
# IN-MEMORY STORAGE BACKEND (Reference Implementation)
# =============================================================================

class InMemoryStorageBackend(StorageBackend):
    """
    In-memory implementation of storage backend.

    Suitable for testing and for replay verification.
    """

    def __init__(self):
        self._entries: Dict[bytes, bytes] = {}
        self._commit_sequence: int = 0

    def get(self, key: bytes) -> Optional[bytes]:
        return self._entries.get(key)

    def apply(self, changes: Dict[bytes, bytes]) -> StorageWriteResult:
        self._entries.update(changes)
        self._commit_sequence += 1

        return StorageWriteResult(
            success=True,
            keys_written=len(changes),
            write_timestamp=Timestamp.now()
        )

    def items(self) -> Iterator[Tuple[bytes, bytes]]:
        for key in sorted(self._entries):
            yield key, self._entries[key]

    @property
    def commit_sequence(self) -> int:
        return self._commit_sequence


# =============================================================================
# FILE-BASED STORAGE BACKEND
# =============================================================================

class FileStorageBackend(StorageBackend):
    """
    File-based implementation of storage backend.

    Each committed change set is one JSON line in state.jsonl. A torn final
    line is cut off on load, so a crash mid-write loses at most that whole
    change set. Corruption before the last line raises JournalCorrupted.
    """

    STATE_FILE = "state.jsonl"

    def __init__(self, storage_dir: str):
        self._storage_dir = storage_dir
        self._state_file = os.path.join(storage_dir, self.STATE_FILE)

        # Ensure storage directory exists
        os.makedirs(storage_dir, exist_ok=True)

        self._entries: Dict[bytes, bytes] = {}
        self._commit_sequence: int = 0

        self._rebuild_index()

    def _rebuild_index(self):
        """Replay the journal into the in-memory index."""
        for data in read_journal(self._state_file):
            for key_hex, value_hex in data['changes']:
                self._entries[bytes.fromhex(key_hex)] = bytes.fromhex(value_hex)
            self._commit_sequence = data['sequence']

    def get(self, key: bytes) -> Optional[bytes]:
        return self._entries.get(key)

    def apply(self, changes: Dict[bytes, bytes]) -> StorageWriteResult:
        sequence = self._commit_sequence + 1
        record = {
            'sequence': sequence,
            'changes': [
                [key.hex(), changes[key].hex()] for key in sorted(changes)
            ],
        }

        try:
            append_lines(self._state_file, [record])
        except OSError as e:
            return StorageWriteResult(
                success=False,
                error=Error.create(
                    ErrorCode.STORAGE_WRITE_FAILED,
                    f"Failed to write change set {sequence}: {str(e)}"
                )
            )

        # Only visible once durable
        self._entries.update(changes)
        self._commit_sequence = sequence

        return StorageWriteResult(
            success=True,
            keys_written=len(changes),
            write_timestamp=Timestamp.now()
        )

    def items(self) -> Iterator[Tuple[bytes, bytes]]:
        for key in sorted(self._entries):
            yield key, self._entries[key]

    @property
    def storage_dir(self) -> str:
        return self._storage_dir

    @property
    def commit_sequence(self) -> int:
        return self._commit_sequence


# =============================================================================
# TRANSACTIONAL OVERLAY
# =============================================================================

class StorageOverlay:
    """
    Buffered write layer over a backend.

    Reads see pending writes first, then the backend. Nothing reaches the
    backend until commit(), and commit() hands over the whole change set
    in a single apply() call. An overlay is single-use.
    """

    def __init__(self, backend: StorageBackend):
        self._backend = backend
        self._pending: Dict[bytes, bytes] = {}
        self._closed = False

    def get(self, key: bytes) -> Optional[bytes]:
        if key in self._pending:
            return self._pending[key]
        return self._backend.get(key)

    def contains(self, key: bytes) -> bool:
        return self.get(key) is not None

    def put(self, key: bytes, value: bytes):
        self._ensure_open()
        self._pending[key] = bytes(value)

    def commit(self) -> StorageWriteResult:
        self._ensure_open()
        self._closed = True
        if not self._pending:
            return StorageWriteResult(success=True, write_timestamp=Timestamp.now())
        return self._backend.apply(dict(self._pending))

    def discard(self):
        self._pending.clear()
        self._closed = True

    @property
    def pending(self) -> Dict[bytes, bytes]:
        return dict(self._pending)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _ensure_open(self):
        if self._closed:
            raise RuntimeError("StorageOverlay already committed or discarded")


# =============================================================================
# STATE STORAGE ENGINE (Orchestrates storage operations)
# =============================================================================

@dataclass
class StorageConfig:
    """Configuration for ledger state storage."""
    backend_type: str = "memory"  # "memory" or "file"
    storage_dir: Optional[str] = None
    enable_checkpoints: bool = True
    checkpoint_interval: int = 100  # Commits between checkpoints

    def __post_init__(self):
        if self.backend_type not in ("memory", "file"):
            raise ValueError(f"Unknown backend_type: {self.backend_type}")
        if self.backend_type == "file" and not self.storage_dir:
            raise ValueError("File backend requires storage_dir")
        if self.checkpoint_interval < 1:
            raise ValueError("checkpoint_interval must be positive")


class StateStorageEngine:
    """
    State Storage Engine.

    BOUNDARY ENFORCEMENT:
    - Hands out overlays, commits them whole
    - NEVER interprets stored data
    - Checkpoints carry the deterministic state root
    """

    def __init__(self, config: Optional[StorageConfig] = None):
        self._config = config or StorageConfig()
        self._backend = self._create_backend()
        self._commit_count: int = 0
        self._checkpoints: Dict[str, ReplayCheckpoint] = {}
        self._audit_log: List[AuditLogEntry] = []

    def _create_backend(self) -> StorageBackend:
        """Create storage backend based on configuration."""
        if self._config.backend_type == "file":
            return FileStorageBackend(self._config.storage_dir)
        return InMemoryStorageBackend()

    def begin(self) -> StorageOverlay:
        """Open a transactional overlay on the current state."""
        return StorageOverlay(self._backend)

    def commit(self, overlay: StorageOverlay) -> StorageWriteResult:
        """Commit an overlay and record the outcome."""
        keys = len(overlay.pending)
        result = overlay.commit()

        if result.success:
            self._commit_count += 1
            self._log_audit(
                action="changes_committed",
                metadata=(("keys", str(keys)),)
            )
            if (self._config.enable_checkpoints and
                    self._commit_count % self._config.checkpoint_interval == 0):
                self.create_checkpoint()
        else:
            self._log_audit(
                action="commit_failed",
                event_type=AuditEventType.ERROR,
                metadata=(("error", result.error.message),)
            )

        return result

    def create_checkpoint(self) -> ReplayCheckpoint:
        """Create a checkpoint of the current state root."""
        checkpoint = ReplayCheckpoint(
            checkpoint_id=f"ckpt_{len(self._checkpoints) + 1:06d}",
            timestamp=Timestamp.now(),
            layer="storage",
            sequence_number=self._commit_count,
            state_hash=self._backend.state_root()
        )
        self._checkpoints[checkpoint.checkpoint_id] = checkpoint
        self._log_audit(
            action="checkpoint_created",
            entity_id=checkpoint.checkpoint_id,
            metadata=(("state_hash", checkpoint.state_hash),)
        )
        return checkpoint

    def get_checkpoint(self, checkpoint_id: str) -> Optional[ReplayCheckpoint]:
        return self._checkpoints.get(checkpoint_id)

    def state_root(self) -> str:
        return self._backend.state_root()

    def _log_audit(
        self,
        action: str,
        entity_id: Optional[str] = None,
        event_type: AuditEventType = AuditEventType.SYSTEM,
        metadata: tuple = ()
    ):
        """Add entry to internal audit log."""
        entry_id = hashlib.sha256(
            f"storage_{action}|{len(self._audit_log)}|{Timestamp.now().value.timestamp()}".encode()
        ).hexdigest()[:16]

        entry = AuditLogEntry(
            entry_id=f"audit_{entry_id}",
            event_type=event_type,
            timestamp=Timestamp.now(),
            layer="storage",
            action=action,
            entity_id=entity_id,
            metadata=metadata
        )
        self._audit_log.append(entry)

    def get_audit_log(self) -> List[AuditLogEntry]:
        """Return copy of audit log entries."""
        return list(self._audit_log)

    @property
    def backend(self) -> StorageBackend:
        """Access to the underlying storage backend."""
        return self._backend

    @property
    def commit_count(self) -> int:
        return self._commit_count


__all__ = [
    'StorageBackend',
    'InMemoryStorageBackend',
    'FileStorageBackend',
    'JournalCorrupted',
    'StorageOverlay',
    'StorageConfig',
    'StateStorageEngine',
]
