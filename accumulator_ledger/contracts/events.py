"""
Layer-Specific Contracts

These contracts define the explicit interfaces between layers.
Each layer exposes its contracts here, and other layers consume only these.

- Core layer produces AccumulatorUpdated events
- Runtime layer wraps them in EventRecords
- Storage layer reports StorageWriteResults and ReplayCheckpoints
- Observability layer consumes AuditLogEntries and MetricPoints
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from enum import Enum

from .base import AccountId, Timestamp, Error


# =============================================================================
# CORE LAYER CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class AccumulatorUpdated:
    """
    IMMUTABLE notification emitted after a successful append.

    An accumulator has been updated, therefore an attestation issued
    against the previous accumulator has been revoked.

    new_count is the account's counter AFTER the append, so the payload
    lives at index new_count - 1.
    """
    account_id: AccountId
    new_count: int
    payload: bytes

    @property
    def index(self) -> int:
        return self.new_count - 1

    def to_dict(self) -> Dict:
        return {
            'event': 'Updated',
            'account_id': self.account_id.value,
            'new_count': self.new_count,
            'payload': self.payload.hex(),
        }

    @staticmethod
    def from_dict(data: Dict) -> AccumulatorUpdated:
        return AccumulatorUpdated(
            account_id=AccountId(data['account_id']),
            new_count=int(data['new_count']),
            payload=bytes.fromhex(data['payload']),
        )


# =============================================================================
# RUNTIME LAYER CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class EventRecord:
    """
    Event as recorded in the runtime event log.

    extrinsic_index identifies the dispatch that produced the event.
    """
    extrinsic_index: int
    event: AccumulatorUpdated

    def to_dict(self) -> Dict:
        return {
            'extrinsic_index': self.extrinsic_index,
            **self.event.to_dict(),
        }

    @staticmethod
    def from_dict(data: Dict) -> EventRecord:
        return EventRecord(
            extrinsic_index=int(data['extrinsic_index']),
            event=AccumulatorUpdated.from_dict(data),
        )


# =============================================================================
# STORAGE LAYER CONTRACTS
# =============================================================================

@dataclass(frozen=True)
class StorageWriteResult:
    """Result of committing one change set to a storage backend."""
    success: bool
    keys_written: int = 0
    write_timestamp: Optional[Timestamp] = None
    error: Optional[Error] = None


@dataclass(frozen=True)
class ReplayCheckpoint:
    """
    Immutable checkpoint for replay capability.

    state_hash is the storage root at the time of the checkpoint. It is
    derived from ledger state only, so two nodes that replayed the same
    calls produce the same state_hash.
    """
    checkpoint_id: str
    timestamp: Timestamp
    layer: str
    sequence_number: int
    state_hash: str


# =============================================================================
# OBSERVABILITY CONTRACTS
# =============================================================================

class AuditEventType(Enum):
    """Explicit audit event types."""
    STATE_CHANGE = "state_change"
    DISPATCH = "dispatch"
    QUERY = "query"
    ERROR = "error"
    SYSTEM = "system"


@dataclass(frozen=True)
class AuditLogEntry:
    """Immutable audit log entry."""
    entry_id: str
    event_type: AuditEventType
    timestamp: Timestamp
    layer: str  # Which layer generated this
    action: str
    entity_id: Optional[str] = None
    metadata: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MetricPoint:
    """Immutable metric data point."""
    metric_name: str
    value: float
    timestamp: Timestamp
    labels: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)
