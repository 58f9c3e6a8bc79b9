"""
Runtime Boundary Layer

RESPONSIBILITY: Origin checks, transactional dispatch, event recording
ALLOWED INPUTS: Origins and call payloads from the host transaction pipeline
OUTPUTS: DispatchOutcome, EventRecords

The host runtime has already verified signatures by the time a call
arrives here. This layer only maps the origin to an account, runs the
core transition inside a storage overlay, and records its events and
state change together or not at all.

WHAT THIS LAYER MUST NOT DO:
============================
- Verify signatures or charge fees
- Touch storage outside an overlay
- Publish events of a reverted call
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
from enum import Enum
import os

from ..contracts.base import AccountId, Error, ErrorCode, Result
from ..contracts.events import AccumulatorUpdated, EventRecord
from ..core import AccumulatorStore
from ..storage import StateStorageEngine
from ..storage.journal import append_lines, read_journal, rewrite


# =============================================================================
# ORIGINS
# =============================================================================

class OriginKind(Enum):
    SIGNED = "signed"
    ROOT = "root"
    NONE = "none"


@dataclass(frozen=True)
class Origin:
    """Who is dispatching a call, as established by the host runtime."""
    kind: OriginKind
    account_id: Optional[AccountId] = None

    def __post_init__(self):
        if self.kind == OriginKind.SIGNED and self.account_id is None:
            raise ValueError("Signed origin requires an account_id")
        if self.kind != OriginKind.SIGNED and self.account_id is not None:
            raise ValueError(f"{self.kind.value} origin cannot carry an account_id")

    @staticmethod
    def signed(account_id) -> Origin:
        if not isinstance(account_id, AccountId):
            account_id = AccountId(account_id)
        return Origin(kind=OriginKind.SIGNED, account_id=account_id)

    @staticmethod
    def root() -> Origin:
        return Origin(kind=OriginKind.ROOT)

    @staticmethod
    def none() -> Origin:
        return Origin(kind=OriginKind.NONE)


def ensure_signed(origin: Origin) -> Result:
    """Result holding the signer's AccountId, or BAD_ORIGIN."""
    if origin.kind == OriginKind.SIGNED:
        return Result.success(origin.account_id)
    return Result.failure(
        Error.create(ErrorCode.BAD_ORIGIN, "call requires a signed origin")
        .with_context("origin", origin.kind.value)
    )


# =============================================================================
# EVENT LOG
# =============================================================================

class RuntimeEventLog:
    """
    Append-only runtime event log.

    Records are appended in dispatch order. The only removal is
    truncate(), which the dispatcher uses to withdraw the records of a
    call whose storage commit failed.
    """

    def __init__(self):
        self._records: List[EventRecord] = []

    def deposit_all(self, records: Sequence[EventRecord]) -> Result:
        """Append the records of one call; Result holds the new length."""
        self._records.extend(records)
        return Result.success(len(self._records))

    def truncate(self, length: int):
        del self._records[length:]

    def records(self, offset: int = 0, limit: Optional[int] = None) -> List[EventRecord]:
        end = None if limit is None else offset + limit
        return list(self._records[offset:end])

    def __len__(self) -> int:
        return len(self._records)

    def next_extrinsic_index(self) -> int:
        if not self._records:
            return 0
        return self._records[-1].extrinsic_index + 1


class FileRuntimeEventLog(RuntimeEventLog):
    """
    Event log persisted as events.jsonl next to the state journal.

    A call's records are written in one append. A failed write leaves
    neither the file nor the in-memory log changed.
    """

    EVENTS_FILE = "events.jsonl"

    def __init__(self, storage_dir: str):
        super().__init__()
        os.makedirs(storage_dir, exist_ok=True)
        self._events_file = os.path.join(storage_dir, self.EVENTS_FILE)
        self._records.extend(load_event_records(self._events_file))

    def deposit_all(self, records: Sequence[EventRecord]) -> Result:
        try:
            append_lines(self._events_file, [r.to_dict() for r in records])
        except OSError as e:
            return Result.failure(
                Error.create(ErrorCode.STORAGE_WRITE_FAILED, f"Failed to record events: {e}")
                .with_context("path", self._events_file)
            )
        return super().deposit_all(records)

    def truncate(self, length: int):
        super().truncate(length)
        rewrite(self._events_file, [r.to_dict() for r in self._records])


def load_event_records(path: str) -> List[EventRecord]:
    """Read persisted event records, oldest first."""
    return [EventRecord.from_dict(data) for data in read_journal(path)]


# =============================================================================
# DISPATCHER
# =============================================================================

@dataclass
class RuntimeConfig:
    """Configuration for the runtime boundary."""
    persist_events: bool = True  # Only honoured with a file storage backend


@dataclass(frozen=True)
class DispatchOutcome:
    """What a single dispatched call did."""
    extrinsic_index: int
    result: Result
    events: Tuple[EventRecord, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return self.result.is_success


class Dispatcher:
    """
    Transactional call dispatcher.

    Every call runs against a fresh StorageOverlay and a buffered event
    sink. On success the buffered events are recorded first and storage
    is committed second; if either step fails the other is undone, so a
    failed call leaves neither state nor events behind.

    Extrinsic indices number the dispatches of this process, failed ones
    included. Only successful dispatches leave a durable trace, so after
    a reopen numbering resumes after the last recorded event and the
    indices of trailing failed dispatches may be handed out again.
    """

    def __init__(
        self,
        storage: StateStorageEngine,
        event_log: RuntimeEventLog,
        config: Optional[RuntimeConfig] = None
    ):
        self._storage = storage
        self._event_log = event_log
        self._config = config or RuntimeConfig()
        self._extrinsic_index = event_log.next_extrinsic_index()

    def update_accumulator(self, origin: Origin, payload: bytes) -> DispatchOutcome:
        """
        Append an accumulator on behalf of the signed origin.

        The previous accumulator of the signer is superseded, which
        revokes attestations issued against it.
        """
        extrinsic_index = self._extrinsic_index
        self._extrinsic_index += 1

        signer = ensure_signed(origin)
        if signer.is_failure:
            return DispatchOutcome(extrinsic_index=extrinsic_index, result=signer)

        overlay = self._storage.begin()
        buffered: List[AccumulatorUpdated] = []
        store = AccumulatorStore(overlay, deposit_event=buffered.append)

        try:
            result = store.append(signer.value, payload)
        except BaseException:
            overlay.discard()
            raise

        if result.is_failure:
            overlay.discard()
            return DispatchOutcome(extrinsic_index=extrinsic_index, result=result)

        records = tuple(
            EventRecord(extrinsic_index=extrinsic_index, event=event)
            for event in buffered
        )

        # Events are durable before state; a failed commit withdraws them.
        mark = len(self._event_log)
        try:
            deposited = self._event_log.deposit_all(records)
        except BaseException:
            overlay.discard()
            raise

        if deposited.is_failure:
            overlay.discard()
            return DispatchOutcome(extrinsic_index=extrinsic_index, result=deposited)

        try:
            write = self._storage.commit(overlay)
        except BaseException:
            self._event_log.truncate(mark)
            raise

        if not write.success:
            self._event_log.truncate(mark)
            return DispatchOutcome(
                extrinsic_index=extrinsic_index,
                result=Result.failure(write.error)
            )

        return DispatchOutcome(
            extrinsic_index=extrinsic_index,
            result=result,
            events=records
        )

    @property
    def next_extrinsic_index(self) -> int:
        return self._extrinsic_index


__all__ = [
    'OriginKind',
    'Origin',
    'ensure_signed',
    'RuntimeEventLog',
    'FileRuntimeEventLog',
    'load_event_records',
    'RuntimeConfig',
    'DispatchOutcome',
    'Dispatcher',
]
