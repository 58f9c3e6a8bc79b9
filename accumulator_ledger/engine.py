"""
Engine Orchestration Module

This module provides the unified interface for coordinating all
layers while maintaining strict boundary separation.

DESIGN PRINCIPLES:
==================
1. Layers communicate ONLY through contracts
2. Engine orchestrates flow without creating coupling
3. All operations are traceable through observability
4. Ledger state changes ONLY through the dispatcher
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Union
import os
import time

from .contracts.base import AccountId, AccumulatorIndex, Error, ErrorCode, Result
from .contracts.events import AuditEventType, EventRecord, ReplayCheckpoint
from .core import AccumulatorStore
from .storage import StateStorageEngine, StorageConfig
from .runtime import (
    Dispatcher, DispatchOutcome, FileRuntimeEventLog, Origin,
    RuntimeConfig, RuntimeEventLog
)
from .observability import ObservabilityEngine, ObservabilityConfig

STORAGE_DIR_ENV = "ACCUMULATOR_STORAGE_DIR"

AccountLike = Union[AccountId, str]


@dataclass
class LedgerConfig:
    """Unified configuration for the accumulator ledger."""
    storage: StorageConfig = None
    runtime: RuntimeConfig = None
    observability: ObservabilityConfig = None

    def __post_init__(self):
        self.storage = self.storage or StorageConfig()
        self.runtime = self.runtime or RuntimeConfig()
        self.observability = self.observability or ObservabilityConfig()

    @staticmethod
    def from_env(environ: Optional[Dict[str, str]] = None) -> LedgerConfig:
        """File-backed when ACCUMULATOR_STORAGE_DIR is set, in-memory otherwise."""
        environ = os.environ if environ is None else environ
        storage_dir = environ.get(STORAGE_DIR_ENV)
        if storage_dir:
            return LedgerConfig(
                storage=StorageConfig(backend_type="file", storage_dir=storage_dir)
            )
        return LedgerConfig()


def _account(account: AccountLike) -> AccountId:
    return account if isinstance(account, AccountId) else AccountId(account)


class AccumulatorLedger:
    """
    Unified facade over the accumulator ledger.

    LAYER FLOW:
    ===========
    1. Runtime: Origin check, overlay, dispatch
    2. Core: AccumulatorStore.append inside the overlay
    3. Runtime: Events recorded, withdrawn again if the commit fails
    4. Storage: Atomic commit of the change set
    5. Observability: Records all layer activity

    Queries read committed state only.
    """

    def __init__(self, config: Optional[LedgerConfig] = None):
        self._config = config or LedgerConfig()

        self._storage = StateStorageEngine(self._config.storage)
        self._event_log = self._create_event_log()
        self._dispatcher = Dispatcher(self._storage, self._event_log, self._config.runtime)
        self._observability = ObservabilityEngine(self._config.observability)
        self._reader = AccumulatorStore(self._storage.backend)
        self._storage_audit_seen = 0

        # State written by an earlier session whose events were never persisted
        self._untracked_state = (
            self._config.storage.backend_type == "file"
            and not isinstance(self._event_log, FileRuntimeEventLog)
            and self._storage.backend.commit_sequence > 0
        )

    def _create_event_log(self) -> RuntimeEventLog:
        storage = self._config.storage
        if storage.backend_type == "file" and self._config.runtime.persist_events:
            return FileRuntimeEventLog(storage.storage_dir)
        return RuntimeEventLog()

    # =========================================================================
    # DISPATCH INTERFACE
    # =========================================================================

    def submit(self, origin: Origin, payload: bytes) -> DispatchOutcome:
        """Dispatch update_accumulator and record the outcome."""
        started = time.perf_counter()
        outcome = self._dispatcher.update_accumulator(origin, payload)
        elapsed_ms = (time.perf_counter() - started) * 1000

        self._collect_storage_audit()
        entity = origin.account_id.value if origin.account_id else None
        extrinsic = ("extrinsic_index", str(outcome.extrinsic_index))

        if outcome.success:
            index = str(outcome.result.value.value)
            self._observability.log_audit(
                action="update_accumulator",
                layer="runtime",
                event_type=AuditEventType.DISPATCH,
                entity_id=entity,
                metadata=(extrinsic, ("outcome", "success"))
            )
            self._observability.log_audit(
                action="accumulator_appended",
                layer="core",
                event_type=AuditEventType.STATE_CHANGE,
                entity_id=entity,
                metadata=(("index", index), ("payload_bytes", str(len(payload))))
            )
            self._observability.collect_metric("accumulator_updates_total", 1)
            self._observability.collect_metric("accumulator_payload_bytes", len(payload))
            self._observability.collect_metric("storage_commit_latency_ms", elapsed_ms)
        else:
            error = outcome.result.error
            self._observability.log_audit(
                action="update_accumulator",
                layer="runtime",
                event_type=AuditEventType.ERROR,
                entity_id=entity,
                metadata=(
                    extrinsic,
                    ("outcome", "failure"),
                    ("error_code", error.code.name),
                    ("details", error.message)
                )
            )
            self._observability.collect_metric(
                "dispatch_failures_total", 1, {"error_code": error.code.name}
            )

        return outcome

    def update_accumulator(self, account: AccountLike, payload: bytes) -> DispatchOutcome:
        """Convenience wrapper: dispatch with a signed origin."""
        return self.submit(Origin.signed(_account(account)), payload)

    # =========================================================================
    # QUERY INTERFACE
    # =========================================================================

    def accumulator_count(self, account: AccountLike) -> int:
        account_id = _account(account)
        return self._timed_query(
            "count", account_id, lambda: self._reader.accumulator_count(account_id)
        )

    def accumulator_list(self, account: AccountLike, index: int) -> Optional[bytes]:
        account_id = _account(account)
        return self._timed_query(
            "list", account_id,
            lambda: self._reader.accumulator_list(account_id, AccumulatorIndex(index))
        )

    def accumulators(
        self,
        account: AccountLike,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> List[bytes]:
        account_id = _account(account)
        return self._timed_query(
            "enumerate", account_id,
            lambda: self._reader.accumulators(account_id, offset, limit)
        )

    def latest_accumulator(self, account: AccountLike) -> Optional[bytes]:
        account_id = _account(account)
        return self._timed_query("latest", account_id, lambda: self._reader.latest(account_id))

    def events(self, offset: int = 0, limit: Optional[int] = None) -> List[EventRecord]:
        return self._event_log.records(offset, limit)

    def known_accounts(self) -> List[AccountId]:
        """Accounts that have at least one recorded Updated event, in first-seen order."""
        seen: Dict[str, AccountId] = {}
        for record in self._event_log.records():
            seen.setdefault(record.event.account_id.value, record.event.account_id)
        return list(seen.values())

    def _timed_query(self, query_type: str, account_id: AccountId, run):
        started = time.perf_counter()
        value = run()
        self._observability.collect_metric(
            "query_execution_time_ms",
            (time.perf_counter() - started) * 1000,
            {"query_type": query_type}
        )
        self._observability.log_audit(
            action=f"query_{query_type}",
            layer="query",
            event_type=AuditEventType.QUERY,
            entity_id=account_id.value
        )
        return value

    # =========================================================================
    # INTEGRITY INTERFACE
    # =========================================================================

    def state_root(self) -> str:
        return self._storage.state_root()

    def create_checkpoint(self) -> ReplayCheckpoint:
        checkpoint = self._storage.create_checkpoint()
        self._collect_storage_audit()
        return checkpoint

    def verify_invariants(self) -> Result:
        """
        Check the density invariant for every account in the event log.

        Accounts are only discoverable through recorded events, since the
        storage keys are opaque hashes. A file-backed ledger reopened with
        persist_events=False therefore cannot be verified and fails with
        UNVERIFIABLE_STATE instead of reporting success.
        """
        if self._untracked_state:
            return Result.failure(Error.create(
                ErrorCode.UNVERIFIABLE_STATE,
                "stored accounts are unknown: events were not persisted"
            ).with_context("storage_dir", self._config.storage.storage_dir))
        for account_id in self.known_accounts():
            result = self._reader.verify_density(account_id)
            if result.is_failure:
                return result
        return Result.success(len(self.known_accounts()))

    # =========================================================================
    # OBSERVABILITY INTERFACE
    # =========================================================================

    def _collect_storage_audit(self):
        """Forward storage audit entries not yet collected."""
        entries = self._storage.get_audit_log()
        for entry in entries[self._storage_audit_seen:]:
            self._observability.collect_audit(entry)
        self._storage_audit_seen = len(entries)

    def get_audit_report(self) -> Dict:
        return self._observability.generate_audit_report()

    @property
    def observability(self) -> ObservabilityEngine:
        return self._observability

    @property
    def storage(self) -> StateStorageEngine:
        return self._storage

    @property
    def config(self) -> LedgerConfig:
        return self._config
