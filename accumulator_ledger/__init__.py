"""
Accumulator Ledger
==================

Per-account, append-only logs of opaque accumulators with a monotonic
u64 counter, executed as an atomic, deterministic state transition.

Layers:
- contracts: Immutable shared types (errors, identities, events)
- storage: Canonical encoding, backends, transactional overlay
- core: AccumulatorStore, the append transition and its queries
- runtime: Origins, dispatcher, event log
- observability: Audit log and metrics
- engine: Orchestration facade and configuration
"""

from .contracts.base import AccountId, AccumulatorIndex, ErrorCode, Error, Result
from .contracts.events import AccumulatorUpdated, EventRecord
from .core import AccumulatorStore
from .runtime import Origin, Dispatcher, DispatchOutcome
from .engine import AccumulatorLedger, LedgerConfig

__all__ = [
    'AccountId',
    'AccumulatorIndex',
    'ErrorCode',
    'Error',
    'Result',
    'AccumulatorUpdated',
    'EventRecord',
    'AccumulatorStore',
    'Origin',
    'Dispatcher',
    'DispatchOutcome',
    'AccumulatorLedger',
    'LedgerConfig',
]
