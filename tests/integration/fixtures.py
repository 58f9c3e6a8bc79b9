"""
Shared fixtures for integration tests.
"""

from __future__ import annotations
from typing import List, Tuple

from accumulator_ledger.contracts.base import AccountId, AccumulatorIndex
from accumulator_ledger.core import AccumulatorStore
from accumulator_ledger.engine import AccumulatorLedger, LedgerConfig
from accumulator_ledger.storage import StorageConfig


ATTESTER_A = "attester_a"
ATTESTER_B = "attester_b"

SCENARIO_CALLS: List[Tuple[str, bytes]] = [
    (ATTESTER_A, bytes([1, 2, 3])),
    (ATTESTER_A, bytes([4, 5, 6])),
    (ATTESTER_B, b""),
    (ATTESTER_A, bytes([7, 8, 9])),
]


def memory_ledger() -> AccumulatorLedger:
    return AccumulatorLedger(LedgerConfig())


def file_ledger(storage_dir: str) -> AccumulatorLedger:
    return AccumulatorLedger(LedgerConfig(
        storage=StorageConfig(backend_type="file", storage_dir=storage_dir)
    ))


def apply_calls(ledger: AccumulatorLedger, calls=SCENARIO_CALLS):
    return [ledger.update_accumulator(account, payload) for account, payload in calls]


def corrupt_counter(ledger: AccumulatorLedger, account: str, counter: int, occupied: bytes = b"stale"):
    """
    Desynchronize counter and list directly in storage, bypassing append.
    """
    overlay = ledger.storage.begin()
    store = AccumulatorStore(overlay)
    store._count.insert(AccountId(account), counter)
    store._list.insert(AccountId(account), AccumulatorIndex(counter), occupied)
    ledger.storage.commit(overlay)
