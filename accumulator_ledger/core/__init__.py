"""
Accumulator Store (Core Layer)

RESPONSIBILITY: The append-only accumulator state transition
ALLOWED INPUTS: Authenticated AccountId, opaque payload bytes
OUTPUTS: Result[AccumulatorIndex], AccumulatorUpdated events

INVARIANTS:
===========
For every account a with n = AccumulatorCount[a] (0 if absent):
- AccumulatorList[(a, i)] is present for every i in [0, n)
- AccumulatorList[(a, i)] is absent for every i >= n

The log is dense, zero-based and gapless. append() is the only
transition: it moves n -> n + 1 and writes index n. Nothing ever
decreases n or rewrites an existing slot.

WHAT THIS LAYER MUST NOT DO:
============================
- Authenticate callers
- Commit or discard storage (the caller owns the transaction)
- Emit events on failure
"""

from __future__ import annotations
from typing import Callable, List, Optional

from ..contracts.base import (
    AccountId, AccumulatorIndex, Error, ErrorCode, Result, U64_MAX, checked_add
)
from ..contracts.events import AccumulatorUpdated
from .maps import AccumulatorListMap, AccumulatorCountMap

EventSink = Callable[[AccumulatorUpdated], None]


class AccumulatorStore:
    """
    Per-account append-only log of accumulators.

    storage is any context exposing get/contains/put over encoded keys,
    normally a StorageOverlay opened by the dispatcher. Read-only use
    (queries) only needs get/contains, so a backend works too.

    deposit_event receives the AccumulatorUpdated notification of each
    successful append.
    """

    def __init__(self, storage, deposit_event: Optional[EventSink] = None):
        self._list = AccumulatorListMap(storage)
        self._count = AccumulatorCountMap(storage)
        self._deposit_event = deposit_event

    # =========================================================================
    # STATE TRANSITION
    # =========================================================================

    def append(self, account_id: AccountId, payload: bytes) -> Result:
        """
        Append payload to the account's log.

        Returns Result.success(AccumulatorIndex) holding the slot written,
        or Result.failure with COUNTER_OVERFLOW / INCONSISTENT_STATE. Every
        check runs before the first write, so a failure leaves storage and
        the event sink untouched.
        """
        payload = bytes(payload)

        counter = self.accumulator_count(account_id)

        next_count = checked_add(counter, 1)
        if next_count is None:
            return Result.failure(
                Error.create(ErrorCode.COUNTER_OVERFLOW, "accumulator overflow")
                .with_context("account_id", account_id.value)
                .with_context("counter", str(counter))
            )

        slot = AccumulatorIndex(counter)
        if self._list.contains_key(account_id, slot):
            return Result.failure(
                Error.create(ErrorCode.INCONSISTENT_STATE, "inconsistent accumulator counter")
                .with_context("account_id", account_id.value)
                .with_context("counter", str(counter))
            )

        self._list.insert(account_id, slot, payload)
        self._count.insert(account_id, next_count)

        if self._deposit_event is not None:
            self._deposit_event(AccumulatorUpdated(
                account_id=account_id,
                new_count=next_count,
                payload=payload
            ))

        return Result.success(slot)

    # =========================================================================
    # QUERY SURFACE (read-only)
    # =========================================================================

    def accumulator_count(self, account_id: AccountId) -> int:
        """Number of accumulators stored for the account, 0 if never seen."""
        count = self._count.try_get(account_id)
        return count if count is not None else 0

    def accumulator_list(self, account_id: AccountId, index: AccumulatorIndex) -> Optional[bytes]:
        """Accumulator at index, None if the slot is empty."""
        return self._list.get(account_id, index)

    def accumulators(
        self,
        account_id: AccountId,
        offset: int = 0,
        limit: Optional[int] = None
    ) -> List[bytes]:
        """Enumerate the account's log in append order."""
        count = self.accumulator_count(account_id)
        end = count if limit is None else min(count, offset + limit)

        return [
            self._list.get(account_id, AccumulatorIndex(i))
            for i in range(max(offset, 0), end)
        ]

    def latest(self, account_id: AccountId) -> Optional[bytes]:
        """Most recent accumulator, the one current attestations refer to."""
        count = self.accumulator_count(account_id)
        if count == 0:
            return None
        return self._list.get(account_id, AccumulatorIndex(count - 1))

    def verify_density(self, account_id: AccountId, probe: int = 1) -> Result:
        """
        Check the density invariant for one account.

        Every slot below the counter must be present; the probe slots
        directly above it must be absent.
        """
        count = self.accumulator_count(account_id)

        for i in range(count):
            if not self._list.contains_key(account_id, AccumulatorIndex(i)):
                return Result.failure(
                    Error.create(ErrorCode.INVARIANT_VIOLATION, f"missing accumulator at index {i}")
                    .with_context("account_id", account_id.value)
                )

        for i in range(count, min(count + probe, U64_MAX + 1)):
            if self._list.contains_key(account_id, AccumulatorIndex(i)):
                return Result.failure(
                    Error.create(ErrorCode.INVARIANT_VIOLATION, f"unexpected accumulator at index {i}")
                    .with_context("account_id", account_id.value)
                )

        return Result.success(count)


__all__ = [
    'AccumulatorStore',
    'AccumulatorListMap',
    'AccumulatorCountMap',
    'EventSink',
]
