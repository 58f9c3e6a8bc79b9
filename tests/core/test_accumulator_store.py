"""
Accumulator Store Tests
=======================

Tests for the append transition against an in-memory store.

INVARIANTS TESTED:
1. k-th append lands at index k and returns k
2. Counter equals log length, log is dense
3. Accounts are isolated
4. Failures leave storage untouched and emit nothing
"""

import pytest

from accumulator_ledger.contracts.base import (
    AccountId, AccumulatorIndex, ErrorCode, U64_MAX
)
from accumulator_ledger.contracts.events import AccumulatorUpdated
from accumulator_ledger.core import AccumulatorStore
from accumulator_ledger.storage import InMemoryStorageBackend, StorageOverlay


X = AccountId("5GrwvaEF-x")
Y = AccountId("5FHneW46-y")
Z = AccountId("5FLSigC9-z")


class FakeContext:
    """Plain dict storage context with get/contains/put."""

    def __init__(self):
        self.entries = {}

    def get(self, key):
        return self.entries.get(key)

    def contains(self, key):
        return key in self.entries

    def put(self, key, value):
        self.entries[key] = value


@pytest.fixture
def context():
    return FakeContext()


@pytest.fixture
def events():
    return []


@pytest.fixture
def store(context, events):
    return AccumulatorStore(context, deposit_event=events.append)


class TestAppendScenarios:
    """The worked examples: three appends for X, one for Y."""

    def test_first_append_returns_index_zero(self, store):
        result = store.append(X, bytes([1, 2, 3]))

        assert result.is_success
        assert result.value == AccumulatorIndex(0)
        assert store.accumulator_count(X) == 1
        assert store.accumulator_list(X, AccumulatorIndex(0)) == bytes([1, 2, 3])

    def test_second_append_keeps_first_slot(self, store):
        store.append(X, bytes([1, 2, 3]))
        result = store.append(X, bytes([4, 5, 6]))

        assert result.value == AccumulatorIndex(1)
        assert store.accumulator_count(X) == 2
        assert store.accumulator_list(X, AccumulatorIndex(1)) == bytes([4, 5, 6])
        assert store.accumulator_list(X, AccumulatorIndex(0)) == bytes([1, 2, 3])

    def test_three_appends_final_state(self, store):
        for payload in ([1, 2, 3], [4, 5, 6], [7, 8, 9]):
            store.append(X, bytes(payload))

        assert store.accumulator_count(X) == 3
        assert store.accumulators(X) == [bytes([1, 2, 3]), bytes([4, 5, 6]), bytes([7, 8, 9])]
        assert store.accumulator_list(X, AccumulatorIndex(3)) is None

    def test_empty_payload_for_other_account(self, store):
        for payload in ([1, 2, 3], [4, 5, 6], [7, 8, 9]):
            store.append(X, bytes(payload))

        result = store.append(Y, b"")

        assert result.value == AccumulatorIndex(0)
        assert store.accumulator_count(Y) == 1
        assert store.accumulator_list(Y, AccumulatorIndex(0)) == b""
        assert store.accumulator_count(X) == 3


class TestEvents:
    def test_updated_event_carries_new_count(self, store, events):
        store.append(X, b"\x01")
        store.append(X, b"\x02")

        assert events == [
            AccumulatorUpdated(account_id=X, new_count=1, payload=b"\x01"),
            AccumulatorUpdated(account_id=X, new_count=2, payload=b"\x02"),
        ]
        assert events[-1].index == 1

    def test_store_without_sink_still_appends(self, context):
        store = AccumulatorStore(context)
        assert store.append(X, b"abc").is_success
        assert store.accumulator_count(X) == 1


class TestFailures:
    def test_inconsistent_state_when_slot_occupied(self, store, context, events):
        """Counter says 5 but slot 5 is already populated."""
        store._count.insert(Z, 5)
        store._list.insert(Z, AccumulatorIndex(5), b"stale")
        before = dict(context.entries)

        result = store.append(Z, b"fresh")

        assert result.is_failure
        assert result.error.code == ErrorCode.INCONSISTENT_STATE
        assert context.entries == before
        assert events == []
        assert store.accumulator_count(Z) == 5
        assert store.accumulator_list(Z, AccumulatorIndex(5)) == b"stale"

    def test_counter_overflow(self, store, context, events):
        store._count.insert(Z, U64_MAX)
        before = dict(context.entries)

        result = store.append(Z, b"one too many")

        assert result.is_failure
        assert result.error.code == ErrorCode.COUNTER_OVERFLOW
        assert context.entries == before
        assert events == []

    def test_counter_just_below_max_succeeds(self, store):
        store._count.insert(Z, U64_MAX - 1)

        result = store.append(Z, b"last")

        assert result.value == AccumulatorIndex(U64_MAX - 1)
        assert store.accumulator_count(Z) == U64_MAX

    def test_error_context_names_account(self, store):
        store._count.insert(Z, U64_MAX)
        error = store.append(Z, b"x").error
        assert ("account_id", Z.value) in error.context

    def test_next_slot_occupied_does_not_block_append(self, store):
        """Only the slot about to be written is checked."""
        store._list.insert(Z, AccumulatorIndex(1), b"ahead")

        result = store.append(Z, b"first")

        assert result.value == AccumulatorIndex(0)


class TestQueries:
    def test_unknown_account_reads_zero(self, store):
        assert store.accumulator_count(AccountId("nobody")) == 0
        assert store.accumulators(AccountId("nobody")) == []
        assert store.latest(AccountId("nobody")) is None

    def test_repeated_reads_are_identical(self, store):
        store.append(X, b"abc")
        first = (store.accumulator_count(X), store.accumulator_list(X, AccumulatorIndex(0)))
        second = (store.accumulator_count(X), store.accumulator_list(X, AccumulatorIndex(0)))
        assert first == second

    def test_enumerate_with_offset_and_limit(self, store):
        for i in range(5):
            store.append(X, bytes([i]))

        assert store.accumulators(X, offset=1, limit=2) == [b"\x01", b"\x02"]
        assert store.accumulators(X, offset=4, limit=10) == [b"\x04"]
        assert store.accumulators(X, offset=9) == []
        assert store.latest(X) == b"\x04"

    def test_verify_density_detects_gap(self, store):
        store.append(X, b"a")
        store._count.insert(X, 2)

        result = store.verify_density(X)

        assert result.is_failure
        assert result.error.code == ErrorCode.INVARIANT_VIOLATION

    def test_verify_density_detects_slot_past_counter(self, store):
        store.append(X, b"a")
        store._list.insert(X, AccumulatorIndex(1), b"b")

        assert store.verify_density(X).is_failure

    def test_reads_through_overlay_before_commit(self):
        backend = InMemoryStorageBackend()
        overlay = StorageOverlay(backend)
        AccumulatorStore(overlay).append(X, b"pending")

        assert AccumulatorStore(overlay).accumulator_count(X) == 1
        assert AccumulatorStore(backend).accumulator_count(X) == 0
