"""
Replay Invariant Tests

AXIOM UNDER TEST:
=================
Any two nodes replaying the same sequence of calls arrive at bit-identical
storage state, and a file-backed ledger reopens into exactly the state it
committed.
"""

from accumulator_ledger.contracts.base import AccountId, AccumulatorIndex
from accumulator_ledger.contracts.events import AccumulatorUpdated, EventRecord
from accumulator_ledger.runtime import Origin

from .fixtures import (
    ATTESTER_A, ATTESTER_B, SCENARIO_CALLS,
    apply_calls, file_ledger, memory_ledger
)


class TestDispatchOutcomes:
    def test_indices_and_events(self):
        ledger = memory_ledger()
        outcomes = apply_calls(ledger)

        assert [o.result.value for o in outcomes] == [
            AccumulatorIndex(0), AccumulatorIndex(1), AccumulatorIndex(0), AccumulatorIndex(2)
        ]
        assert [o.extrinsic_index for o in outcomes] == [0, 1, 2, 3]
        assert outcomes[3].events == (
            EventRecord(
                extrinsic_index=3,
                event=AccumulatorUpdated(AccountId(ATTESTER_A), 3, bytes([7, 8, 9]))
            ),
        )

    def test_event_log_mirrors_successful_calls(self):
        ledger = memory_ledger()
        apply_calls(ledger)

        events = [r.event for r in ledger.events()]
        assert [(e.account_id.value, e.new_count, e.payload) for e in events] == [
            (ATTESTER_A, 1, bytes([1, 2, 3])),
            (ATTESTER_A, 2, bytes([4, 5, 6])),
            (ATTESTER_B, 1, b""),
            (ATTESTER_A, 3, bytes([7, 8, 9])),
        ]

    def test_event_paging(self):
        ledger = memory_ledger()
        apply_calls(ledger)

        assert len(ledger.events(offset=1, limit=2)) == 2
        assert ledger.events(offset=1, limit=2)[0].extrinsic_index == 1

    def test_invariants_hold_after_scenario(self):
        ledger = memory_ledger()
        apply_calls(ledger)

        result = ledger.verify_invariants()

        assert result.is_success
        assert result.value == 2
        assert [a.value for a in ledger.known_accounts()] == [ATTESTER_A, ATTESTER_B]


class TestDeterministicReplay:
    def test_memory_and_file_nodes_agree(self, tmp_path):
        memory = memory_ledger()
        disk = file_ledger(str(tmp_path))

        apply_calls(memory)
        apply_calls(disk)

        assert memory.state_root() == disk.state_root()

    def test_checkpoints_agree_across_nodes(self):
        first, second = memory_ledger(), memory_ledger()
        apply_calls(first)
        apply_calls(second)

        assert first.create_checkpoint().state_hash == second.create_checkpoint().state_hash

    def test_different_order_different_root(self):
        first, second = memory_ledger(), memory_ledger()
        apply_calls(first)
        apply_calls(second, list(reversed(SCENARIO_CALLS)))

        assert first.state_root() != second.state_root()


class TestFilePersistence:
    def test_reopen_restores_state_and_events(self, tmp_path):
        ledger = file_ledger(str(tmp_path))
        apply_calls(ledger)
        root = ledger.state_root()

        reopened = file_ledger(str(tmp_path))

        assert reopened.state_root() == root
        assert reopened.accumulator_count(ATTESTER_A) == 3
        assert reopened.accumulators(ATTESTER_A) == [bytes([1, 2, 3]), bytes([4, 5, 6]), bytes([7, 8, 9])]
        assert len(reopened.events()) == 4

    def test_appends_continue_after_reopen(self, tmp_path):
        apply_calls(file_ledger(str(tmp_path)))

        reopened = file_ledger(str(tmp_path))
        outcome = reopened.update_accumulator(ATTESTER_A, b"\x0a")

        assert outcome.result.value == AccumulatorIndex(3)
        assert outcome.extrinsic_index == 4
        assert reopened.verify_invariants().is_success

    def test_failed_call_leaves_journal_untouched(self, tmp_path):
        ledger = file_ledger(str(tmp_path))
        apply_calls(ledger)
        state_file = tmp_path / "state.jsonl"
        events_file = tmp_path / "events.jsonl"
        state_before = state_file.read_text()
        events_before = events_file.read_text()

        ledger.submit(Origin.none(), b"rejected")

        assert state_file.read_text() == state_before
        assert events_file.read_text() == events_before

    def test_torn_event_line_is_dropped_on_reopen(self, tmp_path):
        apply_calls(file_ledger(str(tmp_path)))
        events_file = tmp_path / "events.jsonl"
        with open(events_file, 'a') as f:
            f.write('{"extrinsic_index": 4, "event": "Upd')

        reopened = file_ledger(str(tmp_path))

        assert len(reopened.events()) == 4
        assert events_file.read_text().endswith("}\n")
        assert reopened.update_accumulator(ATTESTER_B, b"\x01").extrinsic_index == 4
        assert len(file_ledger(str(tmp_path)).events()) == 5

    def test_trailing_failed_dispatch_index_is_reused_after_reopen(self, tmp_path):
        ledger = file_ledger(str(tmp_path))
        apply_calls(ledger)

        failed = ledger.submit(Origin.none(), b"rejected")
        reopened = file_ledger(str(tmp_path))

        assert failed.extrinsic_index == 4
        assert reopened.update_accumulator(ATTESTER_B, b"\x01").extrinsic_index == 4


class TestAuditTrail:
    def test_successful_appends_are_audited(self):
        ledger = memory_ledger()
        apply_calls(ledger)

        report = ledger.get_audit_report()
        assert report['by_layer']['core'] == 4
        assert report['by_layer']['storage'] == 4
        assert report['by_layer']['runtime'] == 4
        assert report['dispatches'] == 4
        assert report['failed_dispatches'] == 0
        assert report['accumulator_updates'] == 4

        metrics = ledger.observability.get_metrics()
        assert metrics.compute_aggregates("accumulator_updates_total")['sum'] == 4
        assert metrics.compute_aggregates("accumulator_payload_bytes")['max'] == 3
