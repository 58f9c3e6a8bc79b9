"""
Forensic Reporter CLI
=====================

Tool for forensic verification of a file-backed accumulator ledger.
Bypasses the API to inspect disk state directly.

COMMANDS:
- verify:  Replay events.jsonl into a fresh store and compare state roots
- count:   Accumulator count of one account
- list:    Dump one account's accumulator log
- events:  Dump the runtime event log
- root:    Print the on-disk state root

USAGE:
    python -m accumulator_ledger.forensic --storage-dir DIR [COMMAND] [ARGS]
"""
import argparse
import os
import sys
from typing import List, Optional

from .contracts.base import AccountId, AccumulatorIndex
from .core import AccumulatorStore
from .engine import STORAGE_DIR_ENV
from .runtime import FileRuntimeEventLog, load_event_records
from .storage import FileStorageBackend, InMemoryStorageBackend, JournalCorrupted, StorageOverlay


def open_backend(storage_dir: str) -> FileStorageBackend:
    return FileStorageBackend(storage_dir)


def cmd_verify(args) -> int:
    """Replay the event log and compare against the on-disk state."""
    print(f"[*] Verifying storage at: {args.storage_dir}")
    events_path = os.path.join(args.storage_dir, FileRuntimeEventLog.EVENTS_FILE)
    records = load_event_records(events_path)
    print(f"    Loaded {len(records)} event records.")

    replica = InMemoryStorageBackend()
    errors = 0

    print("[*] Replaying events...")
    for record in records:
        event = record.event
        overlay = StorageOverlay(replica)
        result = AccumulatorStore(overlay).append(event.account_id, event.payload)

        if result.is_failure:
            print(f"[FAIL] Extrinsic {record.extrinsic_index}: {result.error.code.name}: {result.error.message}")
            overlay.discard()
            errors += 1
            continue

        if result.value.value != event.index:
            print(
                f"[FAIL] Extrinsic {record.extrinsic_index}: replay stored index "
                f"{result.value.value}, event reports {event.index}"
            )
            errors += 1
        overlay.commit()

    print("[*] Checking density invariant...")
    reader = AccumulatorStore(replica)
    accounts = sorted({r.event.account_id.value for r in records})
    for value in accounts:
        density = reader.verify_density(AccountId(value))
        if density.is_failure:
            print(f"[FAIL] {value}: {density.error.message}")
            errors += 1

    print("[*] Comparing state roots...")
    replayed_root = replica.state_root()
    disk_root = open_backend(args.storage_dir).state_root()
    if replayed_root != disk_root:
        print(f"[FAIL] State root mismatch: replayed {replayed_root} != disk {disk_root}")
        errors += 1

    if errors == 0:
        print(f"[PASS] Verified {len(records)} events across {len(accounts)} accounts. Integrity intact.")
        print(f"[INFO] State root: {disk_root}")
        return 0

    print(f"[FAIL] Found {errors} errors.")
    return 1


def cmd_count(args) -> int:
    store = AccumulatorStore(open_backend(args.storage_dir))
    print(store.accumulator_count(AccountId(args.account)))
    return 0


def cmd_list(args) -> int:
    store = AccumulatorStore(open_backend(args.storage_dir))
    account_id = AccountId(args.account)
    count = store.accumulator_count(account_id)

    if count == 0:
        print("No accumulators.")
        return 0

    print("INDEX | BYTES | ACCUMULATOR")
    print("-" * 80)
    for i in range(count):
        payload = store.accumulator_list(account_id, AccumulatorIndex(i))
        shown = payload.hex() if payload is not None else "<missing>"
        size = len(payload) if payload is not None else 0
        print(f"{i:<5} | {size:<5} | {shown[:64]}")
    return 0


def cmd_events(args) -> int:
    events_path = os.path.join(args.storage_dir, FileRuntimeEventLog.EVENTS_FILE)
    records = load_event_records(events_path)

    if not records:
        print("No log.")
        return 0

    print("EXT | ACCOUNT | COUNT | ACCUMULATOR")
    print("-" * 80)
    for record in records:
        event = record.event
        print(f"{record.extrinsic_index:<3} | {event.account_id.value} | {event.new_count} | {event.payload.hex()[:32]}")
    return 0


def cmd_root(args) -> int:
    print(open_backend(args.storage_dir).state_root())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Accumulator ledger forensic tool")
    parser.add_argument(
        "--storage-dir",
        default=os.environ.get(STORAGE_DIR_ENV, os.path.join(os.getcwd(), "data", "ledger")),
        help=f"Ledger storage directory (default: ${STORAGE_DIR_ENV} or ./data/ledger)"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("verify", help="Replay events and verify state").set_defaults(func=cmd_verify)

    count = subparsers.add_parser("count", help="Accumulator count of an account")
    count.add_argument("account")
    count.set_defaults(func=cmd_count)

    listing = subparsers.add_parser("list", help="Dump an account's accumulators")
    listing.add_argument("account")
    listing.set_defaults(func=cmd_list)

    subparsers.add_parser("events", help="Dump the runtime event log").set_defaults(func=cmd_events)
    subparsers.add_parser("root", help="Print the state root").set_defaults(func=cmd_root)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if not os.path.isdir(args.storage_dir):
        print(f"[!] Storage directory not found: {args.storage_dir}")
        return 1

    try:
        return args.func(args)
    except JournalCorrupted as e:
        print(f"[FAIL] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
