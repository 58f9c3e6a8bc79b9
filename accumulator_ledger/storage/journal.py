"""
JSON-Lines Journal Helpers
==========================

Both on-disk logs (state.jsonl and events.jsonl) are append-only files
holding one JSON document per line.

INVARIANTS:
- A line is only complete once its trailing newline is on disk
- An unparseable final line is a torn write: it is cut off on load
- An unparseable line anywhere else is corruption and is never skipped
"""

from __future__ import annotations
from typing import Dict, List
import json
import os


class JournalCorrupted(Exception):
    """Raised when a journal holds an unreadable record before its last line."""

    def __init__(self, path: str, line_number: int, reason: str):
        super().__init__(f"{path}: line {line_number} is corrupted ({reason})")
        self.path = path
        self.line_number = line_number


def read_journal(path: str) -> List[Dict]:
    """
    Load every complete record of a journal, oldest first.

    A torn final line is truncated away so that later appends start on a
    clean line boundary.
    """
    if not os.path.exists(path):
        return []

    with open(path, 'rb') as f:
        raw_lines = f.readlines()

    records: List[Dict] = []
    good_size = 0
    for number, raw in enumerate(raw_lines, start=1):
        is_last = number == len(raw_lines)
        if not raw.strip():
            good_size += len(raw)
            continue
        try:
            if not raw.endswith(b'\n'):
                raise ValueError("missing line terminator")
            records.append(json.loads(raw))
        except ValueError as e:
            if not is_last:
                raise JournalCorrupted(path, number, str(e)) from e
            os.truncate(path, good_size)
            break
        good_size += len(raw)

    return records


def append_lines(path: str, documents: List[Dict]):
    """
    Append documents as one write; on failure the file is cut back to its
    previous size before the error propagates.
    """
    payload = ''.join(json.dumps(doc) + '\n' for doc in documents)
    previous_size = os.path.getsize(path) if os.path.exists(path) else 0
    try:
        with open(path, 'a') as f:
            f.write(payload)
    except OSError:
        if os.path.exists(path) and os.path.getsize(path) > previous_size:
            os.truncate(path, previous_size)
        raise


def rewrite(path: str, documents: List[Dict]):
    """Replace a journal's contents atomically."""
    staging = path + '.tmp'
    with open(staging, 'w') as f:
        for doc in documents:
            f.write(json.dumps(doc) + '\n')
    os.replace(staging, path)
