"""
Typed views over the two accumulator storage maps.

Both maps live in the host's key/value state; these classes only encode
keys and values; they never hold data themselves.
"""

from __future__ import annotations
from typing import Optional

from ..contracts.base import AccountId, AccumulatorIndex
from ..storage import codec


class AccumulatorListMap:
    """(AccountId, AccumulatorIndex) -> Optional[bytes]"""

    def __init__(self, storage):
        self._storage = storage

    def get(self, account_id: AccountId, index: AccumulatorIndex) -> Optional[bytes]:
        return self._storage.get(codec.accumulator_list_key(account_id, index))

    def contains_key(self, account_id: AccountId, index: AccumulatorIndex) -> bool:
        return self._storage.contains(codec.accumulator_list_key(account_id, index))

    def insert(self, account_id: AccountId, index: AccumulatorIndex, payload: bytes):
        self._storage.put(codec.accumulator_list_key(account_id, index), payload)


class AccumulatorCountMap:
    """AccountId -> u64, absent reads as None (callers apply the zero default)."""

    def __init__(self, storage):
        self._storage = storage

    def try_get(self, account_id: AccountId) -> Optional[int]:
        return codec.decode_count(self._storage.get(codec.accumulator_count_key(account_id)))

    def insert(self, account_id: AccountId, count: int):
        self._storage.put(codec.accumulator_count_key(account_id), codec.encode_count(count))
