"""
Canonical Key/Value Encoding
============================

Every ledger state entry is addressed by a byte key built the same way
on every node:

    blake2b_128(module) || blake2b_128(map_name) || blake2b_256(encoded_key)

The module and map names match the pallet declaration, and the map key
hasher is its opaque_blake2_256. The prefix hash is this project's own
choice: blake2b_128 rather than the twox_128 a Substrate node uses, so
keys are not byte-compatible with on-chain storage.

The map key itself is hashed (opaque), so entries are not iterable by
prefix of the original key. Readers enumerate an account's log through
its counter instead.

INVARIANTS:
- Encoding is a pure function of its inputs
- Distinct map keys never share an encoding
"""

from __future__ import annotations
from typing import Optional
import hashlib
import struct

from ..contracts.base import AccountId, AccumulatorIndex, U64_MAX

MODULE_PREFIX = "TemplateModule"
ACCUMULATOR_LIST = "AccumulatorList"
ACCUMULATOR_COUNT = "AccumulatorCount"


def blake2_128(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=16).digest()


def blake2_256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=32).digest()


def storage_prefix(module: str, map_name: str) -> bytes:
    """Prefix shared by every entry of one storage map."""
    return blake2_128(module.encode('utf-8')) + blake2_128(map_name.encode('utf-8'))


# =============================================================================
# KEY ENCODING
# =============================================================================

def encode_account(account_id: AccountId) -> bytes:
    """u32 little-endian length followed by the UTF-8 bytes."""
    raw = account_id.value.encode('utf-8')
    return struct.pack('<I', len(raw)) + raw


def encode_u64(value: int) -> bytes:
    if not 0 <= value <= U64_MAX:
        raise ValueError(f"value out of u64 range: {value}")
    return struct.pack('<Q', value)


def decode_u64(raw: bytes) -> int:
    if len(raw) != 8:
        raise ValueError(f"u64 must be 8 bytes, got {len(raw)}")
    return struct.unpack('<Q', raw)[0]


def accumulator_list_key(account_id: AccountId, index: AccumulatorIndex) -> bytes:
    encoded = encode_account(account_id) + encode_u64(index.value)
    return storage_prefix(MODULE_PREFIX, ACCUMULATOR_LIST) + blake2_256(encoded)


def accumulator_count_key(account_id: AccountId) -> bytes:
    encoded = encode_account(account_id)
    return storage_prefix(MODULE_PREFIX, ACCUMULATOR_COUNT) + blake2_256(encoded)


# =============================================================================
# VALUE ENCODING
# =============================================================================

def encode_count(count: int) -> bytes:
    return encode_u64(count)


def decode_count(raw: Optional[bytes]) -> Optional[int]:
    if raw is None:
        return None
    return decode_u64(raw)
