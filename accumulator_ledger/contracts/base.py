"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.
No behavior beyond validation, no side effects, no dependencies.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- All types are frozen dataclasses for immutability guarantee
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from enum import Enum, auto


# =============================================================================
# NUMERIC BOUNDS (u64 ledger arithmetic)
# =============================================================================

U64_MAX = 2 ** 64 - 1


def checked_add(value: int, increment: int) -> Optional[int]:
    """
    Add two u64 values, returning None instead of wrapping on overflow.
    """
    result = value + increment
    if result > U64_MAX:
        return None
    return result


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    No silent fallbacks - every error state is enumerated.
    """
    # Core errors
    COUNTER_OVERFLOW = auto()
    INCONSISTENT_STATE = auto()

    # Runtime errors
    BAD_ORIGIN = auto()

    # Storage errors
    STORAGE_WRITE_FAILED = auto()

    # Verification errors
    INVARIANT_VIOLATION = auto()
    UNVERIFIABLE_STATE = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @staticmethod
    def create(code: ErrorCode, message: str) -> Error:
        return Error(code=code, message=message, timestamp=Timestamp.now().value)

    def with_context(self, key: str, value: str) -> Error:
        """Return new Error with additional context (immutable)."""
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.timestamp,
            context=self.context + ((key, value),)
        )


@dataclass(frozen=True)
class Result:
    """
    Generic result type for operations that can fail.
    Either contains a value OR an error, never both.
    """
    value: Optional[object] = None
    error: Optional[Error] = None

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def is_failure(self) -> bool:
        return self.error is not None

    @staticmethod
    def success(value: object) -> Result:
        return Result(value=value, error=None)

    @staticmethod
    def failure(error: Error) -> Result:
        return Result(value=None, error=error)


# =============================================================================
# IDENTITY TYPES (Immutable, validated)
# =============================================================================

@dataclass(frozen=True)
class AccountId:
    """
    Immutable account identifier.

    The ledger treats it as an opaque map key. Authentication happened
    before an AccountId ever reaches this package.
    """
    value: str

    def __post_init__(self):
        if not self.value or not isinstance(self.value, str):
            raise ValueError("AccountId value must be a non-empty string")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, order=True)
class AccumulatorIndex:
    """Zero-based position inside one account's accumulator log (u64)."""
    value: int

    def __post_init__(self):
        if not isinstance(self.value, int) or isinstance(self.value, bool):
            raise ValueError("AccumulatorIndex value must be an integer")
        if not 0 <= self.value <= U64_MAX:
            raise ValueError(f"AccumulatorIndex out of u64 range: {self.value}")


# =============================================================================
# TEMPORAL TYPES (observability only, never ledger state)
# =============================================================================

@dataclass(frozen=True)
class Timestamp:
    """
    Immutable timestamp with explicit semantics.
    All timestamps are UTC, never local time.
    """
    value: datetime

    def __post_init__(self):
        # Ensure UTC timezone
        if self.value.tzinfo is None:
            object.__setattr__(self, 'value', self.value.replace(tzinfo=timezone.utc))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    def to_iso(self) -> str:
        return self.value.isoformat()
