"""
Contracts shared by every layer.

Layers import types from here and never from each other's implementations.
"""

from .base import (
    U64_MAX, checked_add,
    ErrorCode, Error, Result,
    AccountId, AccumulatorIndex,
    Timestamp,
)
from .events import (
    AccumulatorUpdated, EventRecord,
    StorageWriteResult, ReplayCheckpoint,
    AuditEventType, AuditLogEntry, MetricPoint,
)

__all__ = [
    'U64_MAX',
    'checked_add',
    'ErrorCode',
    'Error',
    'Result',
    'AccountId',
    'AccumulatorIndex',
    'Timestamp',
    'AccumulatorUpdated',
    'EventRecord',
    'StorageWriteResult',
    'ReplayCheckpoint',
    'AuditEventType',
    'AuditLogEntry',
    'MetricPoint',
]
