"""
Observability & Audit Layer

RESPONSIBILITY: Audit trail and metrics for dispatches, commits and queries
ALLOWED INPUTS: Audit entries and metric samples from other layers
OUTPUTS: Per-layer audit logs, metric series, audit reports

WHAT THIS LAYER MUST NOT DO:
============================
- Modify ledger state
- Feed wall-clock data back into ledger state

BOUNDARY ENFORCEMENT:
=====================
- Receives immutable entries (never references to mutable state)
- Only declared metrics with their declared labels are accepted
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..contracts.base import Timestamp
from ..contracts.events import AuditLogEntry, AuditEventType, MetricPoint


# =============================================================================
# AUDIT LOG (One collector per layer)
# =============================================================================

class LogCollector:
    """Append-only audit entries of one layer."""

    def __init__(self):
        self._entries: List[AuditLogEntry] = []

    def collect(self, entry: AuditLogEntry):
        self._entries.append(entry)

    def get_entries(self, event_type: Optional[AuditEventType] = None) -> List[AuditLogEntry]:
        if event_type is None:
            return list(self._entries)
        return [e for e in self._entries if e.event_type == event_type]

    def __len__(self) -> int:
        return len(self._entries)


# =============================================================================
# LEDGER METRICS
# =============================================================================

# name -> (description, label names)
LEDGER_METRICS: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "accumulator_updates_total": ("Successful accumulator appends", ()),
    "dispatch_failures_total": ("Dispatched calls that returned an error", ("error_code",)),
    "accumulator_payload_bytes": ("Size of appended accumulators in bytes", ()),
    "storage_commit_latency_ms": ("Dispatch latency including storage commit", ()),
    "query_execution_time_ms": ("Query execution time in milliseconds", ("query_type",)),
}


class MetricsCollector:
    """
    Time series of the ledger metrics.

    Recording an undeclared metric, or one with labels other than the
    declared ones, raises ValueError.
    """

    def __init__(self):
        self._metrics: Dict[str, List[MetricPoint]] = {name: [] for name in LEDGER_METRICS}

    def record(
        self,
        metric_name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ):
        if metric_name not in LEDGER_METRICS:
            raise ValueError(f"Unknown metric: {metric_name}")

        label_tuple = tuple(sorted((labels or {}).items()))
        expected = tuple(sorted(LEDGER_METRICS[metric_name][1]))
        if tuple(k for k, _ in label_tuple) != expected:
            raise ValueError(f"{metric_name} expects labels {expected}")

        self._metrics[metric_name].append(MetricPoint(
            metric_name=metric_name,
            value=value,
            timestamp=Timestamp.now(),
            labels=label_tuple
        ))

    def get_metric(self, metric_name: str) -> List[MetricPoint]:
        return list(self._metrics.get(metric_name, []))

    def compute_aggregates(self, metric_name: str) -> Dict[str, float]:
        """count/sum/min/max/avg of a metric, empty when nothing was recorded."""
        values = [p.value for p in self._metrics.get(metric_name, [])]
        if not values:
            return {}

        return {
            'count': len(values),
            'sum': sum(values),
            'min': min(values),
            'max': max(values),
            'avg': sum(values) / len(values),
        }


# =============================================================================
# OBSERVABILITY ENGINE
# =============================================================================

@dataclass
class ObservabilityConfig:
    """Configuration for observability engine."""
    enable_metrics: bool = True
    enable_audit: bool = True


class ObservabilityEngine:
    """
    Central Observability Engine.

    Layers:
    - core: state changes made by successful appends
    - storage: commits and checkpoints, forwarded from the storage engine
    - runtime: one entry per dispatch (DISPATCH or ERROR)
    - query: reads served from committed state
    """

    LAYERS = ('core', 'storage', 'runtime', 'query')

    def __init__(self, config: Optional[ObservabilityConfig] = None):
        self._config = config or ObservabilityConfig()
        self._collectors: Dict[str, LogCollector] = {name: LogCollector() for name in self.LAYERS}
        self._unified: List[AuditLogEntry] = []
        self._metrics = MetricsCollector() if self._config.enable_metrics else None

    def collect_audit(self, entry: AuditLogEntry):
        """Collect an audit entry produced by one of the known layers."""
        if not self._config.enable_audit:
            return
        if entry.layer not in self._collectors:
            raise ValueError(f"Unknown audit layer: {entry.layer}")
        self._collectors[entry.layer].collect(entry)
        self._unified.append(entry)

    def log_audit(
        self,
        action: str,
        layer: str,
        event_type: AuditEventType,
        entity_id: Optional[str] = None,
        metadata: Tuple[Tuple[str, str], ...] = ()
    ):
        """Build and collect an entry; ids follow collection order."""
        self.collect_audit(AuditLogEntry(
            entry_id=f"audit_{layer}_{len(self._unified) + 1:08d}",
            event_type=event_type,
            timestamp=Timestamp.now(),
            layer=layer,
            action=action,
            entity_id=entity_id,
            metadata=metadata
        ))

    def collect_metric(
        self,
        metric_name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ):
        if self._metrics:
            self._metrics.record(metric_name, value, labels)

    def get_unified_log(self) -> List[AuditLogEntry]:
        """All audit entries in collection order."""
        return list(self._unified)

    def get_layer_log(
        self,
        layer_name: str,
        event_type: Optional[AuditEventType] = None
    ) -> List[AuditLogEntry]:
        collector = self._collectors.get(layer_name)
        if not collector:
            return []
        return collector.get_entries(event_type)

    def get_metrics(self) -> Optional[MetricsCollector]:
        return self._metrics

    def generate_audit_report(self) -> Dict:
        """Summary of the audit trail and the ledger counters."""
        by_type: Dict[str, int] = {}
        for entry in self._unified:
            by_type[entry.event_type.value] = by_type.get(entry.event_type.value, 0) + 1

        report = {
            'total_entries': len(self._unified),
            'by_layer': {name: len(c) for name, c in self._collectors.items() if len(c)},
            'by_event_type': by_type,
            'dispatches': len(self._collectors['runtime']),
            'failed_dispatches': len(self._collectors['runtime'].get_entries(AuditEventType.ERROR)),
            'time_range': {
                'start': self._unified[0].timestamp.to_iso() if self._unified else None,
                'end': self._unified[-1].timestamp.to_iso() if self._unified else None,
            },
            'generated_at': Timestamp.now().to_iso()
        }
        if self._metrics:
            report['accumulator_updates'] = int(
                self._metrics.compute_aggregates("accumulator_updates_total").get('sum', 0)
            )
        return report


__all__ = [
    'LogCollector',
    'LEDGER_METRICS',
    'MetricsCollector',
    'ObservabilityConfig',
    'ObservabilityEngine',
]
