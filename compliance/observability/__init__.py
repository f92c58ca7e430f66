"""
Observability & Audit Layer

RESPONSIBILITY: Audit logging and metrics for the store and access layers
ALLOWED INPUTS: Audit entries and metric points from other layers
OUTPUTS: AuditLogEntry, MetricPoint

WHAT THIS LAYER MUST NOT DO:
============================
- Modify system behavior
- Filter or interpret events (only record them)
- Block or fail other layer operations
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from enum import Enum
import hashlib
import itertools

from ..contracts.base import Timestamp, TimeRange
from ..contracts.events import AuditLogEntry, AuditEventType, MetricPoint


# =============================================================================
# LOG COLLECTORS (One per layer)
# =============================================================================

class LogCollector:
    """
    Append-only audit log collector for one layer.

    Entries are immutable; the collector never drops or rewrites them.
    """

    def __init__(self, layer_name: str):
        self._layer_name = layer_name
        self._entries: List[AuditLogEntry] = []
        self._sequence = itertools.count(1)

    def log(
        self,
        action: str,
        event_type: AuditEventType,
        entity_id: Optional[str] = None,
        metadata: Tuple[Tuple[str, str], ...] = ()
    ) -> AuditLogEntry:
        """Build and collect an entry for this layer."""
        timestamp = Timestamp.now()
        sequence = next(self._sequence)
        entry_hash = hashlib.sha256(
            f"{self._layer_name}_{action}|{sequence}|{timestamp.to_iso()}".encode()
        ).hexdigest()[:16]

        entry = AuditLogEntry(
            entry_id=f"audit_{entry_hash}",
            event_type=event_type,
            timestamp=timestamp,
            layer=self._layer_name,
            action=action,
            entity_id=entity_id,
            metadata=tuple(metadata)
        )
        self.collect(entry)
        return entry

    def collect(self, entry: AuditLogEntry):
        """Collect an audit entry (append-only)."""
        self._entries.append(entry)

    def get_entries(
        self,
        time_range: Optional[TimeRange] = None,
        event_type: Optional[AuditEventType] = None,
        action: Optional[str] = None
    ) -> List[AuditLogEntry]:
        """Get entries, optionally filtered."""
        entries = list(self._entries)

        if time_range:
            entries = [e for e in entries if time_range.contains(e.timestamp)]

        if event_type:
            entries = [e for e in entries if e.event_type == event_type]

        if action:
            entries = [e for e in entries if e.action == action]

        return entries

    @property
    def layer_name(self) -> str:
        return self._layer_name

    @property
    def entry_count(self) -> int:
        return len(self._entries)


# =============================================================================
# METRICS COLLECTOR
# =============================================================================

class MetricType(Enum):
    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass
class MetricDefinition:
    """Definition of a metric to collect."""
    name: str
    metric_type: MetricType
    description: str
    labels: Tuple[str, ...] = field(default_factory=tuple)


class MetricsCollector:
    """
    Append-only time series of metric points.
    """

    def __init__(self):
        self._metrics: Dict[str, List[MetricPoint]] = {}
        self._definitions: Dict[str, MetricDefinition] = {}
        self._register_default_metrics()

    def _register_default_metrics(self):
        defaults = [
            MetricDefinition(
                name="records_appended_total",
                metric_type=MetricType.COUNTER,
                description="Records appended to the store"
            ),
            MetricDefinition(
                name="records_stored",
                metric_type=MetricType.GAUGE,
                description="Records held by the store after each append"
            ),
            MetricDefinition(
                name="record_id_collisions_total",
                metric_type=MetricType.COUNTER,
                description="Derived record ids that were already taken"
            ),
            MetricDefinition(
                name="access_denied_total",
                metric_type=MetricType.COUNTER,
                description="Operations rejected by access control",
                labels=("operation",)
            ),
            MetricDefinition(
                name="roles_created_total",
                metric_type=MetricType.COUNTER,
                description="Role sets created",
                labels=("variant",)
            ),
        ]

        for definition in defaults:
            self.register_metric(definition)

    def register_metric(self, definition: MetricDefinition):
        self._definitions[definition.name] = definition
        if definition.name not in self._metrics:
            self._metrics[definition.name] = []

    def record(
        self,
        metric_name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ):
        """Record a metric data point."""
        if metric_name not in self._metrics:
            self._metrics[metric_name] = []

        label_tuple = tuple(sorted(labels.items())) if labels else ()

        point = MetricPoint(
            metric_name=metric_name,
            value=value,
            timestamp=Timestamp.now(),
            labels=label_tuple
        )
        self._metrics[metric_name].append(point)

    def increment(self, metric_name: str, labels: Optional[Dict[str, str]] = None):
        self.record(metric_name, 1.0, labels)

    def get_metric(
        self,
        metric_name: str,
        time_range: Optional[TimeRange] = None
    ) -> List[MetricPoint]:
        points = self._metrics.get(metric_name, [])

        if time_range:
            points = [p for p in points if time_range.contains(p.timestamp)]

        return list(points)

    def get_latest(self, metric_name: str) -> Optional[MetricPoint]:
        points = self._metrics.get(metric_name, [])
        return points[-1] if points else None

    def total(self, metric_name: str) -> float:
        return sum(p.value for p in self._metrics.get(metric_name, []))

    def compute_aggregates(
        self,
        metric_name: str,
        time_range: Optional[TimeRange] = None
    ) -> Dict[str, float]:
        """Compute aggregate statistics for a metric."""
        points = self.get_metric(metric_name, time_range)

        if not points:
            return {}

        values = [p.value for p in points]

        return {
            'count': len(values),
            'sum': sum(values),
            'min': min(values),
            'max': max(values),
            'avg': sum(values) / len(values),
        }

    @property
    def definitions(self) -> Dict[str, MetricDefinition]:
        return dict(self._definitions)
