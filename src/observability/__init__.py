"""
LOT 7: Observability

Enregistreur de métriques injectable (OBS_001).
"""

from .interfaces import IMetricsRecorder, Labels, MetricKey
from .metrics_recorder import (
    InMemoryMetricsRecorder,
    NullMetricsRecorder,
    ObservationSummary,
)

__all__ = [
    "IMetricsRecorder",
    "Labels",
    "MetricKey",
    "InMemoryMetricsRecorder",
    "NullMetricsRecorder",
    "ObservationSummary",
]
