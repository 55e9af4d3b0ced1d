"""
LOT 7: Observability - Metrics Recorders

Implémentations de IMetricsRecorder: agrégation mémoire et recorder nul.
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .interfaces import IMetricsRecorder, Labels, MetricKey


class NullMetricsRecorder(IMetricsRecorder):
    """Recorder par défaut: ignore toutes les mesures."""

    def increment(self, name: str, labels: Optional[Labels] = None, value: float = 1.0) -> None:
        pass

    def observe(self, name: str, value: float, labels: Optional[Labels] = None) -> None:
        pass

    def set_gauge(self, name: str, value: float, labels: Optional[Labels] = None) -> None:
        pass


@dataclass
class ObservationSummary:
    """Résumé d'une série d'observations."""

    count: int = 0
    total: float = 0.0
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    values: List[float] = field(default_factory=list)

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0.0


class InMemoryMetricsRecorder(IMetricsRecorder):
    """
    Agrégation mémoire des métriques, pour tests et exports ponctuels.

    Example:
        recorder = InMemoryMetricsRecorder()
        recorder.increment("deployments_total", {"platform": "github", "status": "deployed"})
        recorder.get_counter("deployments_total", {"platform": "github", "status": "deployed"})
        # 1.0
    """

    # Nombre max d'observations brutes conservées par série
    MAX_RAW_OBSERVATIONS: int = 1000

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[MetricKey, float] = {}
        self._gauges: Dict[MetricKey, float] = {}
        self._observations: Dict[MetricKey, ObservationSummary] = {}

    def increment(self, name: str, labels: Optional[Labels] = None, value: float = 1.0) -> None:
        key = MetricKey.build(name, labels)
        with self._lock:
            self._counters[key] = self._counters.get(key, 0.0) + value

    def observe(self, name: str, value: float, labels: Optional[Labels] = None) -> None:
        key = MetricKey.build(name, labels)
        with self._lock:
            summary = self._observations.setdefault(key, ObservationSummary())
            summary.count += 1
            summary.total += value
            summary.minimum = value if summary.minimum is None else min(summary.minimum, value)
            summary.maximum = value if summary.maximum is None else max(summary.maximum, value)
            if len(summary.values) < self.MAX_RAW_OBSERVATIONS:
                summary.values.append(value)

    def set_gauge(self, name: str, value: float, labels: Optional[Labels] = None) -> None:
        key = MetricKey.build(name, labels)
        with self._lock:
            self._gauges[key] = value

    def get_counter(self, name: str, labels: Optional[Labels] = None) -> float:
        """Valeur d'un compteur (0 si jamais incrémenté)."""
        return self._counters.get(MetricKey.build(name, labels), 0.0)

    def get_counter_total(self, name: str) -> float:
        """Somme d'un compteur sur toutes ses combinaisons de labels."""
        return sum(v for k, v in self._counters.items() if k.name == name)

    def get_gauge(self, name: str, labels: Optional[Labels] = None) -> Optional[float]:
        """Valeur d'une jauge, None si absente."""
        return self._gauges.get(MetricKey.build(name, labels))

    def get_observations(self, name: str, labels: Optional[Labels] = None) -> ObservationSummary:
        """Résumé des observations d'une série."""
        return self._observations.get(MetricKey.build(name, labels), ObservationSummary())

    def snapshot(self) -> Dict[str, Dict[str, float]]:
        """Export plat des compteurs et jauges."""

        def _fmt(key: MetricKey) -> str:
            if not key.labels:
                return key.name
            labels = ",".join(f"{k}={v}" for k, v in key.labels)
            return f"{key.name}{{{labels}}}"

        with self._lock:
            return {
                "counters": {_fmt(k): v for k, v in self._counters.items()},
                "gauges": {_fmt(k): v for k, v in self._gauges.items()},
                "observations": {_fmt(k): s.average for k, s in self._observations.items()},
            }

    def reset(self) -> None:
        """Remet toutes les métriques à zéro."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._observations.clear()
