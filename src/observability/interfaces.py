"""
LOT 7: Observability - Interfaces

Enregistreur de métriques injectable. Les composants émettent des
événements de mesure; l'implémentation injectée décide de l'agrégation
et de l'export.

Invariants:
    OBS_001: Aucun compteur global mutable, recorder injecté à la construction
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

Labels = Dict[str, str]


@dataclass(frozen=True)
class MetricKey:
    """Clé d'agrégation: nom + labels triés."""

    name: str
    labels: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def build(cls, name: str, labels: Optional[Labels] = None) -> "MetricKey":
        items = tuple(sorted((str(k), str(v)) for k, v in (labels or {}).items()))
        return cls(name=name, labels=items)


class IMetricsRecorder(ABC):
    """
    Interface enregistreur de métriques.

    Noms émis par le framework:
        compliance_checks_total{platform,result}
        compliance_check_duration_seconds{license_type}
        violations_detected_total{type,platform,severity}
        immediate_responses_total{severity}
        deployments_total{platform,status}
        deployment_duration_seconds{platform}
        monitored_platforms{platform,status}
    """

    @abstractmethod
    def increment(self, name: str, labels: Optional[Labels] = None, value: float = 1.0) -> None:
        """Incrémente un compteur."""
        pass

    @abstractmethod
    def observe(self, name: str, value: float, labels: Optional[Labels] = None) -> None:
        """Enregistre une observation (durée, taille)."""
        pass

    @abstractmethod
    def set_gauge(self, name: str, value: float, labels: Optional[Labels] = None) -> None:
        """Fixe la valeur d'une jauge."""
        pass
