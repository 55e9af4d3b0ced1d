"""
LOT 6: Interfaces Deployment

Diffusion d'une licence vers N plateformes via des stratégies enfichables.

Invariants:
    DEPL_001: Une stratégie par plateforme, contrat deploy + verify
    DEPL_002: Plateforme sans stratégie = UnknownPlatformError
    DEPL_003: Stratégies composées, jamais dérivées les unes des autres
    DEPL_010: Échec d'une plateforme n'annule ni ne retarde les autres
    DEPL_011: Chaque plateforme dans exactement un de successful / failed
    DEPL_012: Concurrence bornée (max_concurrency)
    DEPL_013: Classification retryable / non-retryable indicative, jamais de retry
    DEPL_014: success_rate = successful / total * 100, 0 si total = 0
    DEPL_015: Échec de vérification attaché au résultat, jamais un échec de déploiement
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from src.licensing.interfaces import License

DeploymentOptions = Dict[str, Any]


class DeploymentStatus(Enum):
    """Statut d'un déploiement sur une plateforme."""

    DEPLOYED = "deployed"
    FAILED = "failed"


class ErrorClassification(Enum):
    """Classification indicative d'un échec (DEPL_013)."""

    RETRYABLE = "retryable"
    NON_RETRYABLE = "non_retryable"


@dataclass
class VerificationResult:
    """Résultat de la vérification post-déploiement."""

    verified: bool
    details: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class DeploymentOutcome:
    """
    Résultat d'un déploiement sur une plateforme.

    Conformité:
        DEPL_013: error_classification renseigné si FAILED
        DEPL_015: verification jamais cause d'un FAILED
    """

    platform: str
    deployment_id: str
    status: DeploymentStatus
    license_digest: str
    artifacts: List[str] = field(default_factory=list)
    location: Optional[str] = None  # URL ou chemin des artefacts
    verification: Optional[VerificationResult] = None
    error: Optional[str] = None
    error_classification: Optional[ErrorClassification] = None
    duration_ms: float = 0.0
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == DeploymentStatus.DEPLOYED

    @property
    def retryable(self) -> bool:
        return self.error_classification == ErrorClassification.RETRYABLE


@dataclass
class DeploymentSummary:
    """Synthèse d'un fan-out (DEPL_014)."""

    total: int
    successful: int
    failed: int
    success_rate: float
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class FanOutResult:
    """Résultat agrégé d'un déploiement multi-plateformes (DEPL_011)."""

    successful: List[DeploymentOutcome]
    failed: List[DeploymentOutcome]
    summary: DeploymentSummary

    def outcome_for(self, platform: str) -> Optional[DeploymentOutcome]:
        for outcome in self.successful + self.failed:
            if outcome.platform == platform:
                return outcome
        return None


class IDeploymentStrategy(ABC):
    """
    Stratégie de diffusion pour une plateforme (DEPL_001).

    deploy lève en cas d'échec (PlatformTransientError,
    PlatformPermanentError ou toute autre exception); l'orchestrateur
    convertit l'exception en DeploymentOutcome FAILED.
    """

    @property
    @abstractmethod
    def platform(self) -> str:
        """Identifiant de la plateforme."""
        pass

    @abstractmethod
    async def deploy(self, license: License, options: DeploymentOptions) -> DeploymentOutcome:
        """Publie les artefacts de la licence."""
        pass

    @abstractmethod
    async def verify(self, license: License, outcome: DeploymentOutcome) -> VerificationResult:
        """Vérifie que les artefacts publiés portent le digest de la licence."""
        pass


class IDeploymentOrchestrator(ABC):
    """Interface orchestrateur de diffusion."""

    @abstractmethod
    async def deploy_to_one(
        self,
        license: License,
        platform: str,
        options: Optional[DeploymentOptions] = None,
    ) -> DeploymentOutcome:
        """
        Déploie sur une plateforme.

        Raises:
            UnknownPlatformError: Aucune stratégie enregistrée (DEPL_002)
        """
        pass

    @abstractmethod
    async def deploy_to_many(
        self,
        license: License,
        platforms: Sequence[str],
        options: Optional[DeploymentOptions] = None,
        timeout: Optional[float] = None,
    ) -> FanOutResult:
        """Déploie en parallèle, ne lève jamais pour un échec de plateforme."""
        pass
