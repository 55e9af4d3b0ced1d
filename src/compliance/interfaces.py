"""
LOT 3: Interfaces Compliance

Évaluation des tentatives d'accès contre les restrictions d'une licence.

Invariants:
    EVAL_001: Table de règles fixe par type de licence
    EVAL_002: violations vide si et seulement si compliant
    EVAL_003: Intégrité vérifiée avant toute règle (fail-closed)
    EVAL_004: Altération de licence toujours escaladée en CRITICAL
    EVAL_005: Toute erreur d'évaluation = non conforme (jamais fail-open)
    EVAL_006: Durée mesurée autour de la vérification complète
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional


def _claim(payload: Mapping[str, Any], *keys: str) -> bool:
    for key in keys:
        if key in payload:
            return payload[key] is True
    return False


@dataclass(frozen=True)
class AccessAttempt:
    """
    Description éphémère d'une tentative d'accès.

    Les claims booléens sont absents (False) sauf déclaration explicite.
    """

    platform: str = "unknown"
    purpose: str = ""
    source: str = "unknown"
    attribution_provided: bool = False
    nda_signed: bool = False
    pre_approved: bool = False
    commercial_intent: bool = False
    license_digest: Optional[str] = None

    @classmethod
    def from_event(cls, payload: Mapping[str, Any]) -> "AccessAttempt":
        """
        Construit depuis un événement du flux d'accès.

        Accepte les clés du flux (licenseHash, commercial, attribution) et
        les noms de champs Python.
        """
        return cls(
            platform=str(payload.get("platform") or "unknown"),
            purpose=str(payload.get("purpose") or ""),
            source=str(payload.get("source") or "unknown"),
            attribution_provided=_claim(payload, "attribution_provided", "attribution"),
            nda_signed=_claim(payload, "nda_signed"),
            pre_approved=_claim(payload, "pre_approved"),
            commercial_intent=_claim(payload, "commercial_intent", "commercial"),
            license_digest=payload.get("license_digest") or payload.get("licenseHash"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform": self.platform,
            "purpose": self.purpose,
            "source": self.source,
            "attribution_provided": self.attribution_provided,
            "nda_signed": self.nda_signed,
            "pre_approved": self.pre_approved,
            "commercial_intent": self.commercial_intent,
            "license_digest": self.license_digest,
        }


@dataclass
class ComplianceResult:
    """
    Résultat d'une vérification de conformité.

    Conformité:
        EVAL_002: violations vide ssi compliant
        EVAL_005: error renseigné si l'évaluation a échoué
    """

    compliant: bool
    violations: List[str]
    license_digest: Optional[str]
    elapsed_ms: float
    error: Optional[str] = None
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def reason(self) -> Optional[str]:
        """Première raison de non-conformité."""
        return self.violations[0] if self.violations else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "compliant": self.compliant,
            "violations": list(self.violations),
            "license_digest": self.license_digest,
            "elapsed_ms": self.elapsed_ms,
            "error": self.error,
            "checked_at": self.checked_at.isoformat(),
        }


class IViolationReporter(ABC):
    """
    Récepteur des escalades émises par l'évaluateur.

    Implémenté par le pipeline de violations; l'évaluateur n'en dépend
    que par cette interface.
    """

    @abstractmethod
    async def report_tampering(self, license_digest: Optional[str], attempt: AccessAttempt, details: str) -> None:
        """Signale une licence altérée (EVAL_004: sévérité CRITICAL)."""
        pass


class IRestrictionEvaluator(ABC):
    """Interface évaluation de conformité."""

    @abstractmethod
    async def check(self, license: Any, attempt: AccessAttempt) -> ComplianceResult:
        """
        Vérifie une tentative d'accès (ne lève jamais).

        Returns:
            ComplianceResult, non conforme si intégrité ou évaluation en échec
        """
        pass
