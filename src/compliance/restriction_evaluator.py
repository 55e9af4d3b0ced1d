"""
LOT 3: Compliance - Restriction Evaluator

Moteur de règles par type de licence.

Invariants:
    EVAL_001: Table de règles fixe par type de licence
    EVAL_002: violations vide si et seulement si compliant
    EVAL_003: Intégrité vérifiée avant toute règle (fail-closed)
    EVAL_004: Altération de licence toujours escaladée en CRITICAL
    EVAL_005: Toute erreur d'évaluation = non conforme (jamais fail-open)
    EVAL_006: Durée mesurée autour de la vérification complète
"""

import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from src.licensing.interfaces import ILicenseCodec, License, LicenseType
from src.licensing.license_codec import LicenseCodec
from src.logging.structured_logger import StructuredLogger
from src.observability.interfaces import IMetricsRecorder
from src.observability.metrics_recorder import NullMetricsRecorder

from .interfaces import AccessAttempt, ComplianceResult, IRestrictionEvaluator, IViolationReporter

INTEGRITY_VIOLATION = "License integrity violation"

TRAINING_PURPOSES = frozenset({"ai-training", "machine-learning"})

Rule = Callable[[AccessAttempt], List[str]]


def _do_not_train(attempt: AccessAttempt) -> List[str]:
    return ["AI training not permitted"] if attempt.purpose in TRAINING_PURPOSES else []


def _commercial_restrictions(attempt: AccessAttempt) -> List[str]:
    return ["Commercial use not permitted"] if attempt.commercial_intent else []


def _attribution_required(attempt: AccessAttempt) -> List[str]:
    return [] if attempt.attribution_provided else ["Attribution required"]


def _nda_enforcement(attempt: AccessAttempt) -> List[str]:
    return [] if attempt.nda_signed else ["NDA signature required"]


def _pre_clearance(attempt: AccessAttempt) -> List[str]:
    return [] if attempt.pre_approved else ["Pre-clearance required"]


# EVAL_001: une règle par type, aucune autre source de violation
RULES: Dict[LicenseType, Rule] = {
    LicenseType.DO_NOT_TRAIN: _do_not_train,
    LicenseType.COMMERCIAL_RESTRICTIONS: _commercial_restrictions,
    LicenseType.ATTRIBUTION_REQUIRED: _attribution_required,
    LicenseType.NDA_ENFORCEMENT: _nda_enforcement,
    LicenseType.PRE_CLEARANCE: _pre_clearance,
}


def evaluate_restrictions(license: License, attempt: AccessAttempt) -> List[str]:
    """
    Applique la règle du type de licence (fonction pure).

    Raises:
        KeyError: Type sans règle
    """
    return RULES[license.type](attempt)


class RestrictionEvaluator(IRestrictionEvaluator):
    """
    Évaluateur de conformité.

    Ne dépend que de License, AccessAttempt, du codec et, optionnellement,
    d'un IViolationReporter: testable sans réseau ni stockage.

    Example:
        evaluator = RestrictionEvaluator(codec)
        result = await evaluator.check(license, AccessAttempt(purpose="ai-training"))
        result.violations  # ["AI training not permitted"]
    """

    def __init__(
        self,
        codec: Optional[ILicenseCodec] = None,
        reporter: Optional[IViolationReporter] = None,
        metrics: Optional[IMetricsRecorder] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._codec = codec or LicenseCodec()
        self._reporter = reporter
        self._metrics = metrics or NullMetricsRecorder()
        self._logger = logger or StructuredLogger("compliance.evaluator")

    def set_reporter(self, reporter: Optional[IViolationReporter]) -> None:
        """Branche le récepteur d'escalades (câblage tardif)."""
        self._reporter = reporter

    async def check(
        self,
        license: Union[License, Mapping[str, Any]],
        attempt: AccessAttempt,
    ) -> ComplianceResult:
        """
        Vérifie une tentative d'accès.

        Processus:
            1. Valide l'intégrité (EVAL_003)
            2. Si invalide: non conforme + escalade CRITICAL (EVAL_004)
            3. Sinon applique la règle du type (EVAL_001)
            4. Toute exception devient un résultat non conforme (EVAL_005)
        """
        start = time.perf_counter()
        digest = self._digest_of(license)

        try:
            if not self._codec.validate(license):
                await self._escalate_tampering(digest, attempt)
                return self._finish(start, digest, [INTEGRITY_VIOLATION], attempt, license_type=None)

            resolved = license if isinstance(license, License) else License.from_dict(license)
            violations = evaluate_restrictions(resolved, attempt)
            return self._finish(start, digest, violations, attempt, license_type=resolved.type.value)

        except Exception as e:
            self._logger.error(
                "Compliance evaluation failed",
                license_digest=digest,
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._finish(
                start,
                digest,
                ["Compliance check error"],
                attempt,
                license_type=None,
                error=str(e),
            )

    async def _escalate_tampering(self, digest: Optional[str], attempt: AccessAttempt) -> None:
        self._logger.critical(
            "License integrity check failed",
            license_digest=digest,
            platform=attempt.platform,
            source=attempt.source,
        )
        if self._reporter is None:
            return
        try:
            await self._reporter.report_tampering(digest, attempt, "License integrity check failed")
        except Exception as e:
            # Résultat déjà non conforme, l'échec d'escalade est seulement journalisé
            self._logger.error(
                "Tampering escalation failed",
                license_digest=digest,
                error=str(e),
            )

    def _finish(
        self,
        start: float,
        digest: Optional[str],
        violations: List[str],
        attempt: AccessAttempt,
        license_type: Optional[str],
        error: Optional[str] = None,
    ) -> ComplianceResult:
        elapsed_ms = (time.perf_counter() - start) * 1000
        compliant = not violations and error is None

        self._metrics.increment(
            "compliance_checks_total",
            {"platform": attempt.platform, "result": "compliant" if compliant else "violation"},
        )
        self._metrics.observe(
            "compliance_check_duration_seconds",
            elapsed_ms / 1000,
            {"license_type": license_type or "unknown"},
        )
        self._logger.debug(
            "Compliance checked",
            license_digest=digest,
            compliant=compliant,
            violations=violations,
            elapsed_ms=round(elapsed_ms, 3),
        )

        return ComplianceResult(
            compliant=compliant,
            violations=list(violations),
            license_digest=digest,
            elapsed_ms=elapsed_ms,
            error=error,
        )

    @staticmethod
    def _digest_of(license: Union[License, Mapping[str, Any]]) -> Optional[str]:
        if isinstance(license, License):
            return license.integrity_digest
        if isinstance(license, Mapping):
            value = license.get("integrity_digest")
            return value if isinstance(value, str) else None
        return None
