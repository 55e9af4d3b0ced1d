"""
LOT 6: Deployment Orchestrator Implementation

Diffusion parallèle d'une licence vers N plateformes avec vérification et
classification des échecs.

Invariants:
    DEPL_010: Échec d'une plateforme n'annule ni ne retarde les autres
    DEPL_011: Chaque plateforme dans exactement un de successful / failed
    DEPL_012: Concurrence bornée (max_concurrency)
    DEPL_013: Classification retryable / non-retryable indicative, jamais de retry
    DEPL_014: success_rate = successful / total * 100, 0 si total = 0
    DEPL_015: Échec de vérification attaché au résultat, jamais un échec de déploiement
"""

import asyncio
import errno
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

import httpx

from src.core.interfaces import DeploymentSettings
from src.licensing.interfaces import License
from src.logging.structured_logger import StructuredLogger
from src.observability.interfaces import IMetricsRecorder
from src.observability.metrics_recorder import NullMetricsRecorder

from .interfaces import (
    DeploymentOptions,
    DeploymentOutcome,
    DeploymentStatus,
    DeploymentSummary,
    ErrorClassification,
    FanOutResult,
    IDeploymentOrchestrator,
    IDeploymentStrategy,
    VerificationResult,
)
from .strategies import PlatformPermanentError, PlatformTransientError, generate_deployment_id
from .strategy_registry import DeploymentStrategyRegistry

TIMEOUT_ERROR = "Deployment timed out"

# DEPL_013: liste fixe, comparée au message et au code de l'erreur
RETRYABLE_MARKERS = (
    "ECONNRESET",
    "ETIMEDOUT",
    "ENOTFOUND",
    "Rate limit exceeded",
    "Service temporarily unavailable",
)

RETRYABLE_TYPES = (
    PlatformTransientError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
    httpx.TransportError,
)


def classify_error(error: BaseException) -> ErrorClassification:
    """
    Classe un échec de plateforme (DEPL_013).

    Indicatif uniquement: l'orchestrateur ne relance jamais.
    """
    if isinstance(error, RETRYABLE_TYPES):
        return ErrorClassification.RETRYABLE
    if isinstance(error, PlatformPermanentError):
        return ErrorClassification.NON_RETRYABLE

    code = getattr(error, "code", None)
    if code is None and isinstance(error, OSError) and error.errno is not None:
        code = errno.errorcode.get(error.errno)

    return _classify_by_markers(str(error), code)


def classify_failure(message: Optional[str]) -> ErrorClassification:
    """Classe un échec rapporté par une stratégie sans exception (DEPL_013)."""
    return _classify_by_markers(message or "", None)


def _classify_by_markers(message: str, code: Optional[str]) -> ErrorClassification:
    for marker in RETRYABLE_MARKERS:
        if marker in message or code == marker:
            return ErrorClassification.RETRYABLE
    return ErrorClassification.NON_RETRYABLE


class DeploymentOrchestrator(IDeploymentOrchestrator):
    """
    Orchestrateur de diffusion multi-plateformes.

    Invariants:
        DEPL_010: join "settle all", aucune exception propagée entre plateformes
        DEPL_011: une entrée par plateforme
        DEPL_012: asyncio.Semaphore(max_concurrency)
        DEPL_015: exception de verify convertie en VerificationResult échoué

    Example:
        orchestrator = DeploymentOrchestrator(registry)
        result = await orchestrator.deploy_to_many(license, ["github", "web"])
        result.summary.success_rate  # 100.0
    """

    def __init__(
        self,
        registry: DeploymentStrategyRegistry,
        settings: Optional[DeploymentSettings] = None,
        metrics: Optional[IMetricsRecorder] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        """
        Initialise l'orchestrateur.

        Args:
            registry: Registre des stratégies par plateforme.
            settings: max_concurrency, verify_by_default, timeout_seconds.
            metrics: Enregistreur de métriques.
            logger: Logger structuré.
        """
        self._registry = registry
        self._settings = settings or DeploymentSettings()
        self._metrics = metrics or NullMetricsRecorder()
        self._logger = logger or StructuredLogger("deployment.orchestrator")

    @property
    def registry(self) -> DeploymentStrategyRegistry:
        return self._registry

    async def deploy_to_one(
        self,
        license: License,
        platform: str,
        options: Optional[DeploymentOptions] = None,
    ) -> DeploymentOutcome:
        """
        Déploie sur une plateforme puis vérifie (sauf options["verify"] is False).

        Un résultat FAILED rendu par la stratégie n'est pas vérifié et reçoit
        une classification d'après son message si elle manque (DEPL_013).

        Raises:
            UnknownPlatformError: Aucune stratégie enregistrée
            Exception: Échec de la stratégie, propagé tel quel
        """
        strategy = self._registry.get(platform)
        opts: DeploymentOptions = dict(options or {})
        opts.setdefault("deployment_id", generate_deployment_id(platform))

        start = time.perf_counter()
        outcome = await strategy.deploy(license, opts)

        if not outcome.succeeded:
            outcome.error = outcome.error or "Deployment failed"
            if outcome.error_classification is None:
                outcome.error_classification = classify_failure(outcome.error)
        elif opts.get("verify", self._settings.verify_by_default) is not False:
            outcome.verification = await self._verify(strategy, license, outcome)

        outcome.duration_ms = (time.perf_counter() - start) * 1000
        outcome.completed_at = datetime.now(timezone.utc)

        self._metrics.increment("deployments_total", {"platform": platform, "status": outcome.status.value})
        self._metrics.observe("deployment_duration_seconds", outcome.duration_ms / 1000, {"platform": platform})
        if not outcome.succeeded:
            self._logger.error(
                "Platform deployment failed",
                license_digest=license.integrity_digest,
                platform=platform,
                deployment_id=outcome.deployment_id,
                error=outcome.error,
                classification=outcome.error_classification.value,
            )
            return outcome

        self._logger.info(
            "Platform deployment completed",
            license_digest=license.integrity_digest,
            platform=platform,
            deployment_id=outcome.deployment_id,
            verified=outcome.verification.verified if outcome.verification else None,
        )
        return outcome

    async def _verify(self, strategy: IDeploymentStrategy, license: License, outcome: DeploymentOutcome) -> VerificationResult:
        try:
            return await strategy.verify(license, outcome)
        except Exception as e:
            self._logger.warn(
                "Deployment verification failed",
                license_digest=license.integrity_digest,
                platform=outcome.platform,
                error=str(e),
            )
            return VerificationResult(verified=False, error=str(e))

    async def deploy_to_many(
        self,
        license: License,
        platforms: Sequence[str],
        options: Optional[DeploymentOptions] = None,
        timeout: Optional[float] = None,
    ) -> FanOutResult:
        """
        Déploie en parallèle sur toutes les plateformes.

        Processus:
            1. Une tâche par plateforme, bornée par le sémaphore (DEPL_012)
            2. Attente de toutes les tâches ou du timeout global
            3. Tâches non terminées annulées, reportées "Deployment timed out"
            4. Exceptions classées (DEPL_013), jamais propagées (DEPL_010)

        Args:
            platforms: Plateformes cibles (doublons ignorés)
            timeout: Timeout global en secondes (défaut: settings.timeout_seconds)
        """
        targets = list(dict.fromkeys(platforms))
        effective_timeout = timeout if timeout is not None else self._settings.timeout_seconds
        semaphore = asyncio.Semaphore(self._settings.max_concurrency)
        deployment_ids = {p: generate_deployment_id(p) for p in targets}

        async def _bounded(platform: str) -> DeploymentOutcome:
            async with semaphore:
                opts = {**(options or {}), "deployment_id": deployment_ids[platform]}
                return await self.deploy_to_one(license, platform, opts)

        tasks: Dict[str, asyncio.Task] = {p: asyncio.ensure_future(_bounded(p)) for p in targets}
        pending: set = set()
        try:
            if tasks:
                _, pending = await asyncio.wait(tasks.values(), timeout=effective_timeout)
        except asyncio.CancelledError:
            for task in tasks.values():
                task.cancel()
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        successful: List[DeploymentOutcome] = []
        failed: List[DeploymentOutcome] = []

        for platform, task in tasks.items():
            if task in pending or task.cancelled():
                failed.append(
                    self._failed_outcome(
                        license,
                        platform,
                        deployment_ids[platform],
                        TIMEOUT_ERROR,
                        ErrorClassification.RETRYABLE,
                    )
                )
                continue

            error = task.exception()
            if error is None:
                outcome = task.result()
                (successful if outcome.succeeded else failed).append(outcome)
            else:
                failed.append(
                    self._failed_outcome(
                        license,
                        platform,
                        deployment_ids[platform],
                        str(error) or type(error).__name__,
                        classify_error(error),
                    )
                )

        total = len(targets)
        summary = DeploymentSummary(
            total=total,
            successful=len(successful),
            failed=len(failed),
            success_rate=(len(successful) / total * 100) if total else 0.0,
        )

        self._logger.info(
            "Deployment fan-out completed",
            license_digest=license.integrity_digest,
            total=summary.total,
            successful=summary.successful,
            failed=summary.failed,
            success_rate=summary.success_rate,
        )
        return FanOutResult(successful=successful, failed=failed, summary=summary)

    def _failed_outcome(
        self,
        license: License,
        platform: str,
        deployment_id: str,
        error: str,
        classification: ErrorClassification,
    ) -> DeploymentOutcome:
        self._metrics.increment("deployments_total", {"platform": platform, "status": DeploymentStatus.FAILED.value})
        self._logger.error(
            "Platform deployment failed",
            license_digest=license.integrity_digest,
            platform=platform,
            deployment_id=deployment_id,
            error=error,
            classification=classification.value,
        )
        return DeploymentOutcome(
            platform=platform,
            deployment_id=deployment_id,
            status=DeploymentStatus.FAILED,
            license_digest=license.integrity_digest,
            error=error,
            error_classification=classification,
        )
