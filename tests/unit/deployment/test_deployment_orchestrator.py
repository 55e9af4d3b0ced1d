"""
Tests unitaires pour DeploymentOrchestrator.

Invariants testés:
    DEPL_010: Échec d'une plateforme n'annule ni ne retarde les autres
    DEPL_011: Chaque plateforme dans exactement un de successful / failed
    DEPL_012: Concurrence bornée (max_concurrency)
    DEPL_013: Classification retryable / non-retryable indicative, jamais de retry
    DEPL_014: success_rate = successful / total * 100, 0 si total = 0
    DEPL_015: Échec de vérification attaché au résultat, jamais un échec de déploiement
"""

import asyncio
from typing import List, Optional

import pytest

from src.core.interfaces import DeploymentSettings
from src.deployment import (
    TIMEOUT_ERROR,
    DeploymentOrchestrator,
    DeploymentOutcome,
    DeploymentStatus,
    DeploymentStrategyRegistry,
    ErrorClassification,
    IDeploymentStrategy,
    PlatformPermanentError,
    PlatformTransientError,
    UnknownPlatformError,
    VerificationResult,
    classify_error,
)
from src.licensing import LicenseCodec
from src.observability.metrics_recorder import InMemoryMetricsRecorder


# ============================================================================
# Fixtures
# ============================================================================


class FakeStrategy(IDeploymentStrategy):
    """Stratégie configurable: délai, erreur de deploy, erreur de verify."""

    def __init__(
        self,
        platform: str,
        delay: float = 0.0,
        error: Optional[BaseException] = None,
        verify_error: Optional[BaseException] = None,
        verified: bool = True,
    ) -> None:
        self._platform = platform
        self._delay = delay
        self._error = error
        self._verify_error = verify_error
        self._verified = verified
        self.deploy_calls = 0
        self.verify_calls = 0
        self.active = 0
        self.peak: List[int] = []

    @property
    def platform(self) -> str:
        return self._platform

    async def deploy(self, license, options) -> DeploymentOutcome:
        self.deploy_calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return DeploymentOutcome(
            platform=self._platform,
            deployment_id=options["deployment_id"],
            status=DeploymentStatus.DEPLOYED,
            license_digest=license.integrity_digest,
            artifacts=["file"],
        )

    async def verify(self, license, outcome) -> VerificationResult:
        self.verify_calls += 1
        if self._verify_error is not None:
            raise self._verify_error
        return VerificationResult(verified=self._verified)


class FailedOutcomeStrategy(FakeStrategy):
    """Stratégie rendant un résultat FAILED sans lever d'exception."""

    def __init__(self, platform: str, error: Optional[str] = None) -> None:
        super().__init__(platform)
        self._failure = error

    async def deploy(self, license, options) -> DeploymentOutcome:
        self.deploy_calls += 1
        return DeploymentOutcome(
            platform=self._platform,
            deployment_id=options["deployment_id"],
            status=DeploymentStatus.FAILED,
            license_digest=license.integrity_digest,
            error=self._failure,
        )


class ConcurrencyTracker(FakeStrategy):
    """Mesure le nombre de deploy simultanés, partagé entre instances."""

    def __init__(self, platform: str, counter: dict) -> None:
        super().__init__(platform)
        self._counter = counter

    async def deploy(self, license, options) -> DeploymentOutcome:
        self._counter["active"] += 1
        self._counter["peak"] = max(self._counter["peak"], self._counter["active"])
        try:
            await asyncio.sleep(0.01)
            return await super().deploy(license, options)
        finally:
            self._counter["active"] -= 1


@pytest.fixture
def license():
    return LicenseCodec().generate("do-not-train", "Jane", "dataset", {"ai_training": False})


@pytest.fixture
def metrics() -> InMemoryMetricsRecorder:
    return InMemoryMetricsRecorder()


def _orchestrator(strategies, metrics=None, **settings) -> DeploymentOrchestrator:
    registry = DeploymentStrategyRegistry({s.platform: s for s in strategies})
    return DeploymentOrchestrator(registry, DeploymentSettings(**settings), metrics=metrics)


# ============================================================================
# deploy_to_one
# ============================================================================


class TestDeployToOne:
    @pytest.mark.asyncio
    async def test_deploys_and_verifies(self, license):
        strategy = FakeStrategy("web")
        outcome = await _orchestrator([strategy]).deploy_to_one(license, "web")

        assert outcome.succeeded
        assert outcome.verification.verified is True
        assert outcome.deployment_id.startswith("web-")
        assert outcome.duration_ms >= 0
        assert strategy.verify_calls == 1

    @pytest.mark.asyncio
    async def test_verify_disabled_by_option(self, license):
        strategy = FakeStrategy("web")
        outcome = await _orchestrator([strategy]).deploy_to_one(license, "web", {"verify": False})

        assert outcome.verification is None
        assert strategy.verify_calls == 0

    @pytest.mark.asyncio
    async def test_verify_disabled_by_settings(self, license):
        strategy = FakeStrategy("web")
        outcome = await _orchestrator([strategy], verify_by_default=False).deploy_to_one(license, "web")

        assert outcome.verification is None

    @pytest.mark.asyncio
    async def test_unknown_platform_raises(self, license):
        with pytest.raises(UnknownPlatformError):
            await _orchestrator([]).deploy_to_one(license, "myspace")

    @pytest.mark.asyncio
    async def test_strategy_error_propagates(self, license):
        strategy = FakeStrategy("github", error=PlatformPermanentError("HTTP 403"))

        with pytest.raises(PlatformPermanentError):
            await _orchestrator([strategy]).deploy_to_one(license, "github")


class TestDEPL015Verification:
    """DEPL_015: vérification attachée, jamais cause d'échec."""

    @pytest.mark.asyncio
    async def test_DEPL_015_verify_exception_attached(self, license):
        strategy = FakeStrategy("github", verify_error=RuntimeError("read failed"))
        outcome = await _orchestrator([strategy]).deploy_to_one(license, "github")

        assert outcome.status == DeploymentStatus.DEPLOYED
        assert outcome.verification.verified is False
        assert outcome.verification.error == "read failed"

    @pytest.mark.asyncio
    async def test_DEPL_015_unverified_still_successful(self, license):
        strategy = FakeStrategy("github", verified=False)
        result = await _orchestrator([strategy]).deploy_to_many(license, ["github"])

        assert [o.platform for o in result.successful] == ["github"]
        assert result.successful[0].verification.verified is False


# ============================================================================
# deploy_to_many
# ============================================================================


class TestDEPL010Isolation:
    """DEPL_010: une plateforme en échec n'affecte pas les autres."""

    @pytest.mark.asyncio
    async def test_DEPL_010_failure_isolated(self, license):
        strategies = [
            FakeStrategy("github", error=PlatformTransientError("Rate limit exceeded (HTTP 429)")),
            FakeStrategy("web"),
            FakeStrategy("npm"),
        ]
        result = await _orchestrator(strategies).deploy_to_many(license, ["github", "web", "npm"])

        assert [o.platform for o in result.successful] == ["web", "npm"]
        assert [o.platform for o in result.failed] == ["github"]
        assert result.failed[0].error == "Rate limit exceeded (HTTP 429)"

    @pytest.mark.asyncio
    async def test_DEPL_010_unknown_platform_is_failure(self, license):
        result = await _orchestrator([FakeStrategy("web")]).deploy_to_many(license, ["web", "myspace"])

        assert result.outcome_for("web").succeeded
        failed = result.outcome_for("myspace")
        assert failed.status == DeploymentStatus.FAILED
        assert failed.error_classification == ErrorClassification.NON_RETRYABLE

    @pytest.mark.asyncio
    async def test_DEPL_010_timeout_reported(self, license):
        strategies = [FakeStrategy("slow", delay=5.0), FakeStrategy("fast")]
        result = await _orchestrator(strategies).deploy_to_many(license, ["slow", "fast"], timeout=0.05)

        assert [o.platform for o in result.successful] == ["fast"]
        timed_out = result.outcome_for("slow")
        assert timed_out.error == TIMEOUT_ERROR
        assert timed_out.retryable

    @pytest.mark.asyncio
    async def test_DEPL_010_settings_timeout(self, license):
        strategies = [FakeStrategy("slow", delay=5.0)]
        result = await _orchestrator(strategies, timeout_seconds=0.05).deploy_to_many(license, ["slow"])

        assert result.failed[0].error == TIMEOUT_ERROR


class TestDEPL011Partition:
    """DEPL_011: une entrée par plateforme."""

    @pytest.mark.asyncio
    async def test_DEPL_011_returned_failure_routed_to_failed(self, license, metrics):
        failing = FailedOutcomeStrategy("p2", error="quota")
        strategies = [FakeStrategy("p1"), failing]
        result = await _orchestrator(strategies, metrics=metrics).deploy_to_many(license, ["p1", "p2"])

        assert [o.platform for o in result.successful] == ["p1"]
        assert [o.platform for o in result.failed] == ["p2"]
        assert result.summary.success_rate == 50.0
        assert failing.verify_calls == 0
        assert result.failed[0].error == "quota"
        assert result.failed[0].error_classification == ErrorClassification.NON_RETRYABLE
        assert metrics.get_counter("deployments_total", {"platform": "p2", "status": "failed"}) == 1

    @pytest.mark.asyncio
    async def test_DEPL_011_returned_failure_classified_from_message(self, license):
        failing = FailedOutcomeStrategy("github", error="Rate limit exceeded")
        outcome = await _orchestrator([failing]).deploy_to_one(license, "github")

        assert outcome.verification is None
        assert failing.verify_calls == 0
        assert outcome.retryable

    @pytest.mark.asyncio
    async def test_DEPL_011_returned_failure_without_message(self, license):
        result = await _orchestrator([FailedOutcomeStrategy("web")]).deploy_to_many(license, ["web"])

        assert result.summary.success_rate == 0.0
        assert result.failed[0].error == "Deployment failed"
        assert result.failed[0].error_classification == ErrorClassification.NON_RETRYABLE

    @pytest.mark.asyncio
    async def test_DEPL_011_duplicates_ignored(self, license):
        web = FakeStrategy("web")
        result = await _orchestrator([web, FakeStrategy("npm")]).deploy_to_many(license, ["web", "web", "npm"])

        assert result.summary.total == 2
        assert web.deploy_calls == 1

    @pytest.mark.asyncio
    async def test_DEPL_011_each_platform_once(self, license):
        strategies = [
            FakeStrategy("a"),
            FakeStrategy("b", error=ValueError("bad")),
            FakeStrategy("c", verify_error=RuntimeError("x")),
        ]
        result = await _orchestrator(strategies).deploy_to_many(license, ["a", "b", "c"])

        platforms = [o.platform for o in result.successful + result.failed]
        assert sorted(platforms) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_DEPL_011_distinct_deployment_ids(self, license):
        result = await _orchestrator([FakeStrategy("a"), FakeStrategy("b")]).deploy_to_many(license, ["a", "b"])

        ids = {o.deployment_id for o in result.successful}
        assert len(ids) == 2


class TestDEPL012Concurrency:
    """DEPL_012: sémaphore max_concurrency."""

    @pytest.mark.asyncio
    async def test_DEPL_012_bounded(self, license):
        counter = {"active": 0, "peak": 0}
        strategies = [ConcurrencyTracker(f"p{i}", counter) for i in range(6)]
        result = await _orchestrator(strategies, max_concurrency=2).deploy_to_many(
            license, [s.platform for s in strategies]
        )

        assert result.summary.successful == 6
        assert counter["peak"] <= 2


class TestDEPL013Classification:
    """DEPL_013: classification indicative, aucune relance."""

    @pytest.mark.parametrize(
        "error",
        [
            PlatformTransientError("HTTP 503"),
            ConnectionResetError("reset"),
            asyncio.TimeoutError(),
            Exception("Service temporarily unavailable"),
            Exception("getaddrinfo ENOTFOUND api.github.com"),
        ],
    )
    def test_DEPL_013_retryable(self, error):
        assert classify_error(error) == ErrorClassification.RETRYABLE

    def test_DEPL_013_code_attribute(self):
        error = Exception("socket closed")
        error.code = "ECONNRESET"
        assert classify_error(error) == ErrorClassification.RETRYABLE

    @pytest.mark.parametrize(
        "error",
        [PlatformPermanentError("Rate limit exceeded"), ValueError("bad repo"), KeyError("repo")],
    )
    def test_DEPL_013_non_retryable(self, error):
        assert classify_error(error) == ErrorClassification.NON_RETRYABLE

    @pytest.mark.asyncio
    async def test_DEPL_013_no_retry(self, license):
        strategy = FakeStrategy("github", error=PlatformTransientError("HTTP 503"))
        result = await _orchestrator([strategy]).deploy_to_many(license, ["github"])

        assert strategy.deploy_calls == 1
        assert result.failed[0].retryable


class TestDEPL014Summary:
    """DEPL_014: taux de succès en pourcentage."""

    @pytest.mark.asyncio
    async def test_DEPL_014_rate(self, license):
        strategies = [FakeStrategy("a"), FakeStrategy("b"), FakeStrategy("c"), FakeStrategy("d", error=ValueError())]
        result = await _orchestrator(strategies).deploy_to_many(license, ["a", "b", "c", "d"])

        assert result.summary.total == 4
        assert result.summary.successful == 3
        assert result.summary.failed == 1
        assert result.summary.success_rate == 75.0
        assert result.failed[0].error == "ValueError"

    @pytest.mark.asyncio
    async def test_DEPL_014_empty(self, license):
        result = await _orchestrator([]).deploy_to_many(license, [])

        assert result.summary.total == 0
        assert result.summary.success_rate == 0.0


class TestMetrics:
    @pytest.mark.asyncio
    async def test_deployment_counters(self, license, metrics):
        strategies = [FakeStrategy("web"), FakeStrategy("npm", error=ValueError("x"))]
        await _orchestrator(strategies, metrics=metrics).deploy_to_many(license, ["web", "npm"])

        assert metrics.get_counter("deployments_total", {"platform": "web", "status": "deployed"}) == 1
        assert metrics.get_counter("deployments_total", {"platform": "npm", "status": "failed"}) == 1
        assert metrics.get_observations("deployment_duration_seconds", {"platform": "web"}).count == 1
