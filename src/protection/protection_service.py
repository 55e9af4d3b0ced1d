"""
LOT 8: Protection - Protection Service

Façade du workflow complet et câblage depuis AppConfig.

Invariants:
    PROT_001: Licence stockée avant toute diffusion
    PROT_002: Révocation = changement de status, digest inchangé
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import httpx

from src.compliance.interfaces import AccessAttempt, ComplianceResult
from src.compliance.restriction_evaluator import RestrictionEvaluator
from src.core.crypto_provider import CryptoProvider
from src.core.interfaces import AppConfig, SignatureScheme
from src.deployment.deployment_orchestrator import DeploymentOrchestrator
from src.deployment.interfaces import DeploymentOptions, DeploymentSummary, FanOutResult
from src.deployment.strategies import build_default_registry
from src.licensing.artifacts import LicenseArtifactBuilder
from src.licensing.interfaces import License, LicenseStatus, LicenseType, RestrictionValue
from src.licensing.license_codec import LicenseCodec
from src.logging.structured_logger import StructuredLogger, create_logger
from src.messaging.interfaces import IEventBus
from src.messaging.memory_bus import InMemoryEventBus
from src.observability.interfaces import IMetricsRecorder
from src.observability.metrics_recorder import NullMetricsRecorder
from src.storage.interfaces import IComplianceLog, ILicenseStore, RecordNotFoundError
from src.storage.memory_store import InMemoryComplianceLog, InMemoryLicenseStore, InMemoryViolationStore
from src.violations.interfaces import IImmediateResponder, IViolationStore
from src.violations.violation_pipeline import ViolationPipeline

from .interfaces import IProtectionService, LicenseValidation, ProtectionResult


class LicenseNotFoundError(Exception):
    """Aucune licence stockée sous ce digest."""

    def __init__(self, digest: str) -> None:
        self.digest = digest
        super().__init__(f"License not found: {digest}")


class ProtectionService(IProtectionService):
    """
    Façade: génération, stockage, diffusion et contrôle des licences.

    Example:
        service = create_protection_service(ConfigLoader().load())
        result = await service.protect_content(
            "do-not-train", "Jane", dataset_bytes, ["web", "huggingface"]
        )
    """

    def __init__(
        self,
        codec: LicenseCodec,
        license_store: ILicenseStore,
        orchestrator: DeploymentOrchestrator,
        artifact_builder: LicenseArtifactBuilder,
        pipeline: ViolationPipeline,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._codec = codec
        self._licenses = license_store
        self._orchestrator = orchestrator
        self._builder = artifact_builder
        self._pipeline = pipeline
        self._logger = logger or StructuredLogger("protection.service")

    @property
    def codec(self) -> LicenseCodec:
        return self._codec

    @property
    def orchestrator(self) -> DeploymentOrchestrator:
        return self._orchestrator

    @property
    def pipeline(self) -> ViolationPipeline:
        return self._pipeline

    async def protect_content(
        self,
        license_type: Union[LicenseType, str],
        creator: str,
        content: Union[str, bytes],
        platforms: Sequence[str],
        restrictions: Optional[Mapping[str, RestrictionValue]] = None,
        expiration: Optional[datetime] = None,
        options: Optional[DeploymentOptions] = None,
    ) -> ProtectionResult:
        """
        Workflow complet.

        Processus:
            1. Génère la licence
            2. La stocke par digest (PROT_001)
            3. Diffuse sur les plateformes (échecs isolés par plateforme)

        Raises:
            UnsupportedLicenseTypeError: Type inconnu
        """
        license = self._codec.generate(license_type, creator, content, restrictions, expiration)
        await self._licenses.upsert(license)

        if platforms:
            deployment = await self._orchestrator.deploy_to_many(license, platforms, options)
        else:
            deployment = FanOutResult(
                successful=[],
                failed=[],
                summary=DeploymentSummary(total=0, successful=0, failed=0, success_rate=0.0),
            )

        self._logger.info(
            "Content protected",
            license_digest=license.integrity_digest,
            license_id=license.id,
            platforms=list(platforms),
            success_rate=deployment.summary.success_rate,
        )
        return ProtectionResult(
            license=license,
            deployment=deployment,
            json_ld=self._builder.json_ld(license),
            verification_url=self._builder.verify_url(license),
        )

    async def validate_license(self, digest: str) -> LicenseValidation:
        """Valide la licence stockée; status effectif (expiration incluse)."""
        record = await self._licenses.get_by_digest(digest)
        if record is None:
            return LicenseValidation(digest=digest, found=False, valid=False)

        valid = self._codec.validate(record)
        status: Optional[LicenseStatus] = None
        if valid:
            status = License.from_dict(record).effective_status()

        return LicenseValidation(
            digest=digest,
            found=True,
            valid=valid,
            status=status,
            license_id=record.get("id"),
        )

    def validate_bulk(self, records: List[Union[License, Mapping[str, Any]]]) -> List[bool]:
        return [self._codec.validate(record) for record in records]

    async def revoke_license(self, digest: str) -> License:
        """
        Raises:
            LicenseNotFoundError: Digest inconnu
        """
        try:
            license = await self._licenses.update_status(digest, LicenseStatus.REVOKED)
        except RecordNotFoundError:
            raise LicenseNotFoundError(digest) from None

        self._logger.warn("License revoked", license_digest=digest, license_id=license.id)
        return license

    def generate_platform_files(self, platform: str, license: License) -> Dict[str, str]:
        """
        Raises:
            UnsupportedPlatformArtifactError: Plateforme sans générateur
        """
        return dict(self._builder.platform_files(platform, license).files)

    async def check_access(self, digest: str, attempt: AccessAttempt) -> ComplianceResult:
        """Vérifie une tentative d'accès contre la licence stockée."""
        return await self._pipeline.check_compliance(digest, attempt)


def create_protection_service(
    config: Optional[AppConfig] = None,
    license_store: Optional[ILicenseStore] = None,
    violation_store: Optional[IViolationStore] = None,
    compliance_log: Optional[IComplianceLog] = None,
    bus: Optional[IEventBus] = None,
    responder: Optional[IImmediateResponder] = None,
    metrics: Optional[IMetricsRecorder] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    environ: Optional[Dict[str, str]] = None,
    log_output: Optional[Callable[[str], None]] = None,
) -> ProtectionService:
    """
    Câble toute la pile depuis la configuration.

    Les collaborateurs externes non fournis sont remplacés par leurs
    implémentations mémoire.

    Raises:
        CryptoProviderError: Clé de signature illisible
    """
    config = config or AppConfig()
    metrics = metrics or NullMetricsRecorder()
    license_store = license_store or InMemoryLicenseStore()

    def _logger(name: str) -> StructuredLogger:
        return create_logger(name, config.logging, output_handler=log_output)

    bus = bus or InMemoryEventBus(logger=_logger("messaging.bus"))

    crypto = CryptoProvider(config.codec.signature_scheme)
    if config.codec.signature_scheme == SignatureScheme.ED25519 and config.codec.signing_key_path:
        crypto.load_private_key_file(config.codec.signing_key_id, config.codec.signing_key_path)

    codec = LicenseCodec(crypto, config.codec, logger=_logger("licensing.codec"))
    builder = LicenseArtifactBuilder(config.artifacts)
    registry = build_default_registry(config.deployment, builder, environ=environ, transport=transport)
    orchestrator = DeploymentOrchestrator(
        registry,
        config.deployment,
        metrics=metrics,
        logger=_logger("deployment.orchestrator"),
    )
    evaluator = RestrictionEvaluator(codec, metrics=metrics, logger=_logger("compliance.evaluator"))
    pipeline = ViolationPipeline(
        violation_store or InMemoryViolationStore(),
        bus,
        responder=responder,
        license_store=license_store,
        compliance_log=compliance_log or InMemoryComplianceLog(),
        evaluator=evaluator,
        settings=config.pipeline,
        metrics=metrics,
        logger=_logger("violations.pipeline"),
    )

    return ProtectionService(
        codec,
        license_store,
        orchestrator,
        builder,
        pipeline,
        logger=_logger("protection.service"),
    )
