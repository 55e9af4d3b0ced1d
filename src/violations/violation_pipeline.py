"""
LOT 4: Violations - Violation Pipeline

Enregistrement, publication et triage des violations; traitement du flux
d'événements de conformité.

Invariants:
    VIOL_001: Identifiant et date de détection attribués au report
    VIOL_002: Sévérité HIGH/CRITICAL déclenche la réponse immédiate avant retour
    VIOL_003: Sévérité LOW/MEDIUM ne déclenche jamais la réponse immédiate
    VIOL_004: Report idempotent sur l'identifiant
    VIOL_005: Transitions de statut selon la machine à états, terminaux figés
    VIOL_006: Mise à jour de statut conditionnelle (compare-and-set)
    VIOL_007: Ordre de traitement préservé par digest de licence
"""

import asyncio
import secrets
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from src.compliance.interfaces import AccessAttempt, ComplianceResult, IViolationReporter
from src.compliance.restriction_evaluator import RestrictionEvaluator
from src.core.interfaces import PipelineSettings
from src.licensing.interfaces import LicenseType
from src.logging.structured_logger import StructuredLogger
from src.messaging.interfaces import IEventBus
from src.observability.interfaces import IMetricsRecorder
from src.observability.metrics_recorder import NullMetricsRecorder
from src.storage.interfaces import ComplianceLogEntry, DuplicateRecordError, IComplianceLog, ILicenseStore

from .interfaces import (
    ComplianceReport,
    ComplianceSummary,
    IImmediateResponder,
    ImmediateResponse,
    IViolationPipeline,
    IViolationStore,
    ResolutionStatus,
    StreamTopic,
    Violation,
    ViolationQuery,
    ViolationReport,
    ViolationSeverity,
    ViolationType,
)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

# Statuts comptés comme non traités
_UNRESOLVED = (ResolutionStatus.OPEN, ResolutionStatus.INVESTIGATING)


class ViolationPipelineError(Exception):
    """Erreur du pipeline de violations."""

    pass


class ViolationNotFoundError(ViolationPipelineError):
    """Identifiant de violation inconnu."""

    def __init__(self, violation_id: str) -> None:
        self.violation_id = violation_id
        super().__init__(f"Violation not found: {violation_id}")


class InvalidStatusTransitionError(ViolationPipelineError):
    """Transition de statut interdite - VIOL_005."""

    def __init__(self, current: Any, target: Any) -> None:
        self.current = current
        self.target = target
        current_name = getattr(current, "value", current)
        target_name = getattr(target, "value", target)
        super().__init__(f"Invalid status transition: {current_name} -> {target_name} - VIOL_005")


class ConcurrentStatusUpdateError(ViolationPipelineError):
    """Statut modifié entre lecture et écriture - VIOL_006."""

    def __init__(self, violation_id: str, expected: ResolutionStatus) -> None:
        self.violation_id = violation_id
        self.expected = expected
        super().__init__(
            f"Concurrent status update on {violation_id} (expected {expected.value}) - VIOL_006"
        )


class ImmediateResponseError(ViolationPipelineError):
    """Échec ou dépassement du délai de la réponse immédiate - VIOL_002."""

    def __init__(self, violation: Violation, cause: BaseException) -> None:
        self.violation = violation
        self.cause = cause
        super().__init__(f"Immediate response failed for {violation.id}: {cause!r}")


def generate_violation_id(now_ms: Optional[int] = None) -> str:
    """Génère un identifiant violation-<epoch ms>-<9 base36>."""
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"violation-{millis}-{suffix}"


def _parse_severity(value: Any, default: ViolationSeverity) -> ViolationSeverity:
    if isinstance(value, ViolationSeverity):
        return value
    try:
        return ViolationSeverity(str(value).lower())
    except ValueError:
        return default


class BusImmediateResponder(IImmediateResponder):
    """Publie une commande immediate-block sur immediate-responses."""

    def __init__(self, bus: IEventBus) -> None:
        self._bus = bus

    async def trigger(self, response: ImmediateResponse) -> None:
        await self._bus.publish(
            StreamTopic.IMMEDIATE_RESPONSES.value,
            response.license_digest,
            response.to_event(),
        )


class _KeyedLocks:
    """Verrous FIFO par clé, libérés quand plus aucun détenteur n'attend."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    async def acquire(self, key: str) -> asyncio.Lock:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            self._forget(key)
            raise
        return lock

    def release(self, key: str, lock: asyncio.Lock) -> None:
        lock.release()
        self._forget(key)

    def _forget(self, key: str) -> None:
        self._holders[key] -= 1
        if self._holders[key] == 0:
            del self._holders[key]
            del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class ViolationPipeline(IViolationPipeline, IViolationReporter):
    """
    Pipeline de violations.

    Conformité:
        VIOL_001: report attribue id (si absent) et detected_at
        VIOL_002: HIGH/CRITICAL, attend le responder avant de retourner
        VIOL_003: LOW/MEDIUM, aucun appel au responder
        VIOL_004: id déjà stocké, retourne l'enregistrement sans effet de bord
        VIOL_005: update_status refuse les transitions hors machine à états
        VIOL_006: écriture par compare_and_set_status
        VIOL_007: handle_message sérialise par digest de licence

    Example:
        pipeline = ViolationPipeline(violation_store, bus)
        violation = await pipeline.report(
            ViolationReport(type="unauthorized-training", license_digest=digest,
                            severity=ViolationSeverity.CRITICAL)
        )
    """

    def __init__(
        self,
        violation_store: IViolationStore,
        bus: IEventBus,
        responder: Optional[IImmediateResponder] = None,
        license_store: Optional[ILicenseStore] = None,
        compliance_log: Optional[IComplianceLog] = None,
        evaluator: Optional[RestrictionEvaluator] = None,
        settings: Optional[PipelineSettings] = None,
        metrics: Optional[IMetricsRecorder] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._violations = violation_store
        self._bus = bus
        self._responder = responder or BusImmediateResponder(bus)
        self._licenses = license_store
        self._compliance_log = compliance_log
        self._settings = settings or PipelineSettings()
        self._metrics = metrics or NullMetricsRecorder()
        self._logger = logger or StructuredLogger("violations.pipeline")
        self._evaluator = evaluator or RestrictionEvaluator(metrics=self._metrics)
        self._evaluator.set_reporter(self)
        self._key_locks = _KeyedLocks()
        self._default_severity = _parse_severity(self._settings.default_severity, ViolationSeverity.MEDIUM)

        self._topic_handlers = {
            StreamTopic.DATA_ACCESS_EVENTS: self._process_data_access,
            StreamTopic.LICENSE_VIOLATIONS: self._process_violation,
            StreamTopic.PLATFORM_CRAWLS: self._process_platform_crawl,
            StreamTopic.AI_TRAINING_ATTEMPTS: self._process_training_attempt,
            StreamTopic.COMPLIANCE_ALERTS: self._process_compliance_alert,
        }

    # ──────────────────────────────────────────────────────────────────────
    # Report / statut
    # ──────────────────────────────────────────────────────────────────────

    async def report(self, report: ViolationReport) -> Violation:
        """
        Enregistre une violation, la publie et déclenche la réponse immédiate.

        Processus:
            1. id déjà stocké: retourne l'existant (VIOL_004)
            2. Attribue id et detected_at (VIOL_001)
            3. Insère dans le stockage puis publie sur license-violations
            4. HIGH/CRITICAL: attend le responder (VIOL_002)

        Raises:
            ImmediateResponseError: Réponse immédiate en échec ou hors délai
                (la violation reste enregistrée et publiée)
        """
        if report.id:
            existing = await self._violations.get(report.id)
            if existing is not None:
                self._logger.debug("Duplicate violation report ignored", violation_id=report.id)
                return existing

        detected_at = datetime.now(timezone.utc)
        violation = Violation(
            id=report.id or generate_violation_id(int(detected_at.timestamp() * 1000)),
            type=report.type,
            severity=report.severity,
            license_digest=report.license_digest,
            platform=report.platform,
            source=report.source,
            details=report.details,
            detected_at=detected_at,
        )

        try:
            await self._violations.insert(violation)
        except DuplicateRecordError:
            # Redélivrance concurrente du même id
            stored = await self._violations.get(violation.id)
            if stored is not None:
                return stored
            raise

        await self._bus.publish(
            StreamTopic.LICENSE_VIOLATIONS.value,
            violation.license_digest,
            violation.to_event(),
        )

        self._metrics.increment(
            "violations_detected_total",
            {"type": violation.type, "platform": violation.platform, "severity": violation.severity.value},
        )
        self._logger.warn(
            "Violation reported",
            license_digest=violation.license_digest,
            violation_id=violation.id,
            violation_type=violation.type,
            severity=violation.severity.value,
            platform=violation.platform,
        )

        if violation.severity.requires_immediate_response:
            await self._respond(
                violation,
                ImmediateResponse(
                    event_id=violation.id,
                    license_digest=violation.license_digest,
                    severity=violation.severity.value,
                ),
            )

        return violation

    async def report_tampering(self, license_digest: Optional[str], attempt: AccessAttempt, details: str) -> None:
        """Escalade d'une licence altérée en violation CRITICAL."""
        await self.report(
            ViolationReport(
                type=ViolationType.LICENSE_TAMPERING,
                license_digest=license_digest,
                platform=attempt.platform,
                source=attempt.source,
                severity=ViolationSeverity.CRITICAL,
                details=details,
            )
        )

    async def update_status(
        self,
        violation_id: str,
        status: Union[ResolutionStatus, str],
        notes: Optional[str] = None,
    ) -> Violation:
        """
        Change le statut de résolution d'une violation.

        Raises:
            ViolationNotFoundError: Identifiant inconnu
            InvalidStatusTransitionError: Transition interdite (VIOL_005)
            ConcurrentStatusUpdateError: Statut modifié entre-temps (VIOL_006)
        """
        current = await self._violations.get(violation_id)
        if current is None:
            raise ViolationNotFoundError(violation_id)

        try:
            target = status if isinstance(status, ResolutionStatus) else ResolutionStatus(status)
        except ValueError:
            raise InvalidStatusTransitionError(current.status, status) from None

        if not current.status.can_transition_to(target):
            raise InvalidStatusTransitionError(current.status, target)

        updated = await self._violations.compare_and_set_status(violation_id, current.status, target, notes)
        if updated is None:
            raise ConcurrentStatusUpdateError(violation_id, current.status)

        await self._bus.publish(
            StreamTopic.LICENSE_VIOLATIONS.value,
            updated.license_digest,
            updated.to_event(),
        )
        self._logger.info(
            "Violation status updated",
            license_digest=updated.license_digest,
            violation_id=violation_id,
            previous_status=current.status.value,
            status=target.value,
        )
        return updated

    async def _respond(self, violation: Violation, response: ImmediateResponse) -> None:
        try:
            await asyncio.wait_for(
                self._responder.trigger(response),
                timeout=self._settings.response_deadline_seconds,
            )
        except Exception as e:
            self._logger.critical(
                "Immediate response failed",
                license_digest=response.license_digest,
                event_id=response.event_id,
                error=repr(e),
            )
            raise ImmediateResponseError(violation, e) from e

        self._metrics.increment("immediate_responses_total", {"severity": response.severity})
        self._logger.info(
            "Immediate response triggered",
            license_digest=response.license_digest,
            event_id=response.event_id,
            severity=response.severity,
        )

    # ──────────────────────────────────────────────────────────────────────
    # Conformité
    # ──────────────────────────────────────────────────────────────────────

    async def check_compliance(self, license_digest: str, attempt: AccessAttempt) -> ComplianceResult:
        """
        Vérifie une tentative d'accès contre la licence stockée.

        Returns:
            Non conforme "License not found" si digest inconnu; non conforme
            avec error si le stockage échoue (fail-closed).
        """
        start = time.perf_counter()
        try:
            if self._licenses is None:
                raise ViolationPipelineError("No license store configured")

            record = await self._licenses.get_by_digest(license_digest)
            if record is None:
                return ComplianceResult(
                    compliant=False,
                    violations=["License not found"],
                    license_digest=license_digest,
                    elapsed_ms=(time.perf_counter() - start) * 1000,
                )

            result = await self._evaluator.check(record, attempt)
            result.elapsed_ms = (time.perf_counter() - start) * 1000

            if self._compliance_log is not None:
                await self._compliance_log.append(
                    ComplianceLogEntry(
                        license_digest=license_digest,
                        platform=attempt.platform,
                        source=attempt.source,
                        purpose=attempt.purpose,
                        compliant=result.compliant,
                        violations=list(result.violations),
                        elapsed_ms=result.elapsed_ms,
                        error=result.error,
                    )
                )
            return result

        except Exception as e:
            self._logger.error("Compliance check failed", license_digest=license_digest, error=str(e))
            return ComplianceResult(
                compliant=False,
                violations=["Compliance check error"],
                license_digest=license_digest,
                elapsed_ms=(time.perf_counter() - start) * 1000,
                error=str(e),
            )

    # ──────────────────────────────────────────────────────────────────────
    # Flux d'événements
    # ──────────────────────────────────────────────────────────────────────

    async def handle_message(self, topic: str, key: Optional[str], payload: Mapping[str, Any]) -> bool:
        """
        Traite un message du flux.

        Les messages d'un même digest sont traités dans l'ordre de
        réception (VIOL_007).

        Returns:
            True si traité, False si le handler a échoué (redélivrance)
        """
        try:
            stream_topic = StreamTopic(topic)
        except ValueError:
            self._logger.warn("Message on unknown topic acknowledged", topic=topic)
            return True

        handler = self._topic_handlers.get(stream_topic)
        if handler is None:
            return True

        ordering_key = key or payload.get("licenseHash") or payload.get("license_digest") or ""
        lock = await self._key_locks.acquire(ordering_key)
        try:
            await handler(dict(payload))
            return True
        except Exception as e:
            self._logger.error(
                "Message processing failed",
                license_digest=ordering_key or None,
                topic=topic,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        finally:
            self._key_locks.release(ordering_key, lock)

    async def _process_data_access(self, payload: Dict[str, Any]) -> None:
        attempt = AccessAttempt.from_event(payload)
        if not attempt.license_digest:
            return

        result = await self.check_compliance(attempt.license_digest, attempt)
        if not result.compliant:
            await self.report(
                ViolationReport(
                    type=ViolationType.UNAUTHORIZED_ACCESS,
                    license_digest=attempt.license_digest,
                    platform=attempt.platform,
                    source=attempt.source,
                    severity=ViolationSeverity.MEDIUM,
                    details=list(result.violations),
                )
            )

    async def _process_violation(self, payload: Dict[str, Any]) -> None:
        violation_id = payload.get("id")
        if violation_id:
            stored = await self._violations.get(violation_id)
            if stored is not None:
                status = payload.get("status")
                if not status:
                    return
                try:
                    target = ResolutionStatus(status)
                except ValueError:
                    self._logger.warn("Unknown violation status ignored", violation_id=violation_id, status=status)
                    return
                if target == stored.status:
                    return
                if not stored.status.can_transition_to(target):
                    # Redélivrance tardive: le statut stocké est plus récent
                    self._logger.warn(
                        "Stale violation status ignored",
                        violation_id=violation_id,
                        status=target.value,
                        current_status=stored.status.value,
                    )
                    return
                await self.update_status(violation_id, target, payload.get("notes"))
                return

        await self.report(
            ViolationReport(
                id=violation_id,
                type=str(payload.get("type") or "unknown"),
                license_digest=payload.get("licenseHash") or payload.get("license_digest"),
                platform=str(payload.get("platform") or "unknown"),
                source=str(payload.get("source") or "unknown"),
                severity=_parse_severity(payload.get("severity"), self._default_severity),
                details=payload.get("details"),
            )
        )

    async def _process_platform_crawl(self, payload: Dict[str, Any]) -> None:
        self._metrics.set_gauge(
            "monitored_platforms",
            1,
            {"platform": str(payload.get("platform") or "unknown"), "status": str(payload.get("status") or "unknown")},
        )

    async def _process_training_attempt(self, payload: Dict[str, Any]) -> None:
        attempt = AccessAttempt.from_event(payload)
        if not attempt.license_digest or self._licenses is None:
            return

        record = await self._licenses.get_by_digest(attempt.license_digest)
        if record is not None and record.get("type") == LicenseType.DO_NOT_TRAIN.value:
            await self.report(
                ViolationReport(
                    type=ViolationType.UNAUTHORIZED_TRAINING,
                    license_digest=attempt.license_digest,
                    platform=attempt.platform,
                    source=attempt.source,
                    severity=ViolationSeverity.CRITICAL,
                    details="AI training attempted on do-not-train licensed content",
                )
            )

    async def _process_compliance_alert(self, payload: Dict[str, Any]) -> None:
        severity = _parse_severity(payload.get("severity"), ViolationSeverity.LOW)
        self._logger.warn(
            "Compliance alert received",
            license_digest=payload.get("licenseHash"),
            alert_type=payload.get("type"),
            severity=severity.value,
        )
        if severity != ViolationSeverity.CRITICAL:
            return

        response = ImmediateResponse(
            event_id=payload.get("id"),
            license_digest=payload.get("licenseHash"),
            severity=severity.value,
        )
        await asyncio.wait_for(
            self._responder.trigger(response),
            timeout=self._settings.response_deadline_seconds,
        )
        self._metrics.increment("immediate_responses_total", {"severity": severity.value})

    # ──────────────────────────────────────────────────────────────────────
    # Rapport
    # ──────────────────────────────────────────────────────────────────────

    async def generate_report(
        self,
        since: Optional[datetime] = None,
        platforms: Optional[Sequence[str]] = None,
        severities: Optional[Sequence[Union[ViolationSeverity, str]]] = None,
    ) -> ComplianceReport:
        """Rapport de conformité calculé depuis le stockage."""
        severity_filter = [_parse_severity(s, ViolationSeverity.LOW) for s in severities] if severities else None
        violations = await self._violations.list(
            ViolationQuery(
                since=since,
                platforms=list(platforms) if platforms else None,
                severities=severity_filter,
            )
        )

        checks: List[ComplianceLogEntry] = []
        if self._compliance_log is not None:
            checks = await self._compliance_log.list(since=since)
        if platforms:
            checks = [c for c in checks if c.platform in platforms]

        total_checks = len(checks)
        compliant_checks = sum(1 for c in checks if c.compliant)
        summary = ComplianceSummary(
            total_checks=total_checks,
            compliant_checks=compliant_checks,
            violations=len(violations),
            compliance_rate=(compliant_checks / total_checks * 100) if total_checks else 0.0,
            average_response_ms=(sum(c.elapsed_ms for c in checks) / total_checks) if total_checks else 0.0,
        )

        by_severity = {s.value: 0 for s in ViolationSeverity}
        by_severity.update(Counter(v.severity.value for v in violations))
        by_type = dict(Counter(v.type for v in violations))
        by_platform = dict(Counter(v.platform for v in violations))
        open_violations = sum(1 for v in violations if v.status in _UNRESOLVED)

        return ComplianceReport(
            generated_at=datetime.now(timezone.utc),
            since=since,
            summary=summary,
            by_severity=by_severity,
            by_type=by_type,
            by_platform=by_platform,
            open_violations=open_violations,
            recommendations=self._recommendations(summary, violations, by_type, by_platform),
        )

    def _recommendations(
        self,
        summary: ComplianceSummary,
        violations: List[Violation],
        by_type: Dict[str, int],
        by_platform: Dict[str, int],
    ) -> List[str]:
        recommendations: List[str] = []

        open_critical = sum(
            1 for v in violations if v.severity == ViolationSeverity.CRITICAL and v.status in _UNRESOLVED
        )
        if open_critical:
            recommendations.append(f"Investigate {open_critical} open critical violation(s) immediately")
        if by_type.get(ViolationType.LICENSE_TAMPERING):
            recommendations.append("Re-issue tampered licenses and audit license storage access")
        if by_type.get(ViolationType.UNAUTHORIZED_TRAINING):
            recommendations.append("Reinforce do-not-train crawler directives on affected platforms")
        if summary.total_checks and summary.compliance_rate < 95.0:
            recommendations.append(
                f"Compliance rate {summary.compliance_rate:.1f}% is below 95%: review access policies"
            )
        if summary.average_response_ms > self._settings.response_deadline_seconds * 1000:
            recommendations.append("Average compliance check time exceeds the response deadline")
        if by_platform:
            platform, count = max(by_platform.items(), key=lambda item: (item[1], item[0]))
            recommendations.append(f"Increase monitoring on {platform} ({count} violation(s))")

        return recommendations
