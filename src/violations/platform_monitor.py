"""
LOT 4: Violations - Platform Monitor

Cycle de surveillance des plateformes et tâche planifiée annulable.

Invariants:
    VIOL_010: Échec d'une plateforme isolé, listé dans errors
    VIOL_011: Tâche planifiée arrêtable par jeton d'annulation (Event)
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence

from src.logging.structured_logger import StructuredLogger
from src.messaging.interfaces import IEventBus
from src.observability.interfaces import IMetricsRecorder
from src.observability.metrics_recorder import NullMetricsRecorder

from .interfaces import IPlatformScanner, IViolationPipeline, MonitoringCycleResult, StreamTopic
from .violation_pipeline import ImmediateResponseError


class MonitoringTaskError(Exception):
    """Tâche de surveillance mal utilisée."""

    pass


class PlatformMonitor:
    """
    Exécute un cycle de vérification sur une liste de plateformes.

    Le contrat public est "un cycle"; la répétition relève de MonitoringTask.
    """

    def __init__(
        self,
        pipeline: IViolationPipeline,
        bus: IEventBus,
        scanner: Optional[IPlatformScanner] = None,
        metrics: Optional[IMetricsRecorder] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._pipeline = pipeline
        self._bus = bus
        self._scanner = scanner
        self._metrics = metrics or NullMetricsRecorder()
        self._logger = logger or StructuredLogger("violations.monitor")

    async def run_check_cycle(
        self,
        platforms: Sequence[str],
        options: Optional[Dict[str, Any]] = None,
    ) -> MonitoringCycleResult:
        """
        Un cycle de surveillance.

        Pour chaque plateforme: publie un événement platform-crawls, interroge
        le scanner puis reporte chaque violation suspectée (VIOL_010).
        """
        result = MonitoringCycleResult(started_at=datetime.now(timezone.utc), platforms=list(platforms))

        for platform in platforms:
            try:
                await self._bus.publish(
                    StreamTopic.PLATFORM_CRAWLS.value,
                    platform,
                    {
                        "platform": platform,
                        "startTime": result.started_at.isoformat(),
                        "options": dict(options or {}),
                        "status": "active",
                    },
                )
                self._metrics.set_gauge("monitored_platforms", 1, {"platform": platform, "status": "active"})

                if self._scanner is None:
                    continue

                reports = await self._scanner.scan(platform)
            except Exception as e:
                self._record_error(result, platform, e)
                continue

            for report in reports:
                try:
                    result.reported.append(await self._pipeline.report(report))
                except ImmediateResponseError as e:
                    # Violation stockée et publiée, seule la réponse a échoué
                    result.reported.append(e.violation)
                    self._record_error(result, platform, e)
                except Exception as e:
                    self._record_error(result, platform, e)

        self._logger.info(
            "Monitoring cycle completed",
            platforms=len(result.platforms),
            reported=len(result.reported),
            errors=len(result.errors),
        )
        return result

    def _record_error(self, result: MonitoringCycleResult, platform: str, error: Exception) -> None:
        result.errors[platform] = str(error)
        self._metrics.set_gauge("monitored_platforms", 0, {"platform": platform, "status": "error"})
        self._logger.error("Platform check failed", platform=platform, error=str(error))


class MonitoringTask:
    """
    Répétition planifiée de run_check_cycle.

    Example:
        task = MonitoringTask(monitor, ["github", "huggingface"])
        task.start(interval=60)
        ...
        await task.stop()
    """

    def __init__(
        self,
        monitor: PlatformMonitor,
        platforms: Sequence[str],
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._monitor = monitor
        self._platforms = list(platforms)
        self._logger = logger or StructuredLogger("violations.monitor.task")
        self._stop_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.cycles = 0
        self.last_result: Optional[MonitoringCycleResult] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval: float) -> None:
        """
        Démarre la boucle (requiert une boucle asyncio active).

        Raises:
            MonitoringTaskError: Déjà démarrée ou intervalle invalide
        """
        if interval <= 0:
            raise MonitoringTaskError(f"Interval must be positive, got {interval}")
        if self.is_running:
            raise MonitoringTaskError("Monitoring task already running")

        self._stop_event.clear()
        self._task = asyncio.get_running_loop().create_task(self._run(interval))

    async def stop(self) -> None:
        """Signale l'arrêt et attend la fin du cycle en cours (VIOL_011)."""
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def _run(self, interval: float) -> None:
        while not self._stop_event.is_set():
            try:
                self.last_result = await self._monitor.run_check_cycle(self._platforms)
            except Exception as e:
                self._logger.error("Monitoring cycle failed", error=str(e))
            self.cycles += 1

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
