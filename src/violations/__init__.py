"""
LOT 4: Violations

Invariants couverts:
- VIOL_001-007 (Report, réponse immédiate, statuts, ordre par clé)
- VIOL_010-011 (Surveillance des plateformes)
"""
from .interfaces import (
    # Enums
    ViolationSeverity,
    ResolutionStatus,
    StreamTopic,
    ViolationType,
    ALLOWED_TRANSITIONS,
    # Dataclasses
    ViolationReport,
    Violation,
    ViolationQuery,
    ImmediateResponse,
    ComplianceSummary,
    ComplianceReport,
    MonitoringCycleResult,
    # Interfaces
    IViolationStore,
    IImmediateResponder,
    IPlatformScanner,
    IViolationPipeline,
)
from .violation_pipeline import (
    ViolationPipeline,
    BusImmediateResponder,
    generate_violation_id,
    # Exceptions
    ViolationPipelineError,
    ViolationNotFoundError,
    InvalidStatusTransitionError,
    ConcurrentStatusUpdateError,
    ImmediateResponseError,
)
from .platform_monitor import (
    PlatformMonitor,
    MonitoringTask,
    MonitoringTaskError,
)

__all__ = [
    # Enums
    "ViolationSeverity",
    "ResolutionStatus",
    "StreamTopic",
    "ViolationType",
    "ALLOWED_TRANSITIONS",
    # Dataclasses
    "ViolationReport",
    "Violation",
    "ViolationQuery",
    "ImmediateResponse",
    "ComplianceSummary",
    "ComplianceReport",
    "MonitoringCycleResult",
    # Interfaces
    "IViolationStore",
    "IImmediateResponder",
    "IPlatformScanner",
    "IViolationPipeline",
    # Implementations
    "ViolationPipeline",
    "BusImmediateResponder",
    "PlatformMonitor",
    "MonitoringTask",
    "generate_violation_id",
    # Exceptions
    "ViolationPipelineError",
    "ViolationNotFoundError",
    "InvalidStatusTransitionError",
    "ConcurrentStatusUpdateError",
    "ImmediateResponseError",
    "MonitoringTaskError",
]
