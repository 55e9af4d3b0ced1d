"""
LOT 6: Deployment

Invariants couverts:
- DEPL_001-003 (Registre de stratégies)
- DEPL_010-016 (Fan-out, classification, vérification)
"""
from .interfaces import (
    # Enums
    DeploymentStatus,
    ErrorClassification,
    # Dataclasses
    VerificationResult,
    DeploymentOutcome,
    DeploymentSummary,
    FanOutResult,
    DeploymentOptions,
    # Interfaces
    IDeploymentStrategy,
    IDeploymentOrchestrator,
)
from .strategy_registry import (
    DeploymentStrategyRegistry,
    # Exceptions
    DeploymentError,
    UnknownPlatformError,
)
from .strategies import (
    GitContentsApiStrategy,
    LocalArtifactStrategy,
    build_default_registry,
    generate_deployment_id,
    # Exceptions
    PlatformTransientError,
    PlatformPermanentError,
)
from .deployment_orchestrator import (
    DeploymentOrchestrator,
    classify_error,
    classify_failure,
    TIMEOUT_ERROR,
)

__all__ = [
    # Enums
    "DeploymentStatus",
    "ErrorClassification",
    # Dataclasses
    "VerificationResult",
    "DeploymentOutcome",
    "DeploymentSummary",
    "FanOutResult",
    "DeploymentOptions",
    # Interfaces
    "IDeploymentStrategy",
    "IDeploymentOrchestrator",
    # Implementations
    "DeploymentStrategyRegistry",
    "GitContentsApiStrategy",
    "LocalArtifactStrategy",
    "DeploymentOrchestrator",
    "build_default_registry",
    "generate_deployment_id",
    "classify_error",
    "classify_failure",
    "TIMEOUT_ERROR",
    # Exceptions
    "DeploymentError",
    "UnknownPlatformError",
    "PlatformTransientError",
    "PlatformPermanentError",
]
