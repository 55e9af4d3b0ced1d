"""
LOT 8: Protection

Invariants couverts:
- PROT_001-002 (Workflow complet, révocation)
"""
from .interfaces import (
    # Dataclasses
    ProtectionResult,
    LicenseValidation,
    # Interfaces
    IProtectionService,
)
from .protection_service import (
    ProtectionService,
    create_protection_service,
    # Exceptions
    LicenseNotFoundError,
)

__all__ = [
    # Dataclasses
    "ProtectionResult",
    "LicenseValidation",
    # Interfaces
    "IProtectionService",
    # Implementations
    "ProtectionService",
    "create_protection_service",
    # Exceptions
    "LicenseNotFoundError",
]
