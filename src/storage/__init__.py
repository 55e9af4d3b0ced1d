"""
LOT 5: Storage

Collaborateurs de stockage (interfaces) et implémentations mémoire.
"""
from .interfaces import (
    # Dataclasses
    ComplianceLogEntry,
    # Interfaces
    ILicenseStore,
    IComplianceLog,
    # Exceptions
    StorageError,
    DuplicateRecordError,
    RecordNotFoundError,
)
from .memory_store import (
    InMemoryLicenseStore,
    InMemoryViolationStore,
    InMemoryComplianceLog,
)

__all__ = [
    # Dataclasses
    "ComplianceLogEntry",
    # Interfaces
    "ILicenseStore",
    "IComplianceLog",
    # Implementations
    "InMemoryLicenseStore",
    "InMemoryViolationStore",
    "InMemoryComplianceLog",
    # Exceptions
    "StorageError",
    "DuplicateRecordError",
    "RecordNotFoundError",
]
