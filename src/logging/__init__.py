"""
LOT 6: Logging

Module de logging structuré avec:
- Format JSON structuré (LOG_001)
- Champs obligatoires (LOG_002)
- Timestamp ISO 8601 UTC (LOG_003)
- Niveaux standard (LOG_004)
- Masquage des tokens et secrets (LOG_005)
"""

from .interfaces import (
    # Enums
    LogLevel,
    # Dataclasses
    LogEntry,
    LogConfig,
    # Interfaces
    IStructuredLogger,
    ISensitiveMasker,
)
from .sensitive_masker import SensitiveMasker
from .structured_logger import (
    StructuredLogger,
    create_logger,
    # Exceptions
    MissingRequiredFieldError,
)

__all__ = [
    # Enums
    "LogLevel",
    # Dataclasses
    "LogEntry",
    "LogConfig",
    # Interfaces
    "IStructuredLogger",
    "ISensitiveMasker",
    # Implementations
    "SensitiveMasker",
    "StructuredLogger",
    "create_logger",
    # Exceptions
    "MissingRequiredFieldError",
]
