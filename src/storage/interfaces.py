"""
LOT 5: Interfaces Storage

Contrats des collaborateurs de stockage: licences par digest et journal
des vérifications de conformité. Le contrat du stockage des violations
est défini avec le pipeline (src.violations.interfaces.IViolationStore).

Le moteur de persistance est externe; seuls upsert, lecture par clé,
insertion append-only et mise à jour conditionnelle sont requis.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.licensing.interfaces import License, LicenseStatus


class StorageError(Exception):
    """Erreur du collaborateur de stockage."""

    pass


class DuplicateRecordError(StorageError):
    """Insertion append-only sur une clé existante."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Record already exists: {key}")


class RecordNotFoundError(StorageError):
    """Clé inconnue."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Record not found: {key}")


@dataclass
class ComplianceLogEntry:
    """Trace d'une vérification de conformité."""

    license_digest: str
    platform: str
    source: str
    purpose: str
    compliant: bool
    violations: List[str]
    elapsed_ms: float
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None


class ILicenseStore(ABC):
    """Licences indexées par digest d'intégrité."""

    @abstractmethod
    async def upsert(self, license: License) -> None:
        """Insère ou remplace la licence de même digest."""
        pass

    @abstractmethod
    async def get_by_digest(self, digest: str) -> Optional[Dict[str, Any]]:
        """
        Retourne l'enregistrement stocké, None si absent.

        L'enregistrement brut est retourné pour permettre la détection
        d'altération côté appelant.
        """
        pass

    @abstractmethod
    async def update_status(self, digest: str, status: LicenseStatus) -> License:
        """
        Change le status d'une licence.

        Raises:
            RecordNotFoundError: Digest inconnu
        """
        pass


class IComplianceLog(ABC):
    """Journal append-only des vérifications."""

    @abstractmethod
    async def append(self, entry: ComplianceLogEntry) -> None:
        pass

    @abstractmethod
    async def list(
        self,
        since: Optional[datetime] = None,
        license_digest: Optional[str] = None,
    ) -> List[ComplianceLogEntry]:
        pass
