"""
LOT 5: Storage - In-Memory Stores

Implémentations mémoire des collaborateurs de stockage, protégées par
asyncio.Lock. Utilisées par les tests et le câblage par défaut.
"""

import asyncio
import copy
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.licensing.interfaces import License, LicenseStatus
from src.violations.interfaces import IViolationStore, ResolutionStatus, Violation, ViolationQuery

from .interfaces import (
    ComplianceLogEntry,
    DuplicateRecordError,
    IComplianceLog,
    ILicenseStore,
    RecordNotFoundError,
)


class InMemoryLicenseStore(ILicenseStore):
    """Licences stockées sous forme d'enregistrements (dict) par digest."""

    def __init__(self) -> None:
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, license: License) -> None:
        async with self._lock:
            self._records[license.integrity_digest] = license.to_dict()

    async def get_by_digest(self, digest: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            record = self._records.get(digest)
            return copy.deepcopy(record) if record is not None else None

    async def update_status(self, digest: str, status: LicenseStatus) -> License:
        async with self._lock:
            record = self._records.get(digest)
            if record is None:
                raise RecordNotFoundError(digest)
            record["status"] = status.value
            return License.from_dict(record)

    def put_raw(self, digest: str, record: Dict[str, Any]) -> None:
        """Écrit un enregistrement brut (simulation d'écriture externe)."""
        self._records[digest] = copy.deepcopy(record)

    def __len__(self) -> int:
        return len(self._records)


class InMemoryViolationStore(IViolationStore):
    """Violations par identifiant, statut modifiable par compare-and-set."""

    def __init__(self) -> None:
        self._violations: Dict[str, Violation] = {}
        self._lock = asyncio.Lock()

    async def insert(self, violation: Violation) -> None:
        async with self._lock:
            if violation.id in self._violations:
                raise DuplicateRecordError(violation.id)
            self._violations[violation.id] = violation

    async def get(self, violation_id: str) -> Optional[Violation]:
        async with self._lock:
            return self._violations.get(violation_id)

    async def list(self, query: Optional[ViolationQuery] = None) -> List[Violation]:
        async with self._lock:
            items = [v for v in self._violations.values() if query is None or query.matches(v)]
        return sorted(items, key=lambda v: v.detected_at)

    async def compare_and_set_status(
        self,
        violation_id: str,
        expected: ResolutionStatus,
        new_status: ResolutionStatus,
        notes: Optional[str] = None,
    ) -> Optional[Violation]:
        async with self._lock:
            current = self._violations.get(violation_id)
            if current is None:
                raise RecordNotFoundError(violation_id)
            if current.status != expected:
                return None
            updated = replace(
                current,
                status=new_status,
                notes=notes if notes is not None else current.notes,
                status_updated_at=datetime.now(timezone.utc),
            )
            self._violations[violation_id] = updated
            return updated


class InMemoryComplianceLog(IComplianceLog):
    """Journal append-only en mémoire."""

    def __init__(self) -> None:
        self._entries: List[ComplianceLogEntry] = []
        self._lock = asyncio.Lock()

    async def append(self, entry: ComplianceLogEntry) -> None:
        async with self._lock:
            self._entries.append(entry)

    async def list(
        self,
        since: Optional[datetime] = None,
        license_digest: Optional[str] = None,
    ) -> List[ComplianceLogEntry]:
        async with self._lock:
            return [
                e
                for e in self._entries
                if (since is None or e.checked_at >= since)
                and (license_digest is None or e.license_digest == license_digest)
            ]
