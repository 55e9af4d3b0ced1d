"""
LOT 2: Interfaces Licensing

Définit les contrats des licences de protection de contenu: génération
canonique, digest d'intégrité, signature et validation.

Invariants:
    LIC_001: Type de licence dans l'énumération fermée, sinon rejet
    LIC_002: Digest = fonction déterministe de tous les champs hors digest/signature/status
    LIC_003: Signature = fonction déterministe de la sérialisation canonique + digest
    LIC_004: Contenu jamais stocké, seulement son digest SHA-256
    LIC_005: Validation ne lève jamais, retourne False
    LIC_006: Licence immuable après création, sauf status
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union


class LicenseType(Enum):
    """Types de licence supportés (LIC_001: énumération fermée)."""

    DO_NOT_TRAIN = "do-not-train"
    COMMERCIAL_RESTRICTIONS = "commercial-restrictions"
    ATTRIBUTION_REQUIRED = "attribution-required"
    NDA_ENFORCEMENT = "nda-enforcement"
    PRE_CLEARANCE = "pre-clearance"

    @classmethod
    def values(cls) -> list:
        return [t.value for t in cls]


class LicenseStatus(Enum):
    """Cycle de vie d'une licence."""

    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


RestrictionValue = Union[bool, str]


@dataclass(frozen=True)
class License:
    """
    Licence de protection de contenu.

    Conformité:
        LIC_002: integrity_digest couvre id, type, creator, content_digest,
            restrictions, created_at, expires_at, version
        LIC_004: content_digest uniquement
        LIC_006: frozen, status modifié par copie (with_status)
    """

    id: str  # DPL-<epoch ms>-<hex>
    type: LicenseType
    creator: str
    content_digest: str  # SHA-256 hex du contenu
    restrictions: Dict[str, RestrictionValue]
    created_at: datetime
    version: str
    integrity_digest: str
    signature: str
    expires_at: Optional[datetime] = None
    status: LicenseStatus = LicenseStatus.ACTIVE

    def with_status(self, status: LicenseStatus) -> "License":
        """Retourne une copie avec un nouveau status (digest inchangé)."""
        return replace(self, status=status)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Vérifie si la date d'expiration est dépassée."""
        if self.expires_at is None:
            return False
        reference = now or datetime.now(timezone.utc)
        return reference >= self.expires_at

    def effective_status(self, now: Optional[datetime] = None) -> LicenseStatus:
        """Status effectif: active devient expired une fois la date passée."""
        if self.status == LicenseStatus.ACTIVE and self.is_expired(now):
            return LicenseStatus.EXPIRED
        return self.status

    def to_dict(self) -> Dict[str, Any]:
        """Représentation stockable (JSON compatible)."""
        return {
            "id": self.id,
            "type": self.type.value,
            "creator": self.creator,
            "content_digest": self.content_digest,
            "restrictions": dict(self.restrictions),
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "version": self.version,
            "integrity_digest": self.integrity_digest,
            "signature": self.signature,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "License":
        """
        Reconstruit une licence depuis un enregistrement stocké.

        Raises:
            KeyError, ValueError, TypeError: Si structure invalide
        """
        expires_at = data.get("expires_at")
        return cls(
            id=data["id"],
            type=LicenseType(data["type"]),
            creator=data["creator"],
            content_digest=data["content_digest"],
            restrictions=dict(data["restrictions"]),
            created_at=_parse_datetime(data["created_at"]),
            version=data["version"],
            integrity_digest=data["integrity_digest"],
            signature=data["signature"],
            expires_at=_parse_datetime(expires_at) if expires_at else None,
            status=LicenseStatus(data.get("status", LicenseStatus.ACTIVE.value)),
        )


def _parse_datetime(value: Union[str, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise TypeError(f"Date invalide: {value!r}")
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class ILicenseCodec(ABC):
    """
    Interface génération et validation des licences.

    Responsabilités:
        - Rejet des types inconnus (LIC_001)
        - Sérialisation canonique et digest (LIC_002)
        - Signature (LIC_003)
        - Validation sans exception (LIC_005)
    """

    @abstractmethod
    def generate(
        self,
        license_type: Union[LicenseType, str],
        creator: str,
        content: Union[str, bytes],
        restrictions: Optional[Mapping[str, RestrictionValue]] = None,
        expiration: Optional[datetime] = None,
    ) -> License:
        """
        Génère une licence complète (digest + signature).

        Raises:
            UnsupportedLicenseTypeError: Type hors énumération (LIC_001)
        """
        pass

    @abstractmethod
    def validate(self, license: Union[License, Mapping[str, Any]]) -> bool:
        """
        Recalcule digest et signature et compare aux valeurs stockées.

        Returns:
            False sur toute divergence ou structure invalide (LIC_005)
        """
        pass


@dataclass
class PlatformArtifacts:
    """Fichiers générés pour une plateforme."""

    platform: str
    files: Dict[str, str] = field(default_factory=dict)

    @property
    def names(self) -> list:
        return sorted(self.files.keys())
