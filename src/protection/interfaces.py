"""
LOT 8: Interfaces Protection

Façade du workflow complet: génération, stockage, diffusion, contrôle.

Invariants:
    PROT_001: Licence stockée avant toute diffusion
    PROT_002: Révocation = changement de status, digest inchangé
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from src.deployment.interfaces import DeploymentOptions, FanOutResult
from src.licensing.interfaces import License, LicenseStatus, LicenseType, RestrictionValue


@dataclass
class ProtectionResult:
    """Résultat du workflow protect_content."""

    license: License
    deployment: FanOutResult
    json_ld: Dict[str, Any]
    verification_url: str

    @property
    def success_rate(self) -> float:
        return self.deployment.summary.success_rate


@dataclass
class LicenseValidation:
    """Résultat de validation d'une licence stockée."""

    digest: str
    found: bool
    valid: bool
    status: Optional[LicenseStatus] = None
    license_id: Optional[str] = None


class IProtectionService(ABC):
    """Interface façade de protection."""

    @abstractmethod
    async def protect_content(
        self,
        license_type: Union[LicenseType, str],
        creator: str,
        content: Union[str, bytes],
        platforms: Sequence[str],
        restrictions: Optional[Mapping[str, RestrictionValue]] = None,
        expiration: Optional[datetime] = None,
        options: Optional[DeploymentOptions] = None,
    ) -> ProtectionResult:
        """Génère, stocke (PROT_001) et diffuse une licence."""
        pass

    @abstractmethod
    async def validate_license(self, digest: str) -> LicenseValidation:
        """Valide la licence stockée sous ce digest (ne lève jamais)."""
        pass

    @abstractmethod
    async def revoke_license(self, digest: str) -> License:
        """Révoque une licence (PROT_002)."""
        pass

    @abstractmethod
    def generate_platform_files(self, platform: str, license: License) -> Dict[str, str]:
        """Fichiers de diffusion pour une plateforme."""
        pass

    @abstractmethod
    def validate_bulk(self, records: List[Union[License, Mapping[str, Any]]]) -> List[bool]:
        """Valide une liste de licences (ordre conservé)."""
        pass
