"""
DATASHIELD Framework - LOT 1 Core Interfaces
Contrats et modèles de configuration du module Core.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# ══════════════════════════════════════════════════════════════════════════════
# TYPES
# ══════════════════════════════════════════════════════════════════════════════


class SignatureScheme(Enum):
    """Schémas de signature supportés pour les licences."""

    SHA256 = "sha256"  # Hash non-keyé (format historique des licences)
    ED25519 = "ed25519"  # Signature asymétrique déterministe


class CodecSettings(BaseModel):
    """Paramètres de génération des licences."""

    schema_version: str = "1.0.0"
    signature_scheme: SignatureScheme = SignatureScheme.SHA256
    signing_key_id: str = "license_key"
    signing_key_path: Optional[str] = None  # PEM Ed25519


class GitPlatformSettings(BaseModel):
    """Plateforme exposant une API "contents" compatible GitHub."""

    api_base_url: str
    web_base_url: str
    token_env: Optional[str] = None  # Nom de la variable d'environnement
    branch: str = "main"
    timeout_seconds: float = 30.0


def _default_git_platforms() -> Dict[str, GitPlatformSettings]:
    return {
        "github": GitPlatformSettings(
            api_base_url="https://api.github.com",
            web_base_url="https://github.com",
            token_env="DATASHIELD_GITHUB_TOKEN",
        )
    }


class DeploymentSettings(BaseModel):
    """Paramètres de l'orchestrateur de déploiement."""

    max_concurrency: int = Field(default=8, ge=1)
    verify_by_default: bool = True
    timeout_seconds: Optional[float] = Field(default=120.0, gt=0)
    output_dir: str = "./deployments"
    git_platforms: Dict[str, GitPlatformSettings] = Field(default_factory=_default_git_platforms)
    artifact_platforms: List[str] = Field(
        default_factory=lambda: ["huggingface", "kaggle", "docker", "npm", "web"]
    )


class PipelineSettings(BaseModel):
    """Paramètres du pipeline de violations."""

    # Objectif détection -> réponse
    response_deadline_seconds: float = Field(default=5.0, gt=0)
    default_severity: str = "medium"


class ArtifactSettings(BaseModel):
    """Paramètres des artefacts publiés."""

    verify_base_url: str = "https://data-protection.org"
    sitemap_url: str = "/sitemap.xml"

    @field_validator("verify_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class LoggingSettings(BaseModel):
    """Paramètres du logger structuré."""

    min_level: str = "INFO"
    mask_sensitive: bool = True


class AppConfig(BaseModel):
    """Configuration complète de la plateforme."""

    version: str = "1"
    codec: CodecSettings = Field(default_factory=CodecSettings)
    deployment: DeploymentSettings = Field(default_factory=DeploymentSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    artifacts: ArtifactSettings = Field(default_factory=ArtifactSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# ══════════════════════════════════════════════════════════════════════════════
# INTERFACES
# ══════════════════════════════════════════════════════════════════════════════


class IConfigLoader(ABC):
    """Charge la configuration et vérifie sa structure."""

    @abstractmethod
    def load(self) -> AppConfig:
        """
        Charge la configuration.

        Raises:
            ConfigIntegrityError: Si fichier absent ou structure invalide
        """
        pass


class ICryptoProvider(ABC):
    """Opérations cryptographiques des licences."""

    @abstractmethod
    def hash(self, data: bytes) -> str:
        """
        Calcule hash SHA-256.

        Returns:
            Hash hex string (64 caractères)
        """
        pass

    @abstractmethod
    def sign(self, data: bytes, key_id: str) -> str:
        """
        Signe des données de façon déterministe.

        Args:
            data: Données à signer
            key_id: ID de la clé

        Returns:
            Signature hex string
        """
        pass

    @abstractmethod
    def verify_signature(self, data: bytes, signature: str, key_id: str) -> bool:
        """Vérifie une signature (ne lève jamais)."""
        pass
