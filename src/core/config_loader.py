"""
DATASHIELD Framework - Config Loader Implementation
Charge configuration depuis fichier YAML et vérifie sa structure.
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from .interfaces import AppConfig, GitPlatformSettings, IConfigLoader


class ConfigIntegrityError(Exception):
    """Erreur d'intégrité de configuration."""

    pass


class ConfigLoader(IConfigLoader):
    """Chargement de la configuration depuis un fichier YAML."""

    # Variable d'environnement pointant vers le fichier de config
    CONFIG_PATH_ENV: str = "DATASHIELD_CONFIG"

    def __init__(self, config_path: Optional[str] = None):
        path = config_path or os.environ.get(self.CONFIG_PATH_ENV)
        self.config_path = Path(path) if path else None

    def load(self) -> AppConfig:
        """
        Charge la configuration.

        Sans fichier configuré, retourne la configuration par défaut.

        Returns:
            Configuration validée

        Raises:
            ConfigIntegrityError: Si fichier inexistant ou structure invalide
        """
        if self.config_path is None:
            return AppConfig()

        if not self.config_path.exists():
            raise ConfigIntegrityError(f"Configuration non trouvée: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigIntegrityError(f"Erreur de parsing YAML: {e}")
        except OSError as e:
            raise ConfigIntegrityError(f"Erreur de lecture fichier: {e}")

        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ConfigIntegrityError("Configuration doit être un objet YAML")

        return self.parse(raw)

    def parse(self, raw: Dict[str, Any]) -> AppConfig:
        """
        Valide un dictionnaire de configuration.

        Raises:
            ConfigIntegrityError: Si structure invalide
        """
        self._reject_inline_secrets(raw)
        try:
            return AppConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigIntegrityError(f"Configuration invalide: {e}")

    def _reject_inline_secrets(self, raw: Dict[str, Any]) -> None:
        """Les tokens ne sont jamais écrits dans le fichier YAML."""
        deployment = raw.get("deployment")
        platforms = deployment.get("git_platforms") if isinstance(deployment, dict) else None
        if not isinstance(platforms, dict):
            return
        for name, settings in platforms.items():
            if isinstance(settings, dict) and "token" in settings:
                raise ConfigIntegrityError(
                    f"Token en clair interdit pour {name}: utiliser token_env"
                )


def resolve_token(settings: GitPlatformSettings, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Résout le token d'une plateforme depuis l'environnement."""
    if not settings.token_env:
        return None
    env = os.environ if environ is None else environ
    return env.get(settings.token_env) or None
