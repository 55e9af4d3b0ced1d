"""
LOT 6: Deployment - Platform Strategies

Stratégies de diffusion par composition:
    - GitContentsApiStrategy: API "contents" compatible GitHub (GitHub,
      Gitea, Forgejo...), paramétrée par URL de base et jeton
    - LocalArtifactStrategy: écrit les fichiers de la plateforme sur disque
      pour les plateformes dont l'adaptateur API est externe

Invariants:
    DEPL_003: Stratégies composées, jamais dérivées les unes des autres
    DEPL_016: Jeton jamais journalisé ni inclus dans un résultat
"""

import asyncio
import base64
import json
import secrets
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from src.core.config_loader import resolve_token
from src.core.interfaces import DeploymentSettings, GitPlatformSettings
from src.licensing.artifacts import LicenseArtifactBuilder
from src.licensing.interfaces import License
from src.logging.structured_logger import StructuredLogger

from .interfaces import (
    DeploymentOptions,
    DeploymentOutcome,
    DeploymentStatus,
    IDeploymentStrategy,
    VerificationResult,
)
from .strategy_registry import DeploymentError, DeploymentStrategyRegistry

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

# Réponses HTTP transitoires
TRANSIENT_STATUS_CODES = frozenset({429, 502, 503, 504})

MANIFEST_FILE = ".dataprotection"


class PlatformTransientError(DeploymentError):
    """Échec transitoire (réseau, quota, indisponibilité)."""

    pass


class PlatformPermanentError(DeploymentError):
    """Échec définitif (configuration, droits, requête refusée)."""

    pass


def generate_deployment_id(platform: str, now_ms: Optional[int] = None) -> str:
    """Identifiant <platform>-<epoch ms>-<9 base36>."""
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{platform}-{millis}-{suffix}"


def _raise_for_status(response: httpx.Response, action: str) -> None:
    if response.is_success:
        return
    if response.status_code == 429:
        raise PlatformTransientError(f"{action}: Rate limit exceeded (HTTP 429)")
    if response.status_code in TRANSIENT_STATUS_CODES:
        raise PlatformTransientError(
            f"{action}: Service temporarily unavailable (HTTP {response.status_code})"
        )
    raise PlatformPermanentError(f"{action}: HTTP {response.status_code}")


class GitContentsApiStrategy(IDeploymentStrategy):
    """
    Publication via l'API contents d'un forge compatible GitHub.

    Options:
        repo: "owner/name" (obligatoire)
        branch: branche cible (défaut: settings.branch)
        path: préfixe de répertoire dans le dépôt

    Example:
        strategy = GitContentsApiStrategy("github", settings, builder, token="...")
        outcome = await strategy.deploy(license, {"repo": "jane/dataset"})
    """

    def __init__(
        self,
        platform: str,
        settings: GitPlatformSettings,
        artifact_builder: LicenseArtifactBuilder,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._platform = platform
        self._settings = settings
        self._builder = artifact_builder
        self._token = token
        self._transport = transport
        self._logger = logger or StructuredLogger(f"deployment.strategy.{platform}")

    @property
    def platform(self) -> str:
        return self._platform

    def _client(self) -> httpx.AsyncClient:
        if not self._token:
            raise PlatformPermanentError(
                f"No API token configured for {self._platform} (env: {self._settings.token_env})"
            )
        return httpx.AsyncClient(
            base_url=self._settings.api_base_url.rstrip("/"),
            timeout=self._settings.timeout_seconds,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": "datashield-framework",
            },
        )

    @staticmethod
    def _file_path(prefix: str, name: str) -> str:
        prefix = prefix.strip("/")
        return f"{prefix}/{name}" if prefix else name

    async def deploy(self, license: License, options: DeploymentOptions) -> DeploymentOutcome:
        """
        Publie .dataprotection et DATA_PROTECTION.md.

        Raises:
            PlatformPermanentError: repo ou jeton absent, requête refusée
            PlatformTransientError: Réseau, 429, 502-504
        """
        repo = options.get("repo")
        if not repo:
            raise PlatformPermanentError(f"Option 'repo' is required for {self._platform}")

        branch = options.get("branch") or self._settings.branch
        prefix = options.get("path") or ""
        artifacts = self._builder.platform_files("github", license)
        deployment_id = options.get("deployment_id") or generate_deployment_id(self._platform)

        written: List[str] = []
        try:
            async with self._client() as client:
                for name in artifacts.names:
                    path = self._file_path(prefix, name)
                    await self._put_file(client, repo, path, artifacts.files[name], branch)
                    written.append(path)

        except httpx.TransportError as e:
            self._logger.warn(
                "Platform API unreachable",
                license_digest=license.integrity_digest,
                platform=self._platform,
                error=str(e),
            )
            raise PlatformTransientError(f"{self._platform} API unreachable: {e}") from e

        self._logger.info(
            "License files published",
            license_digest=license.integrity_digest,
            platform=self._platform,
            repo=repo,
            files=written,
        )
        return DeploymentOutcome(
            platform=self._platform,
            deployment_id=deployment_id,
            status=DeploymentStatus.DEPLOYED,
            license_digest=license.integrity_digest,
            artifacts=written,
            location=f"{self._settings.web_base_url.rstrip('/')}/{repo}/blob/{branch}/"
            f"{self._file_path(prefix, MANIFEST_FILE)}",
            metadata={"repo": repo, "branch": branch, "path": prefix},
        )

    async def _put_file(
        self,
        client: httpx.AsyncClient,
        repo: str,
        path: str,
        content: str,
        branch: str,
    ) -> None:
        url = f"/repos/{repo}/contents/{path}"
        body: Dict[str, Any] = {
            "message": f"Add data protection license: {path}",
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }

        response = await client.put(url, json=body)
        if response.status_code == 422:
            # Fichier existant: mise à jour avec son sha
            existing = await client.get(url, params={"ref": branch})
            _raise_for_status(existing, f"Read {path}")
            body["sha"] = existing.json().get("sha")
            body["message"] = f"Update data protection license: {path}"
            response = await client.put(url, json=body)

        _raise_for_status(response, f"Write {path}")

    async def verify(self, license: License, outcome: DeploymentOutcome) -> VerificationResult:
        """
        Relit .dataprotection et compare le digest publié.

        Raises:
            PlatformTransientError, PlatformPermanentError: Lecture impossible
        """
        repo = outcome.metadata.get("repo")
        branch = outcome.metadata.get("branch") or self._settings.branch
        path = self._file_path(outcome.metadata.get("path") or "", MANIFEST_FILE)

        try:
            async with self._client() as client:
                response = await client.get(f"/repos/{repo}/contents/{path}", params={"ref": branch})
                _raise_for_status(response, f"Read {path}")
                payload = response.json()
        except httpx.TransportError as e:
            raise PlatformTransientError(f"{self._platform} API unreachable: {e}") from e

        manifest = json.loads(base64.b64decode(payload.get("content", "")).decode("utf-8"))
        published = manifest.get("license", {}).get("integrity_digest")

        return VerificationResult(
            verified=published == license.integrity_digest,
            details={"path": path, "published_digest": published},
        )


class LocalArtifactStrategy(IDeploymentStrategy):
    """
    Écrit les fichiers d'une plateforme sous <output_dir>/<platform>/<deployment_id>/.

    Utilisée pour les plateformes dont la publication (upload API) est
    assurée par un collaborateur externe.

    Options:
        output_dir: remplace le répertoire configuré
        base_rules, sitemap_url: transmis au robots.txt (plateforme web)
    """

    def __init__(
        self,
        platform: str,
        artifact_builder: LicenseArtifactBuilder,
        output_dir: str = "./deployments",
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self._platform = platform
        self._builder = artifact_builder
        self._output_dir = output_dir
        self._logger = logger or StructuredLogger(f"deployment.strategy.{platform}")

    @property
    def platform(self) -> str:
        return self._platform

    async def deploy(self, license: License, options: DeploymentOptions) -> DeploymentOutcome:
        """
        Raises:
            UnsupportedPlatformArtifactError: Plateforme sans générateur
            PlatformPermanentError: Écriture impossible
        """
        files = dict(self._builder.platform_files(self._platform, license).files)
        if "robots.txt" in files and (options.get("base_rules") or options.get("sitemap_url")):
            files["robots.txt"] = self._builder.robots_txt(
                license,
                base_rules=options.get("base_rules"),
                sitemap_url=options.get("sitemap_url"),
            )

        deployment_id = options.get("deployment_id") or generate_deployment_id(self._platform)
        target = Path(options.get("output_dir") or self._output_dir) / self._platform / deployment_id

        try:
            await asyncio.to_thread(self._write_files, target, files)
        except OSError as e:
            raise PlatformPermanentError(f"Cannot write artifacts to {target}: {e}") from e

        self._logger.info(
            "License artifacts written",
            license_digest=license.integrity_digest,
            platform=self._platform,
            directory=str(target),
        )
        return DeploymentOutcome(
            platform=self._platform,
            deployment_id=deployment_id,
            status=DeploymentStatus.DEPLOYED,
            license_digest=license.integrity_digest,
            artifacts=sorted(files.keys()),
            location=str(target),
        )

    @staticmethod
    def _write_files(target: Path, files: Dict[str, str]) -> None:
        target.mkdir(parents=True, exist_ok=True)
        for name, content in files.items():
            (target / name).write_text(content, encoding="utf-8")

    async def verify(self, license: License, outcome: DeploymentOutcome) -> VerificationResult:
        """Chaque artefact écrit doit contenir le digest de la licence."""
        target = Path(outcome.location or "")
        missing: List[str] = []
        stale: List[str] = []

        for name in outcome.artifacts:
            path = target / name
            if not path.is_file():
                missing.append(name)
            elif license.integrity_digest not in path.read_text(encoding="utf-8"):
                stale.append(name)

        return VerificationResult(
            verified=not missing and not stale,
            details={"directory": str(target), "missing": missing, "stale": stale},
        )


def build_default_registry(
    settings: DeploymentSettings,
    artifact_builder: LicenseArtifactBuilder,
    environ: Optional[Dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> DeploymentStrategyRegistry:
    """
    Registre par défaut depuis la configuration.

    Une GitContentsApiStrategy par forge configurée, une
    LocalArtifactStrategy par plateforme d'artefacts.
    """
    registry = DeploymentStrategyRegistry()

    for platform, git_settings in settings.git_platforms.items():
        registry.register(
            platform,
            GitContentsApiStrategy(
                platform,
                git_settings,
                artifact_builder,
                token=resolve_token(git_settings, environ),
                transport=transport,
            ),
        )

    for platform in settings.artifact_platforms:
        registry.register(
            platform,
            LocalArtifactStrategy(platform, artifact_builder, output_dir=settings.output_dir),
        )

    return registry
