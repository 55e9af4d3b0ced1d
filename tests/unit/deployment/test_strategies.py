"""
Tests unitaires pour les stratégies de diffusion.

Invariants testés:
    DEPL_003: Stratégies composées, jamais dérivées les unes des autres
    DEPL_016: Jeton jamais journalisé ni inclus dans un résultat
"""

import base64
import json
import re
from typing import Dict, List

import httpx
import pytest

from src.core.interfaces import GitPlatformSettings
from src.deployment import (
    GitContentsApiStrategy,
    LocalArtifactStrategy,
    PlatformPermanentError,
    PlatformTransientError,
    generate_deployment_id,
)
from src.deployment.interfaces import DeploymentStatus
from src.licensing import LicenseArtifactBuilder, LicenseCodec, UnsupportedPlatformArtifactError
from src.logging.structured_logger import StructuredLogger

TOKEN = "ghp_super_secret_token"


@pytest.fixture
def license():
    return LicenseCodec().generate("do-not-train", "Jane", "dataset", {"ai_training": False})


@pytest.fixture
def builder() -> LicenseArtifactBuilder:
    return LicenseArtifactBuilder()


@pytest.fixture
def git_settings() -> GitPlatformSettings:
    return GitPlatformSettings(
        api_base_url="https://api.github.test",
        web_base_url="https://github.test",
        token_env="TEST_TOKEN",
    )


class FakeContentsApi:
    """Serveur contents minimal: stocke les fichiers PUT, les renvoie en GET."""

    def __init__(self, fail_status: int = 0, existing: Dict[str, str] = None) -> None:
        self.files: Dict[str, str] = dict(existing or {})
        self.requests: List[httpx.Request] = []
        self._fail_status = fail_status

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._fail_status:
            return httpx.Response(self._fail_status)

        match = re.match(r"^/repos/([^/]+/[^/]+)/contents/(.+)$", request.url.path)
        if match is None:
            return httpx.Response(404)
        path = match.group(2)

        if request.method == "PUT":
            body = json.loads(request.content)
            if path in self.files and "sha" not in body:
                return httpx.Response(422, json={"message": "sha wasn't supplied"})
            self.files[path] = base64.b64decode(body["content"]).decode("utf-8")
            return httpx.Response(201, json={"content": {"path": path}})

        if path not in self.files:
            return httpx.Response(404)
        encoded = base64.b64encode(self.files[path].encode("utf-8")).decode("ascii")
        return httpx.Response(200, json={"sha": "abc123", "content": encoded})


def _git_strategy(git_settings, builder, api, token=TOKEN, logger=None) -> GitContentsApiStrategy:
    return GitContentsApiStrategy(
        "github",
        git_settings,
        builder,
        token=token,
        transport=httpx.MockTransport(api),
        logger=logger,
    )


class TestGitContentsApiStrategy:
    @pytest.mark.asyncio
    async def test_deploy_writes_manifest_and_readme(self, git_settings, builder, license):
        api = FakeContentsApi()
        strategy = _git_strategy(git_settings, builder, api)

        outcome = await strategy.deploy(license, {"repo": "jane/dataset", "deployment_id": "github-1-abc"})

        assert outcome.status == DeploymentStatus.DEPLOYED
        assert outcome.deployment_id == "github-1-abc"
        assert outcome.artifacts == [".dataprotection", "DATA_PROTECTION.md"]
        assert outcome.location == "https://github.test/jane/dataset/blob/main/.dataprotection"
        assert json.loads(api.files[".dataprotection"])["license"]["integrity_digest"] == license.integrity_digest

    @pytest.mark.asyncio
    async def test_deploy_sends_bearer_token(self, git_settings, builder, license):
        api = FakeContentsApi()
        await _git_strategy(git_settings, builder, api).deploy(license, {"repo": "jane/dataset"})

        assert api.requests[0].headers["Authorization"] == f"Bearer {TOKEN}"
        assert json.loads(api.requests[0].content)["branch"] == "main"

    @pytest.mark.asyncio
    async def test_deploy_with_path_and_branch(self, git_settings, builder, license):
        api = FakeContentsApi()
        outcome = await _git_strategy(git_settings, builder, api).deploy(
            license, {"repo": "jane/dataset", "branch": "release", "path": "/docs/"}
        )

        assert outcome.artifacts == ["docs/.dataprotection", "docs/DATA_PROTECTION.md"]
        assert outcome.metadata == {"repo": "jane/dataset", "branch": "release", "path": "/docs/"}

    @pytest.mark.asyncio
    async def test_existing_file_updated_with_sha(self, git_settings, builder, license):
        api = FakeContentsApi(existing={".dataprotection": "{}"})

        await _git_strategy(git_settings, builder, api).deploy(license, {"repo": "jane/dataset"})

        update = [r for r in api.requests if r.method == "PUT" and b'"sha"' in r.content]
        assert len(update) == 1
        assert json.loads(update[0].content)["sha"] == "abc123"

    @pytest.mark.asyncio
    async def test_missing_repo_is_permanent(self, git_settings, builder, license):
        with pytest.raises(PlatformPermanentError):
            await _git_strategy(git_settings, builder, FakeContentsApi()).deploy(license, {})

    @pytest.mark.asyncio
    async def test_missing_token_is_permanent(self, git_settings, builder, license):
        strategy = _git_strategy(git_settings, builder, FakeContentsApi(), token=None)

        with pytest.raises(PlatformPermanentError, match="TEST_TOKEN"):
            await strategy.deploy(license, {"repo": "jane/dataset"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,message",
        [(429, "Rate limit exceeded"), (503, "Service temporarily unavailable"), (502, "Service temporarily unavailable")],
    )
    async def test_transient_statuses(self, git_settings, builder, license, status, message):
        strategy = _git_strategy(git_settings, builder, FakeContentsApi(fail_status=status))

        with pytest.raises(PlatformTransientError, match=message):
            await strategy.deploy(license, {"repo": "jane/dataset"})

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403, 404])
    async def test_permanent_statuses(self, git_settings, builder, license, status):
        strategy = _git_strategy(git_settings, builder, FakeContentsApi(fail_status=status))

        with pytest.raises(PlatformPermanentError):
            await strategy.deploy(license, {"repo": "jane/dataset"})

    @pytest.mark.asyncio
    async def test_network_error_is_transient(self, git_settings, builder, license):
        def unreachable(request):
            raise httpx.ConnectError("connection refused", request=request)

        strategy = _git_strategy(git_settings, builder, unreachable)

        with pytest.raises(PlatformTransientError):
            await strategy.deploy(license, {"repo": "jane/dataset"})

    @pytest.mark.asyncio
    async def test_verify_roundtrip(self, git_settings, builder, license):
        api = FakeContentsApi()
        strategy = _git_strategy(git_settings, builder, api)
        outcome = await strategy.deploy(license, {"repo": "jane/dataset"})

        result = await strategy.verify(license, outcome)

        assert result.verified is True
        assert result.details["published_digest"] == license.integrity_digest

    @pytest.mark.asyncio
    async def test_verify_detects_other_license(self, git_settings, builder, license):
        api = FakeContentsApi()
        strategy = _git_strategy(git_settings, builder, api)
        outcome = await strategy.deploy(license, {"repo": "jane/dataset"})
        other = LicenseCodec().generate("nda-enforcement", "Bob", "other")
        api.files[".dataprotection"] = builder.platform_files("github", other).files[".dataprotection"]

        result = await strategy.verify(license, outcome)

        assert result.verified is False

    @pytest.mark.asyncio
    async def test_DEPL_016_token_not_logged_or_returned(self, git_settings, builder, license):
        lines: List[str] = []
        logger = StructuredLogger("test.github", output_handler=lines.append)
        strategy = _git_strategy(git_settings, builder, FakeContentsApi(), logger=logger)

        outcome = await strategy.deploy(license, {"repo": "jane/dataset", "token": TOKEN})

        assert all(TOKEN not in line for line in lines)
        assert TOKEN not in repr(outcome)


class TestLocalArtifactStrategy:
    @pytest.mark.asyncio
    async def test_deploy_writes_files(self, builder, license, tmp_path):
        strategy = LocalArtifactStrategy("huggingface", builder, output_dir=str(tmp_path))

        outcome = await strategy.deploy(license, {"deployment_id": "huggingface-1-abc"})

        target = tmp_path / "huggingface" / "huggingface-1-abc"
        assert outcome.location == str(target)
        assert outcome.artifacts == ["dataset_protection.json"]
        assert license.integrity_digest in (target / "dataset_protection.json").read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_output_dir_option(self, builder, license, tmp_path):
        strategy = LocalArtifactStrategy("npm", builder, output_dir=str(tmp_path / "unused"))

        outcome = await strategy.deploy(license, {"output_dir": str(tmp_path / "custom"), "deployment_id": "npm-1"})

        assert (tmp_path / "custom" / "npm" / "npm-1" / "package-license.json").is_file()
        assert outcome.succeeded

    @pytest.mark.asyncio
    async def test_web_robots_options(self, builder, license, tmp_path):
        strategy = LocalArtifactStrategy("web", builder, output_dir=str(tmp_path))

        outcome = await strategy.deploy(
            license, {"deployment_id": "web-1", "base_rules": ["Allow: /public"], "sitemap_url": "/s.xml"}
        )

        robots = (tmp_path / "web" / "web-1" / "robots.txt").read_text(encoding="utf-8")
        assert "Allow: /public" in robots
        assert "Sitemap: /s.xml" in robots
        assert outcome.artifacts == ["license-headers.json", "license-meta.html", "robots.txt"]

    @pytest.mark.asyncio
    async def test_verify(self, builder, license, tmp_path):
        strategy = LocalArtifactStrategy("kaggle", builder, output_dir=str(tmp_path))
        outcome = await strategy.deploy(license, {"deployment_id": "kaggle-1"})

        assert (await strategy.verify(license, outcome)).verified is True

        (tmp_path / "kaggle" / "kaggle-1" / "kaggle-license.json").write_text("{}", encoding="utf-8")
        result = await strategy.verify(license, outcome)
        assert result.verified is False
        assert result.details["stale"] == ["kaggle-license.json"]

    @pytest.mark.asyncio
    async def test_verify_missing_file(self, builder, license, tmp_path):
        strategy = LocalArtifactStrategy("docker", builder, output_dir=str(tmp_path))
        outcome = await strategy.deploy(license, {"deployment_id": "docker-1"})
        (tmp_path / "docker" / "docker-1" / "Dockerfile.license").unlink()

        result = await strategy.verify(license, outcome)

        assert result.details["missing"] == ["Dockerfile.license"]

    @pytest.mark.asyncio
    async def test_unsupported_platform(self, builder, license, tmp_path):
        strategy = LocalArtifactStrategy("myspace", builder, output_dir=str(tmp_path))
        with pytest.raises(UnsupportedPlatformArtifactError):
            await strategy.deploy(license, {})

    @pytest.mark.asyncio
    async def test_unwritable_target_is_permanent(self, builder, license, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory", encoding="utf-8")
        strategy = LocalArtifactStrategy("npm", builder, output_dir=str(blocker))

        with pytest.raises(PlatformPermanentError):
            await strategy.deploy(license, {"deployment_id": "npm-1"})


def test_generate_deployment_id():
    assert re.match(r"^github-1700000000000-[0-9a-z]{9}$", generate_deployment_id("github", 1700000000000))
