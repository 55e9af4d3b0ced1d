"""
Tests unitaires pour ConfigLoader.
"""

import pytest

from src.core.config_loader import ConfigIntegrityError, ConfigLoader, resolve_token
from src.core.interfaces import AppConfig, GitPlatformSettings, SignatureScheme


class TestConfigLoader:
    """Tests pour ConfigLoader."""

    def test_load_without_path_returns_defaults(self, monkeypatch):
        monkeypatch.delenv(ConfigLoader.CONFIG_PATH_ENV, raising=False)
        config = ConfigLoader().load()

        assert isinstance(config, AppConfig)
        assert config.codec.signature_scheme == SignatureScheme.SHA256
        assert "github" in config.deployment.git_platforms

    def test_load_default_fixture(self, default_config_path):
        config = ConfigLoader(str(default_config_path)).load()

        assert config.deployment.max_concurrency == 4
        assert config.deployment.timeout_seconds == 60
        assert config.pipeline.response_deadline_seconds == 5
        assert config.logging.min_level == "INFO"

    def test_verify_base_url_trailing_slash_stripped(self, default_config_path):
        config = ConfigLoader(str(default_config_path)).load()
        assert config.artifacts.verify_base_url == "https://data-protection.org"

    def test_path_from_environment(self, monkeypatch, default_config_path):
        monkeypatch.setenv(ConfigLoader.CONFIG_PATH_ENV, str(default_config_path))
        config = ConfigLoader().load()
        assert config.deployment.max_concurrency == 4

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigIntegrityError):
            ConfigLoader(str(tmp_path / "absent.yaml")).load()

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("codec: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigIntegrityError, match="YAML"):
            ConfigLoader(str(path)).load()

    def test_non_mapping_root_raises(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigIntegrityError):
            ConfigLoader(str(path)).load()

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert ConfigLoader(str(path)).load() == AppConfig()

    def test_inline_token_rejected(self, fixtures_path):
        with pytest.raises(ConfigIntegrityError, match="token_env"):
            ConfigLoader(str(fixtures_path / "configs" / "inline_token.yaml")).load()


class TestConfigParse:
    """Validation pydantic des sections."""

    def setup_method(self):
        self.loader = ConfigLoader()

    def test_unknown_signature_scheme_rejected(self):
        with pytest.raises(ConfigIntegrityError):
            self.loader.parse({"codec": {"signature_scheme": "md5"}})

    def test_zero_concurrency_rejected(self):
        with pytest.raises(ConfigIntegrityError):
            self.loader.parse({"deployment": {"max_concurrency": 0}})

    def test_negative_deadline_rejected(self):
        with pytest.raises(ConfigIntegrityError):
            self.loader.parse({"pipeline": {"response_deadline_seconds": -1}})

    def test_non_dict_deployment_section_reported(self):
        with pytest.raises(ConfigIntegrityError):
            self.loader.parse({"deployment": "github"})

    def test_ed25519_scheme_parsed(self):
        config = self.loader.parse({"codec": {"signature_scheme": "ed25519"}})
        assert config.codec.signature_scheme == SignatureScheme.ED25519


class TestResolveToken:
    def test_token_from_environ(self):
        settings = GitPlatformSettings(
            api_base_url="https://api.example", web_base_url="https://example", token_env="MY_TOKEN"
        )
        assert resolve_token(settings, {"MY_TOKEN": "abc"}) == "abc"

    def test_missing_or_empty_token_is_none(self):
        settings = GitPlatformSettings(
            api_base_url="https://api.example", web_base_url="https://example", token_env="MY_TOKEN"
        )
        assert resolve_token(settings, {}) is None
        assert resolve_token(settings, {"MY_TOKEN": ""}) is None

    def test_no_token_env(self):
        settings = GitPlatformSettings(api_base_url="https://api.example", web_base_url="https://example")
        assert resolve_token(settings, {"MY_TOKEN": "abc"}) is None
