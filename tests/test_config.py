"""Tests for configuration loading from environment variables and files."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from pipehub.core.config import (
    PipehubConfig,
    clear_config,
    flatten_config,
    get_config,
    load_config_from_file,
)
from pipehub.core.logging import configure_logging


class TestPipehubConfig:
    """Test PipehubConfig settings."""

    def test_default_values(self) -> None:
        """Test default values."""
        config = PipehubConfig(_env_file=None)
        assert config.host == "0.0.0.0"
        assert config.port == 8080
        assert config.database_path == "pipehub.db"
        assert config.session_duration == 86400
        assert config.session_cookie_secure is True
        assert config.authenticated_landing == "/#/user"
        assert config.anonymous_landing == "/"
        assert config.allow_token_login is False

    def test_env_override_port(self) -> None:
        """Test PIPEHUB_PORT env var."""
        with patch.dict(os.environ, {"PIPEHUB_PORT": "9000"}):
            config = PipehubConfig()
            assert config.port == 9000

    def test_env_override_github_credentials(self) -> None:
        """Test PIPEHUB_GITHUB_* env vars."""
        env_vars = {
            "PIPEHUB_GITHUB_CLIENT_ID": "abc123",
            "PIPEHUB_GITHUB_CLIENT_SECRET": "shh",
        }
        with patch.dict(os.environ, env_vars):
            config = PipehubConfig()
            assert config.github_client_id == "abc123"
            assert config.github_client_secret == "shh"

    def test_env_override_token_login(self) -> None:
        """Test PIPEHUB_ALLOW_TOKEN_LOGIN env var."""
        with patch.dict(os.environ, {"PIPEHUB_ALLOW_TOKEN_LOGIN": "true"}):
            assert PipehubConfig().allow_token_login is True

    def test_session_duration_minimum(self) -> None:
        with pytest.raises(ValidationError):
            PipehubConfig(session_duration=10)

    def test_invalid_env_var_rejected(self) -> None:
        with patch.dict(os.environ, {"PIPEHUB_PORT": "not-a-port"}):
            with pytest.raises(ValidationError):
                PipehubConfig()

    def test_secret_not_in_repr(self) -> None:
        config = PipehubConfig(github_client_secret="super-secret-value")
        assert "super-secret-value" not in repr(config)


class TestConfigFiles:
    """Test YAML and TOML configuration files."""

    def test_flatten_config(self) -> None:
        nested = {"github": {"client_id": "x", "client_secret": "y"}, "port": 1}
        assert flatten_config(nested) == {
            "github_client_id": "x",
            "github_client_secret": "y",
            "port": 1,
        }

    def test_from_yaml_file(self, tmp_path) -> None:
        path = tmp_path / "pipehub.yaml"
        path.write_text(
            "port: 9001\n"
            "github:\n"
            "  client_id: from-yaml\n"
            "  client_secret: yaml-secret\n"
            "session:\n"
            "  duration: 3600\n",
            encoding="utf-8",
        )

        config = PipehubConfig.from_file(path)

        assert config.port == 9001
        assert config.github_client_id == "from-yaml"
        assert config.session_duration == 3600

    def test_from_toml_file(self, tmp_path) -> None:
        path = tmp_path / "pipehub.toml"
        path.write_text(
            'database_path = "/var/lib/pipehub/tenants.db"\n'
            "\n"
            "[github]\n"
            'client_id = "from-toml"\n'
            'base_url = "https://ghe.example.com"\n',
            encoding="utf-8",
        )

        config = PipehubConfig.from_file(path)

        assert config.database_path == "/var/lib/pipehub/tenants.db"
        assert config.github_client_id == "from-toml"
        assert config.github_base_url == "https://ghe.example.com"

    def test_overrides_take_precedence(self, tmp_path) -> None:
        path = tmp_path / "pipehub.yaml"
        path.write_text("port: 9001\nhost: 127.0.0.1\n", encoding="utf-8")

        config = PipehubConfig.from_file(path, port=9999, host=None)

        assert config.port == 9999
        assert config.host == "127.0.0.1"

    def test_empty_yaml_file(self, tmp_path) -> None:
        path = tmp_path / "empty.yml"
        path.write_text("", encoding="utf-8")
        assert load_config_from_file(path) == {}

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config_from_file(tmp_path / "missing.yaml")

    def test_unsupported_format(self, tmp_path) -> None:
        path = tmp_path / "pipehub.ini"
        path.write_text("[x]\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Unsupported config format"):
            load_config_from_file(path)

    def test_invalid_yaml(self, tmp_path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("port: [unclosed\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config_from_file(path)

    def test_invalid_toml(self, tmp_path) -> None:
        path = tmp_path / "broken.toml"
        path.write_text("port = \n", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid TOML"):
            load_config_from_file(path)


class TestGetConfig:
    """Test get_config global function."""

    def test_get_config_returns_instance(self) -> None:
        clear_config()
        assert isinstance(get_config(), PipehubConfig)

    def test_get_config_caches_instance(self) -> None:
        clear_config()
        assert get_config() is get_config()

    def test_clear_config_resets_cache(self) -> None:
        clear_config()
        config1 = get_config()
        clear_config()
        config2 = get_config()
        assert config1 is not config2

    def test_get_config_with_env_override(self) -> None:
        with patch.dict(os.environ, {"PIPEHUB_DATABASE_PATH": ":memory:"}):
            clear_config()
            assert get_config().database_path == ":memory:"

        clear_config()


class TestConfigureLogging:
    """Test structlog configuration."""

    def test_accepts_known_levels(self) -> None:
        for level in ("debug", "info", "WARNING", "error"):
            configure_logging(level)

    def test_rejects_unknown_level(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging("chatty")
