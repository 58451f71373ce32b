"""Configuration types with environment variable support.

All settings can be configured via environment variables with the PIPEHUB_ prefix.
Example: PIPEHUB_GITHUB_CLIENT_ID=abc123 sets github_client_id.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML or TOML file.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has encoding errors, invalid syntax, or unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            return tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


def flatten_config(config: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in config.items():
        full_key = f"{prefix}_{key}" if prefix else key
        if isinstance(value, dict):
            result.update(flatten_config(value, full_key))
        else:
            result[full_key] = value
    return result


class PipehubConfig(BaseSettings):
    """Server configuration.

    Use get_config() to get a cached instance built from the environment,
    or PipehubConfig.from_file() to layer a YAML/TOML file over it.
    """

    model_config = SettingsConfigDict(
        env_prefix="PIPEHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="0.0.0.0", description="HTTP bind host.")
    port: int = Field(default=8080, description="HTTP bind port.")
    base_url: str = Field(
        default="http://localhost:8080",
        description="Public URL of this server. The OAuth redirect URI is derived from it.",
    )

    github_client_id: str | None = Field(
        default=None,
        description="GitHub OAuth App client ID.",
    )
    github_client_secret: str | None = Field(
        default=None,
        repr=False,
        description="GitHub OAuth App client secret.",
    )
    github_base_url: str | None = Field(
        default=None,
        description="GitHub Enterprise base URL (e.g. https://github.mycompany.com). None for github.com.",
    )

    database_path: str = Field(
        default="pipehub.db",
        description="SQLite database file holding tenants. ':memory:' for an ephemeral store.",
    )

    session_duration: int = Field(
        default=86400,
        ge=60,
        description="Session lifetime in seconds (24 hours default).",
    )
    session_cookie_name: str = Field(
        default="pipehub_session",
        description="Name of the cookie carrying the session id.",
    )
    session_cookie_secure: bool = Field(
        default=True,
        description="Set the Secure attribute on the session cookie.",
    )

    authenticated_landing: str = Field(
        default="/#/user",
        description="Redirect target after a successful sign-in.",
    )
    anonymous_landing: str = Field(
        default="/",
        description="Redirect target after a rejected sign-in callback.",
    )
    allow_token_login: bool = Field(
        default=False,
        description="Expose POST /login (sign in with a raw access token). Testing only.",
    )

    log_level: str = Field(
        default="info",
        description="Log level (debug, info, warning, error).",
    )

    @classmethod
    def from_file(cls, path: str | Path, **overrides: Any) -> PipehubConfig:
        """Build configuration from a YAML or TOML file.

        Nested tables are flattened, so ``github: {client_id: x}`` maps to
        ``github_client_id``. Keyword overrides take precedence over the file.
        """
        values = flatten_config(load_config_from_file(path))
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


_config: PipehubConfig | None = None


def get_config() -> PipehubConfig:
    """Get the global configuration instance.

    Returns a cached instance of PipehubConfig that reads from environment variables.
    The instance is created once and cached for the lifetime of the process.

    To reload config (e.g., in tests), call clear_config() first.
    """
    global _config
    if _config is None:
        _config = PipehubConfig()
    return _config


def clear_config() -> None:
    """Clear the cached configuration.

    Call this to force reloading of environment variables on next get_config() call.
    Useful for testing.
    """
    global _config
    _config = None
