"""OAuth configuration types for Pipehub.

This module defines configuration dataclasses for the identity provider
and the sign-in flow around it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pipehub.core.config import PipehubConfig


@dataclass
class ProviderConfig:
    """OAuth2 provider configuration.

    GitHub is OAuth2-only (no OIDC discovery), so all endpoints are explicit.
    """

    name: str
    client_id: str
    client_secret: str
    authorize_url: str
    token_url: str
    userinfo_url: str
    scopes: list[str] = field(default_factory=list)

    def __post_init__(self):
        """Validate that credentials and endpoints are present."""
        if not self.client_id or not self.client_secret:
            raise ValueError("ProviderConfig requires client_id and client_secret")
        if not (self.authorize_url and self.token_url and self.userinfo_url):
            raise ValueError(
                "ProviderConfig requires authorize_url, token_url and userinfo_url"
            )


@dataclass
class OAuthConfig:
    """Sign-in flow configuration.

    Controls where the provider calls back to, where callers land afterwards,
    and how the session cookie is issued.
    """

    provider: ProviderConfig
    base_url: str = "http://localhost:8080"
    callback_path: str = "/callback"
    authenticated_landing: str = "/#/user"
    anonymous_landing: str = "/"
    # Session settings
    session_duration: int = 86400  # 24 hours default
    session_cookie_name: str = "pipehub_session"
    session_cookie_secure: bool = True
    # Sign-in with a raw access token, bypassing state/code exchange
    allow_token_login: bool = False

    def __post_init__(self):
        """Validate OAuth configuration."""
        if self.session_duration < 60:
            raise ValueError("session_duration must be at least 60 seconds")
        if not self.callback_path.startswith("/"):
            raise ValueError("callback_path must start with '/'")
        self.base_url = self.base_url.rstrip("/")

    @property
    def redirect_uri(self) -> str:
        """The callback URL registered with the provider."""
        return f"{self.base_url}{self.callback_path}"

    @classmethod
    def from_settings(cls, settings: PipehubConfig) -> OAuthConfig:
        """Build the sign-in configuration from server settings.

        Raises:
            ValueError: If GitHub credentials are not configured.
        """
        from pipehub.security.oauth.providers import create_provider

        if not settings.github_client_id or not settings.github_client_secret:
            raise ValueError(
                "GitHub OAuth requires PIPEHUB_GITHUB_CLIENT_ID and PIPEHUB_GITHUB_CLIENT_SECRET"
            )

        provider = create_provider(
            provider_type="github-enterprise" if settings.github_base_url else "github",
            client_id=settings.github_client_id,
            client_secret=settings.github_client_secret,
            base_url=settings.github_base_url,
        )
        return cls(
            provider=provider,
            base_url=settings.base_url,
            authenticated_landing=settings.authenticated_landing,
            anonymous_landing=settings.anonymous_landing,
            session_duration=settings.session_duration,
            session_cookie_name=settings.session_cookie_name,
            session_cookie_secure=settings.session_cookie_secure,
            allow_token_login=settings.allow_token_login,
        )
