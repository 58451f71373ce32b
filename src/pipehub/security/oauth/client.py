"""GitHub identity provider client.

Stateless request/response wrapper around the provider's three touch points:
building the authorization URL, exchanging a code for an access token, and
fetching the signed-in user's profile.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx
import structlog
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client

from pipehub.security.oauth.config import ProviderConfig

logger = structlog.get_logger()


class UpstreamProviderError(Exception):
    """Raised when the identity provider fails or returns an unusable payload."""


@dataclass(frozen=True)
class ExternalProfile:
    """The provider's view of the signed-in user.

    ``id`` is the immutable numeric account id and the only identity key;
    ``login`` is the display handle and may be renamed upstream.
    """

    login: str
    id: int

    @classmethod
    def from_userinfo(cls, data: Any) -> ExternalProfile:
        """Parse a GitHub ``/user`` response body.

        Raises:
            UpstreamProviderError: If login or id is missing or mistyped.
        """
        if not isinstance(data, dict):
            raise UpstreamProviderError("Provider returned a malformed profile")
        login = data.get("login")
        user_id = data.get("id")
        # bool is an int subclass; reject it explicitly
        if not isinstance(login, str) or not login:
            raise UpstreamProviderError("Provider profile has no login")
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise UpstreamProviderError("Provider profile has no numeric id")
        return cls(login=login, id=user_id)


class IdentityProviderClient:
    """OAuth2 client for GitHub-style providers.

    Holds configuration only; every call opens its own HTTP client.
    """

    def __init__(
        self,
        provider: ProviderConfig,
        redirect_uri: str,
        timeout: float = 10.0,
    ):
        """Initialize the client.

        Args:
            provider: Provider endpoints and credentials
            redirect_uri: Callback URL registered with the provider
            timeout: Per-request timeout in seconds
        """
        self._provider = provider
        self._redirect_uri = redirect_uri
        self._timeout = timeout

    @property
    def provider_name(self) -> str:
        return self._provider.name

    def authorize_url(self, state: str) -> str:
        """Build the URL that starts the provider's sign-in page.

        Args:
            state: CSRF state echoed back on the callback

        Returns:
            The authorization URL to redirect the user to
        """
        params = {
            "client_id": self._provider.client_id,
            "redirect_uri": self._redirect_uri,
            "scope": " ".join(self._provider.scopes),
            "state": state,
        }
        return f"{self._provider.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> str:
        """Exchange an authorization code for an access token.

        Raises:
            UpstreamProviderError: If the exchange fails or yields no token.
        """
        try:
            async with AsyncOAuth2Client(
                client_id=self._provider.client_id,
                client_secret=self._provider.client_secret,
                redirect_uri=self._redirect_uri,
                timeout=self._timeout,
            ) as client:
                token = await client.fetch_token(
                    url=self._provider.token_url,
                    code=code,
                )
        except (OAuthError, httpx.HTTPError, ValueError) as e:
            logger.warning(
                "Token exchange failed",
                provider=self._provider.name,
                error_type=type(e).__name__,
            )
            raise UpstreamProviderError("Token exchange failed") from e

        access_token = token.get("access_token") if token else None
        if not access_token:
            logger.warning("Token response had no access token", provider=self._provider.name)
            raise UpstreamProviderError("Provider returned no access token")
        return access_token

    async def get_user(self, access_token: str) -> ExternalProfile:
        """Fetch the profile of the user owning ``access_token``.

        Raises:
            UpstreamProviderError: If the request fails or the profile is unusable.
        """
        try:
            async with AsyncOAuth2Client(
                client_id=self._provider.client_id,
                token={"access_token": access_token, "token_type": "bearer"},
                timeout=self._timeout,
            ) as client:
                response = await client.get(
                    self._provider.userinfo_url,
                    headers={"Accept": "application/vnd.github+json"},
                )
                response.raise_for_status()
                data = response.json()
        except (OAuthError, httpx.HTTPError, ValueError) as e:
            logger.warning(
                "Profile fetch failed",
                provider=self._provider.name,
                error_type=type(e).__name__,
            )
            raise UpstreamProviderError("Profile fetch failed") from e

        return ExternalProfile.from_userinfo(data)
