"""GitHub sign-in for Pipehub tenants.

This module implements the OAuth 2.0 handshake against GitHub (or a GitHub
Enterprise instance), resolves the verified identity to a tenant, and binds
the tenant to a server-side session.

Example usage:

    from pipehub.security.oauth import (
        OAuthConfig,
        SessionManager,
        create_auth_controller,
        create_provider,
    )

    # Create session manager
    session_manager = SessionManager()
    await session_manager.start()

    provider_config = create_provider(
        provider_type="github",
        client_id="...",
        client_secret="...",
    )
    oauth_config = OAuthConfig(
        provider=provider_config,
        base_url="https://pipehub.example.com",
    )
    controller = create_auth_controller(oauth_config, store)

    result = await controller.request_identity(SessionState())
    # result.redirect_url -> GitHub sign-in page
"""

from pipehub.security.oauth.client import (
    ExternalProfile,
    IdentityProviderClient,
    UpstreamProviderError,
)
from pipehub.security.oauth.config import (
    OAuthConfig,
    ProviderConfig,
)
from pipehub.security.oauth.controller import (
    AuthSessionController,
    CallbackResult,
    IdentityResult,
    TokenLoginDisabledError,
    UnauthenticatedError,
    create_auth_controller,
)
from pipehub.security.oauth.providers import (
    create_github_enterprise_provider,
    create_github_provider,
    create_provider,
)
from pipehub.security.oauth.resolver import IdentityResolver
from pipehub.security.oauth.session import (
    Session,
    SessionManager,
    SessionState,
)

__all__ = [
    # Client
    "ExternalProfile",
    "IdentityProviderClient",
    "UpstreamProviderError",
    # Config
    "OAuthConfig",
    "ProviderConfig",
    # Controller
    "AuthSessionController",
    "CallbackResult",
    "IdentityResult",
    "TokenLoginDisabledError",
    "UnauthenticatedError",
    "create_auth_controller",
    # Providers
    "create_github_enterprise_provider",
    "create_github_provider",
    "create_provider",
    # Resolver
    "IdentityResolver",
    # Session
    "Session",
    "SessionManager",
    "SessionState",
]
