"""Pre-configured OAuth provider templates.

Provides factory functions for GitHub and GitHub Enterprise Server.
"""

from __future__ import annotations

from pipehub.security.oauth.config import ProviderConfig


def create_github_provider(client_id: str, client_secret: str) -> ProviderConfig:
    """Create GitHub OAuth provider configuration.

    GitHub uses OAuth2 (not full OIDC), so we specify endpoints manually.
    Only the public profile is needed; ``read:user`` covers it.

    Args:
        client_id: GitHub OAuth App client ID
        client_secret: GitHub OAuth App client secret

    Returns:
        Configured ProviderConfig for GitHub
    """
    return ProviderConfig(
        name="github",
        client_id=client_id,
        client_secret=client_secret,
        authorize_url="https://github.com/login/oauth/authorize",
        token_url="https://github.com/login/oauth/access_token",
        userinfo_url="https://api.github.com/user",
        scopes=["read:user"],
    )


def create_github_enterprise_provider(
    client_id: str,
    client_secret: str,
    base_url: str,
) -> ProviderConfig:
    """Create a GitHub Enterprise Server provider configuration.

    Enterprise Server serves OAuth under the instance host and the REST API
    under ``/api/v3``.

    Args:
        client_id: OAuth App client ID
        client_secret: OAuth App client secret
        base_url: Instance URL (e.g., https://github.mycompany.com)

    Returns:
        Configured ProviderConfig for the instance
    """
    base_url = base_url.rstrip("/")
    return ProviderConfig(
        name="github-enterprise",
        client_id=client_id,
        client_secret=client_secret,
        authorize_url=f"{base_url}/login/oauth/authorize",
        token_url=f"{base_url}/login/oauth/access_token",
        userinfo_url=f"{base_url}/api/v3/user",
        scopes=["read:user"],
    )


def create_provider(
    provider_type: str,
    client_id: str,
    client_secret: str,
    base_url: str | None = None,
) -> ProviderConfig:
    """Factory to create provider config from type name.

    Args:
        provider_type: One of "github" or "github-enterprise"
        client_id: OAuth client ID
        client_secret: OAuth client secret
        base_url: Instance URL (required for "github-enterprise")

    Returns:
        Configured ProviderConfig

    Raises:
        ValueError: If provider_type is unknown or required args are missing
    """
    provider_type = provider_type.lower()

    if provider_type == "github":
        return create_github_provider(client_id, client_secret)

    elif provider_type == "github-enterprise":
        if not base_url:
            raise ValueError("GitHub Enterprise provider requires base_url")
        return create_github_enterprise_provider(client_id, client_secret, base_url)

    else:
        raise ValueError(
            f"Unknown provider type: {provider_type}. "
            "Supported: 'github', 'github-enterprise'"
        )
