"""Shared fixtures: deterministic randomness, a fake GitHub, an in-memory store."""

from __future__ import annotations

from urllib.parse import urlencode

import pytest
import pytest_asyncio

from pipehub.security.oauth.client import ExternalProfile, UpstreamProviderError
from pipehub.security.oauth.config import OAuthConfig
from pipehub.security.oauth.controller import AuthSessionController
from pipehub.security.oauth.providers import create_github_provider
from pipehub.tenants.storage import SQLiteTenantStore

FAKE_AUTHORIZE_URL = "https://github.example/login/oauth/authorize"


class CountingBytes:
    """Deterministic random source: each call returns the next counter value."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, n: int) -> bytes:
        self.calls += 1
        return self.calls.to_bytes(n, "big")


class FakeProvider:
    """Stands in for IdentityProviderClient and records every upstream call."""

    def __init__(self, profile: ExternalProfile | None = None, access_token: str = "gho_test") -> None:
        self.profile = profile or ExternalProfile(login="alice", id=42)
        self.access_token = access_token
        self.exchange_calls: list[str] = []
        self.profile_calls: list[str] = []
        self.fail_exchange = False

    @property
    def provider_name(self) -> str:
        return "fake"

    def authorize_url(self, state: str) -> str:
        return f"{FAKE_AUTHORIZE_URL}?{urlencode({'client_id': 'test-id', 'state': state})}"

    async def exchange_code(self, code: str) -> str:
        self.exchange_calls.append(code)
        if self.fail_exchange:
            raise UpstreamProviderError("Token exchange failed")
        return self.access_token

    async def get_user(self, access_token: str) -> ExternalProfile:
        self.profile_calls.append(access_token)
        return self.profile


@pytest.fixture
def random_source() -> CountingBytes:
    return CountingBytes()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def oauth_config() -> OAuthConfig:
    return OAuthConfig(
        provider=create_github_provider("test-id", "test-secret"),
        base_url="http://testserver",
        session_cookie_secure=False,
    )


@pytest_asyncio.fixture
async def store():
    tenant_store = SQLiteTenantStore(":memory:")
    await tenant_store.initialize()
    yield tenant_store
    await tenant_store.close()


@pytest.fixture
def controller(oauth_config, fake_provider, store, random_source) -> AuthSessionController:
    return AuthSessionController(
        config=oauth_config,
        provider=fake_provider,
        store=store,
        random_bytes=random_source,
    )
