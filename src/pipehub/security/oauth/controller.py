"""Sign-in state machine.

A session moves through three states:

    Unauthenticated --request_identity--> PendingCallback
    PendingCallback --handle_callback--> Authenticated   (state matches)
    PendingCallback --handle_callback--> Unauthenticated (state mismatch)

Authenticated sessions can rotate their tenant's app id and edit the
tenant-editable profile fields.

Session state is passed in and handed back explicitly; the controller never
stores it. Within a callback the order is fixed: CSRF check, code exchange,
profile fetch, tenant resolution, session binding. Nothing is bound unless
every step succeeds, and collaborator failures propagate unchanged.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass

import structlog

from pipehub.security.csrf import CsrfTokenIssuer, RandomBytes, random_int64
from pipehub.security.oauth.client import IdentityProviderClient
from pipehub.security.oauth.config import OAuthConfig
from pipehub.security.oauth.resolver import IdentityResolver
from pipehub.security.oauth.session import SessionState
from pipehub.tenants.models import ProfileUpdate, Tenant
from pipehub.tenants.storage import TenantStore

logger = structlog.get_logger()


class UnauthenticatedError(Exception):
    """Raised when an operation needs a bound session and there is none.

    Also raised when the bound tenant no longer exists in the store.
    """


class TokenLoginDisabledError(Exception):
    """Raised when direct access-token sign-in is attempted while disabled."""


@dataclass(frozen=True)
class IdentityResult:
    """Outcome of an identity request.

    Either ``tenant`` is set (already signed in) or ``redirect_url`` points at
    the provider's sign-in page.
    """

    session: SessionState
    tenant: Tenant | None = None
    redirect_url: str | None = None

    @property
    def authenticated(self) -> bool:
        return self.tenant is not None


@dataclass(frozen=True)
class CallbackResult:
    """Outcome of a sign-in callback: where to send the caller next."""

    session: SessionState
    redirect_url: str
    tenant: Tenant | None = None


class AuthSessionController:
    """Drives the OAuth handshake and the authenticated tenant operations."""

    def __init__(
        self,
        config: OAuthConfig,
        provider: IdentityProviderClient,
        store: TenantStore,
        resolver: IdentityResolver | None = None,
        csrf_issuer: CsrfTokenIssuer | None = None,
        random_bytes: RandomBytes = secrets.token_bytes,
    ):
        """Initialize the controller.

        Args:
            config: Sign-in flow configuration
            provider: Identity provider client
            store: Tenant store
            resolver: Identity resolver (built over ``store`` if omitted)
            csrf_issuer: State token issuer (built over ``random_bytes`` if omitted)
            random_bytes: Random source for app id rotation
        """
        self._config = config
        self._provider = provider
        self._store = store
        self._random_bytes = random_bytes
        self._resolver = resolver or IdentityResolver(store, random_bytes=random_bytes)
        self._csrf = csrf_issuer or CsrfTokenIssuer(random_bytes)

    async def current_tenant(self, session: SessionState) -> Tenant | None:
        """Return the tenant bound to ``session``, if it still exists."""
        if session.tenant_id is None:
            return None
        return await self._store.find_by_id(session.tenant_id)

    async def _require_tenant(self, session: SessionState) -> Tenant:
        tenant = await self.current_tenant(session)
        if tenant is None:
            raise UnauthenticatedError("Session is not bound to an existing tenant")
        return tenant

    async def request_identity(self, session: SessionState) -> IdentityResult:
        """Return the signed-in tenant, or start a new authorization request.

        When no tenant resolves, a fresh CSRF state is stored on the returned
        session and ``redirect_url`` carries it to the provider.
        """
        tenant = await self.current_tenant(session)
        if tenant is not None:
            return IdentityResult(session=session, tenant=tenant)

        state = self._csrf.issue()
        return IdentityResult(
            session=session.with_csrf_state(state),
            redirect_url=self._provider.authorize_url(state),
        )

    def _state_matches(self, stored: str | None, echoed: str | None) -> bool:
        if not stored or not echoed:
            return False
        return secrets.compare_digest(stored.encode(), echoed.encode())

    async def handle_callback(
        self,
        session: SessionState,
        code: str | None,
        echoed_state: str | None,
        error: str | None = None,
    ) -> CallbackResult:
        """Complete the handshake started by ``request_identity``.

        The stored CSRF state is consumed whatever the outcome. On mismatch,
        a missing state or a provider-reported error, the caller is sent to
        the anonymous landing page and the provider is never contacted.
        """
        consumed = session.without_csrf_state()

        if error or not code or not self._state_matches(session.csrf_state, echoed_state):
            logger.warning(
                "Sign-in callback rejected",
                had_stored_state=session.csrf_state is not None,
                provider_error=bool(error),
            )
            return CallbackResult(
                session=consumed,
                redirect_url=self._config.anonymous_landing,
            )

        access_token = await self._provider.exchange_code(code)
        return await self._sign_in(consumed, access_token)

    async def login_with_token(self, session: SessionState, access_token: str) -> CallbackResult:
        """Sign in with an access token obtained elsewhere.

        Skips the state/code exchange entirely, so it is only available when
        ``allow_token_login`` is enabled.

        Raises:
            TokenLoginDisabledError: If token login is not enabled.
        """
        if not self._config.allow_token_login:
            raise TokenLoginDisabledError("Token login is disabled")
        return await self._sign_in(session, access_token)

    async def _sign_in(self, session: SessionState, access_token: str) -> CallbackResult:
        profile = await self._provider.get_user(access_token)
        tenant = await self._resolver.resolve(profile)
        return CallbackResult(
            session=session.bind(tenant.id),
            redirect_url=self._config.authenticated_landing,
            tenant=tenant,
        )

    async def rotate_credential(self, session: SessionState) -> Tenant:
        """Replace the tenant's app id with a fresh random one.

        Raises:
            UnauthenticatedError: If the session has no resolvable tenant.
        """
        tenant = await self._require_tenant(session)
        rotated = tenant.with_app_id(random_int64(self._random_bytes))
        await self._store.update(rotated)
        logger.info("[Reset Key]", tenant_id=tenant.id)
        return rotated

    async def update_profile(self, session: SessionState, update: ProfileUpdate) -> Tenant:
        """Apply the tenant-editable fields from ``update``.

        Identity fields and the app id always come from the stored record.

        Raises:
            UnauthenticatedError: If the session has no resolvable tenant.
        """
        tenant = await self._require_tenant(session)
        updated = tenant.with_profile(update)
        await self._store.update(updated)
        logger.info("[Update User]", tenant_id=tenant.id)
        return updated


def create_auth_controller(
    config: OAuthConfig,
    store: TenantStore,
    random_bytes: RandomBytes = secrets.token_bytes,
) -> AuthSessionController:
    """Factory function to wire a controller against the real provider.

    This is the recommended way to create an AuthSessionController for the
    server; tests usually construct one directly with a fake provider.

    Args:
        config: Sign-in flow configuration
        store: Tenant store
        random_bytes: Random source for CSRF states and app ids

    Returns:
        Controller talking to the configured GitHub instance
    """
    provider = IdentityProviderClient(
        provider=config.provider,
        redirect_uri=config.redirect_uri,
    )
    return AuthSessionController(
        config=config,
        provider=provider,
        store=store,
        random_bytes=random_bytes,
    )
