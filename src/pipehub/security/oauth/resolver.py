"""Resolve a verified GitHub identity to a tenant, provisioning on first sight."""

from __future__ import annotations

import secrets

import structlog

from pipehub.security.csrf import RandomBytes, random_int64
from pipehub.security.oauth.client import ExternalProfile
from pipehub.tenants.models import Tenant
from pipehub.tenants.storage import DuplicateIdentityError, TenantStore

logger = structlog.get_logger()


class IdentityResolver:
    """Find-or-create for tenants keyed by external id.

    The lookup and the insert are separate store calls, so two first-time
    sign-ins for the same account can both miss the lookup. The store's
    unique constraint rejects the second insert; the loser then re-reads
    and returns the winner's tenant.
    """

    def __init__(
        self,
        store: TenantStore,
        random_bytes: RandomBytes = secrets.token_bytes,
    ):
        self._store = store
        self._random_bytes = random_bytes

    async def resolve(self, profile: ExternalProfile) -> Tenant:
        """Return the tenant for ``profile``, creating it if needed."""
        existing = await self._store.find_by_external_id(profile.id)
        if existing is not None:
            logger.info("[Login]", login=profile.login, tenant_id=existing.id)
            return existing

        tenant = Tenant.new(
            app_id=random_int64(self._random_bytes),
            external_login=profile.login,
            external_id=profile.id,
        )
        try:
            inserted = await self._store.insert(tenant)
        except DuplicateIdentityError:
            winner = await self._store.find_by_external_id(profile.id)
            if winner is None:
                raise
            logger.info(
                "[Login] concurrent registration resolved",
                login=profile.login,
                tenant_id=winner.id,
            )
            return winner

        logger.info("[Register]", login=profile.login, tenant_id=inserted.id)
        return inserted
