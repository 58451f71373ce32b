"""Pipehub tenants.

Usage:
    from pipehub.tenants import SQLiteTenantStore, Tenant

    store = SQLiteTenantStore("pipehub.db")
    await store.initialize()
    tenant = await store.find_by_external_id(42)
"""

from pipehub.tenants.models import ProfileUpdate, Tenant
from pipehub.tenants.storage import (
    DuplicateIdentityError,
    SQLiteTenantStore,
    StoreError,
    TenantStore,
)

__all__ = [
    "DuplicateIdentityError",
    "ProfileUpdate",
    "SQLiteTenantStore",
    "StoreError",
    "Tenant",
    "TenantStore",
]
