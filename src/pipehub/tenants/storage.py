"""Tenant storage.

The store is a keyed record store with no business logic: lookups by internal
id or by external (GitHub) id, insert and update. Uniqueness of the external
id is enforced by the database, not by callers.
"""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

import structlog

from pipehub.tenants.models import Tenant

logger = structlog.get_logger()

T = TypeVar("T")

_DUPLICATE_EXTERNAL_ID = "UNIQUE constraint failed: tenants.external_id"


class StoreError(Exception):
    """Raised when the tenant store cannot complete an operation."""


class DuplicateIdentityError(StoreError):
    """Raised when inserting a tenant whose external id is already stored.

    Two first-time sign-ins for the same GitHub account can race; the loser
    gets this error and should re-read the winner's row.
    """


class TenantStore(ABC):
    """Abstract base class for tenant storage backends."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create the schema if needed."""

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def find_by_id(self, tenant_id: int) -> Tenant | None:
        """Get a tenant by internal id."""

    @abstractmethod
    async def find_by_external_id(self, external_id: int) -> Tenant | None:
        """Get a tenant by GitHub user id."""

    @abstractmethod
    async def insert(self, tenant: Tenant) -> Tenant:
        """Insert a new tenant and return it with its assigned id.

        Raises:
            DuplicateIdentityError: If the external id is already stored.
        """

    @abstractmethod
    async def update(self, tenant: Tenant) -> Tenant:
        """Persist the mutable fields (app_id, block_list, captcha_enabled)."""

    @abstractmethod
    async def list_tenants(self) -> list[Tenant]:
        """List all tenants ordered by id."""


class SQLiteTenantStore(TenantStore):
    """SQLite tenant store.

    Uses one connection shared across worker threads and serialized by a lock,
    so ``:memory:`` databases behave like file databases. Blocking calls run
    in a thread via ``asyncio.to_thread``.
    """

    def __init__(self, db_path: str | Path = "pipehub.db") -> None:
        """Initialize SQLite storage.

        Args:
            db_path: Path to SQLite database file, or ":memory:" for in-memory.
        """
        self.db_path = str(db_path)
        self._lock = threading.Lock()
        self._connection: sqlite3.Connection | None = None
        self._initialized = False

    def _get_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            self._connection = conn
        return self._connection

    @contextmanager
    def cursor(self) -> Iterator[sqlite3.Cursor]:
        """Get a cursor with automatic commit/rollback."""
        with self._lock:
            conn = self._get_connection()
            cur = conn.cursor()
            try:
                yield cur
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                cur.close()

    async def _run(self, fn: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(fn)
        except sqlite3.IntegrityError as e:
            if _DUPLICATE_EXTERNAL_ID in str(e):
                raise DuplicateIdentityError("Tenant with this external id already exists") from e
            logger.error("Tenant store integrity error", error=str(e))
            raise StoreError("Tenant store integrity error") from e
        except OverflowError as e:
            logger.error("Tenant store value out of range", error=str(e))
            raise StoreError("Value out of range for tenant store") from e
        except sqlite3.Error as e:
            logger.error("Tenant store error", error=str(e), error_type=type(e).__name__)
            raise StoreError("Tenant store unavailable") from e

    async def initialize(self) -> None:
        if self._initialized:
            return

        def create_schema() -> None:
            with self.cursor() as cur:
                cur.execute("""
                    CREATE TABLE IF NOT EXISTS tenants (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        app_id INTEGER NOT NULL,
                        external_login TEXT NOT NULL,
                        external_id INTEGER NOT NULL,
                        block_list TEXT NOT NULL DEFAULT '',
                        captcha_enabled INTEGER NOT NULL DEFAULT 0
                    )
                """)
                cur.execute("""
                    CREATE UNIQUE INDEX IF NOT EXISTS idx_tenants_external_id
                    ON tenants(external_id)
                """)

        await self._run(create_schema)
        self._initialized = True

    async def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
        self._initialized = False

    async def find_by_id(self, tenant_id: int) -> Tenant | None:
        def query() -> Tenant | None:
            with self.cursor() as cur:
                cur.execute("SELECT * FROM tenants WHERE id = ?", (tenant_id,))
                row = cur.fetchone()
                return Tenant.from_row(row) if row else None

        return await self._run(query)

    async def find_by_external_id(self, external_id: int) -> Tenant | None:
        def query() -> Tenant | None:
            with self.cursor() as cur:
                cur.execute("SELECT * FROM tenants WHERE external_id = ?", (external_id,))
                row = cur.fetchone()
                return Tenant.from_row(row) if row else None

        return await self._run(query)

    async def insert(self, tenant: Tenant) -> Tenant:
        def write() -> Tenant:
            with self.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO tenants
                    (app_id, external_login, external_id, block_list, captcha_enabled)
                    VALUES (?, ?, ?, ?, ?)
                """,
                    (
                        tenant.app_id,
                        tenant.external_login,
                        tenant.external_id,
                        tenant.block_list,
                        int(tenant.captcha_enabled),
                    ),
                )
                cur.execute("SELECT * FROM tenants WHERE id = ?", (cur.lastrowid,))
                return Tenant.from_row(cur.fetchone())

        return await self._run(write)

    async def update(self, tenant: Tenant) -> Tenant:
        if tenant.id is None:
            raise StoreError("Cannot update a tenant that was never inserted")

        def write() -> int:
            with self.cursor() as cur:
                cur.execute(
                    """
                    UPDATE tenants
                    SET app_id = ?, block_list = ?, captcha_enabled = ?
                    WHERE id = ?
                """,
                    (
                        tenant.app_id,
                        tenant.block_list,
                        int(tenant.captcha_enabled),
                        tenant.id,
                    ),
                )
                return cur.rowcount

        if await self._run(write) == 0:
            raise StoreError("Tenant no longer exists")
        return tenant

    async def list_tenants(self) -> list[Tenant]:
        def query() -> list[Tenant]:
            with self.cursor() as cur:
                cur.execute("SELECT * FROM tenants ORDER BY id")
                return [Tenant.from_row(row) for row in cur.fetchall()]

        return await self._run(query)
