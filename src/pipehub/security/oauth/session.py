"""Session management for the sign-in flow.

Provides in-memory session storage with automatic expiration cleanup.
Sessions are stored server-side with only a secure session ID sent to clients.
"""

from __future__ import annotations

import asyncio
import secrets
import time
from dataclasses import dataclass, field, replace


@dataclass(frozen=True)
class SessionState:
    """What a session knows about its caller.

    ``tenant_id`` set means authenticated. ``csrf_state`` is set while an
    authorization request is outstanding and cleared when the callback
    arrives, whatever the outcome.
    """

    tenant_id: int | None = None
    csrf_state: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.tenant_id is not None

    def with_csrf_state(self, csrf_state: str) -> SessionState:
        return replace(self, csrf_state=csrf_state)

    def without_csrf_state(self) -> SessionState:
        return replace(self, csrf_state=None)

    def bind(self, tenant_id: int) -> SessionState:
        """Bind the session to a tenant, dropping any outstanding CSRF state."""
        return SessionState(tenant_id=tenant_id, csrf_state=None)


@dataclass
class Session:
    """A server-side session identified by a cryptographically secure id."""

    session_id: str
    state: SessionState = field(default_factory=SessionState)
    created_at: float = field(default_factory=time.time)
    expires_at: float = 0.0

    def __post_init__(self):
        """Set default expiration if not provided."""
        if self.expires_at == 0.0:
            # Default 24 hour expiration
            self.expires_at = self.created_at + 86400

    @property
    def is_expired(self) -> bool:
        """Check if session has expired."""
        return time.time() > self.expires_at

    @property
    def remaining_seconds(self) -> float:
        """Get remaining session lifetime in seconds."""
        return max(0.0, self.expires_at - time.time())


class SessionManager:
    """In-memory session storage with expiration cleanup.

    Thread-safe via asyncio locks for concurrent access.
    """

    def __init__(
        self,
        cleanup_interval: float = 300.0,
        session_duration: int = 86400,
    ):
        """Initialize session manager.

        Args:
            cleanup_interval: How often to run cleanup in seconds (default 5 min)
            session_duration: Default session duration in seconds (default 24 hours)
        """
        self._sessions: dict[str, Session] = {}
        self._cleanup_interval = cleanup_interval
        self._session_duration = session_duration
        self._cleanup_task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    async def start(self) -> None:
        """Start the background cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop(self) -> None:
        """Stop the background cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    async def create_session(self, duration: int | None = None) -> Session:
        """Create a new, unauthenticated session with a secure random id.

        Args:
            duration: Session duration in seconds (uses default if not specified)

        Returns:
            The created Session object
        """
        session_id = secrets.token_urlsafe(32)
        duration = duration or self._session_duration
        now = time.time()

        session = Session(
            session_id=session_id,
            created_at=now,
            expires_at=now + duration,
        )

        async with self._lock:
            self._sessions[session_id] = session

        return session

    async def get_session(self, session_id: str) -> Session | None:
        """Retrieve a session by ID.

        Returns None if the session doesn't exist or has expired.
        Expired sessions are removed when accessed.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None

            if session.is_expired:
                del self._sessions[session_id]
                return None

            return session

    async def save_state(self, session_id: str, state: SessionState) -> bool:
        """Replace the state of a live session.

        Returns:
            True if saved, False if the session is gone or expired
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.is_expired:
                return False
            session.state = state
            return True

    async def pop_csrf_state(self, session_id: str) -> str | None:
        """Read and clear the session's CSRF state in one step.

        A state can therefore be checked at most once, even when two
        callbacks for the same session arrive concurrently.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.is_expired:
                return None
            csrf_state = session.state.csrf_state
            session.state = session.state.without_csrf_state()
            return csrf_state

    async def rotate_session(self, session_id: str, state: SessionState) -> Session | None:
        """Move a live session to a fresh id carrying ``state``.

        The old id stops resolving immediately. Expiry is kept.

        Returns:
            The session under its new id, or None if the old one is gone or expired
        """
        async with self._lock:
            old = self._sessions.pop(session_id, None)
            if old is None or old.is_expired:
                return None
            session = Session(
                session_id=secrets.token_urlsafe(32),
                state=state,
                created_at=old.created_at,
                expires_at=old.expires_at,
            )
            self._sessions[session.session_id] = session
            return session

    async def get_session_count(self) -> int:
        """Get the current number of active sessions."""
        async with self._lock:
            return len(self._sessions)

    async def _cleanup_loop(self) -> None:
        """Background task to remove expired sessions."""
        while True:
            try:
                await asyncio.sleep(self._cleanup_interval)
                await self._cleanup_expired()
            except asyncio.CancelledError:
                break

    async def _cleanup_expired(self) -> int:
        """Remove all expired sessions.

        Returns:
            Number of sessions removed
        """
        now = time.time()
        removed = 0

        async with self._lock:
            expired_ids = [
                sid for sid, session in self._sessions.items()
                if session.expires_at < now
            ]
            for sid in expired_ids:
                del self._sessions[sid]
                removed += 1

        return removed
