"""HTTP surface for tenant sign-in.

Routes:
    GET  /user            whoami, or 401 + Location to start sign-in
    GET  /callback        provider redirect target
    POST /login           sign in with a raw access token (only if enabled)
    POST /user/reset_key  rotate the tenant's app id
    PUT  /user            update block list / captcha flag
    GET  /health          liveness probe with the live session count
"""

from __future__ import annotations

import re
import uuid
from dataclasses import replace

import structlog
from aiohttp import web
from pydantic import ValidationError

from pipehub.security.oauth.client import UpstreamProviderError
from pipehub.security.oauth.config import OAuthConfig
from pipehub.security.oauth.controller import (
    AuthSessionController,
    CallbackResult,
    UnauthenticatedError,
)
from pipehub.security.oauth.session import Session, SessionManager, SessionState
from pipehub.tenants.models import ProfileUpdate
from pipehub.tenants.storage import StoreError, TenantStore

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,128}$")
SESSIONS_KEY = web.AppKey("sessions", SessionManager)


@web.middleware
async def request_id_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Bind a request id into the structlog context and echo it back."""
    inbound = request.headers.get(REQUEST_ID_HEADER, "")
    request_id = inbound if _REQUEST_ID_RE.match(inbound) else uuid.uuid4().hex

    with structlog.contextvars.bound_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.path,
    ):
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            exc.headers[REQUEST_ID_HEADER] = request_id
            raise
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Map domain errors to HTTP responses without leaking their text."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except UnauthenticatedError:
        return web.Response(status=401)
    except UpstreamProviderError as e:
        logger.error("Identity provider request failed", error=str(e))
        return web.json_response({"error": "Identity provider unavailable"}, status=502)
    except StoreError as e:
        logger.error("Tenant store request failed", error=str(e), error_type=type(e).__name__)
        return web.json_response({"error": "Internal server error"}, status=500)


def _redirect(location: str) -> web.Response:
    return web.Response(status=302, headers={"Location": location})


class TenantAuthHandler:
    """aiohttp handlers that adapt HTTP requests to the sign-in controller.

    Sign-in handlers load (or create) the caller's session, hand its state to
    the controller and save the state it returns, setting the session cookie
    for new or rotated sessions. Tenant handlers only look sessions up.
    """

    def __init__(
        self,
        controller: AuthSessionController,
        sessions: SessionManager,
        config: OAuthConfig,
    ):
        self._controller = controller
        self._sessions = sessions
        self._config = config

    def register_routes(self, app: web.Application) -> None:
        """Register sign-in and tenant routes on an aiohttp application.

        Args:
            app: The aiohttp Application to add routes to.
        """
        app.router.add_get("/user", self.handle_get_user)
        app.router.add_put("/user", self.handle_update_user)
        app.router.add_post("/user/reset_key", self.handle_reset_key)
        app.router.add_get(self._config.callback_path, self.handle_callback)
        if self._config.allow_token_login:
            logger.warning("Token login enabled; do not use in production")
            app.router.add_post("/login", self.handle_token_login)

    async def _load_session(self, request: web.Request) -> tuple[Session, bool]:
        """Return the caller's live session and whether it was just created."""
        session = await self._find_session(request)
        if session is not None:
            return session, False
        session = await self._sessions.create_session(self._config.session_duration)
        return session, True

    async def _find_session(self, request: web.Request) -> Session | None:
        """Return the caller's live session without ever creating one."""
        session_id = request.cookies.get(self._config.session_cookie_name)
        if not session_id:
            return None
        return await self._sessions.get_session(session_id)

    async def _save(self, session: Session, state: SessionState) -> None:
        if not await self._sessions.save_state(session.session_id, state):
            logger.debug("Session expired before state could be saved")

    def _with_cookie(self, response: web.Response, session: Session, created: bool) -> web.Response:
        if created:
            response.set_cookie(
                self._config.session_cookie_name,
                session.session_id,
                max_age=int(session.remaining_seconds),
                httponly=True,
                secure=self._config.session_cookie_secure,
                samesite="Lax",
                path="/",
            )
        return response

    async def _finish_sign_in(
        self, session: Session, created: bool, result: CallbackResult
    ) -> web.Response:
        """Save the callback outcome and redirect.

        A successful sign-in moves the session to a fresh id, so an id known
        before sign-in never becomes authenticated.
        """
        response = _redirect(result.redirect_url)
        if result.tenant is None:
            await self._save(session, result.session)
            return self._with_cookie(response, session, created)

        rotated = await self._sessions.rotate_session(session.session_id, result.session)
        if rotated is None:
            logger.debug("Session expired before sign-in could be bound")
            return response
        return self._with_cookie(response, rotated, True)

    async def handle_get_user(self, request: web.Request) -> web.Response:
        session, created = await self._load_session(request)
        result = await self._controller.request_identity(session.state)
        await self._save(session, result.session)

        if result.tenant is not None:
            response = web.json_response(result.tenant.public_view())
        else:
            response = web.Response(status=401, headers={"Location": result.redirect_url})
        return self._with_cookie(response, session, created)

    async def handle_callback(self, request: web.Request) -> web.Response:
        session, created = await self._load_session(request)
        # Consume the stored state before anything else can read it
        stored = await self._sessions.pop_csrf_state(session.session_id)
        state = replace(session.state, csrf_state=stored)

        result = await self._controller.handle_callback(
            state,
            request.query.get("code"),
            request.query.get("state"),
            request.query.get("error"),
        )
        return await self._finish_sign_in(session, created, result)

    async def handle_token_login(self, request: web.Request) -> web.Response:
        access_token = request.query.get("access_token")
        if not access_token:
            return web.Response(text="Missing access_token", status=400, content_type="text/plain")

        session, created = await self._load_session(request)
        result = await self._controller.login_with_token(session.state, access_token)
        return await self._finish_sign_in(session, created, result)

    async def handle_reset_key(self, request: web.Request) -> web.Response:
        session = await self._find_session(request)
        if session is None:
            raise UnauthenticatedError("No session")
        tenant = await self._controller.rotate_credential(session.state)
        return web.json_response(tenant.public_view())

    async def handle_update_user(self, request: web.Request) -> web.Response:
        session = await self._find_session(request)
        if session is None or not session.state.is_authenticated:
            raise UnauthenticatedError("Session is not bound to a tenant")

        try:
            update = ProfileUpdate.model_validate(await request.json())
        except (ValueError, ValidationError):
            return web.json_response({"error": "Invalid profile update"}, status=400)

        tenant = await self._controller.update_profile(session.state, update)
        return web.json_response(tenant.public_view())


async def handle_health(request: web.Request) -> web.Response:
    sessions = await request.app[SESSIONS_KEY].get_session_count()
    return web.json_response({"status": "healthy", "sessions": sessions})


def create_app(
    config: OAuthConfig,
    controller: AuthSessionController,
    sessions: SessionManager,
    store: TenantStore | None = None,
) -> web.Application:
    """Build the aiohttp application.

    The session manager's cleanup task and the store's schema are brought up
    on startup and torn down on cleanup.

    Args:
        config: Sign-in flow configuration
        controller: Controller driving sign-in and tenant operations
        sessions: Server-side session store
        store: Tenant store to initialize and close with the app

    Returns:
        Configured application, ready for AppRunner or TestServer
    """
    app = web.Application(middlewares=[request_id_middleware, error_middleware])
    app[SESSIONS_KEY] = sessions

    handler = TenantAuthHandler(controller, sessions, config)
    handler.register_routes(app)
    app.router.add_get("/health", handle_health)

    async def on_startup(app: web.Application) -> None:
        if store is not None:
            await store.initialize()
        await sessions.start()
        logger.info("Pipehub application started", redirect_uri=config.redirect_uri)

    async def on_cleanup(app: web.Application) -> None:
        await sessions.stop()
        if store is not None:
            await store.close()

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    return app
