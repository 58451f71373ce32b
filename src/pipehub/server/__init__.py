"""Pipehub HTTP server."""

from pipehub.server.app import TenantAuthHandler, create_app

__all__ = ["TenantAuthHandler", "create_app"]
