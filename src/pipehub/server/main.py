"""Pipehub Server - Main entry point."""

from __future__ import annotations

import asyncio
import sys

import click
import structlog
from aiohttp import web
from pydantic import ValidationError
from rich.console import Console

from pipehub.core.config import PipehubConfig
from pipehub.core.logging import configure_logging
from pipehub.security.oauth import OAuthConfig, SessionManager, create_auth_controller
from pipehub.server.app import create_app
from pipehub.tenants.storage import SQLiteTenantStore

console = Console()
logger = structlog.get_logger()

BANNER = """
██████╗ ██╗██████╗ ███████╗██╗  ██╗██╗   ██╗██████╗
██╔══██╗██║██╔══██╗██╔════╝██║  ██║██║   ██║██╔══██╗
██████╔╝██║██████╔╝█████╗  ███████║██║   ██║██████╔╝
██╔═══╝ ██║██╔═══╝ ██╔══╝  ██╔══██║██║   ██║██╔══██╗
██║     ██║██║     ███████╗██║  ██║╚██████╔╝██████╔╝
╚═╝     ╚═╝╚═╝     ╚══════╝╚═╝  ╚═╝ ╚═════╝ ╚═════╝
                  TENANT SIGN-IN
"""


def load_settings(config_file: str | None = None, **overrides) -> PipehubConfig:
    """Build settings from the environment, an optional file and CLI overrides."""
    if config_file:
        return PipehubConfig.from_file(config_file, **overrides)
    return PipehubConfig(**{k: v for k, v in overrides.items() if v is not None})


def build_app(settings: PipehubConfig) -> web.Application:
    """Wire store, sessions and controller into an application.

    Raises:
        ValueError: If GitHub credentials are not configured.
    """
    oauth_config = OAuthConfig.from_settings(settings)
    store = SQLiteTenantStore(settings.database_path)
    sessions = SessionManager(session_duration=oauth_config.session_duration)
    controller = create_auth_controller(oauth_config, store)
    return create_app(oauth_config, controller, sessions, store)


async def run_server(app: web.Application, host: str, port: int) -> None:
    """Serve ``app`` until cancelled."""
    runner = web.AppRunner(app)
    await runner.setup()
    try:
        site = web.TCPSite(runner, host, port)
        await site.start()
        logger.info("Pipehub server started", host=host, port=port)
        console.print("Server started, press Ctrl+C to stop", style="green")

        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


def serve(settings: PipehubConfig) -> None:
    """Validate settings, print the startup summary and run until interrupted."""
    try:
        app = build_app(settings)
    except ValueError as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        sys.exit(1)

    console.print(BANNER, style="cyan")
    console.print(f"Starting server on {settings.host}:{settings.port}...", style="yellow")
    console.print(f"Public URL: {settings.base_url}", style="dim")
    console.print(f"Database: {settings.database_path}", style="dim")
    provider = f"GitHub Enterprise ({settings.github_base_url})" if settings.github_base_url else "GitHub"
    console.print(f"Identity provider: {provider}", style="dim")
    if settings.allow_token_login:
        console.print("Token login: ENABLED (POST /login) - testing only", style="bold red")
    if not settings.session_cookie_secure:
        console.print("Session cookie: Secure attribute disabled", style="yellow")

    try:
        asyncio.run(run_server(app, settings.host, settings.port))
    except KeyboardInterrupt:
        console.print("\nShutting down...", style="yellow")


@click.command()
@click.option("--config", "-c", "config_file", type=click.Path(exists=True), help="YAML or TOML config file")
@click.option("--host", help="HTTP bind host")
@click.option("--port", "-p", type=int, help="HTTP bind port")
@click.option("--base-url", help="Public URL of this server")
@click.option("--database", "database_path", help="SQLite database path")
@click.option("--log-level", help="Log level (debug, info, warning, error)")
def main(
    config_file: str | None,
    host: str | None,
    port: int | None,
    base_url: str | None,
    database_path: str | None,
    log_level: str | None,
):
    """Run the Pipehub sign-in server."""
    try:
        settings = load_settings(
            config_file,
            host=host,
            port=port,
            base_url=base_url,
            database_path=database_path,
            log_level=log_level,
        )
        configure_logging(settings.log_level)
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Failed to load config:[/red] {e}")
        sys.exit(1)

    serve(settings)


if __name__ == "__main__":
    main()
