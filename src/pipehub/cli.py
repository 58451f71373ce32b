"""Pipehub CLI - Command line interface."""

from __future__ import annotations

import asyncio
import sys

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from pipehub.core.logging import configure_logging
from pipehub.server.main import BANNER, load_settings, serve
from pipehub.tenants.models import Tenant
from pipehub.tenants.storage import SQLiteTenantStore, StoreError

console = Console()


@click.group(invoke_without_command=True)
@click.option("--config", "-c", "config_file", type=click.Path(exists=True), help="YAML or TOML config file")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx: click.Context, config_file: str | None, verbose: bool):
    """Pipehub - GitHub sign-in and tenant management."""
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["verbose"] = verbose

    if ctx.invoked_subcommand is None:
        console.print(BANNER, style="cyan")
        console.print("\nCommands:", style="bold")
        console.print("  pipehub serve    Run the sign-in server", style="dim")
        console.print("  pipehub tenants  List registered tenants", style="dim")
        console.print("  pipehub version  Show version information", style="dim")


def _settings(ctx: click.Context, **overrides):
    try:
        settings = load_settings(ctx.obj.get("config_file"), **overrides)
        configure_logging("debug" if ctx.obj.get("verbose") else settings.log_level)
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Failed to load config:[/red] {e}")
        sys.exit(1)
    return settings


@main.command("serve")
@click.option("--host", help="HTTP bind host")
@click.option("--port", "-p", type=int, help="HTTP bind port")
@click.option("--base-url", help="Public URL of this server")
@click.option("--database", "database_path", help="SQLite database path")
@click.option("--log-level", help="Log level (debug, info, warning, error)")
@click.pass_context
def serve_command(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    base_url: str | None,
    database_path: str | None,
    log_level: str | None,
):
    """Run the sign-in server."""
    settings = _settings(
        ctx,
        host=host,
        port=port,
        base_url=base_url,
        database_path=database_path,
        log_level=log_level,
    )
    serve(settings)


async def _list_tenants(database_path: str) -> list[Tenant]:
    store = SQLiteTenantStore(database_path)
    try:
        await store.initialize()
        return await store.list_tenants()
    finally:
        await store.close()


@main.command()
@click.option("--database", "database_path", help="SQLite database path")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def tenants(ctx: click.Context, database_path: str | None, json_output: bool):
    """List registered tenants.

    App ids are credentials and are never printed.
    """
    settings = _settings(ctx, database_path=database_path)

    try:
        records = asyncio.run(_list_tenants(settings.database_path))
    except StoreError as e:
        console.print(f"[red]Error reading tenants:[/red] {e}")
        sys.exit(1)

    if json_output:
        import json

        rows = [
            {k: v for k, v in tenant.public_view().items() if k != "app_id"}
            for tenant in records
        ]
        click.echo(json.dumps(rows, indent=2))
        return

    if not records:
        console.print("[dim]No tenants registered[/dim]")
        return

    table = Table()
    table.add_column("ID", justify="right")
    table.add_column("Login", style="cyan")
    table.add_column("GitHub ID", justify="right")
    table.add_column("Captcha")
    table.add_column("Block List", style="dim")

    for tenant in records:
        table.add_row(
            str(tenant.id),
            tenant.external_login,
            str(tenant.external_id),
            "on" if tenant.captcha_enabled else "off",
            tenant.block_list[:40],
        )

    console.print(table)
    console.print(f"\n[bold]Total:[/bold] {len(records)}")


@main.command()
def version():
    """Show version information."""
    from pipehub import __version__

    console.print(BANNER, style="cyan")
    console.print(f"[bold]Version:[/bold] {__version__}")
    console.print(f"[bold]Python:[/bold] {sys.version}")


if __name__ == "__main__":
    main()
