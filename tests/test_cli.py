"""Tests for Pipehub CLI."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from pipehub.cli import main
from pipehub.tenants.models import Tenant
from pipehub.tenants.storage import SQLiteTenantStore

APP_ID = 918273645546372819


def _seed_database(path) -> None:
    async def seed() -> None:
        store = SQLiteTenantStore(path)
        await store.initialize()
        try:
            await store.insert(Tenant.new(app_id=APP_ID, external_login="alice", external_id=42))
            await store.insert(Tenant.new(app_id=APP_ID + 1, external_login="bob", external_id=7))
        finally:
            await store.close()

    asyncio.run(seed())


@pytest.fixture(autouse=True)
def _no_github_env(monkeypatch):
    for name in ("PIPEHUB_GITHUB_CLIENT_ID", "PIPEHUB_GITHUB_CLIENT_SECRET", "PIPEHUB_GITHUB_BASE_URL"):
        monkeypatch.delenv(name, raising=False)


class TestCLIBasics:
    """Basic CLI tests."""

    def test_main_without_arguments_shows_banner(self):
        runner = CliRunner()
        result = runner.invoke(main)

        assert result.exit_code == 0
        assert "TENANT SIGN-IN" in result.output
        assert "pipehub serve" in result.output

    def test_main_with_help(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "GitHub sign-in" in result.output
        assert "serve" in result.output
        assert "tenants" in result.output

    def test_version_command(self):
        from pipehub import __version__

        runner = CliRunner()
        result = runner.invoke(main, ["version"])

        assert result.exit_code == 0
        assert "Version:" in result.output
        assert __version__ in result.output
        assert "Python:" in result.output


class TestTenantsCommand:
    """Tests for tenants command."""

    def test_lists_tenants_without_app_ids(self, tmp_path):
        db_path = tmp_path / "tenants.db"
        _seed_database(db_path)

        runner = CliRunner()
        result = runner.invoke(main, ["tenants", "--database", str(db_path)])

        assert result.exit_code == 0
        assert "alice" in result.output
        assert "bob" in result.output
        assert "42" in result.output
        assert str(APP_ID) not in result.output
        assert "Total:" in result.output

    def test_json_output_omits_app_ids(self, tmp_path):
        db_path = tmp_path / "tenants.db"
        _seed_database(db_path)

        runner = CliRunner()
        result = runner.invoke(main, ["tenants", "--database", str(db_path), "--json"])

        assert result.exit_code == 0
        rows = json.loads(result.output)
        assert [row["external_login"] for row in rows] == ["alice", "bob"]
        assert all("app_id" not in row for row in rows)

    def test_empty_database(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(main, ["tenants", "--database", str(tmp_path / "empty.db")])

        assert result.exit_code == 0
        assert "No tenants registered" in result.output

    def test_database_from_config_file(self, tmp_path):
        db_path = tmp_path / "tenants.db"
        _seed_database(db_path)
        config_path = tmp_path / "pipehub.yaml"
        config_path.write_text(f"database_path: {db_path}\n", encoding="utf-8")

        runner = CliRunner()
        result = runner.invoke(main, ["--config", str(config_path), "tenants"])

        assert result.exit_code == 0
        assert "alice" in result.output


class TestServeCommand:
    """Tests for serve command."""

    def test_serve_help(self):
        runner = CliRunner()
        result = runner.invoke(main, ["serve", "--help"])

        assert result.exit_code == 0
        assert "--port" in result.output
        assert "--database" in result.output

    def test_serve_requires_github_credentials(self):
        runner = CliRunner()
        result = runner.invoke(main, ["serve", "--database", ":memory:"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_serve_invalid_log_level(self):
        runner = CliRunner()
        result = runner.invoke(main, ["serve", "--log-level", "chatty"])

        assert result.exit_code == 1
        assert "Failed to load config" in result.output

    def test_serve_starts_server(self, monkeypatch):
        monkeypatch.setenv("PIPEHUB_GITHUB_CLIENT_ID", "id")
        monkeypatch.setenv("PIPEHUB_GITHUB_CLIENT_SECRET", "secret")
        runner = CliRunner()

        with (
            patch("pipehub.server.main.run_server", new=MagicMock()) as run_server,
            patch("pipehub.server.main.asyncio.run") as asyncio_run,
        ):
            result = runner.invoke(
                main, ["serve", "--host", "127.0.0.1", "--port", "9123", "--database", ":memory:"]
            )

        assert result.exit_code == 0, result.output
        asyncio_run.assert_called_once()
        _, host, port = run_server.call_args.args
        assert (host, port) == ("127.0.0.1", 9123)
        assert "Starting server on 127.0.0.1:9123" in result.output

    def test_serve_warns_when_token_login_enabled(self, monkeypatch):
        monkeypatch.setenv("PIPEHUB_GITHUB_CLIENT_ID", "id")
        monkeypatch.setenv("PIPEHUB_GITHUB_CLIENT_SECRET", "secret")
        monkeypatch.setenv("PIPEHUB_ALLOW_TOKEN_LOGIN", "true")
        runner = CliRunner()

        with (
            patch("pipehub.server.main.run_server", new=MagicMock()),
            patch("pipehub.server.main.asyncio.run"),
        ):
            result = runner.invoke(main, ["serve", "--database", ":memory:"])

        assert result.exit_code == 0, result.output
        assert "Token login: ENABLED" in result.output
