"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They run against the in-memory backend, so every invocation starts empty.

Usage:
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""
import pytest
from typer.testing import CliRunner

from mastery_engine.cli import app
from mastery_engine.config import get_settings

pytestmark = pytest.mark.smoke

runner = CliRunner()


@pytest.fixture(autouse=True)
def memory_backend(monkeypatch):
    monkeypatch.setenv("MASTERY_STORE_BACKEND", "memory")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestCLIHelp:
    """Test that help commands work."""

    def test_main_help(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "mastery" in result.stdout
        assert "session" in result.stdout

    @pytest.mark.parametrize("group", ["mastery", "session"])
    def test_group_help(self, group):
        result = runner.invoke(app, [group, "--help"])

        assert result.exit_code == 0


class TestCLICommands:
    def test_mastery_summary(self):
        result = runner.invoke(app, ["mastery", "summary", "--user", "alice"])

        assert result.exit_code == 0, result.stdout
        assert "Concepts tracked: 0" in result.stdout

    def test_mastery_due_empty(self):
        result = runner.invoke(app, ["mastery", "due", "--user", "alice"])

        assert result.exit_code == 0
        assert "Nothing due" in result.stdout

    def test_mastery_show_untracked_exits_nonzero(self):
        result = runner.invoke(app, ["mastery", "show", "subnetting", "--user", "alice"])

        assert result.exit_code == 1

    def test_session_show_without_session(self):
        result = runner.invoke(app, ["session", "show", "--user", "alice"])

        assert result.exit_code == 0
        assert "No active test session" in result.stdout

    def test_session_abandon_is_noop(self):
        result = runner.invoke(app, ["session", "abandon", "--user", "alice"])

        assert result.exit_code == 0

    def test_memory_backend_warns_that_nothing_persists(self):
        result = runner.invoke(app, ["mastery", "summary", "--user", "alice"])

        assert "memory backend starts empty" in result.stdout
        assert "MASTERY_STORE_BACKEND" in result.stdout

    def test_sql_backend_does_not_warn(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MASTERY_STORE_BACKEND", "sql")
        monkeypatch.setenv("MASTERY_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
        get_settings.cache_clear()

        result = runner.invoke(app, ["mastery", "summary", "--user", "alice"])

        assert result.exit_code == 0, result.stdout
        assert "memory backend" not in result.stdout
        assert "Concepts tracked: 0" in result.stdout

    def test_user_is_required(self):
        result = runner.invoke(app, ["mastery", "summary"])

        assert result.exit_code != 0
