"""Tests for CLI commands"""

from unittest.mock import Mock, patch

import httpx
import pytest
from typer.testing import CliRunner

from cli.main import app


@pytest.fixture
def runner():
    """CLI test runner"""
    return CliRunner()


@pytest.fixture
def cli_settings(test_settings):
    """Point the CLI at the throwaway test database"""
    with patch("cli.main.get_settings", return_value=test_settings):
        yield test_settings


class TestNewsletterCommands:
    """Test commands that talk to the database"""

    def test_init_db(self, runner, cli_settings):
        result = runner.invoke(app, ["init-db"])

        assert result.exit_code == 0
        assert "Database tables created" in result.stdout

    def test_list_empty(self, runner, cli_settings):
        runner.invoke(app, ["init-db"])

        result = runner.invoke(app, ["list"])

        assert result.exit_code == 0
        assert "No newsletters published yet" in result.stdout

    def test_publish_then_list(self, runner, cli_settings, tmp_path):
        body = tmp_path / "issue.md"
        body.write_text("Hello readers", encoding="utf-8")
        runner.invoke(app, ["init-db"])

        result = runner.invoke(
            app, ["publish", "--title", "Issue 1", "--body-file", str(body)]
        )

        assert result.exit_code == 0
        assert "Published 'Issue 1'" in result.stdout

        result = runner.invoke(app, ["list"])
        assert result.exit_code == 0
        assert "Issue 1" in result.stdout

    def test_publish_empty_body_fails(self, runner, cli_settings, tmp_path):
        body = tmp_path / "empty.md"
        body.write_text("   ", encoding="utf-8")
        runner.invoke(app, ["init-db"])

        result = runner.invoke(
            app, ["publish", "--title", "Issue 1", "--body-file", str(body)]
        )

        assert result.exit_code == 1
        assert "title and body are required" in result.stdout


class TestStatusCommand:
    """Test the health check command"""

    @patch("cli.main.httpx.get")
    def test_status_success(self, mock_get, runner):
        response = Mock()
        response.json.return_value = {
            "ok": True,
            "data": {
                "version": "1.0.0",
                "environment": "development",
                "database": {"connected": True},
                "queue": {"queue_depth": 0, "succeeded": 3, "failed": 0},
            },
        }
        mock_get.return_value = response

        result = runner.invoke(app, ["status", "--url", "http://api.test"])

        assert result.exit_code == 0
        assert "Connected Successfully" in result.stdout
        mock_get.assert_called_once_with("http://api.test/v1/healthz", timeout=10)

    @patch("cli.main.httpx.get")
    def test_status_failure(self, mock_get, runner):
        mock_get.side_effect = httpx.ConnectError("Connection refused")

        result = runner.invoke(app, ["status", "--url", "http://api.test"])

        assert result.exit_code == 1
        assert "Connection Failed" in result.stdout
