"""Tests for the hackerosteam CLI."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from typer.testing import CliRunner

from hackerosteam.cli.app import app
from hackerosteam.errors import ExternalProcessError, NoGpu, NotCreated
from hackerosteam.progress import CompletedEvent


runner = CliRunner()


@pytest.fixture(autouse=True)
def mock_orchestrator():
    """Mock the orchestrator for all CLI tests."""
    orchestrator = MagicMock()
    orchestrator.run.return_value = 0
    orchestrator.restart.return_value = 0

    with patch("hackerosteam.cli.app.get_orchestrator", return_value=orchestrator):
        yield orchestrator


def test_create(mock_orchestrator):
    result = runner.invoke(app, ["create"])
    assert result.exit_code == 0
    mock_orchestrator.create.assert_called_once_with()


def test_run_default_session(mock_orchestrator):
    result = runner.invoke(app, ["run"])
    assert result.exit_code == 0
    mock_orchestrator.run.assert_called_once_with(None)


def test_run_propagates_exit_code(mock_orchestrator):
    mock_orchestrator.run.return_value = 42

    result = runner.invoke(app, ["run", "deck"])
    assert result.exit_code == 42
    mock_orchestrator.run.assert_called_once_with("deck")


def test_host_error_exits_with_message(mock_orchestrator):
    mock_orchestrator.create.side_effect = NoGpu()

    result = runner.invoke(app, ["create"])
    assert result.exit_code == 1
    assert "no GPU drivers found" in result.output


def test_external_failure_uses_its_exit_code(mock_orchestrator):
    mock_orchestrator.update.side_effect = ExternalProcessError("dnf update", 7)

    result = runner.invoke(app, ["update"])
    assert result.exit_code == 7


def test_update_not_created(mock_orchestrator):
    mock_orchestrator.update.side_effect = NotCreated("/root/steam")

    result = runner.invoke(app, ["update"])
    assert result.exit_code == 1
    assert "hackerosteam create" in result.output


def test_kill_restart_remove(mock_orchestrator):
    assert runner.invoke(app, ["kill"]).exit_code == 0
    assert runner.invoke(app, ["restart"]).exit_code == 0
    assert runner.invoke(app, ["remove"]).exit_code == 0

    mock_orchestrator.kill.assert_called_once()
    mock_orchestrator.restart.assert_called_once()
    mock_orchestrator.remove.assert_called_once()


@pytest.mark.parametrize("running, text", [(True, "is running"), (False, "is not running")])
def test_status(mock_orchestrator, running, text):
    mock_orchestrator.status.return_value = running

    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert text in result.output


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "hackerosteam version" in result.output


def test_watch_reports_failure():
    client = AsyncMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    client.wait_completed.return_value = CompletedEvent(False, "dnf update failed", 7)

    with patch("hackerosteam.cli.app.SteamClient", return_value=client):
        result = runner.invoke(app, ["watch"])

    assert result.exit_code == 7
    assert "dnf update failed" in result.output


def test_error_message_is_not_markup(mock_orchestrator):
    mock_orchestrator.remove.side_effect = NotCreated("/g/[bold]s")

    result = runner.invoke(app, ["remove"])
    assert result.exit_code == 1
    assert "/g/[bold]s" in result.output


def test_run_killed_by_signal_exits_like_a_shell(mock_orchestrator):
    mock_orchestrator.run.return_value = -9

    result = runner.invoke(app, ["run"])
    assert result.exit_code == 137
