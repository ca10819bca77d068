"""Unit tests for the mc-service command line."""

import json
from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

from mc_service.cli.main import main
from mc_service.config import ServiceConfig
from mc_service.core.enums import ServerState
from mc_service.core.lifecycle import SessionStatus
from mc_service.utils.logging import (
    AlreadyRunningError,
    LogFileMissingError,
    NotRunningError,
    StopTimeoutError,
)
from mc_service.utils.process import ProcessInfo


@pytest.fixture
def mock_manager():
    """Lifecycle manager double handed out by create_manager."""
    manager = Mock()
    manager.start.return_value = 0
    manager.stop.return_value = 0
    manager.attach.return_value = 0
    manager.status.return_value = SessionStatus(
        state=ServerState.STOPPED, session_name="minecraft_session"
    )
    with patch(
        "mc_service.cli.main.load_config", return_value=ServiceConfig()
    ), patch("mc_service.cli.main.create_manager", return_value=manager):
        yield manager


class TestCommandLine:
    """Test verb dispatch and exit codes."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()

    def test_version(self):
        result = self.runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert "mc-service" in result.output

    def test_unknown_verb(self, mock_manager):
        result = self.runner.invoke(main, ["restart"])

        assert result.exit_code == 2
        mock_manager.assert_not_called()

    def test_missing_verb(self, mock_manager):
        result = self.runner.invoke(main, [])

        assert result.exit_code == 2
        assert "Usage" in result.output

    def test_runit_only_with_start(self, mock_manager):
        result = self.runner.invoke(main, ["--runit", "stop"])

        assert result.exit_code == 2
        mock_manager.stop.assert_not_called()

    def test_start(self, mock_manager):
        result = self.runner.invoke(main, ["start"])

        assert result.exit_code == 0
        mock_manager.start.assert_called_once_with(supervised=False)

    def test_start_already_running(self, mock_manager):
        mock_manager.start.side_effect = AlreadyRunningError(
            "A tmux session named 'minecraft_session' is already running."
        )

        result = self.runner.invoke(main, ["start"])

        assert result.exit_code == 1
        assert "already running" in result.output

    def test_runit_start_reflects_stop_status(self, mock_manager):
        mock_manager.start.return_value = 143

        result = self.runner.invoke(main, ["--runit", "start"])

        assert result.exit_code == 143
        mock_manager.start.assert_called_once_with(supervised=True)

    def test_stop(self, mock_manager):
        result = self.runner.invoke(main, ["stop"])

        assert result.exit_code == 0
        mock_manager.stop.assert_called_once_with()

    def test_stop_timeout(self, mock_manager):
        mock_manager.stop.side_effect = StopTimeoutError(
            "Timed out waiting for server to stop."
        )

        result = self.runner.invoke(main, ["stop"])

        assert result.exit_code == 1
        assert "Error: Timed out waiting for server to stop." in result.output

    def test_status_not_running(self, mock_manager):
        result = self.runner.invoke(main, ["status"])

        assert result.exit_code == 0
        assert "Minecraft server is not running." in result.output

    def test_status_running(self, mock_manager):
        mock_manager.status.return_value = SessionStatus(
            state=ServerState.RUNNING,
            session_name="minecraft_session",
            pid=4242,
            process=ProcessInfo(
                pid=4242,
                status="sleeping",
                command=["java"],
                started_at=0.0,
                memory_mb=1024.0,
            ),
        )

        result = self.runner.invoke(main, ["status"])

        assert result.exit_code == 0
        assert "running in tmux session 'minecraft_session'" in result.output
        assert "PID: 4242" in result.output
        assert "1024.0 MB" in result.output

    def test_status_json(self, mock_manager):
        result = self.runner.invoke(main, ["status", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["state"] == "stopped"
        assert data["pid"] is None

    def test_cmd(self, mock_manager):
        result = self.runner.invoke(main, ["cmd", "say", "hello"])

        assert result.exit_code == 0
        mock_manager.issue_command.assert_called_once_with("say hello")
        assert "Command 'say hello' sent to Minecraft server." in result.output

    def test_cmd_without_text(self, mock_manager):
        result = self.runner.invoke(main, ["cmd"])

        assert result.exit_code == 2
        assert "No command provided" in result.output
        mock_manager.issue_command.assert_not_called()

    def test_cmd_not_running(self, mock_manager):
        mock_manager.issue_command.side_effect = NotRunningError(
            "No tmux session named 'minecraft_session' is running."
        )

        result = self.runner.invoke(main, ["cmd", "list"])

        assert result.exit_code == 1
        assert "No tmux session named" in result.output

    def test_reload(self, mock_manager):
        result = self.runner.invoke(main, ["reload"])

        assert result.exit_code == 0
        mock_manager.reload.assert_called_once_with()
        assert "Reload command sent" in result.output

    def test_reload_not_running(self, mock_manager):
        mock_manager.reload.side_effect = NotRunningError("No tmux session.")

        result = self.runner.invoke(main, ["reload"])

        assert result.exit_code == 1

    def test_attach_without_session(self, mock_manager):
        mock_manager.attach.side_effect = NotRunningError("No tmux session.")

        result = self.runner.invoke(main, ["attach"])

        assert result.exit_code == 1

    def test_attach_failure_code(self, mock_manager):
        mock_manager.attach.return_value = 1

        result = self.runner.invoke(main, ["attach"])

        assert result.exit_code == 1

    def test_log_streams_lines(self, mock_manager):
        mock_manager.follow_log.return_value = iter(["a\n", "b\n"])

        result = self.runner.invoke(main, ["log"])

        assert result.exit_code == 0
        assert result.output == "a\nb\n"

    def test_log_missing_file(self, mock_manager):
        mock_manager.follow_log.side_effect = LogFileMissingError(
            "Log file does not exist."
        )

        result = self.runner.invoke(main, ["log"])

        assert result.exit_code == 1
        assert "Log file does not exist." in result.output
