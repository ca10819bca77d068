"""
Tmux session adapter.

This module wraps the handful of tmux commands mc-service needs against a
single named session on a dedicated socket. Every invocation goes through a
``CommandRunner`` so it executes as the service user.
"""

import shlex
from dataclasses import dataclass
from pathlib import Path

from ..utils.logging import TmuxError
from ..utils.process import CommandRunner
from .logging_utils import (
    log_access_grant,
    log_keys_sent,
    log_pane_pids,
    log_session_attach,
    log_session_operation,
    tmux_logger,
)


@dataclass(frozen=True)
class SessionHandle:
    """Identifies a detached session by socket location and name."""

    socket_path: Path
    name: str

    @property
    def pane_target(self) -> str:
        """Target of the primary pane."""
        return f"{self.name}.0"

    @property
    def exit_channel(self) -> str:
        """wait-for channel raised when the server process exits."""
        return f"exit-{self.name}"


class TmuxService:
    """Runs tmux commands against one session handle."""

    def __init__(self, handle: SessionHandle, tmux_path: str, runner: CommandRunner):
        """Initialize tmux service.

        Args:
            handle: Session to operate on
            tmux_path: tmux binary
            runner: Runner executing commands as the service user
        """
        self.handle = handle
        self.tmux_path = tmux_path
        self.runner = runner

    def _argv(self, *args: str) -> list[str]:
        return [self.tmux_path, "-S", str(self.handle.socket_path), *args]

    def _run(self, *args: str):
        return self.runner.run(self._argv(*args))

    def has_session(self) -> bool:
        """Check if the session exists."""
        return self._run("has-session", "-t", self.handle.name).returncode == 0

    def new_session(self, directory: Path, command: list[str]) -> None:
        """Create the detached session running ``command`` in ``directory``.

        Raises:
            TmuxError: If tmux refuses to create the session
        """
        name = self.handle.name
        log_session_operation("create", name, "starting")
        result = self._run(
            "new-session", "-d", "-s", name, "-c", str(directory), *command
        )
        if result.returncode != 0:
            error = (result.stderr or "").strip()
            log_session_operation("create", name, "error", {"error": error})
            raise TmuxError(
                f"Failed to create tmux session '{name}': {error or result.returncode}",
                context={"session_name": name},
            )
        log_session_operation("create", name, "success")

    def list_pane_pids(self) -> list[str]:
        """Return the non-empty ``#{pane_pid}`` lines of the session."""
        result = self._run("list-panes", "-t", self.handle.name, "-F", "#{pane_pid}")
        if result.returncode != 0:
            tmux_logger.warning(
                f"list-panes failed for {self.handle.name}: {(result.stderr or '').strip()}"
            )
            return []
        pids = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        log_pane_pids(self.handle.name, pids)
        return pids

    def send_keys(self, text: str) -> bool:
        """Type ``text`` literally into the primary pane, then press Enter.

        Both key sequences go out in a single tmux invocation. tmux reads an
        argument ending in ``;`` as a command separator, so a trailing ``;`` is
        escaped; ``--`` keeps a leading ``-`` from being parsed as a flag.
        """
        target = self.handle.pane_target
        literal = text[:-1] + "\\;" if text.endswith(";") else text
        result = self._run(
            "send-keys",
            "-t",
            target,
            "-l",
            "--",
            literal,
            ";",
            "send-keys",
            "-t",
            target,
            "C-m",
        )
        delivered = result.returncode == 0
        log_keys_sent(self.handle.name, text, delivered)
        return delivered

    def grant_access(self, user: str) -> bool:
        """Allow ``user`` to attach to the server behind the socket."""
        granted = self._run("server-access", "-a", user).returncode == 0
        log_access_grant(self.handle.name, user, granted)
        return granted

    def attach(self, term: str) -> int:
        """Attach the caller's terminal to the primary pane."""
        exit_code = self.runner.call(
            self._argv("attach-session", "-t", self.handle.pane_target),
            env={"TERM": term},
        )
        log_session_attach(self.handle.name, term, exit_code)
        return exit_code

    def exit_signal_command(self) -> str:
        """Shell snippet that raises the session's exit channel."""
        return shlex.join(self._argv("wait-for", "-S", self.handle.exit_channel))

    def exit_wait_argv(self) -> list[str]:
        """Wrapped argv that blocks until the exit channel is raised."""
        return self.runner.wrap(self._argv("wait-for", self.handle.exit_channel))
