"""Session lifecycle: start, stop and status of the supervised server."""

import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

from ..config import ServiceConfig
from ..tmux import SessionHandle, TmuxService
from ..utils.fs import apply_group_permissions, ensure_private_dir
from ..utils.logging import (
    AlreadyRunningError,
    AmbiguousPidError,
    DeliveryError,
    LogContext,
    NotRunningError,
    PreconditionError,
    ServiceError,
    StopTimeoutError,
    audit_log,
    get_logger,
)
from ..utils.process import ProcessInfo, create_runner, inspect_process
from . import logfile
from .access import AccessGrantor
from .attach import AttachGateway
from .channel import CommandChannel
from .enums import ServerState
from .lock import session_lock
from .pidfile import PidRecord

logger = get_logger(__name__, LogContext.SUPERVISOR)

EXEC_PREFIX = "exec "


def _no_echo(message: str, err: bool = False) -> None:
    pass


@dataclass
class SessionStatus:
    """Result of a status query."""

    state: ServerState
    session_name: str
    pid: int | None = None
    process: ProcessInfo | None = None

    @property
    def running(self) -> bool:
        return self.state is ServerState.RUNNING

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "state": self.state.value,
            "session_name": self.session_name,
            "pid": self.pid,
        }
        if self.process:
            data["process"] = {
                "status": self.process.status,
                "memory_mb": round(self.process.memory_mb, 1),
                "cpu_percent": self.process.cpu_percent,
                "started_at": self.process.started_at,
            }
        return data


class SessionLifecycleManager:
    """Starts, stops and reports on the server's tmux session."""

    def __init__(
        self,
        config: ServiceConfig,
        tmux: TmuxService,
        channel: CommandChannel,
        grantor: AccessGrantor,
        gateway: AttachGateway,
        pid_record: PidRecord,
        echo: Callable[..., None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.tmux = tmux
        self.channel = channel
        self.grantor = grantor
        self.gateway = gateway
        self.pid_record = pid_record
        self.echo = echo or _no_echo
        self.sleep = sleep
        logger.set_session_name(config.session_name)

    # Queries

    def is_running(self) -> bool:
        return self.tmux.has_session()

    def status(self) -> SessionStatus:
        """Report whether the session exists. Never changes any state."""
        if not self.is_running():
            return SessionStatus(ServerState.STOPPED, self.config.session_name)

        pid = self.pid_record.read()
        process = inspect_process(pid) if pid is not None else None
        return SessionStatus(ServerState.RUNNING, self.config.session_name, pid, process)

    # Start

    def start(self, supervised: bool = False) -> int:
        """Start the server session.

        In supervised mode this blocks until the server exits or the process
        receives a termination signal, and returns the final exit status.
        """
        if supervised:
            from .supervised import SupervisedWait

            return SupervisedWait(self).run()

        self.launch()
        return 0

    @audit_log("launch")
    def launch(self, supervised: bool = False) -> int:
        """Create the session, record its pid and grant group access.

        Returns:
            The recorded pid

        Raises:
            PreconditionError: If the server directory is missing
            AlreadyRunningError: If the session already exists
            AmbiguousPidError: If the new session's pid cannot be determined
        """
        config = self.config
        if not config.server_dir.is_dir():
            raise PreconditionError(
                f"Minecraft server directory {config.server_dir} does not exist.",
                context={"server_dir": str(config.server_dir)},
            )

        with session_lock(
            config.lock_path, config.lock_timeout, config.user, config.group
        ):
            if self.is_running():
                raise AlreadyRunningError(
                    f"A tmux session named '{config.session_name}' is already running."
                )

            self.echo("Starting Minecraft server...")
            self._warn(ensure_private_dir(config.socket_dir, config.user, config.group))
            if config.fix_server_permissions:
                self._warn(
                    apply_group_permissions(config.server_dir, config.user, config.group)
                )

            self.tmux.new_session(config.server_dir, self.build_start_command(supervised))
            self.echo(
                f"Minecraft server started in detached tmux session '{config.session_name}'."
            )

            pid = self._discover_pid()
            self.pid_record.write(pid)

            self._warn(self.grantor.grant_all())
            self._warn(
                apply_group_permissions(config.socket_dir, config.user, config.group)
            )

        logger.info("Server launched", pid=pid, supervised=supervised)
        return pid

    def build_start_command(self, supervised: bool = False) -> list[str]:
        """Command handed to ``tmux new-session``.

        Supervised starts run the server under ``/bin/sh -c`` followed by the
        exit-channel signal, so the shell must not be replaced by ``exec``.
        """
        if not supervised:
            return [self.config.start_command_line()]

        command = self.config.start_command_line(exec_server=False)
        if command.startswith(EXEC_PREFIX):
            command = command[len(EXEC_PREFIX) :]
        return ["/bin/sh", "-c", f"{command}; {self.tmux.exit_signal_command()}"]

    def _discover_pid(self) -> int:
        pids = self.tmux.list_pane_pids()
        if len(pids) != 1:
            raise AmbiguousPidError(
                f"Failed to determine server PID, expected one tmux pane but found {len(pids)}.",
                context={"pids": pids},
            )
        try:
            pid = int(pids[0])
        except ValueError:
            raise AmbiguousPidError(
                f"Failed to determine server PID, tmux reported {pids[0]!r}.",
                context={"pids": pids},
            )
        if pid <= 0:
            raise AmbiguousPidError(f"Failed to determine server PID, got {pid}.")
        return pid

    def _warn(self, warnings: list[str]) -> None:
        for warning in warnings:
            self.echo(f"Warning: {warning}", err=True)

    # Stop

    @audit_log("stop")
    def stop(self) -> int:
        """Warn players, stop the server and wait for the session to vanish.

        Stopping an absent session succeeds and cleans up a stale pid record.

        Raises:
            DeliveryError: If a broadcast or the stop command is not delivered
            StopTimeoutError: If the session outlives ``stop_timeout`` seconds
        """
        config = self.config
        with session_lock(
            config.lock_path, config.lock_timeout, config.user, config.group
        ):
            if not self.is_running():
                self.echo("The server is already stopped.")
                self._remove_pid_record()
                return 0

            self.echo("Warning players...")
            for seconds in range(config.stop_countdown, 0, -1):
                self.channel.broadcast_countdown(seconds)
                if seconds % 5 == 0:
                    self.echo(f"{seconds} seconds remaining...")
                self.sleep(1)

            self.echo("Stopping server...")
            try:
                self.channel.issue(config.stop_command)
            except DeliveryError as e:
                raise DeliveryError("Failed to send stop command to server.") from e

            self.echo("Waiting for server to stop...")
            waited = 0
            while self.is_running():
                if waited >= config.stop_timeout:
                    raise StopTimeoutError(
                        "Timed out waiting for server to stop.",
                        context={"timeout": config.stop_timeout},
                    )
                self.sleep(1)
                waited += 1

            self.echo("Server stopped successfully.")
            self._remove_pid_record()
            return 0

    def _remove_pid_record(self) -> None:
        try:
            self.pid_record.remove_if_present()
        except OSError as e:
            raise ServiceError(
                f"Failed to remove pid file {self.pid_record.path}: {e.strerror or e}"
            ) from e

    # Console access

    def _require_running(self) -> None:
        if not self.is_running():
            raise NotRunningError(
                f"No tmux session named '{self.config.session_name}' is running."
            )

    def issue_command(self, text: str) -> None:
        """Type ``text`` into the server console."""
        self._require_running()
        self.channel.issue(text)

    def reload(self) -> None:
        self._require_running()
        self.channel.issue(self.config.reload_command)

    def attach(self) -> int:
        return self.gateway.attach()

    def follow_log(self, **kwargs: Any) -> Iterator[str]:
        return logfile.follow(self.config.server_log_path, **kwargs)


def create_manager(
    config: ServiceConfig, echo: Callable[..., None] | None = None
) -> SessionLifecycleManager:
    """Wire every component from one configuration."""
    runner = create_runner(config.user, config.chpst_path)
    handle = SessionHandle(config.socket_path, config.session_name)
    tmux = TmuxService(handle, config.tmux_path, runner)
    return SessionLifecycleManager(
        config=config,
        tmux=tmux,
        channel=CommandChannel(tmux, config.warning_template),
        grantor=AccessGrantor(tmux, config.user, config.group),
        gateway=AttachGateway(tmux),
        pid_record=PidRecord(config.pid_path),
        echo=echo,
    )
