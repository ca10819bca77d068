"""Process execution and inspection utilities.

Every external command mc-service runs goes through a ``CommandRunner`` so
that the decision "run as the service user or drop privileges first" is made
exactly once, when the runner is created.
"""

import os
import pwd
import shutil
import subprocess  # nosec B404
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass

import psutil

from .logging import ConfigurationError, LogContext, get_logger

logger = get_logger(__name__, LogContext.PROCESS)

# psutil reports 0.0 for the first non-blocking sample of a process.
CPU_SAMPLE_INTERVAL = 0.1


class CommandRunner(ABC):
    """Runs commands as the configured service user."""

    def __init__(self, user: str) -> None:
        self.user = user

    @abstractmethod
    def wrap(self, argv: Sequence[str]) -> list[str]:
        """Return the argv that executes ``argv`` as the service user."""

    def run(
        self, argv: Sequence[str], capture: bool = True
    ) -> subprocess.CompletedProcess[str]:
        """Run a command to completion.

        Args:
            argv: Command to run
            capture: Capture stdout/stderr instead of inheriting them

        Returns:
            The completed process; a missing binary is reported as exit 127
        """
        command = self.wrap(argv)
        logger.debug("Running command", command=command)
        try:
            return subprocess.run(  # nosec B603
                command,
                capture_output=capture,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            logger.warning("Command not found", command=command, error=str(e))
            return subprocess.CompletedProcess(command, 127, "", str(e))

    def call(self, argv: Sequence[str], env: dict[str, str] | None = None) -> int:
        """Run a command attached to the caller's terminal.

        ``env`` entries are applied through ``env(1)`` inside the wrapped
        command so they survive the privilege drop.
        """
        if env:
            argv = ["env", *(f"{k}={v}" for k, v in env.items()), *argv]
        return self.run(argv, capture=False).returncode


class PassthroughRunner(CommandRunner):
    """Runner used when the invoker already is the service user."""

    def wrap(self, argv: Sequence[str]) -> list[str]:
        return list(argv)


class PrivilegeDropRunner(CommandRunner):
    """Runner that switches to the service user with chpst."""

    def __init__(self, user: str, chpst_path: str) -> None:
        super().__init__(user)
        self.chpst_path = chpst_path

    def wrap(self, argv: Sequence[str]) -> list[str]:
        return [self.chpst_path, "-u", self.user, "--", *argv]


def current_user() -> str:
    """Name of the effective user of this process."""
    return pwd.getpwuid(os.geteuid()).pw_name


def create_runner(user: str, chpst_path: str | None = None) -> CommandRunner:
    """Create the runner matching the invoking identity.

    Raises:
        ConfigurationError: If privileges must be dropped and chpst is missing
    """
    if current_user() == user:
        return PassthroughRunner(user)

    chpst = chpst_path or shutil.which("chpst")
    if not chpst:
        raise ConfigurationError("chpst is required but was not found in PATH.")
    return PrivilegeDropRunner(user, chpst)


@dataclass
class ProcessInfo:
    """Snapshot of the recorded server process."""

    pid: int
    status: str
    command: list[str]
    started_at: float
    cpu_percent: float = 0.0
    memory_mb: float = 0.0


def inspect_process(pid: int) -> ProcessInfo | None:
    """Describe a process, or return None when it is gone or inaccessible."""
    try:
        process = psutil.Process(pid)
        with process.oneshot():
            return ProcessInfo(
                pid=pid,
                status=process.status(),
                command=process.cmdline(),
                started_at=process.create_time(),
                cpu_percent=process.cpu_percent(interval=CPU_SAMPLE_INTERVAL),
                memory_mb=process.memory_info().rss / 1024 / 1024,
            )
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess) as e:
        logger.debug("Process not inspectable", pid=pid, error=str(e))
        return None
