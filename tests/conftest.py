"""
Pytest configuration and shared fixtures for mc-service tests.
"""

import grp
import logging
import os
import pwd
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mc_service.config import ServiceConfig
from mc_service.core.access import AccessGrantor
from mc_service.core.attach import AttachGateway
from mc_service.core.channel import CommandChannel
from mc_service.core.lifecycle import SessionLifecycleManager
from mc_service.core.pidfile import PidRecord
from mc_service.tmux import SessionHandle

CURRENT_USER = pwd.getpwuid(os.geteuid()).pw_name
CURRENT_GROUP = grp.getgrgid(os.getegid()).gr_name


class FakeTmux:
    """Scripted stand-in for TmuxService that records every call in order."""

    def __init__(self, handle: SessionHandle, stop_command: str = "stop"):
        self.handle = handle
        self.tmux_path = "tmux"
        self.stop_command = stop_command
        self.events: list[tuple] = []
        self.session = False
        self.pane_pids = ["4242"]
        self.failing_texts: set[str] = set()
        self.failing_grants: set[str] = set()
        self.attach_codes: list[int] = [0]
        # has_session calls answered True after the stop command, then gone.
        # None keeps the session alive forever.
        self.exit_after_polls: int | None = 0
        self._stop_sent = False

    def has_session(self) -> bool:
        self.events.append(("has_session",))
        if self.session and self._stop_sent and self.exit_after_polls is not None:
            if self.exit_after_polls == 0:
                self.session = False
            else:
                self.exit_after_polls -= 1
        return self.session

    def new_session(self, directory, command):
        self.events.append(("new_session", directory, command))
        self.session = True
        self._stop_sent = False

    def list_pane_pids(self):
        self.events.append(("list_pane_pids",))
        return list(self.pane_pids)

    def send_keys(self, text):
        self.events.append(("send_keys", text))
        if text in self.failing_texts:
            return False
        if text == self.stop_command:
            self._stop_sent = True
        return True

    def grant_access(self, user):
        self.events.append(("grant_access", user))
        return user not in self.failing_grants

    def attach(self, term):
        self.events.append(("attach", term))
        return self.attach_codes.pop(0)

    def exit_signal_command(self):
        return f"tmux -S {self.handle.socket_path} wait-for -S {self.handle.exit_channel}"

    def exit_wait_argv(self):
        return ["tmux", "wait-for", self.handle.exit_channel]

    def sent_texts(self) -> list[str]:
        return [e[1] for e in self.events if e[0] == "send_keys"]


class Recorder:
    """Collects echo output and sleeps of the lifecycle manager."""

    def __init__(self):
        self.messages: list[tuple[str, bool]] = []
        self.sleeps: list[float] = []

    def echo(self, message: str, err: bool = False) -> None:
        self.messages.append((message, err))

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)

    def lines(self) -> list[str]:
        return [m for m, _ in self.messages]


@pytest.fixture
def service_config(tmp_path) -> ServiceConfig:
    """Configuration rooted in a temporary directory, run as the test user."""
    server_dir = tmp_path / "server"
    server_dir.mkdir()
    return ServiceConfig(
        user=CURRENT_USER,
        group=CURRENT_GROUP,
        server_dir=server_dir,
        socket_dir=tmp_path / "sockets",
        start_command="exec java -Xmx1G -jar server.jar nogui",
        lock_timeout=0.5,
    )


@pytest.fixture
def fake_tmux(service_config) -> FakeTmux:
    handle = SessionHandle(service_config.socket_path, service_config.session_name)
    return FakeTmux(handle, service_config.stop_command)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def manager(service_config, fake_tmux, recorder) -> SessionLifecycleManager:
    """Lifecycle manager wired to the fake tmux and instant sleeps."""
    return SessionLifecycleManager(
        config=service_config,
        tmux=fake_tmux,
        channel=CommandChannel(fake_tmux, service_config.warning_template),
        grantor=AccessGrantor(fake_tmux, service_config.user, service_config.group),
        gateway=AttachGateway(fake_tmux),
        pid_record=PidRecord(service_config.pid_path),
        echo=recorder.echo,
        sleep=recorder.sleep,
    )


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test."""
    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.NOTSET)

    yield

    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    root_logger.setLevel(original_level)
    for handler in original_handlers:
        root_logger.addHandler(handler)
