"""Configuration loading."""

import os
import shlex
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..utils.logging import ConfigurationError

ENV_PREFIX = "MC_SERVICE_"

DEFAULT_JVM_FLAGS = [
    "-XX:+UseShenandoahGC",
    "-XX:+UseNUMA",
    "-XX:+AlwaysPreTouch",
    "-XX:+UseStringDeduplication",
    "-XX:+OptimizeStringConcat",
]


class ServiceConfig(BaseModel):
    """Resolved, read-only configuration of one server installation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Identity
    user: str = Field(default="minecraft", description="User the server runs as")
    group: str = Field(
        default="minecraft", description="Group whose members may attach"
    )

    # Server
    server_dir: Path = Field(
        default=Path("/var/minecraft_server"), description="Server working directory"
    )
    server_jar: str = Field(default="server.jar", description="Server jar file")
    memory_allocation: str = Field(default="8G", description="JVM heap size")
    java_path: str = Field(default="java", description="JVM binary")
    jvm_flags: list[str] = Field(
        default_factory=lambda: list(DEFAULT_JVM_FLAGS), description="Extra JVM flags"
    )
    resource_limit_command: str | None = Field(
        default=None, description="Shell prefix run before the server, e.g. ulimit"
    )
    start_command: str | None = Field(
        default=None, description="Exact shell command that launches the server"
    )

    # Helper binaries
    tmux_path: str = Field(default="tmux", description="tmux binary")
    chpst_path: str | None = Field(
        default=None, description="chpst binary (looked up in PATH when unset)"
    )

    # Session
    socket_dir: Path = Field(
        default=Path("/tmp/tmux-minecraft"), description="tmux socket directory"
    )
    socket_file: str = Field(default="minecraft_socket", description="tmux socket name")
    session_name: str = Field(
        default="minecraft_session", description="tmux session name"
    )
    pid_file: str = Field(
        default="minecraft_server.pid", description="Pid file, relative to server_dir"
    )
    log_file: str = Field(
        default="logs/latest.log", description="Server log, relative to server_dir"
    )

    # Console commands and shutdown protocol
    stop_command: str = Field(default="stop", description="Server stop command")
    reload_command: str = Field(default="reload", description="Server reload command")
    warning_template: str = Field(
        default="say Shutting down in {seconds} second(s)",
        description="Countdown broadcast, formatted with {seconds}",
    )
    stop_countdown: int = Field(default=20, ge=0, description="Countdown seconds")
    stop_timeout: int = Field(
        default=60, ge=0, description="Seconds to wait for the session to exit"
    )
    lock_timeout: float = Field(
        default=90.0, ge=0, description="Seconds to wait for the session lock"
    )
    fix_server_permissions: bool = Field(
        default=True, description="Re-own server_dir to user:group on start"
    )

    # Supervisor logging
    log_level: str = Field(default="WARNING", description="Logging level")
    log_output: Path | None = Field(
        default=None, description="File receiving mc-service's own logs"
    )
    log_structured: bool = Field(default=False, description="JSON log records")

    @field_validator("session_name")
    @classmethod
    def _session_name_is_plain(cls, value: str) -> str:
        if not value or any(c in value for c in ".:"):
            raise ValueError("session_name must be non-empty without '.' or ':'")
        return value

    @field_validator("warning_template")
    @classmethod
    def _template_has_seconds(cls, value: str) -> str:
        if "{seconds}" not in value:
            raise ValueError("warning_template must contain {seconds}")
        return value

    @property
    def socket_path(self) -> Path:
        return self.socket_dir / self.socket_file

    @property
    def pid_path(self) -> Path:
        return self.server_dir / self.pid_file

    @property
    def server_log_path(self) -> Path:
        return self.server_dir / self.log_file

    @property
    def lock_path(self) -> Path:
        return self.socket_dir / f"{self.session_name}.lock"

    def start_command_line(self, exec_server: bool = True) -> str:
        """The configured start command, or the derived JVM command line.

        With ``exec_server`` false the derived command keeps the launching
        shell alive so that commands appended after it still run.
        """
        if self.start_command:
            return self.start_command

        java = " ".join(
            [
                *(["exec"] if exec_server else []),
                shlex.quote(self.java_path),
                f"-Xmx{self.memory_allocation}",
                f"-Xms{self.memory_allocation}",
                *self.jvm_flags,
                "-jar",
                shlex.quote(self.server_jar),
                "nogui",
            ]
        )
        if self.resource_limit_command:
            return f"{self.resource_limit_command} && {java}"
        return java


def find_config_file(custom_path: str | None = None) -> Path | None:
    """Find configuration file in standard locations."""
    custom_path = custom_path or os.environ.get(f"{ENV_PREFIX}CONFIG")
    if custom_path:
        path = Path(custom_path).expanduser()
        if path.exists():
            return path
        raise ConfigurationError(f"Config file not found: {custom_path}")

    search_paths = [
        Path.cwd() / "mc-service.yaml",
        Path.home() / ".config" / "mc-service" / "config.yaml",
        Path("/etc/mc-service/config.yaml"),
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None


def load_config_file(config_path: Path) -> dict[str, Any]:
    """Load configuration from YAML file."""
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {config_path}: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to read config file {config_path}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return data


def load_env_vars() -> dict[str, Any]:
    """Collect ``MC_SERVICE_<FIELD>`` overrides.

    Values stay strings; pydantic converts them to the field types.
    """
    config: dict[str, Any] = {}
    for field_name in ServiceConfig.model_fields:
        env_var = f"{ENV_PREFIX}{field_name.upper()}"
        if env_var not in os.environ:
            continue
        value = os.environ[env_var]
        if field_name == "jvm_flags":
            config[field_name] = shlex.split(value)
        else:
            config[field_name] = value
    return config


def load_config(
    config_path: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> ServiceConfig:
    """Load configuration from file and environment variables.

    Precedence order (highest to lowest):
    1. CLI flag overrides
    2. Environment variables
    3. Configuration file
    4. Default values
    """
    config_data: dict[str, Any] = {}

    config_file = find_config_file(config_path)
    if config_file:
        config_data.update(load_config_file(config_file))

    config_data.update(load_env_vars())

    if cli_overrides:
        config_data.update({k: v for k, v in cli_overrides.items() if v is not None})

    try:
        return ServiceConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")
