"""
Logging and error framework for mc-service.

This module provides:
- Structured logging configuration
- The exception hierarchy shared by every component
- Context-aware logging utilities
- Audit logging for lifecycle operations
"""

import functools
import json
import logging
import sys
import traceback
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any


class LogLevel(str, Enum):
    """Log level enumeration for type safety."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogContext(str, Enum):
    """Log context categories for structured logging."""

    SUPERVISOR = "supervisor"
    SESSION = "session"
    CHANNEL = "channel"
    ACCESS = "access"
    PROCESS = "process"
    CLI = "cli"
    CONFIG = "config"


class ServiceError(Exception):
    """Base exception class for all mc-service errors.

    ``exit_code`` is what the CLI exits with when the error reaches it.
    """

    exit_code = 1

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(ServiceError):
    """Errors related to configuration and setup."""

    pass


class PreconditionError(ServiceError):
    """A verb was invoked while its precondition does not hold."""

    pass


class AlreadyRunningError(PreconditionError):
    """Start was requested while the session already exists."""

    pass


class NotRunningError(ServiceError):
    """The operation needs a live session and there is none."""

    pass


class DeliveryError(ServiceError):
    """Text could not be delivered to the server console."""

    pass


class StopTimeoutError(ServiceError):
    """The session did not disappear within the stop budget."""

    pass


class AmbiguousPidError(ServiceError):
    """Pane enumeration did not yield exactly one pid."""

    pass


class LockError(ServiceError):
    """Another start/stop holds the session lock."""

    pass


class LogFileMissingError(ServiceError):
    """The server log file does not exist."""

    pass


class TmuxError(ServiceError):
    """Errors related to tmux invocations."""

    pass


class StructuredFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record."""

    _STANDARD_FIELDS = frozenset(
        {
            "name",
            "msg",
            "args",
            "levelname",
            "levelno",
            "pathname",
            "filename",
            "module",
            "exc_info",
            "exc_text",
            "stack_info",
            "lineno",
            "funcName",
            "created",
            "msecs",
            "relativeCreated",
            "thread",
            "threadName",
            "processName",
            "process",
            "taskName",
            "message",
            "context",
        }
    )

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "context"):
            log_data["context"] = record.context

        # Extra keyword fields passed through ContextualLogger
        for key, value in record.__dict__.items():
            if key not in self._STANDARD_FIELDS and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_data, default=str)


class ContextualLogger:
    """Logger that tags every record with a context and keyword extras."""

    def __init__(self, name: str, context: LogContext):
        self.logger = logging.getLogger(name)
        self.context = context.value
        self.session_name: str | None = None

    def set_session_name(self, session_name: str) -> None:
        """Attach the session name to all subsequent records."""
        self.session_name = session_name

    def _extra(self, extra_context: dict[str, Any] | None) -> dict[str, Any]:
        extra: dict[str, Any] = {"context": self.context}
        if self.session_name:
            extra["session_name"] = self.session_name
        if extra_context:
            extra.update(extra_context)
        return extra

    def _log(
        self, level: int, message: str, extra_context: dict[str, Any] | None = None
    ) -> None:
        self.logger.log(level, message, extra=self._extra(extra_context))

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message with context."""
        self._log(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message with context."""
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message with context."""
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, exception: Exception | None = None, **kwargs) -> None:
        """Log error message with context and optional exception."""
        if exception:
            self.logger.error(message, exc_info=exception, extra=self._extra(kwargs))
        else:
            self._log(logging.ERROR, message, kwargs)


def get_logger(name: str, context: LogContext) -> ContextualLogger:
    """Get a contextual logger instance."""
    return ContextualLogger(name, context)


def setup_logging(
    log_level: str | LogLevel = LogLevel.WARNING,
    log_file: Path | None = None,
    enable_structured: bool = False,
    enable_console: bool = True,
) -> None:
    """
    Configure the root logger.

    Console output goes to stderr so that it never mixes with the
    human-readable output of the CLI on stdout.

    Args:
        log_level: Minimum log level to capture
        log_file: Optional file path for log output
        enable_structured: Use JSON structured logging format
        enable_console: Enable console output
    """
    if isinstance(log_level, LogLevel):
        log_level = log_level.value

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    if enable_structured:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handlers: list[logging.Handler] = []
    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)


def audit_log(action: str, log_context: LogContext = LogContext.SUPERVISOR):
    """Decorator for audit logging of lifecycle operations."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(f"{func.__module__}.audit", log_context)
            logger.info(f"Audit: {action} started", action=action)

            try:
                result = func(*args, **kwargs)
            except ServiceError as e:
                logger.info(
                    f"Audit: {action} failed",
                    action=action,
                    status="error",
                    error=e.message,
                )
                raise
            except Exception as e:
                logger.error(
                    f"Audit: {action} failed",
                    action=action,
                    status="error",
                    error=str(e),
                )
                raise

            logger.info(
                f"Audit: {action} completed",
                action=action,
                status="success",
                result=result,
            )
            return result

        return wrapper

    return decorator
