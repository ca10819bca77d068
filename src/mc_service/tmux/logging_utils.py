"""Logging utilities for tmux operations."""

import logging
from typing import Any

tmux_logger = logging.getLogger("mc_service.tmux")


def log_session_operation(
    operation: str, session_name: str, status: str, context: dict[str, Any] | None = None
) -> None:
    """Log session operation."""
    message = f"Session {operation} {status} - {session_name}"
    if context:
        message += f" - {context}"

    if status == "error":
        tmux_logger.error(message)
    else:
        tmux_logger.info(message)


def log_keys_sent(session_name: str, text: str, delivered: bool) -> None:
    """Log text delivered to the primary pane."""
    if delivered:
        tmux_logger.debug(f"Keys sent - {session_name}: {text!r}")
    else:
        tmux_logger.warning(f"Keys not delivered - {session_name}: {text!r}")


def log_access_grant(session_name: str, user: str, granted: bool) -> None:
    """Log a server-access grant for a group member."""
    if granted:
        tmux_logger.info(f"Access granted - {session_name} (user: {user})")
    else:
        tmux_logger.warning(f"Access grant failed - {session_name} (user: {user})")


def log_session_attach(session_name: str, term: str, exit_code: int) -> None:
    """Log an interactive attach attempt."""
    tmux_logger.info(
        f"Session attach finished - {session_name} (TERM: {term}, exit: {exit_code})"
    )


def log_pane_pids(session_name: str, pids: list[str]) -> None:
    """Log the pane pids found for the session."""
    tmux_logger.debug(f"Pane pids listed - {session_name}: {pids}")
