"""Interactive attach for operators."""

from ..tmux import TmuxService
from ..utils.logging import LogContext, NotRunningError, get_logger

logger = get_logger(__name__, LogContext.SESSION)

# Tried in order; the plain entry covers terminals whose richer type the
# session host does not know.
TERMINAL_TYPES = ("screen-256color", "screen")


class AttachGateway:
    """Re-parents the caller's terminal onto the running session."""

    def __init__(self, tmux: TmuxService) -> None:
        self.tmux = tmux

    def attach(self) -> int:
        if not self.tmux.has_session():
            raise NotRunningError(
                f"No tmux session named '{self.tmux.handle.name}' is running."
            )

        exit_code = 1
        for term in TERMINAL_TYPES:
            exit_code = self.tmux.attach(term)
            if exit_code == 0:
                break
            logger.info("Attach failed, trying next terminal type", term=term)
        return exit_code
