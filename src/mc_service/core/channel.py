"""Command channel into the server console."""

from ..tmux import TmuxService
from ..utils.logging import DeliveryError, LogContext, get_logger

logger = get_logger(__name__, LogContext.CHANNEL)


class CommandChannel:
    """Types text into the session's primary pane, as an operator would.

    Callers check that the session exists before issuing. Delivery is
    attempted once; a failure raises ``DeliveryError``.
    """

    def __init__(self, tmux: TmuxService, warning_template: str) -> None:
        self.tmux = tmux
        self.warning_template = warning_template

    def issue(self, text: str) -> None:
        if not self.tmux.send_keys(text):
            logger.error("Command delivery failed", text=text)
            raise DeliveryError(
                f"Failed to send '{text}' to session '{self.tmux.handle.name}'.",
                context={"text": text},
            )
        logger.debug("Command delivered", text=text)

    def broadcast_countdown(self, seconds: int) -> None:
        self.issue(self.warning_template.format(seconds=seconds))
