"""Pid file of the server's controlling process."""

from pathlib import Path

from ..utils.logging import LogContext, get_logger

logger = get_logger(__name__, LogContext.SUPERVISOR)


class PidRecord:
    """A file holding the decimal pid, without trailing newline."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        return self.path.is_file()

    def write(self, pid: int) -> None:
        self.path.write_text(str(pid))
        logger.info("Pid record written", path=str(self.path), pid=pid)

    def read(self) -> int | None:
        """Return the recorded pid, or None if absent or unparsable."""
        try:
            return int(self.path.read_text().strip())
        except (OSError, ValueError):
            return None

    def remove(self) -> None:
        """Delete the record. OSError propagates to the caller."""
        self.path.unlink()
        logger.info("Pid record removed", path=str(self.path))

    def remove_if_present(self) -> bool:
        if not self.exists():
            return False
        self.remove()
        return True
