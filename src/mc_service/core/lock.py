"""Advisory lock serialising start/stop for one session identity."""

import fcntl
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from ..utils.fs import apply_group_permissions
from ..utils.logging import LockError, LogContext, get_logger

logger = get_logger(__name__, LogContext.SUPERVISOR)

POLL_INTERVAL = 0.2


def _open_lock_file(path: Path, user: str | None, group: str | None):
    """Open the lock file, handing newly created entries to ``user:group``.

    Start and stop may run as root or as the service user; both must be able
    to reopen the file afterwards.
    """
    try:
        created_dir = not path.parent.exists()
        path.parent.mkdir(parents=True, exist_ok=True)
        created = not path.exists()
        handle = open(path, "a+b")
    except OSError as e:
        raise LockError(
            f"Cannot open lock file {path}: {e.strerror or e}",
            context={"lock": str(path)},
        ) from e

    if user and group:
        if created_dir:
            apply_group_permissions(path.parent, user, group)
        elif created:
            apply_group_permissions(path, user, group)
    return handle


@contextmanager
def session_lock(
    path: Path,
    timeout: float,
    user: str | None = None,
    group: str | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Iterator[Path]:
    """Hold an exclusive ``flock`` on ``path`` for the duration of the block.

    Raises:
        LockError: If the lock file cannot be opened, or the lock is still
            held elsewhere after ``timeout`` seconds
    """
    handle = _open_lock_file(path, user, group)
    deadline = clock() + timeout
    try:
        while True:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if clock() >= deadline:
                    raise LockError(
                        f"Another start/stop is in progress (lock {path} busy).",
                        context={"lock": str(path), "timeout": timeout},
                    )
                sleep(POLL_INTERVAL)

        logger.debug("Session lock acquired", lock=str(path))
        try:
            yield path
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            logger.debug("Session lock released", lock=str(path))
    finally:
        handle.close()
