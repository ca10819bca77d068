"""Following the server's live log."""

import os
import time
from collections import deque
from collections.abc import Callable, Iterator
from pathlib import Path

from ..utils.logging import LogFileMissingError


def follow(
    path: Path,
    lines: int = 10,
    poll_interval: float = 0.5,
    should_stop: Callable[[], bool] | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[str]:
    """Yield the last ``lines`` lines of ``path``, then lines as they arrive.

    The file is reopened when it is truncated or replaced (log rotation).

    Raises:
        LogFileMissingError: If the file does not exist when following starts
    """
    if not path.is_file():
        raise LogFileMissingError("Log file does not exist.", context={"path": str(path)})

    f = open(path, errors="replace")
    try:
        tail: deque[str] = deque(maxlen=lines)
        for line in iter(f.readline, ""):
            tail.append(line)
        yield from tail
        inode = os.fstat(f.fileno()).st_ino
        partial = ""

        while not (should_stop and should_stop()):
            chunk = f.readline()
            if chunk:
                partial += chunk
                if partial.endswith("\n"):
                    yield partial
                    partial = ""
                continue

            try:
                st = os.stat(path)
            except FileNotFoundError:
                sleep(poll_interval)
                continue

            if st.st_ino != inode or st.st_size < f.tell():
                f.close()
                f = open(path, errors="replace")
                inode = os.fstat(f.fileno()).st_ino
                partial = ""
                continue

            sleep(poll_interval)
    finally:
        f.close()
