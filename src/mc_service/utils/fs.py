"""Ownership and permission helpers for the socket and server directories."""

import grp
import os
import pwd
import stat
from pathlib import Path

from .logging import LogContext, get_logger

logger = get_logger(__name__, LogContext.PROCESS)


def _group_mode(mode: int, is_dir: bool) -> int:
    """Equivalent of ``chmod u+rwX,g+rwX,o-rwx`` for a single entry."""
    new_mode = (stat.S_IMODE(mode) | 0o660) & ~0o007
    if is_dir or mode & 0o111:
        new_mode |= 0o110
    return new_mode


def _resolve_ids(user: str, group: str) -> tuple[int, int] | None:
    try:
        return pwd.getpwnam(user).pw_uid, grp.getgrnam(group).gr_gid
    except KeyError as e:
        logger.warning("Unknown user or group", user=user, group=group, error=str(e))
        return None


def apply_group_permissions(path: Path, user: str, group: str) -> list[str]:
    """Recursively give ``user:group`` ownership and owner+group-only access.

    Failures never raise; each one is logged and returned as a warning.

    Returns:
        Warning messages, empty when every entry was updated
    """
    warnings: list[str] = []
    ids = _resolve_ids(user, group)
    if ids is None:
        warnings.append(f"permission update failed: unknown {user}:{group}")
        return warnings
    uid, gid = ids

    entries = [path]
    if path.is_dir():
        entries.extend(path.rglob("*"))

    for entry in entries:
        try:
            st = entry.lstat()
            if stat.S_ISLNK(st.st_mode):
                continue
            os.chown(entry, uid, gid)
            os.chmod(entry, _group_mode(st.st_mode, stat.S_ISDIR(st.st_mode)))
        except OSError as e:
            message = f"permission update failed: {entry}: {e.strerror or e}"
            logger.warning("Permission update failed", path=str(entry), error=str(e))
            warnings.append(message)

    return warnings


def ensure_private_dir(path: Path, user: str, group: str) -> list[str]:
    """Create ``path`` if needed and restrict it to ``user:group``."""
    path.mkdir(parents=True, exist_ok=True)
    return apply_group_permissions(path, user, group)
