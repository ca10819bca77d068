"""Attach rights for members of the service group."""

import grp

from ..tmux import TmuxService
from ..utils.logging import LogContext, get_logger

logger = get_logger(__name__, LogContext.ACCESS)


def group_members(group: str) -> list[str]:
    """Supplementary members of ``group``; empty when the group is unknown."""
    try:
        return list(grp.getgrnam(group).gr_mem)
    except KeyError:
        logger.warning("Group not found", group=group)
        return []


class AccessGrantor:
    """Grants tmux server access to every group member but the service user."""

    def __init__(self, tmux: TmuxService, user: str, group: str) -> None:
        self.tmux = tmux
        self.user = user
        self.group = group

    def grant_all(self) -> list[str]:
        """Grant access member by member.

        Returns:
            One warning per member whose grant failed
        """
        warnings = []
        for member in group_members(self.group):
            if not member or member == self.user:
                continue
            if not self.tmux.grant_access(member):
                warnings.append(f"failed to grant session access to '{member}'")
        if warnings:
            logger.warning("Some access grants failed", failures=warnings)
        return warnings
