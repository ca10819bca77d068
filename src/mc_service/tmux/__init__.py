"""
Tmux session management for mc-service.

This package provides the adapter over the tmux binary:
- Session existence checks and creation
- Pane pid enumeration
- Literal key delivery to the server console
- Server-access grants and interactive attach
- The exit channel used for supervised waits
"""

from .service import SessionHandle, TmuxService

__all__ = [
    "SessionHandle",
    "TmuxService",
]
