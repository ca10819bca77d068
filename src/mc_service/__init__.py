"""mc-service: run a game server as a managed, attachable tmux session."""

__version__ = "0.1.0"

from .config import ServiceConfig, load_config
from .core import SessionLifecycleManager, create_manager

__all__ = [
    "ServiceConfig",
    "SessionLifecycleManager",
    "create_manager",
    "load_config",
    "__version__",
]
