"""Core supervision functionality."""

from .lifecycle import SessionLifecycleManager, SessionStatus, create_manager
from .supervised import SupervisedWait

__all__ = ["SessionLifecycleManager", "SessionStatus", "SupervisedWait", "create_manager"]
