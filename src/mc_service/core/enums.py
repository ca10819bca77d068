"""Shared enums for mc-service."""

from enum import Enum


class WaitState(Enum):
    """States of a supervised (blocking) start."""

    IDLE = "idle"
    LAUNCHING = "launching"
    WAITING = "waiting"
    CLEANING_UP = "cleaning_up"
    TERMINATED = "terminated"


class ServerState(Enum):
    """Whether the server session exists."""

    RUNNING = "running"
    STOPPED = "stopped"
