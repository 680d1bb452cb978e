from __future__ import annotations

from enum import Enum


class LockMode(Enum):
    """Select locking behavior for container registration and resolution.

    The container holds one lock for every public operation. Keep the default
    ``THREAD`` when objects may be retrieved from several threads; use
    ``NONE`` for single-threaded applications that want to skip locking.
    """

    THREAD = "thread"
    """Guard the container with a re-entrant ``threading.RLock``."""

    NONE = "none"
    """Disable locking; the caller guarantees single-threaded access."""


__all__ = ["LockMode"]
