"""Clock abstractions supplying the current time in whole seconds.

The registry never reads the wall clock directly; a :class:`Clock` is
injected so expiry decisions are deterministic under test.
"""
from __future__ import annotations

import threading
import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    """Anything that can report the current time as epoch seconds."""

    def now(self) -> int:
        ...


class SystemClock:
    """Wall-clock time truncated to whole seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """A clock that only moves when told to.

    Parameters
    ----------
    start:
        Initial epoch-seconds value.
    """

    def __init__(self, start: int = 0) -> None:
        self._now = int(start)
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def set(self, timestamp: int) -> None:
        """Jump to an absolute timestamp."""
        with self._lock:
            self._now = int(timestamp)

    def advance(self, seconds: int) -> int:
        """Move forward by *seconds* and return the new time."""
        if seconds < 0:
            raise ValueError(f"Cannot advance a clock backwards ({seconds} seconds).")
        with self._lock:
            self._now += int(seconds)
            return self._now


__all__ = ["Clock", "ManualClock", "SystemClock"]
