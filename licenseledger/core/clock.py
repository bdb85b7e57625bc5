"""
Ledger time source.

All lifecycle arithmetic is done in whole epoch seconds, the same
granularity as the start_time column. ``ManualClock`` lets tests and
simulations move time forward explicitly.
"""

from __future__ import annotations

import threading
import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> int: ...


class SystemClock:
    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: int | None = None) -> None:
        self._now = int(time.time()) if start is None else int(start)
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        with self._lock:
            self._now += int(seconds)
            return self._now

    def set(self, timestamp: int) -> None:
        with self._lock:
            if timestamp < self._now:
                raise ValueError("ManualClock cannot move backwards")
            self._now = int(timestamp)


system_clock = SystemClock()
