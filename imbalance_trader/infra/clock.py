"""
Time sources.

Cooldowns and snapshot staleness are measured in epoch milliseconds. The
engine and risk manager take a Clock so tests can move time by hand.
"""

import time
from abc import ABC, abstractmethod


class Clock(ABC):

    @abstractmethod
    def now_ms(self) -> int:
        """Current time in epoch milliseconds."""


class SystemClock(Clock):

    def now_ms(self) -> int:
        return time.time_ns() // 1_000_000


class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start_ms: int = 0):
        self._now_ms = start_ms

    def now_ms(self) -> int:
        return self._now_ms

    def advance(self, delta_ms: int) -> None:
        self._now_ms += delta_ms

    def set(self, now_ms: int) -> None:
        self._now_ms = now_ms
