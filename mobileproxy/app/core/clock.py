"""Time sources for the rate limiter and response cache."""

import time
from typing import Protocol


class Clock(Protocol):
    """Anything with a ``now()`` returning seconds as a float."""

    def now(self) -> float:
        ...


class SystemClock:
    """Monotonic wall-independent clock used in production."""

    def now(self) -> float:
        return time.monotonic()


class ManualClock:
    """Clock that only moves when told to.

    Example:
        >>> clock = ManualClock()
        >>> clock.advance(61)
        >>> clock.now()
        61.0
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("cannot move a clock backwards")
        self._now += seconds

    def set(self, value: float) -> None:
        self._now = float(value)
