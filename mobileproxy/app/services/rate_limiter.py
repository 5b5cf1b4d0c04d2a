"""Sliding-window rate limiting for the chat endpoint.

Each key (a user id, or the caller's IP when no user id is sent) owns a
deque of admission timestamps. A request is admitted while fewer than
``max_per_window`` timestamps fall inside the trailing window.
"""

import asyncio
import math
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Optional

from mobileproxy.app.core.clock import Clock, SystemClock
from mobileproxy.app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    retry_after: Optional[int] = None


class SlidingWindowRateLimiter:
    """In-memory sliding window limiter for a single process.

    Memory bound:
    - Keys are kept in an OrderedDict in least-recently-used order
    - Tracking more than ``max_keys`` keys drops idle keys, least recently
      used first; a key with admissions still inside its window is never
      dropped, so the bound is soft while every key is active
    - ``cleanup()`` drops keys whose window has emptied out

    A single lock serializes every check-and-update, so concurrent requests
    for one key can never be admitted past the limit.
    """

    DEFAULT_MAX_KEYS = 10000

    def __init__(
        self,
        max_per_window: int = 30,
        window_seconds: float = 60,
        max_keys: int = DEFAULT_MAX_KEYS,
        clock: Optional[Clock] = None,
    ):
        """Initialize rate limiter.

        Args:
            max_per_window: Admissions allowed per key inside one window
            window_seconds: Length of the trailing window in seconds
            max_keys: Maximum number of keys tracked before LRU eviction
            clock: Time source; defaults to the monotonic system clock
        """
        if max_per_window < 1:
            raise ValueError("max_per_window must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_keys < 1:
            raise ValueError("max_keys must be at least 1")

        self.max_per_window = max_per_window
        self.window_seconds = window_seconds
        self._max_keys = max_keys
        self._clock = clock or SystemClock()
        self._windows: OrderedDict[str, deque[float]] = OrderedDict()
        self._lock = asyncio.Lock()

    @property
    def tracked_keys(self) -> int:
        return len(self._windows)

    def _evict(self, window: deque[float], now: float) -> None:
        # Timestamps are appended in order, so expired ones form a prefix.
        cutoff = now - self.window_seconds
        while window and window[0] <= cutoff:
            window.popleft()

    def _enforce_key_limit(self, now: float) -> None:
        if len(self._windows) <= self._max_keys:
            return
        # Only keys with an empty window may go; active keys stay even past the bound.
        for key in list(self._windows):
            if len(self._windows) <= self._max_keys:
                break
            window = self._windows[key]
            self._evict(window, now)
            if not window:
                del self._windows[key]
                logger.debug("Dropped idle rate limit key", extra={"rate_key": key})

    async def check(self, key: str) -> RateLimitResult:
        """Check the key and record an admission if allowed."""
        async with self._lock:
            now = self._clock.now()

            window = self._windows.get(key)
            if window is None:
                window = deque()
                self._windows[key] = window
            else:
                self._windows.move_to_end(key)

            self._evict(window, now)

            if len(window) >= self.max_per_window:
                retry_after = math.ceil(window[0] + self.window_seconds - now)
                return RateLimitResult(
                    allowed=False,
                    limit=self.max_per_window,
                    remaining=0,
                    retry_after=max(retry_after, 1),
                )

            window.append(now)
            self._enforce_key_limit(now)

            return RateLimitResult(
                allowed=True,
                limit=self.max_per_window,
                remaining=self.max_per_window - len(window),
            )

    async def admit(self, key: str) -> bool:
        """Return True and record the request if the key is under its limit."""
        result = await self.check(key)
        return result.allowed

    async def cleanup(self) -> int:
        """Drop keys with no admissions left inside the window.

        Returns:
            Number of keys removed.
        """
        async with self._lock:
            now = self._clock.now()
            idle = []
            for key, window in self._windows.items():
                self._evict(window, now)
                if not window:
                    idle.append(key)
            for key in idle:
                del self._windows[key]
            return len(idle)
