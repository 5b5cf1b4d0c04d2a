"""Cache abstraction layer for the proxy.

Provides the TTL cache used for generated chat replies. Entries live only
for the lifetime of the process.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import asyncio

from mobileproxy.app.core.clock import Clock, SystemClock


DEFAULT_TTL_SECONDS = 60


@dataclass
class _CacheEntry:
    """Internal cache entry with TTL tracking."""

    value: str
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """An entry is dead from its expiry instant onwards."""
        return now >= self.expires_at


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Retrieve a value from the cache.

        Args:
            key: The cache key to look up.

        Returns:
            The cached value, or None if not found or expired.
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        """Store a value in the cache, replacing any existing entry.

        Args:
            key: The cache key.
            value: The value to store.
            ttl: Time-to-live in seconds; the backend default when None.
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Clear all entries from the cache."""
        pass


class InMemoryCache(CacheBackend):
    """In-memory cache implementation with TTL support.

    Expiry is checked on every read, so an entry is never returned after its
    TTL has elapsed. ``cleanup_expired`` reclaims memory for entries that are
    never read again. There is no capacity bound and no LRU policy.
    """

    def __init__(
        self,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the in-memory cache.

        Args:
            default_ttl: TTL applied when ``set`` is called without one.
            clock: Time source; defaults to the monotonic system clock.
        """
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.default_ttl = default_ttl
        self._clock = clock or SystemClock()
        self._data: dict[str, _CacheEntry] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._data)

    async def get(self, key: str) -> str | None:
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock.now()):
                del self._data[key]
                return None
            return entry.value

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        async with self._lock:
            self._data[key] = _CacheEntry(
                value=value,
                expires_at=self._clock.now() + ttl,
            )

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()

    async def cleanup_expired(self) -> int:
        """Remove all expired entries from the cache.

        Returns:
            Number of entries removed.
        """
        async with self._lock:
            now = self._clock.now()
            expired_keys = [
                key for key, entry in self._data.items() if entry.is_expired(now)
            ]
            for key in expired_keys:
                del self._data[key]
            return len(expired_keys)
