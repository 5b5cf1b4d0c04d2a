"""Core utilities for the proxy application."""

from mobileproxy.app.core.cache import CacheBackend, InMemoryCache
from mobileproxy.app.core.clock import Clock, ManualClock, SystemClock
from mobileproxy.app.core.config import settings
from mobileproxy.app.core.logging import get_logger, setup_logging

__all__ = [
    "CacheBackend",
    "InMemoryCache",
    "Clock",
    "ManualClock",
    "SystemClock",
    "settings",
    "get_logger",
    "setup_logging",
]
