"""Shared fixtures for API tests.

The app is created without running its lifespan; a ``ProxyState`` wired
with in-process fakes is attached directly so no upstream is ever called
unless a test mocks it with respx.
"""

import pytest
from fastapi.testclient import TestClient

from mobileproxy.app.core.cache import InMemoryCache
from mobileproxy.app.core.clock import ManualClock
from mobileproxy.app.main import create_app
from mobileproxy.app.providers.credentials import GoogleTokenSource
from mobileproxy.app.providers.directory import DirectoryEntry, InMemoryDirectory
from mobileproxy.app.providers.generative import MockGenerativeProvider
from mobileproxy.app.providers.maps import MapsClient
from mobileproxy.app.providers.push import LoggingPushSender
from mobileproxy.app.providers.vision import VisionClient
from mobileproxy.app.services.chat_gateway import ChatGateway
from mobileproxy.app.services.notifications import NotificationEngine
from mobileproxy.app.services.rate_limiter import SlidingWindowRateLimiter
from mobileproxy.app.services.state import ProxyState


class ExpiringCredentials:
    """Stands in for a google.auth credentials object whose token can lapse."""

    def __init__(self):
        self.token = None
        self.refreshes = 0
        self._valid = False

    @property
    def valid(self):
        return self._valid

    def refresh(self, request):
        self.refreshes += 1
        self.token = f"ya29.fresh-{self.refreshes}"
        self._valid = True

    def expire(self):
        self._valid = False


@pytest.fixture
def expiring_credentials():
    return ExpiringCredentials()


@pytest.fixture
def static_credentials():
    return GoogleTokenSource.from_static_token("ya29.token")


@pytest.fixture
def clock():
    return ManualClock(start=1000.0)


@pytest.fixture
def directory():
    return InMemoryDirectory(
        [
            DirectoryEntry(token="admin-token", role="admin"),
            DirectoryEntry(token="user-token-1"),
            DirectoryEntry(token="user-token-2"),
        ],
        reports={"r-1": {"ID": "r-1"}},
    )


@pytest.fixture
def push():
    return LoggingPushSender()


@pytest.fixture
def generative():
    return MockGenerativeProvider(reply="Move to higher ground.")


@pytest.fixture
def proxy_state(clock, directory, push, generative):
    limiter = SlidingWindowRateLimiter(max_per_window=3, window_seconds=60, clock=clock)
    cache = InMemoryCache(default_ttl=60, clock=clock)
    return ProxyState(
        limiter=limiter,
        cache=cache,
        chat=ChatGateway(limiter, cache, generative),
        notifications=NotificationEngine(directory, push),
        directory=directory,
        vision=VisionClient(api_key="vision-key"),
        maps=MapsClient(api_key="maps-key"),
    )


@pytest.fixture
def app(proxy_state):
    app = create_app()
    app.state.proxy = proxy_state
    return app


@pytest.fixture
def client(app):
    return TestClient(app)
