"""Process-lifetime state shared by all request handlers.

``ProxyState`` owns the limiter windows, the reply cache and every upstream
client. It is built once in the application lifespan and reached from
routes through the dependencies in ``mobileproxy.app.api.dependencies``.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

import httpx

from mobileproxy.app.core.cache import InMemoryCache
from mobileproxy.app.core.clock import Clock
from mobileproxy.app.core.config import Settings
from mobileproxy.app.core.logging import get_logger
from mobileproxy.app.providers.credentials import GoogleTokenSource
from mobileproxy.app.providers.directory import FirestoreDirectory, InMemoryDirectory, UserDirectory
from mobileproxy.app.providers.generative import GenerativeProvider, MockGenerativeProvider, StudioProvider
from mobileproxy.app.providers.maps import MapsClient
from mobileproxy.app.providers.push import FCMPushSender, LoggingPushSender, PushSender
from mobileproxy.app.providers.vision import VisionClient
from mobileproxy.app.services.chat_gateway import ChatGateway
from mobileproxy.app.services.notifications import NotificationEngine
from mobileproxy.app.services.rate_limiter import SlidingWindowRateLimiter

logger = get_logger(__name__)


@dataclass
class ProxyState:
    limiter: SlidingWindowRateLimiter
    cache: InMemoryCache
    chat: ChatGateway
    notifications: NotificationEngine
    directory: UserDirectory
    vision: VisionClient
    maps: MapsClient


def build_state(
    config: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
    clock: Optional[Clock] = None,
) -> ProxyState:
    """Wire up the limiter, cache and upstream clients from settings.

    With ``MOBILEPROXY_MOCK_UPSTREAMS=true`` the generative and push
    upstreams are replaced by in-process fakes and the directory is empty.
    """
    limiter = SlidingWindowRateLimiter(
        max_per_window=config.max_per_minute,
        window_seconds=config.rate_limit_window_seconds,
        max_keys=config.rate_limit_max_keys,
        clock=clock,
    )
    cache = InMemoryCache(default_ttl=config.cache_ttl_seconds, clock=clock)

    generative: GenerativeProvider
    push: PushSender
    directory: UserDirectory
    if config.mock_upstreams:
        logger.warning("Mock upstreams enabled: no generative, push or directory calls will be made")
        generative = MockGenerativeProvider()
        push = LoggingPushSender()
        directory = InMemoryDirectory()
    else:
        generative = StudioProvider(
            api_url=config.studio_api_url,
            api_key=config.studio_api_key,
            http_client=http_client,
            timeout=config.generative_timeout,
            max_output_tokens=config.generative_max_output_tokens,
            temperature=config.generative_temperature,
        )
        if config.google_access_token:
            google_credentials = GoogleTokenSource.from_static_token(config.google_access_token)
        else:
            google_credentials = GoogleTokenSource()
        push = FCMPushSender(
            project_id=config.firebase_project_id,
            credentials=google_credentials,
            http_client=http_client,
            timeout=config.push_timeout,
            base_url=config.fcm_base_url,
            max_concurrency=config.push_max_concurrency,
        )
        directory = FirestoreDirectory(
            project_id=config.firebase_project_id,
            credentials=google_credentials,
            http_client=http_client,
            timeout=config.directory_timeout,
            base_url=config.firestore_base_url,
        )
        if not config.firebase_project_id:
            logger.warning("FIREBASE_PROJECT_ID not set; using the project of the default credentials")

    return ProxyState(
        limiter=limiter,
        cache=cache,
        chat=ChatGateway(limiter, cache, generative),
        notifications=NotificationEngine(directory, push),
        directory=directory,
        vision=VisionClient(
            api_key=config.vision_api_key,
            http_client=http_client,
            timeout=config.vision_timeout,
            api_url=config.vision_api_url,
        ),
        maps=MapsClient(
            api_key=config.maps_api_key,
            http_client=http_client,
            timeout=config.maps_timeout,
            base_url=config.maps_base_url,
        ),
    )


class StateSweeper:
    """Periodically drops idle limiter keys and expired cache entries.

    Usage:
        sweeper = StateSweeper(state.limiter, state.cache, interval=60)
        await sweeper.start()
        ...
        await sweeper.stop()
    """

    def __init__(
        self,
        limiter: SlidingWindowRateLimiter,
        cache: InMemoryCache,
        interval: float = 60.0,
    ):
        self._limiter = limiter
        self._cache = cache
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None

    async def sweep_once(self) -> tuple[int, int]:
        """Run one sweep; returns (keys dropped, cache entries dropped)."""
        keys = await self._limiter.cleanup()
        entries = await self._cache.cleanup_expired()
        if keys or entries:
            logger.debug(f"Swept {keys} idle rate limit keys and {entries} expired cache entries")
        return keys, entries

    async def start(self) -> None:
        if self._task is not None:
            logger.debug("State sweeper already running")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())
        logger.info(f"Started state sweeper (interval: {self._interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return

        self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("State sweeper did not stop gracefully, cancelling")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
            logger.info("Stopped state sweeper")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                # Interval elapsed
                pass
            else:
                break

            try:
                await self.sweep_once()
            except Exception as e:
                logger.error(f"Error during state sweep: {e}")
