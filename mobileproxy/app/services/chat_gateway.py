"""Rate-limited, cached front door to the generative-text upstream."""

import hashlib
import json
from dataclasses import dataclass
from typing import Optional

from mobileproxy.app.core.cache import CacheBackend
from mobileproxy.app.core.logging import get_log_context, get_logger
from mobileproxy.app.exceptions import ConfigurationError, RateLimitError, ValidationError
from mobileproxy.app.providers.generative import GenerativeProvider
from mobileproxy.app.services.rate_limiter import SlidingWindowRateLimiter

logger = get_logger(__name__)


@dataclass
class ChatReply:
    reply: str
    cached: bool


def rate_limit_key(user_id: Optional[str], caller_origin: str) -> str:
    """The throttling subject: the user id when sent, else the caller's address."""
    return user_id or caller_origin


def cache_fingerprint(key: str, message: str) -> str:
    """Cache key for a (caller, exact message text) pair.

    No normalization is applied; the JSON array encoding keeps
    ``("a:b", "c")`` and ``("a", "b:c")`` apart.
    """
    raw = json.dumps([key, message], ensure_ascii=False)
    return "chat:" + hashlib.sha256(raw.encode("utf-8")).hexdigest()


class ChatGateway:
    """Orchestrates one /chat request.

    Order of operations matters: the rate limit is charged before the cache
    lookup, so cached replies still consume the caller's quota.
    """

    def __init__(
        self,
        limiter: SlidingWindowRateLimiter,
        cache: CacheBackend,
        provider: GenerativeProvider,
    ):
        self.limiter = limiter
        self.cache = cache
        self.provider = provider

    async def handle(
        self,
        message: Optional[str],
        user_id: Optional[str],
        caller_origin: str,
    ) -> ChatReply:
        """Answer ``message`` for a caller.

        Raises:
            ValidationError: ``message`` is missing or empty
            RateLimitError: the caller is over its per-window limit
            ConfigurationError: generative credentials are not set
            UpstreamError: the generative call failed
        """
        if not message:
            raise ValidationError("message required")

        key = rate_limit_key(user_id, caller_origin)
        result = await self.limiter.check(key)
        if not result.allowed:
            logger.info(
                "Chat request rate limited",
                extra=get_log_context(rate_key=key, retry_after=result.retry_after),
            )
            raise RateLimitError(result.limit, result.retry_after)

        fingerprint = cache_fingerprint(key, message)
        cached = await self.cache.get(fingerprint)
        if cached is not None:
            logger.debug("Chat cache hit", extra=get_log_context(rate_key=key))
            return ChatReply(reply=cached, cached=True)

        if not self.provider.is_configured:
            raise ConfigurationError("server not configured (STUDIO_API_URL/STUDIO_API_KEY)")

        reply = await self.provider.generate(message)

        await self.cache.set(fingerprint, reply)
        return ChatReply(reply=reply, cached=False)
