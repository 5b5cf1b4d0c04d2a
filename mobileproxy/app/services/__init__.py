"""Services layer: rate limiting, chat gateway and notification fan-out."""

from mobileproxy.app.services.chat_gateway import ChatGateway, ChatReply
from mobileproxy.app.services.notifications import DispatchResult, NotificationEngine
from mobileproxy.app.services.rate_limiter import RateLimitResult, SlidingWindowRateLimiter

__all__ = [
    "ChatGateway",
    "ChatReply",
    "DispatchResult",
    "NotificationEngine",
    "RateLimitResult",
    "SlidingWindowRateLimiter",
]
