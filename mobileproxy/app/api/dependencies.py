"""FastAPI dependencies exposing the process state to routes.

Tests attach a fake-wired state to ``app.state.proxy`` instead of running the lifespan.
"""

from fastapi import Request

from mobileproxy.app.core.config import settings
from mobileproxy.app.providers.maps import MapsClient
from mobileproxy.app.providers.vision import VisionClient
from mobileproxy.app.providers.directory import UserDirectory
from mobileproxy.app.services.chat_gateway import ChatGateway
from mobileproxy.app.services.notifications import NotificationEngine
from mobileproxy.app.services.state import ProxyState


def get_proxy_state(request: Request) -> ProxyState:
    state = getattr(request.app.state, "proxy", None)
    if state is None:
        raise RuntimeError("Proxy state not initialized. Ensure lifespan context is active.")
    return state


def get_chat_gateway(request: Request) -> ChatGateway:
    return get_proxy_state(request).chat


def get_notification_engine(request: Request) -> NotificationEngine:
    return get_proxy_state(request).notifications


def get_directory(request: Request) -> UserDirectory:
    return get_proxy_state(request).directory


def get_vision_client(request: Request) -> VisionClient:
    return get_proxy_state(request).vision


def get_maps_client(request: Request) -> MapsClient:
    return get_proxy_state(request).maps


def get_caller_origin(request: Request) -> str:
    """Network origin of the caller.

    The socket peer address, unless ``TRUST_FORWARDED_FOR`` is set, in which
    case the first X-Forwarded-For hop written by the fronting proxy wins.
    """
    forwarded = request.headers.get("X-Forwarded-For") if settings.trust_forwarded_for else None
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"
