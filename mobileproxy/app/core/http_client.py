"""Shared HTTP client management for connection pooling.

One ``httpx.AsyncClient`` is opened in the application lifespan and shared by
every upstream collaborator (generative, vision, maps, directory, push).
Read/write timeouts are set per call by each collaborator.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from mobileproxy.app.core.config import settings


# Shared HTTP client for connection pooling
_shared_http_client: httpx.AsyncClient | None = None


def build_timeout(seconds: float) -> httpx.Timeout:
    """Per-call timeout: ``seconds`` for read/write, pool settings for the rest."""
    return httpx.Timeout(
        seconds,
        connect=min(seconds, settings.httpx_connect_timeout),
        pool=settings.httpx_pool_timeout,
    )


@asynccontextmanager
async def init_http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Initialize and yield the shared HTTP client.

    This context manager should be used in the FastAPI lifespan:

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            async with init_http_client() as client:
                yield
    """
    global _shared_http_client

    limits = httpx.Limits(
        max_connections=settings.httpx_max_connections,
        max_keepalive_connections=settings.httpx_max_keepalive_connections,
        keepalive_expiry=settings.httpx_keepalive_expiry,
    )

    _shared_http_client = httpx.AsyncClient(
        timeout=build_timeout(settings.generative_timeout),
        limits=limits,
    )

    try:
        yield _shared_http_client
    finally:
        if _shared_http_client is not None:
            await _shared_http_client.aclose()
            _shared_http_client = None
