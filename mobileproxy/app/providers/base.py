from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import httpx

from mobileproxy.app.core.http_client import build_timeout
from mobileproxy.app.core.logging import get_log_context, get_logger
from mobileproxy.app.exceptions import UpstreamError

logger = get_logger(__name__)

# Upstream error bodies are echoed into logs and responses; keep them short.
MAX_DETAIL_LENGTH = 300


class BaseUpstream:
    """Base class for third-party API clients.

    Subclasses can accept an external httpx.AsyncClient for connection pooling,
    or create their own per call if not provided.

    Every transport failure, timeout and non-2xx status is reported as an
    ``UpstreamError`` tagged with the upstream ``name``.
    """

    name: str = "upstream"

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        """Initialize the upstream client.

        Args:
            http_client: Optional shared HTTP client for connection pooling
            timeout: Request timeout in seconds
        """
        self._http_client = http_client
        self.timeout = timeout

    @property
    def http_client(self) -> Optional[httpx.AsyncClient]:
        """Get the HTTP client, if one was provided."""
        return self._http_client

    @asynccontextmanager
    async def _client_context(self) -> AsyncGenerator[httpx.AsyncClient, None]:
        """Yield the shared client, or a short-lived one closed afterwards."""
        if self._http_client is not None:
            yield self._http_client
            return
        client = httpx.AsyncClient(timeout=build_timeout(self.timeout))
        try:
            yield client
        finally:
            await client.aclose()

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request and raise ``UpstreamError`` on any failure.

        Args:
            method: HTTP method
            url: Full URL
            **kwargs: Passed through to ``httpx.AsyncClient.request``

        Returns:
            The successful (2xx) response
        """
        kwargs.setdefault("timeout", build_timeout(self.timeout))
        try:
            async with self._client_context() as client:
                resp = await client.request(method, url, **kwargs)
                resp.raise_for_status()
                return resp
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            body = e.response.text[:MAX_DETAIL_LENGTH]
            logger.warning(
                f"{self.name} returned HTTP {status}",
                extra=get_log_context(upstream=self.name, status=status, body=body),
            )
            raise UpstreamError(self.name, f"HTTP {status}: {body}", status=status) from e
        except httpx.TimeoutException as e:
            logger.warning(
                f"{self.name} timed out after {self.timeout}s",
                extra=get_log_context(upstream=self.name),
            )
            raise UpstreamError(self.name, f"timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            logger.warning(
                f"{self.name} request failed: {e!r}",
                extra=get_log_context(upstream=self.name),
            )
            raise UpstreamError(self.name, repr(e)) from e

    async def _send_json(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any] | list:
        """Like ``_send`` but decodes the JSON body."""
        resp = await self._send(method, url, **kwargs)
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(self.name, "response was not valid JSON") from e
