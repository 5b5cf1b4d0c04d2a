"""Google Maps web-service pass-through.

The client's query string is forwarded unchanged with the server key added,
and the upstream status and JSON body are relayed as-is.
"""

from typing import Any, List, Optional, Tuple

import httpx

from mobileproxy.app.core.http_client import build_timeout
from mobileproxy.app.core.logging import get_log_context, get_logger
from mobileproxy.app.exceptions import ConfigurationError, UpstreamError
from mobileproxy.app.providers.base import BaseUpstream

logger = get_logger(__name__)

ALLOWED_SERVICES = frozenset({
    "geocode",
    "directions",
    "distancematrix",
    "place/autocomplete",
    "place/details",
    "place/textsearch",
})


class MapsClient(BaseUpstream):
    """Relay for the geocoding/routing family of Maps endpoints."""

    name = "maps"

    def __init__(
        self,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        base_url: str = "https://maps.googleapis.com/maps/api",
    ):
        super().__init__(http_client, timeout)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    async def forward(
        self,
        service: str,
        query: List[Tuple[str, str]],
    ) -> Tuple[int, Any]:
        """Forward a query and return ``(status_code, json_body)``.

        Non-2xx upstream answers are relayed, not raised; only transport
        failures and non-JSON bodies become ``UpstreamError``.
        """
        if service not in ALLOWED_SERVICES:
            raise ValueError(f"unsupported maps service: {service}")
        if not self.api_key:
            raise ConfigurationError("MAPS_API_KEY not configured")

        # The caller never chooses the key.
        params = [(k, v) for k, v in query if k != "key"]
        params.append(("key", self.api_key))

        try:
            async with self._client_context() as client:
                resp = await client.get(
                    f"{self.base_url}/{service}/json",
                    params=params,
                    timeout=build_timeout(self.timeout),
                )
        except httpx.HTTPError as e:
            logger.warning(
                f"maps {service} request failed: {e!r}",
                extra=get_log_context(upstream=self.name),
            )
            raise UpstreamError(self.name, repr(e)) from e

        try:
            return resp.status_code, resp.json()
        except ValueError as e:
            raise UpstreamError(self.name, "response was not valid JSON", status=resp.status_code) from e
