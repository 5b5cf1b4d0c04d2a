"""OAuth access tokens for the Firestore and FCM REST APIs.

Credentials come from Application Default Credentials (a service account
key via ``GOOGLE_APPLICATION_CREDENTIALS``, or the metadata server on
Cloud Run) and are refreshed whenever the current token has expired.
"""

import asyncio
from typing import Any, Optional, Sequence

import google.auth
from google.auth.exceptions import DefaultCredentialsError, RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from mobileproxy.app.core.logging import get_log_context, get_logger
from mobileproxy.app.exceptions import ConfigurationError, UpstreamError

logger = get_logger(__name__)

FIREBASE_SCOPES = (
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/datastore",
    "https://www.googleapis.com/auth/firebase.messaging",
)


class GoogleTokenSource:
    """Hands out a valid bearer token for Google APIs.

    Usage:
        source = GoogleTokenSource()            # Application Default Credentials
        headers = {"Authorization": f"Bearer {await source.token()}"}

    The blocking ``google-auth`` calls run in a worker thread, one at a time,
    so concurrent requests share a single refresh.
    """

    name = "google-auth"

    def __init__(
        self,
        credentials: Optional[Any] = None,
        scopes: Sequence[str] = FIREBASE_SCOPES,
    ):
        """
        Args:
            credentials: A ``google.auth`` credentials object; loaded from
                Application Default Credentials on first use when None
            scopes: OAuth scopes requested for default credentials
        """
        self._credentials = credentials
        self.scopes = tuple(scopes)
        self.project_id: Optional[str] = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_static_token(cls, token: str) -> "GoogleTokenSource":
        """Wrap a pre-minted access token. It is never refreshed."""
        return cls(Credentials(token=token))

    def _load_default(self) -> tuple[Any, Optional[str]]:
        return google.auth.default(scopes=list(self.scopes))

    async def token(self) -> str:
        """Return a valid access token, refreshing it first if needed.

        Raises:
            ConfigurationError: no credentials are available
            UpstreamError: the token endpoint refused or could not be reached
        """
        async with self._lock:
            if self._credentials is None:
                try:
                    self._credentials, self.project_id = await asyncio.to_thread(self._load_default)
                except DefaultCredentialsError as e:
                    raise ConfigurationError(
                        "Google credentials not found (GOOGLE_APPLICATION_CREDENTIALS)"
                    ) from e

            if not self._credentials.valid:
                try:
                    await asyncio.to_thread(self._credentials.refresh, Request())
                except (RefreshError, TransportError) as e:
                    logger.warning(
                        f"Google credential refresh failed: {e}",
                        extra=get_log_context(upstream=self.name),
                    )
                    raise UpstreamError(self.name, f"credential refresh failed: {e}") from e
                logger.info("Refreshed Google access token", extra=get_log_context(upstream=self.name))

            return self._credentials.token
