"""Push-delivery upstream clients.

``FCMPushSender`` posts one Firebase Cloud Messaging HTTP v1 request per
device token, fanned out concurrently and joined. ``LoggingPushSender``
records messages instead of sending them.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from mobileproxy.app.core.logging import get_log_context, get_logger
from mobileproxy.app.exceptions import ConfigurationError, UpstreamError
from mobileproxy.app.providers.base import BaseUpstream
from mobileproxy.app.providers.credentials import GoogleTokenSource

logger = get_logger(__name__)


@dataclass
class NotificationMessage:
    """One push notification addressed to a single device token."""
    token: str
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)
    android: Dict[str, Any] = field(default_factory=dict)
    apns: Dict[str, Any] = field(default_factory=dict)

    def to_fcm(self) -> Dict[str, Any]:
        """Serialize as an FCM v1 ``message`` object."""
        message: Dict[str, Any] = {
            "token": self.token,
            "notification": {"title": self.title, "body": self.body},
            # FCM rejects non-string data values
            "data": {k: str(v) for k, v in self.data.items()},
        }
        if self.android:
            message["android"] = self.android
        if self.apns:
            message["apns"] = self.apns
        return message


@dataclass
class SendOutcome:
    """Delivery result for one token."""
    token: str
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class PushSender(ABC):
    """Interface of a push-delivery upstream."""

    @abstractmethod
    async def send_each(self, messages: List[NotificationMessage]) -> List[SendOutcome]:
        """Send every message and report one outcome per message, in order.

        Individual rejections are returned as failed outcomes. Raises only
        when the batch as a whole cannot be attempted.

        Raises:
            ConfigurationError: push credentials are not set
            UpstreamError: the batch could not be submitted
        """
        pass


class FCMPushSender(BaseUpstream, PushSender):
    """Firebase Cloud Messaging HTTP v1 client."""

    name = "push"

    def __init__(
        self,
        project_id: str,
        credentials: GoogleTokenSource,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        base_url: str = "https://fcm.googleapis.com/v1",
        max_concurrency: int = 20,
    ):
        super().__init__(http_client, timeout)
        self.project_id = project_id
        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.max_concurrency = max_concurrency

    def _send_url(self, project_id: str) -> str:
        return f"{self.base_url}/projects/{project_id}/messages:send"

    @staticmethod
    def _build_headers(token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def _send_one(
        self,
        message: NotificationMessage,
        url: str,
        headers: Dict[str, str],
        semaphore: asyncio.Semaphore,
    ) -> SendOutcome:
        async with semaphore:
            try:
                data = await self._send_json(
                    "POST",
                    url,
                    headers=headers,
                    json={"message": message.to_fcm()},
                )
            except UpstreamError as e:
                return SendOutcome(token=message.token, success=False, error=e.detail)
        message_id = data.get("name") if isinstance(data, dict) else None
        return SendOutcome(token=message.token, success=True, message_id=message_id)

    async def send_each(self, messages: List[NotificationMessage]) -> List[SendOutcome]:
        if not messages:
            return []

        # One token per batch; it is refreshed here if it has expired.
        access_token = await self.credentials.token()
        project_id = self.project_id or self.credentials.project_id
        if not project_id:
            raise ConfigurationError("push not configured (FIREBASE_PROJECT_ID)")

        url = self._send_url(project_id)
        headers = self._build_headers(access_token)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        outcomes = await asyncio.gather(
            *(self._send_one(message, url, headers, semaphore) for message in messages)
        )

        failed = sum(1 for outcome in outcomes if not outcome.success)
        if failed:
            logger.warning(
                f"Push batch finished with {failed}/{len(outcomes)} failures",
                extra=get_log_context(upstream=self.name),
            )
        return list(outcomes)


class LoggingPushSender(PushSender):
    """Push sender that records and logs messages without sending them.

    ``reject_tokens`` lets tests simulate per-device rejections and
    ``fail_batch`` a whole-batch failure.
    """

    def __init__(
        self,
        reject_tokens: Optional[set[str]] = None,
        fail_batch: bool = False,
    ):
        self.reject_tokens = reject_tokens or set()
        self.fail_batch = fail_batch
        self.sent: List[NotificationMessage] = []
        self.batches = 0

    async def send_each(self, messages: List[NotificationMessage]) -> List[SendOutcome]:
        self.batches += 1
        if self.fail_batch:
            raise UpstreamError("push", "mock batch failure")

        outcomes = []
        for index, message in enumerate(messages):
            if message.token in self.reject_tokens:
                outcomes.append(
                    SendOutcome(token=message.token, success=False, error="registration-token-not-registered")
                )
                continue
            self.sent.append(message)
            logger.info(
                f"[mock push] {message.title}: {message.body}",
                extra=get_log_context(upstream="push", data_type=message.data.get("type")),
            )
            outcomes.append(
                SendOutcome(token=message.token, success=True, message_id=f"mock-{self.batches}-{index}")
            )
        return outcomes
