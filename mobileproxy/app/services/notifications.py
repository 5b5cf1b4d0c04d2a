"""Notification fan-out engine.

Resolves target device tokens from the user directory, builds one push
message per token and dispatches them through the push sender. Per-device
rejections are counted, not raised; a batch that fails as a whole degrades
to a zero-count result so the triggering request still succeeds.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

import httpx

from mobileproxy.app.core.logging import get_log_context, get_logger
from mobileproxy.app.exceptions import UpstreamError, ValidationError
from mobileproxy.app.providers.directory import UserDirectory, unique_tokens
from mobileproxy.app.providers.push import NotificationMessage, PushSender, SendOutcome

logger = get_logger(__name__)

UNKNOWN = "Unknown"
ADMIN_ROLE = "admin"

EMERGENCY_CHANNEL = "emergency_alerts"
REPORTS_CHANNEL = "report_updates"

STATUS_LABELS: Mapping[str, str] = MappingProxyType({
    "pending": "Pending Review",
    "investigating": "Being Investigated",
    "resolved": "Resolved",
    "rejected": "Rejected",
})


def status_label(status: Optional[str]) -> str:
    """Human text for a report status; unknown values pass through as sent."""
    if not status:
        return UNKNOWN
    label = STATUS_LABELS.get(status.lower())
    if label is None:
        return status
    return label


def _or_unknown(value: Optional[str]) -> str:
    return value or UNKNOWN


def _or_empty(value: Optional[Any]) -> str:
    return "" if value is None else str(value)


def _delivery_hints(urgent: bool) -> Dict[str, Dict[str, Any]]:
    if urgent:
        return {
            "android": {
                "priority": "high",
                "notification": {"channel_id": EMERGENCY_CHANNEL, "sound": "default"},
            },
            "apns": {
                "headers": {"apns-priority": "10"},
                "payload": {"aps": {"sound": "default"}},
            },
        }
    return {
        "android": {
            "priority": "normal",
            "notification": {"channel_id": REPORTS_CHANNEL},
        },
        "apns": {"payload": {"aps": {"sound": "default"}}},
    }


@dataclass
class DispatchResult:
    """Aggregate outcome of one fan-out."""
    attempted: int = 0
    succeeded: int = 0
    outcomes: List[SendOutcome] = field(default_factory=list)
    error: Optional[str] = None
    nothing_to_notify: bool = False

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    @property
    def failures(self) -> List[SendOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]


class NotificationEngine:
    """Builds and dispatches the four notification kinds the app sends."""

    def __init__(self, directory: UserDirectory, push: PushSender):
        self.directory = directory
        self.push = push

    async def _dispatch(
        self,
        kind: str,
        tokens: List[str],
        title: str,
        body: str,
        data: Dict[str, str],
        urgent: bool = False,
    ) -> DispatchResult:
        tokens = unique_tokens(tokens)
        if not tokens:
            logger.info(f"No recipients for {kind} notification")
            return DispatchResult(nothing_to_notify=True)

        hints = _delivery_hints(urgent)
        messages = [
            NotificationMessage(token=token, title=title, body=body, data=dict(data), **hints)
            for token in tokens
        ]

        try:
            outcomes = await self.push.send_each(messages)
        except (UpstreamError, httpx.HTTPError) as e:
            # Whole batch lost: report zero deliveries instead of failing the request.
            logger.error(
                f"{kind} notification batch failed: {e}",
                extra=get_log_context(upstream="push", recipients=len(messages)),
            )
            return DispatchResult(attempted=len(messages), succeeded=0, error=str(e))

        succeeded = sum(1 for outcome in outcomes if outcome.success)
        logger.info(
            f"{kind} notification sent to {succeeded}/{len(messages)} devices",
            extra=get_log_context(upstream="push"),
        )
        return DispatchResult(
            attempted=len(messages),
            succeeded=succeeded,
            outcomes=list(outcomes),
        )

    async def dispatch_sos(
        self,
        user_name: Optional[str] = None,
        location: Optional[str] = None,
        report_id: Optional[str] = None,
        timestamp: Optional[str] = None,
    ) -> DispatchResult:
        """Alert every admin that a user triggered SOS."""
        tokens = await self.directory.find_tokens_by_role(ADMIN_ROLE)
        return await self._dispatch(
            "sos",
            tokens,
            title="🚨 SOS ALERT",
            body=f"{_or_unknown(user_name)} needs immediate help at {_or_unknown(location)}",
            data={
                "type": "sos_alert",
                "reportId": _or_empty(report_id),
                "userName": _or_empty(user_name),
                "location": _or_empty(location),
                "timestamp": _or_empty(timestamp),
            },
            urgent=True,
        )

    async def dispatch_new_report(
        self,
        report_id: Optional[str] = None,
        report_type: Optional[str] = None,
        location: Optional[str] = None,
        user_name: Optional[str] = None,
    ) -> DispatchResult:
        """Tell every admin a new report was filed."""
        tokens = await self.directory.find_tokens_by_role(ADMIN_ROLE)
        report_type_text = _or_unknown(report_type)
        return await self._dispatch(
            "new_report",
            tokens,
            title=f"📋 New Report: {report_type_text}",
            body=(
                f"{_or_unknown(user_name)} submitted a {report_type_text} report "
                f"at {_or_unknown(location)}"
            ),
            data={
                "type": "new_report",
                "reportId": _or_empty(report_id),
                "reportType": _or_empty(report_type),
                "location": _or_empty(location),
                "userName": _or_empty(user_name),
            },
        )

    async def dispatch_status_update(
        self,
        user_token: Optional[str],
        report_id: Optional[str] = None,
        new_status: Optional[str] = None,
        report_type: Optional[str] = None,
        admin_note: Optional[str] = None,
    ) -> DispatchResult:
        """Tell the reporting user their report changed status.

        Raises:
            ValidationError: ``user_token`` is missing
            UpstreamError: the single delivery was rejected
        """
        if not user_token:
            raise ValidationError("userToken required")

        body = f"Your {_or_unknown(report_type)} report is now: {status_label(new_status)}"
        if admin_note:
            body += f"\nNote: {admin_note}"

        result = await self._dispatch(
            "status_update",
            [user_token],
            title="Report Status Updated",
            body=body,
            data={
                "type": "status_update",
                "reportId": _or_empty(report_id),
                "newStatus": _or_empty(new_status),
                "reportType": _or_empty(report_type),
            },
        )
        if result.succeeded == 0:
            detail = result.error or "; ".join(
                outcome.error or "rejected" for outcome in result.failures
            )
            raise UpstreamError("push", detail or "delivery failed")
        return result

    async def dispatch_broadcast(
        self,
        title: Optional[str],
        message: Optional[str],
        admin_id: Optional[str] = None,
    ) -> DispatchResult:
        """Send an emergency broadcast to every user in the directory.

        Raises:
            ValidationError: ``title`` or ``message`` is missing
        """
        if not title or not message:
            raise ValidationError("title and message required")

        tokens = await self.directory.find_all_tokens()
        return await self._dispatch(
            "broadcast",
            tokens,
            title=f"📢 {title}",
            body=message,
            data={
                "type": "emergency_broadcast",
                "adminId": _or_empty(admin_id),
                "title": title,
            },
            urgent=True,
        )
