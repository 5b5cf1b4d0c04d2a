"""Push notification endpoints called by the mobile app and admin console."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from mobileproxy.app.api.dependencies import get_notification_engine
from mobileproxy.app.services.notifications import DispatchResult, NotificationEngine

router = APIRouter()


class SOSNotificationRequest(BaseModel):
    userName: Optional[str] = None
    location: Optional[str] = None
    reportId: Optional[str] = None
    timestamp: Optional[str] = None


class NewReportNotificationRequest(BaseModel):
    reportId: Optional[str] = None
    reportType: Optional[str] = None
    location: Optional[str] = None
    userName: Optional[str] = None


class StatusUpdateNotificationRequest(BaseModel):
    userToken: Optional[str] = None
    reportId: Optional[str] = None
    newStatus: Optional[str] = None
    reportType: Optional[str] = None
    adminNote: Optional[str] = None


class EmergencyBroadcastRequest(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None
    adminId: Optional[str] = None


def _summary(result: DispatchResult, count_field: str, empty_message: str) -> Dict[str, Any]:
    """Response body shared by the fan-out endpoints."""
    body: Dict[str, Any] = {"success": True, count_field: result.succeeded}
    if result.nothing_to_notify:
        body["message"] = empty_message
    if result.failed:
        body["failed"] = result.failed
    return body


@router.post("/sendSOSNotification")
async def send_sos_notification(
    body: Optional[SOSNotificationRequest] = None,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> Dict[str, Any]:
    body = body or SOSNotificationRequest()
    result = await engine.dispatch_sos(
        user_name=body.userName,
        location=body.location,
        report_id=body.reportId,
        timestamp=body.timestamp,
    )
    return _summary(result, "adminsNotified", "No admins to notify")


@router.post("/notifyAdminsOfNewReport")
async def notify_admins_of_new_report(
    body: Optional[NewReportNotificationRequest] = None,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> Dict[str, Any]:
    body = body or NewReportNotificationRequest()
    result = await engine.dispatch_new_report(
        report_id=body.reportId,
        report_type=body.reportType,
        location=body.location,
        user_name=body.userName,
    )
    return _summary(result, "adminsNotified", "No admins to notify")


@router.post("/notifyUserOfStatusUpdate")
async def notify_user_of_status_update(
    body: Optional[StatusUpdateNotificationRequest] = None,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> Dict[str, Any]:
    body = body or StatusUpdateNotificationRequest()
    await engine.dispatch_status_update(
        user_token=body.userToken,
        report_id=body.reportId,
        new_status=body.newStatus,
        report_type=body.reportType,
        admin_note=body.adminNote,
    )
    return {"success": True}


@router.post("/sendEmergencyBroadcast")
async def send_emergency_broadcast(
    body: Optional[EmergencyBroadcastRequest] = None,
    engine: NotificationEngine = Depends(get_notification_engine),
) -> Dict[str, Any]:
    body = body or EmergencyBroadcastRequest()
    result = await engine.dispatch_broadcast(
        title=body.title,
        message=body.message,
        admin_id=body.adminId,
    )
    return _summary(result, "usersNotified", "No users to notify")
