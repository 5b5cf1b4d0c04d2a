"""Tests for the push notification endpoints."""

from mobileproxy.app.providers.directory import InMemoryDirectory
from mobileproxy.app.providers.push import LoggingPushSender


def test_sos_notifies_admins(client, push):
    response = client.post(
        "/sendSOSNotification",
        json={"userName": "Dara", "location": "Pier 4", "reportId": "r-1", "timestamp": "t"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "adminsNotified": 1}
    assert push.sent[0].token == "admin-token"
    assert push.sent[0].data["type"] == "sos_alert"


def test_sos_without_admins(client, proxy_state):
    proxy_state.notifications.directory = InMemoryDirectory()

    response = client.post("/sendSOSNotification", json={"userName": "Dara"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "adminsNotified": 0, "message": "No admins to notify"}


def test_new_report(client, push):
    response = client.post("/notifyAdminsOfNewReport", json={"reportId": "r-2", "reportType": "Fire"})

    assert response.json() == {"success": True, "adminsNotified": 1}
    assert push.sent[0].title.endswith("New Report: Fire")


def test_new_report_batch_failure_still_succeeds(client, proxy_state):
    proxy_state.notifications.push = LoggingPushSender(fail_batch=True)

    response = client.post("/notifyAdminsOfNewReport", json={"reportId": "r-2"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "adminsNotified": 0, "failed": 1}


def test_status_update(client, push):
    response = client.post(
        "/notifyUserOfStatusUpdate",
        json={"userToken": "device-9", "reportId": "r-1", "newStatus": "investigating", "reportType": "Flood"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert push.sent[0].body == "Your Flood report is now: Being Investigated"


def test_status_update_requires_token(client, push):
    response = client.post("/notifyUserOfStatusUpdate", json={"newStatus": "resolved"})

    assert response.status_code == 400
    assert response.json() == {"error": "userToken required"}
    assert push.batches == 0


def test_status_update_rejected_token(client, proxy_state):
    proxy_state.notifications.push = LoggingPushSender(reject_tokens={"device-9"})

    response = client.post("/notifyUserOfStatusUpdate", json={"userToken": "device-9"})

    assert response.status_code == 500
    assert response.json()["error"] == "upstream_error"
    assert response.json()["upstream"] == "push"


def test_broadcast(client, push):
    response = client.post(
        "/sendEmergencyBroadcast",
        json={"title": "Evacuate", "message": "Leave zone A now", "adminId": "adm-1"},
    )

    assert response.json() == {"success": True, "usersNotified": 3}
    assert {m.token for m in push.sent} == {"admin-token", "user-token-1", "user-token-2"}


def test_broadcast_requires_title_and_message(client, push):
    response = client.post("/sendEmergencyBroadcast", json={"title": "Evacuate"})

    assert response.status_code == 400
    assert response.json() == {"error": "title and message required"}
    assert push.batches == 0


def test_broadcast_without_users(client, proxy_state):
    proxy_state.notifications.directory = InMemoryDirectory()

    response = client.post("/sendEmergencyBroadcast", json={"title": "Evacuate", "message": "Now"})

    assert response.json() == {"success": True, "usersNotified": 0, "message": "No users to notify"}


def test_partial_failure_reports_failed_count(client, proxy_state):
    proxy_state.notifications.push = LoggingPushSender(reject_tokens={"user-token-2"})

    response = client.post("/sendEmergencyBroadcast", json={"title": "Evacuate", "message": "Now"})

    assert response.json() == {"success": True, "usersNotified": 2, "failed": 1}
