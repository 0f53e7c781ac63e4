"""Notification preferences, quiet hours, push tokens and the notification log."""

from datetime import datetime, time, timezone

import pytest

from whosehouse.db.enums import NotificationStatus, NotificationType, PushPlatform
from whosehouse.services import notification_service


@pytest.mark.parametrize(
    "start,end,moment,expected",
    [
        (time(22, 0), time(7, 0), time(23, 30), True),
        (time(22, 0), time(7, 0), time(3, 0), True),
        (time(22, 0), time(7, 0), time(7, 0), False),
        (time(22, 0), time(7, 0), time(12, 0), False),
        (time(13, 0), time(14, 0), time(13, 30), True),
        (time(13, 0), time(14, 0), time(14, 30), False),
        (time(9, 0), time(9, 0), time(9, 0), False),
    ],
)
def test_in_quiet_hours(start, end, moment, expected):
    assert notification_service.in_quiet_hours(start, end, moment) is expected


def test_defaults_without_row(db, carer):
    prefs = notification_service.get_preferences(db, carer.id)
    assert prefs["enabled"] is True
    assert prefs["quiet_hours_enabled"] is False


def test_quiet_hours_suppress_but_urgent_bypasses(db, carer):
    notification_service.update_preferences(
        db,
        carer.id,
        {
            "quiet_hours_enabled": True,
            "quiet_hours_start": time(22, 0),
            "quiet_hours_end": time(7, 0),
        },
    )
    night = datetime(2026, 1, 10, 23, 15, tzinfo=timezone.utc)
    day = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)

    assert not notification_service.should_notify(db, carer.id, NotificationType.MESSAGE, night)
    assert notification_service.should_notify(db, carer.id, NotificationType.URGENT_MESSAGE, night)
    assert notification_service.should_notify(db, carer.id, NotificationType.MESSAGE, day)


def test_master_switch_and_per_kind_flags(db, carer):
    notification_service.update_preferences(db, carer.id, {"messages": False})
    assert not notification_service.should_notify(db, carer.id, NotificationType.MESSAGE)
    assert notification_service.should_notify(db, carer.id, NotificationType.PLACEMENT_REQUEST)

    notification_service.update_preferences(db, carer.id, {"enabled": False})
    assert not notification_service.should_notify(
        db, carer.id, NotificationType.URGENT_MESSAGE
    )


def test_status_depends_on_push_token(db, carer):
    pending = notification_service.notify(db, carer.id, NotificationType.CASE_UPDATE, "First")
    assert pending.status == NotificationStatus.PENDING.value

    notification_service.register_push_token(
        db, carer.id, "ExponentPushToken[abc]", PushPlatform.IOS
    )
    sent = notification_service.notify(db, carer.id, NotificationType.CASE_UPDATE, "Second")
    assert sent.status == NotificationStatus.SENT.value


def test_suppressed_notification_returns_none(db, carer):
    notification_service.update_preferences(db, carer.id, {"case_updates": False})
    assert notification_service.notify(db, carer.id, NotificationType.CASE_UPDATE, "Hidden") is None


def test_push_token_reregistration_reactivates(db, carer):
    token = "ExponentPushToken[xyz]"
    first = notification_service.register_push_token(db, carer.id, token, PushPlatform.ANDROID)
    assert notification_service.deactivate_push_token(db, carer.id, token)
    assert notification_service.active_push_tokens(db, carer.id) == []

    again = notification_service.register_push_token(db, carer.id, token, PushPlatform.ANDROID)
    assert again.id == first.id
    assert again.is_active is True


def test_mark_clicked(db, carer, social_worker):
    entry = notification_service.notify(db, carer.id, NotificationType.CASE_UPDATE, "Hi")
    clicked = notification_service.mark_notification_clicked(db, carer.id, entry.id)
    assert clicked.status == NotificationStatus.CLICKED.value
    assert clicked.clicked_at is not None

    with pytest.raises(notification_service.NotificationNotFoundError):
        notification_service.mark_notification_clicked(db, social_worker.id, entry.id)


# =============================================================================
# API
# =============================================================================

async def test_preferences_and_tokens_over_http(client_for, carer):
    me = client_for(carer)

    res = await me.get("/me/notification-preferences")
    assert res.status_code == 200
    assert res.json()["quiet_hours_start"] == "22:00:00"

    res = await me.put(
        "/me/notification-preferences",
        json={"quiet_hours_enabled": True, "quiet_hours_start": "21:30:00"},
    )
    assert res.status_code == 200
    assert res.json()["quiet_hours_enabled"] is True
    assert res.json()["quiet_hours_start"] == "21:30:00"

    res = await me.post(
        "/me/push-tokens", json={"token": "ExponentPushToken[abc]", "platform": "ios"}
    )
    assert res.status_code == 201

    res = await me.request("DELETE", "/me/push-tokens", json={"token": "ExponentPushToken[abc]"})
    assert res.status_code == 200

    res = await me.request("DELETE", "/me/push-tokens", json={"token": "unknown"})
    assert res.status_code == 404
