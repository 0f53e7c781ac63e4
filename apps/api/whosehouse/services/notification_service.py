"""
Notification Service - push token registry, preferences and the notification log.

Provides preference checks (including quiet hours) and trigger functions
for message and placement events. Triggers only write rows; realtime
delivery of the returned entries happens after commit in the routers.
"""

from datetime import datetime, time, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from whosehouse.db.enums import NotificationStatus, NotificationType, PushPlatform
from whosehouse.db.models import (
    Case,
    Message,
    NotificationLog,
    NotificationPreferences,
    PlacementRequest,
    PushToken,
)


class NotificationServiceError(Exception):
    """Base exception for notification service errors."""

    pass


class NotificationNotFoundError(NotificationServiceError):
    pass


# =============================================================================
# Push Tokens
# =============================================================================


def register_push_token(
    db: Session,
    user_id: UUID,
    token: str,
    platform: PushPlatform,
    device_name: Optional[str] = None,
    now: datetime | None = None,
) -> PushToken:
    """Upsert on (user, token); re-registering reactivates the row."""
    now = now or datetime.now(timezone.utc)
    row = db.query(PushToken).filter(
        PushToken.user_id == user_id,
        PushToken.token == token,
    ).first()

    if row:
        row.platform = platform.value
        row.device_name = device_name or row.device_name
        row.is_active = True
        row.last_used_at = now
    else:
        row = PushToken(
            user_id=user_id,
            token=token,
            platform=platform.value,
            device_name=device_name,
            is_active=True,
            last_used_at=now,
        )
        db.add(row)
    db.flush()
    return row


def deactivate_push_token(db: Session, user_id: UUID, token: str) -> bool:
    row = db.query(PushToken).filter(
        PushToken.user_id == user_id,
        PushToken.token == token,
    ).first()
    if not row:
        return False
    row.is_active = False
    db.flush()
    return True


def active_push_tokens(db: Session, user_id: UUID) -> list[PushToken]:
    return db.query(PushToken).filter(
        PushToken.user_id == user_id,
        PushToken.is_active.is_(True),
    ).all()


# =============================================================================
# Preferences
# =============================================================================

PREFERENCE_FIELDS = (
    "enabled",
    "messages",
    "urgent_messages",
    "case_updates",
    "child_access",
    "quiet_hours_enabled",
    "quiet_hours_start",
    "quiet_hours_end",
)

DEFAULT_PREFERENCES = {
    "enabled": True,
    "messages": True,
    "urgent_messages": True,
    "case_updates": True,
    "child_access": True,
    "quiet_hours_enabled": False,
    "quiet_hours_start": time(22, 0),
    "quiet_hours_end": time(7, 0),
}

# Notification type -> preference flag
TYPE_PREFERENCE = {
    NotificationType.MESSAGE: "messages",
    NotificationType.URGENT_MESSAGE: "urgent_messages",
    NotificationType.CASE_UPDATE: "case_updates",
    NotificationType.PLACEMENT_REQUEST: "case_updates",
    NotificationType.PLACEMENT_RESPONSE: "case_updates",
    NotificationType.CHILD_ACCESS: "child_access",
}


def get_preferences(db: Session, user_id: UUID) -> dict:
    """
    Get notification preferences.

    Returns defaults (all ON, quiet hours off) if no row exists.
    """
    row = db.query(NotificationPreferences).filter(
        NotificationPreferences.user_id == user_id
    ).first()
    if not row:
        return dict(DEFAULT_PREFERENCES)
    return {field: getattr(row, field) for field in PREFERENCE_FIELDS}


def update_preferences(db: Session, user_id: UUID, updates: dict) -> dict:
    """Update preferences, creating the row on first write."""
    row = db.query(NotificationPreferences).filter(
        NotificationPreferences.user_id == user_id
    ).first()
    if not row:
        row = NotificationPreferences(user_id=user_id, **DEFAULT_PREFERENCES)
        db.add(row)

    for key, value in updates.items():
        if key in PREFERENCE_FIELDS and value is not None:
            setattr(row, key, value)
    db.flush()
    return {field: getattr(row, field) for field in PREFERENCE_FIELDS}


def in_quiet_hours(start: time, end: time, moment: time) -> bool:
    """Whether moment falls in [start, end), for windows that may wrap midnight."""
    if start == end:
        return False
    if start < end:
        return start <= moment < end
    return moment >= start or moment < end


def should_notify(
    db: Session,
    user_id: UUID,
    kind: NotificationType,
    now: datetime | None = None,
) -> bool:
    """Check the master switch, the per-kind flag and quiet hours."""
    prefs = get_preferences(db, user_id)
    if not prefs["enabled"]:
        return False
    if not prefs.get(TYPE_PREFERENCE[kind], True):
        return False

    # Urgent messages go through quiet hours
    if kind != NotificationType.URGENT_MESSAGE and prefs["quiet_hours_enabled"]:
        now = now or datetime.now(timezone.utc)
        moment = now.astimezone(timezone.utc).time().replace(tzinfo=None)
        if in_quiet_hours(prefs["quiet_hours_start"], prefs["quiet_hours_end"], moment):
            return False
    return True


# =============================================================================
# Notification Log
# =============================================================================


def notify(
    db: Session,
    user_id: UUID,
    kind: NotificationType,
    title: str,
    body: Optional[str] = None,
    data: Optional[dict] = None,
    now: datetime | None = None,
) -> Optional[NotificationLog]:
    """
    Record a notification for a user.

    Returns None when the user's preferences suppress it. The entry is
    sent when the user has an active device token, pending otherwise.
    """
    now = now or datetime.now(timezone.utc)
    if not should_notify(db, user_id, kind, now):
        return None

    status = (
        NotificationStatus.SENT if active_push_tokens(db, user_id) else NotificationStatus.PENDING
    )
    entry = NotificationLog(
        user_id=user_id,
        notification_type=kind.value,
        title=title,
        body=body,
        data=data or {},
        status=status.value,
        sent_at=now,
    )
    db.add(entry)
    db.flush()
    return entry


def list_notifications(
    db: Session,
    user_id: UUID,
    limit: int = 20,
    offset: int = 0,
) -> list[NotificationLog]:
    return (
        db.query(NotificationLog)
        .filter(NotificationLog.user_id == user_id)
        .order_by(NotificationLog.sent_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def mark_notification_clicked(
    db: Session,
    user_id: UUID,
    notification_id: UUID,
    now: datetime | None = None,
) -> NotificationLog:
    entry = db.query(NotificationLog).filter(
        NotificationLog.id == notification_id,
        NotificationLog.user_id == user_id,
    ).first()
    if not entry:
        raise NotificationNotFoundError("Notification not found")
    if entry.clicked_at is None:
        entry.clicked_at = now or datetime.now(timezone.utc)
        entry.status = NotificationStatus.CLICKED.value
    db.flush()
    return entry


def serialize(entry: NotificationLog) -> dict:
    return {
        "id": str(entry.id),
        "type": entry.notification_type,
        "title": entry.title,
        "body": entry.body,
        "data": entry.data,
        "status": entry.status,
        "sent_at": entry.sent_at.isoformat() if entry.sent_at else None,
    }


# =============================================================================
# Notification Triggers (called from routers after the service call)
# =============================================================================


def notify_message_received(
    db: Session,
    message: Message,
    case: Case,
    sender_name: str,
) -> Optional[NotificationLog]:
    """Notify the recipient of a new message. Content is never included."""
    if not message.recipient_id:
        return None
    kind = NotificationType.URGENT_MESSAGE if message.is_urgent else NotificationType.MESSAGE
    title = "Urgent message" if message.is_urgent else "New message"
    return notify(
        db,
        user_id=message.recipient_id,
        kind=kind,
        title=title,
        body=f"{sender_name} sent a message on case {case.case_number}",
        data={"case_id": str(case.id), "message_id": str(message.id)},
    )


def notify_placement_request(
    db: Session,
    placement: PlacementRequest,
    case: Case,
    member_ids: list[UUID],
) -> list[NotificationLog]:
    """Notify every member of the target household."""
    entries = []
    for member_id in member_ids:
        entry = notify(
            db,
            user_id=member_id,
            kind=NotificationType.PLACEMENT_REQUEST,
            title="New placement request",
            body=f"Case {case.case_number} needs a {case.placement_type.replace('_', ' ')} placement",
            data={"placement_request_id": str(placement.id), "case_id": str(case.id)},
        )
        if entry:
            entries.append(entry)
    return entries


def notify_placement_response(
    db: Session,
    placement: PlacementRequest,
    case: Case,
    household_name: str,
) -> Optional[NotificationLog]:
    """Tell the requesting social worker how the household answered."""
    if not placement.requested_by:
        return None
    return notify(
        db,
        user_id=placement.requested_by,
        kind=NotificationType.PLACEMENT_RESPONSE,
        title=f"Placement request {placement.status}",
        body=f"{household_name} {placement.status} case {case.case_number}",
        data={"placement_request_id": str(placement.id), "case_id": str(case.id)},
    )


def notify_child_access(
    db: Session,
    case: Case,
) -> Optional[NotificationLog]:
    """Tell the social worker that the child opened their link."""
    if not case.social_worker_id:
        return None
    return notify(
        db,
        user_id=case.social_worker_id,
        kind=NotificationType.CHILD_ACCESS,
        title="Child access link opened",
        body=f"The access link for case {case.case_number} was used",
        data={"case_id": str(case.id)},
    )
