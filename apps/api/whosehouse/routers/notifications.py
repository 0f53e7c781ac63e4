"""
Notifications Router - /me push tokens, preferences and notification log.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from whosehouse.core.deps import get_current_session, get_db, require_csrf_header
from whosehouse.schemas.auth import UserSession
from whosehouse.schemas.notification import (
    NotificationPreferencesRead,
    NotificationPreferencesUpdate,
    NotificationRead,
    PushTokenRead,
    PushTokenRegister,
    PushTokenRemove,
)
from whosehouse.services import notification_service


router = APIRouter()


# =============================================================================
# Push Tokens
# =============================================================================


@router.post(
    "/push-tokens",
    response_model=PushTokenRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def register_push_token(
    data: PushTokenRegister,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Register a device for push delivery (re-registering reactivates it)."""
    row = notification_service.register_push_token(
        db, session.user_id, data.token, data.platform, data.device_name
    )
    db.commit()
    db.refresh(row)
    return row


@router.delete("/push-tokens", dependencies=[Depends(require_csrf_header)])
def remove_push_token(
    data: PushTokenRemove,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    if not notification_service.deactivate_push_token(db, session.user_id, data.token):
        raise HTTPException(status_code=404, detail="Push token not found")
    db.commit()
    return {"status": "removed"}


# =============================================================================
# Preferences
# =============================================================================


@router.get("/notification-preferences", response_model=NotificationPreferencesRead)
def get_preferences(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return notification_service.get_preferences(db, session.user_id)


@router.put(
    "/notification-preferences",
    response_model=NotificationPreferencesRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_preferences(
    data: NotificationPreferencesUpdate,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    prefs = notification_service.update_preferences(
        db, session.user_id, data.model_dump(exclude_unset=True)
    )
    db.commit()
    return prefs


# =============================================================================
# Notification Log
# =============================================================================


@router.get("/notifications", response_model=list[NotificationRead])
def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return notification_service.list_notifications(
        db, session.user_id, limit=limit, offset=offset
    )


@router.post(
    "/notifications/{notification_id}/clicked",
    response_model=NotificationRead,
    dependencies=[Depends(require_csrf_header)],
)
def mark_clicked(
    notification_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        entry = notification_service.mark_notification_clicked(
            db, session.user_id, notification_id
        )
    except notification_service.NotificationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    db.commit()
    db.refresh(entry)
    return entry
