"""Messages router - case threads, delivery status and unread counts."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from whosehouse.core.deps import get_current_session, get_db, require_csrf_header
from whosehouse.core.websocket import typing_tracker
from whosehouse.db.enums import MessageStatus
from whosehouse.routers.websocket import (
    push_message_created,
    push_message_status,
    push_notification,
    push_unread_count,
)
from whosehouse.schemas.auth import UserSession
from whosehouse.schemas.message import (
    ConversationRead,
    MarkReadResponse,
    MessageCreate,
    MessageRead,
    MessageStatusUpdate,
    TypingStatusResponse,
    UnreadCountResponse,
)
from whosehouse.services import case_service, message_service, notification_service

router = APIRouter(tags=["messages"])


def _raise_for(e: Exception):
    if isinstance(e, (message_service.MessageNotFoundError, case_service.CaseNotFoundError)):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, message_service.MessagePermissionError):
        raise HTTPException(status_code=403, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


def schedule_unread_push(background_tasks: BackgroundTasks, db: Session, user_id: UUID) -> None:
    """Queue the user's current unread totals for realtime delivery."""
    by_case = message_service.unread_counts_by_case(db, user_id)
    background_tasks.add_task(push_unread_count, user_id, sum(by_case.values()), by_case)


@router.get("/messages/conversations", response_model=list[ConversationRead])
def list_conversations(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """One entry per visible case, most recent activity first."""
    conversations = message_service.list_conversations(db, session)
    return [
        ConversationRead(
            case_id=c["case_id"],
            case_number=c["case_number"],
            case_status=c["case_status"],
            last_message=(
                message_service.to_message_read(c["last_message"]) if c["last_message"] else None
            ),
            unread_count=c["unread_count"],
        )
        for c in conversations
    ]


@router.get("/messages/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    by_case = message_service.unread_counts_by_case(db, session.user_id)
    return UnreadCountResponse(
        total=sum(by_case.values()),
        by_case={str(k): v for k, v in by_case.items()},
    )


@router.get("/cases/{case_id}/messages", response_model=list[MessageRead])
def list_case_messages(
    case_id: UUID,
    background_tasks: BackgroundTasks,
    limit: int = Query(50, ge=1, le=200),
    before: datetime | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """
    Messages on a case thread, oldest first.

    Fetching marks the caller's incoming messages as delivered; senders
    see the change through message.status events.
    """
    try:
        messages = message_service.list_case_messages(
            db, session, case_id, limit=limit, before=before
        )
    except case_service.CaseServiceError as e:
        _raise_for(e)
    delivered = [
        m
        for m in messages
        if m.recipient_id == session.user_id
        and m.sender_id
        and m.status == MessageStatus.DELIVERED.value
    ]
    db.commit()

    for m in delivered:
        background_tasks.add_task(
            push_message_status, [m.sender_id], m.id, MessageStatus.DELIVERED.value
        )
    return [message_service.to_message_read(m) for m in messages]


@router.get("/cases/{case_id}/typing", response_model=TypingStatusResponse)
def get_typing_status(
    case_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Other participants currently typing on the thread (stale entries dropped)."""
    try:
        others = set(message_service.typing_recipients(db, session, case_id))
    except (case_service.CaseServiceError, message_service.MessageServiceError) as e:
        _raise_for(e)
    return TypingStatusResponse(
        case_id=case_id,
        typing_user_ids=[u for u in typing_tracker.active_typers(case_id) if u in others],
    )


@router.post(
    "/cases/{case_id}/messages",
    response_model=MessageRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def send_message(
    case_id: UUID,
    data: MessageCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        message = message_service.send_message(
            db,
            session,
            case_id,
            recipient_id=data.recipient_id,
            content=data.content,
            is_urgent=data.is_urgent,
            request=request,
        )
    except (message_service.MessageServiceError, case_service.CaseServiceError) as e:
        _raise_for(e)

    case = case_service.get_case(db, session, case_id)
    entry = notification_service.notify_message_received(db, message, case, session.full_name)
    db.commit()
    db.refresh(message)

    payload = message_service.to_message_read(message).model_dump(mode="json")
    background_tasks.add_task(
        push_message_created, [message.sender_id, message.recipient_id], payload
    )
    schedule_unread_push(background_tasks, db, message.recipient_id)
    if entry:
        background_tasks.add_task(
            push_notification, entry.user_id, notification_service.serialize(entry)
        )
    return message_service.to_message_read(message)


@router.post(
    "/cases/{case_id}/messages/read",
    response_model=MarkReadResponse,
    dependencies=[Depends(require_csrf_header)],
)
def mark_case_read(
    case_id: UUID,
    background_tasks: BackgroundTasks,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Mark every message to the caller on this case as read."""
    try:
        marked = message_service.mark_case_read(db, session, case_id)
    except case_service.CaseServiceError as e:
        _raise_for(e)
    db.commit()

    schedule_unread_push(background_tasks, db, session.user_id)
    return MarkReadResponse(
        marked=marked,
        unread_count=message_service.unread_count(db, session.user_id),
    )


@router.patch(
    "/messages/{message_id}/status",
    response_model=MessageRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_message_status(
    message_id: UUID,
    data: MessageStatusUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Recipient moves a message forward (delivered, read). Going back is a no-op."""
    try:
        message, changed = message_service.update_message_status(
            db, session, message_id, data.status, request=request
        )
    except message_service.MessageServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(message)

    if changed:
        if message.sender_id:
            background_tasks.add_task(
                push_message_status, [message.sender_id], message.id, message.status
            )
        schedule_unread_push(background_tasks, db, session.user_id)
    return message_service.to_message_read(message)
