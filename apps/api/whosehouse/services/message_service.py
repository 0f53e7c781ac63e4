"""
Case messaging.

A case thread has two human participants (the social worker and the
foster carer or a household member) plus the child, who writes through
an access token. Allowed paths are social worker <-> foster carer and
child -> social worker.

Status only moves forward: sent -> delivered -> read. delivered_at and
read_at are written once. The unread count for a user is the number of
messages addressed to them whose status is not read.
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from whosehouse.core.config import settings
from whosehouse.core.policies import can_write, is_case_participant, scoped_query
from whosehouse.core.row_security import privileged
from whosehouse.db.enums import (
    AuditAction,
    CaseStatus,
    MessageStatus,
    ROLES_CAN_SEND_URGENT,
    Role,
)
from whosehouse.db.models import Case, Message, Profile
from whosehouse.services import access_token_service, audit_service, case_service
from whosehouse.utils import sanitize_text


logger = logging.getLogger(__name__)


class MessageServiceError(Exception):
    """Base exception for message service errors."""

    pass


class MessageNotFoundError(MessageServiceError):
    """Message missing or not visible to the caller."""

    pass


class InvalidMessageError(MessageServiceError):
    """Content empty or too long."""

    pass


class MessagePermissionError(MessageServiceError):
    """Sender may not use this path (or may not flag it urgent)."""

    pass


class InvalidRecipientError(MessageServiceError):
    """Recipient does not take part in the case, or the path is not allowed."""

    pass


# =============================================================================
# Helpers
# =============================================================================

def clean_content(content: str | None) -> str:
    """Sanitize and bound message text."""
    cleaned = sanitize_text(content or "")
    if not cleaned:
        raise InvalidMessageError("Message cannot be empty")
    if len(cleaned) > settings.MESSAGE_MAX_LENGTH:
        raise InvalidMessageError(
            f"Message exceeds {settings.MESSAGE_MAX_LENGTH} characters"
        )
    return cleaned


def _load_profile(db: Session, user_id: UUID) -> Profile | None:
    with privileged():
        return db.query(Profile).filter(Profile.id == user_id).first()


def is_allowed_path(sender_role: Role, recipient_role: Role) -> bool:
    """social worker <-> foster carer. Anything else between profiles is refused."""
    return {sender_role, recipient_role} == {Role.SOCIAL_WORKER, Role.FOSTER_CARER}


def _thread_member(db: Session, case: Case, profile: Profile) -> bool:
    if profile.id in (case.social_worker_id, case.foster_carer_id):
        return True
    return case.household_id is not None and profile.household_id == case.household_id


# =============================================================================
# Sending
# =============================================================================

def send_message(
    db: Session,
    session,
    case_id: UUID,
    recipient_id: UUID,
    content: str,
    is_urgent: bool = False,
    now: datetime | None = None,
    request: Request | None = None,
) -> Message:
    """
    Send a message on a case thread.

    Raises:
        CaseNotFoundError: case not visible
        InvalidMessageError: empty / oversize content
        MessagePermissionError: urgent flag from a non social worker
        InvalidRecipientError: recipient outside the case or path not allowed
    """
    case = case_service.get_case(db, session, case_id)
    if not is_case_participant(db, session, case):
        raise case_service.CaseNotFoundError("Case not found")
    if case.status == CaseStatus.CLOSED.value:
        raise MessagePermissionError("Case is closed")

    body = clean_content(content)
    if is_urgent and session.role not in ROLES_CAN_SEND_URGENT:
        raise MessagePermissionError("Only social workers can send urgent messages")

    recipient = _load_profile(db, recipient_id)
    if not recipient or not recipient.is_active or recipient.id == session.user_id:
        raise InvalidRecipientError("Recipient is not part of this case")
    if not _thread_member(db, case, recipient):
        raise InvalidRecipientError("Recipient is not part of this case")
    if not is_allowed_path(session.role, Role(recipient.role)):
        raise InvalidRecipientError("Messages between these participants are not allowed")

    message = Message(
        case_id=case.id,
        sender_id=session.user_id,
        recipient_id=recipient.id,
        content=body,
        is_urgent=is_urgent,
        status=MessageStatus.SENT.value,
        sent_at=now or datetime.now(timezone.utc),
    )
    db.add(message)
    db.flush()

    audit_service.log_event(
        db,
        org_id=case.organization_id,
        action=AuditAction.MESSAGE_SENT,
        actor_user_id=session.user_id,
        target_type="message",
        target_id=message.id,
        details={"case_id": str(case.id), "recipient_id": str(recipient.id), "is_urgent": is_urgent},
        request=request,
    )
    return message


def send_child_message(
    db: Session,
    raw_token: str | None,
    content: str,
    now: datetime | None = None,
    request: Request | None = None,
) -> Message:
    """Message from the child to the case social worker."""
    now = now or datetime.now(timezone.utc)
    token = access_token_service.validate_child_token(db, raw_token, now)
    body = clean_content(content)

    with privileged():
        case = db.query(Case).filter(Case.id == token.case_id).one()
    if not case.social_worker_id:
        raise InvalidRecipientError("No social worker is assigned to this case")

    message = Message(
        case_id=case.id,
        sender_id=None,
        recipient_id=case.social_worker_id,
        child_token_id=token.id,
        content=body,
        is_urgent=False,
        status=MessageStatus.SENT.value,
        sent_at=now,
    )
    db.add(message)
    db.flush()

    audit_service.log_event(
        db,
        org_id=case.organization_id,
        action=AuditAction.MESSAGE_SENT,
        target_type="message",
        target_id=message.id,
        details={"case_id": str(case.id), "child_token_id": str(token.id)},
        request=request,
    )
    return message


def typing_recipients(db: Session, session, case_id: UUID) -> list[UUID]:
    """
    Profiles that should see the caller typing on a case thread.

    Raises:
        CaseNotFoundError: case not visible, or the caller is not on the thread
        MessagePermissionError: case is closed
    """
    case = case_service.get_case(db, session, case_id)
    if not is_case_participant(db, session, case):
        raise case_service.CaseNotFoundError("Case not found")
    if case.status == CaseStatus.CLOSED.value:
        raise MessagePermissionError("Case is closed")
    return [
        user_id
        for user_id in case_service.participant_ids(db, case)
        if user_id != session.user_id
    ]


# =============================================================================
# Reading and status
# =============================================================================

def list_case_messages(
    db: Session,
    session,
    case_id: UUID,
    limit: int = 50,
    before: datetime | None = None,
    now: datetime | None = None,
) -> list[Message]:
    """
    Messages on a case, oldest first.

    Messages addressed to the caller still in sent are moved to delivered.
    """
    case = case_service.get_case(db, session, case_id)
    case_service.require_participant(db, session, case)

    query = scoped_query(db, session, Message).filter(Message.case_id == case.id)
    if before:
        query = query.filter(Message.sent_at < before)
    newest = query.order_by(Message.sent_at.desc(), Message.id.desc()).limit(limit).all()
    messages = list(reversed(newest))

    now = now or datetime.now(timezone.utc)
    for message in messages:
        if message.recipient_id == session.user_id and message.status == MessageStatus.SENT.value:
            message.status = MessageStatus.DELIVERED.value
            if message.delivered_at is None:
                message.delivered_at = now
    db.flush()
    return messages


def get_message(db: Session, session, message_id: UUID) -> Message:
    message = scoped_query(db, session, Message).filter(Message.id == message_id).first()
    if not message:
        raise MessageNotFoundError("Message not found")
    return message


def apply_status(message: Message, status: MessageStatus, now: datetime) -> bool:
    """
    Move a message forward to status. Returns True when it changed.

    Backward or repeated transitions are ignored.
    """
    current = MessageStatus(message.status)
    if status.rank <= current.rank:
        return False
    message.status = status.value
    if message.delivered_at is None:
        message.delivered_at = now
    if status == MessageStatus.READ and message.read_at is None:
        message.read_at = now
    return True


def update_message_status(
    db: Session,
    session,
    message_id: UUID,
    status: MessageStatus,
    now: datetime | None = None,
    request: Request | None = None,
) -> tuple[Message, bool]:
    """Recipient-only status change. Returns (message, changed)."""
    message = get_message(db, session, message_id)
    if not can_write(db, session, message):
        raise MessagePermissionError("Only the recipient can update message status")

    changed = apply_status(message, status, now or datetime.now(timezone.utc))
    if changed and status == MessageStatus.READ:
        with privileged():
            org_id = db.query(Case.organization_id).filter(Case.id == message.case_id).scalar()
        audit_service.log_event(
            db,
            org_id=org_id,
            action=AuditAction.MESSAGE_READ,
            actor_user_id=session.user_id,
            target_type="message",
            target_id=message.id,
            details={"case_id": str(message.case_id)},
            request=request,
        )
    db.flush()
    return message, changed


def mark_case_read(
    db: Session,
    session,
    case_id: UUID,
    now: datetime | None = None,
) -> int:
    """Mark every unread message to the caller on a case as read. Returns the count."""
    case = case_service.get_case(db, session, case_id)
    now = now or datetime.now(timezone.utc)
    unread = (
        db.query(Message)
        .filter(
            Message.case_id == case.id,
            Message.recipient_id == session.user_id,
            Message.status != MessageStatus.READ.value,
        )
        .all()
    )
    for message in unread:
        apply_status(message, MessageStatus.READ, now)
    if unread:
        audit_service.log_event(
            db,
            org_id=case.organization_id,
            action=AuditAction.MESSAGE_READ,
            actor_user_id=session.user_id,
            target_type="case",
            target_id=case.id,
            details={"count": len(unread)},
        )
    db.flush()
    return len(unread)


def unread_count(db: Session, user_id: UUID, case_id: UUID | None = None) -> int:
    query = db.query(func.count(Message.id)).filter(
        Message.recipient_id == user_id,
        Message.status != MessageStatus.READ.value,
    )
    if case_id:
        query = query.filter(Message.case_id == case_id)
    return query.scalar() or 0


def unread_counts_by_case(db: Session, user_id: UUID) -> dict[UUID, int]:
    rows = (
        db.query(Message.case_id, func.count(Message.id))
        .filter(
            Message.recipient_id == user_id,
            Message.status != MessageStatus.READ.value,
        )
        .group_by(Message.case_id)
        .all()
    )
    return {case_id: count for case_id, count in rows}


def list_conversations(db: Session, session) -> list[dict]:
    """One row per visible case with its last message and the caller's unread count."""
    cases = scoped_query(db, session, Case).all()
    if not cases:
        return []
    counts = unread_counts_by_case(db, session.user_id)
    visible_messages = scoped_query(db, session, Message)

    conversations = []
    for case in cases:
        last = (
            visible_messages.filter(Message.case_id == case.id)
            .order_by(Message.sent_at.desc(), Message.id.desc())
            .first()
        )
        conversations.append(
            {
                "case_id": case.id,
                "case_number": case.case_number,
                "case_status": case.status,
                "last_message": last,
                "unread_count": counts.get(case.id, 0),
            }
        )
    conversations.sort(
        key=lambda c: c["last_message"].sent_at.timestamp() if c["last_message"] else 0,
        reverse=True,
    )
    return conversations


def to_message_read(message: Message):
    """Convert a Message to its response schema."""
    from whosehouse.schemas.message import MessageRead

    return MessageRead(
        id=message.id,
        case_id=message.case_id,
        sender_id=message.sender_id,
        recipient_id=message.recipient_id,
        from_child=message.child_token_id is not None,
        content=message.content,
        is_urgent=message.is_urgent,
        status=MessageStatus(message.status),
        sent_at=message.sent_at,
        delivered_at=message.delivered_at,
        read_at=message.read_at,
    )
