"""Audit trail for safeguarding and compliance.

Entries join the caller's session and commit with the action they
record. Details hold identifiers only: no passwords, tokens or message
text. Emails are pseudonymized with hash_email().
"""

import hashlib
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from whosehouse.core.config import settings
from whosehouse.core.policies import scoped_query
from whosehouse.db.enums import AuditAction
from whosehouse.db.models import AuditLog


USER_AGENT_MAX_LENGTH = 500


def hash_email(email: str) -> str:
    """Short readable prefix plus a SHA-256 fragment, enough to correlate attempts."""
    if not email:
        return ""
    local = email.split("@", 1)[0]
    digest = hashlib.sha256(email.lower().encode()).hexdigest()[:12]
    return f"{local[:3]}...@[hash:{digest}]"


def request_origin(request: Request | None) -> tuple[str | None, str | None]:
    """(client ip, user agent) of a request; proxies are trusted only when configured."""
    if request is None:
        return None, None

    ip = request.client.host if request.client else None
    forwarded = request.headers.get("x-forwarded-for") if settings.TRUST_PROXY_HEADERS else None
    if forwarded:
        ip = forwarded.split(",")[0].strip()

    user_agent = request.headers.get("user-agent") or None
    if user_agent:
        user_agent = user_agent[:USER_AGENT_MAX_LENGTH]
    return ip, user_agent


def log_event(
    db: Session,
    org_id: UUID | None,
    action: AuditAction,
    actor_user_id: UUID | None = None,
    target_type: str | None = None,
    target_id: UUID | None = None,
    details: dict[str, Any] | None = None,
    request: Request | None = None,
) -> AuditLog:
    """
    Add an audit row to the current transaction, flushed so it gets its id
    and is visible to queries in the same session.

    actor_user_id is None for actions taken by a child link or the system.
    """
    ip_address, user_agent = request_origin(request)
    entry = AuditLog(
        organization_id=org_id,
        action=action.value,
        actor_user_id=actor_user_id,
        target_type=target_type,
        target_id=target_id,
        details=details or {},
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(entry)
    db.flush()
    return entry


def list_audit_logs(
    db: Session,
    session,
    action: AuditAction | None = None,
    actor_user_id: UUID | None = None,
    target_id: UUID | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[AuditLog], int]:
    """Newest-first audit entries the caller may see (org admins only)."""
    query = scoped_query(db, session, AuditLog)
    if action:
        query = query.filter(AuditLog.action == action.value)
    if actor_user_id:
        query = query.filter(AuditLog.actor_user_id == actor_user_id)
    if target_id:
        query = query.filter(AuditLog.target_id == target_id)
    total = query.count()
    items = query.order_by(AuditLog.created_at.desc()).offset(offset).limit(limit).all()
    return items, total
