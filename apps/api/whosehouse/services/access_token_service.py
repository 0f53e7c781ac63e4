"""
Child access tokens.

A social worker issues a time-boxed link for the child on an active case.
Only the sha256 of the token is stored. Every way validation can fail
(malformed, unknown, expired, revoked, case no longer active) raises the
same ChildAccessDeniedError so a caller learns nothing about which.
"""

from datetime import datetime, timezone
from uuid import UUID

from fastapi import Request
from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from whosehouse.core.config import settings
from whosehouse.core.policies import is_case_social_worker, scoped_query
from whosehouse.core.row_security import privileged
from whosehouse.core.security import (
    generate_child_token as new_raw_token,
    hash_child_token,
    is_well_formed_child_token,
)
from whosehouse.db.enums import AuditAction, CaseStatus, TokenExpiry, TokenStatus
from whosehouse.db.models import (
    Case,
    CaseMedia,
    ChildAccessToken,
    Household,
    Message,
    Profile,
    SocialWorkerProfile,
)
from whosehouse.db.types import as_utc
from whosehouse.services import audit_service, case_service


ACCESS_DENIED_DETAIL = "Invalid or expired access link"
USABLE_STATUSES = (TokenStatus.ACTIVE.value, TokenStatus.USED.value)


class AccessTokenServiceError(Exception):
    """Base exception for child access token errors."""

    pass


class ChildAccessDeniedError(AccessTokenServiceError):
    """Token cannot be used. The message is always the same generic text."""

    def __init__(self):
        super().__init__(ACCESS_DENIED_DETAIL)


class TokenNotFoundError(AccessTokenServiceError):
    """Token id missing or not visible to the caller."""

    pass


class TokenPermissionError(AccessTokenServiceError):
    """Caller is not the case social worker."""

    pass


class CaseNotActiveError(AccessTokenServiceError):
    """Tokens can only be issued for active cases."""

    pass


def build_links(raw_token: str) -> dict:
    return {
        "deep_link": f"{settings.APP_DEEP_LINK_SCHEME}://child/access/{raw_token}",
        "access_url": f"{settings.FRONTEND_URL.rstrip('/')}/child/access/{raw_token}",
    }


def generate_child_token(
    db: Session,
    session,
    case_id: UUID,
    expiry: TokenExpiry = TokenExpiry.SHORT,
    now: datetime | None = None,
    request: Request | None = None,
) -> dict:
    """
    Issue a fresh token for an active case, revoking earlier active ones.

    The raw token is only ever returned here.
    """
    now = now or datetime.now(timezone.utc)
    case = case_service.get_case(db, session, case_id)
    if not is_case_social_worker(session, case):
        raise TokenPermissionError("Only the case social worker can create access links")
    if case.status != CaseStatus.ACTIVE.value:
        raise CaseNotActiveError("Access links can only be created for active cases")

    db.execute(
        update(ChildAccessToken)
        .where(
            ChildAccessToken.case_id == case.id,
            ChildAccessToken.status.in_(USABLE_STATUSES),
        )
        .values(status=TokenStatus.REVOKED.value)
        .execution_options(synchronize_session="fetch")
    )

    raw = new_raw_token()
    token = ChildAccessToken(
        case_id=case.id,
        token_hash=hash_child_token(raw),
        status=TokenStatus.ACTIVE.value,
        created_by=session.user_id,
        created_at=now,
        expires_at=now + expiry.duration,
        device_info={},
    )
    db.add(token)
    db.flush()

    audit_service.log_event(
        db,
        org_id=case.organization_id,
        action=AuditAction.TOKEN_GENERATED,
        actor_user_id=session.user_id,
        target_type="child_access_token",
        target_id=token.id,
        details={"case_id": str(case.id), "expiry": expiry.value},
        request=request,
    )
    return {"token": token, "raw_token": raw, **build_links(raw)}


def validate_child_token(
    db: Session,
    raw_token: str | None,
    now: datetime | None = None,
) -> ChildAccessToken:
    """
    Return the usable token row for raw_token.

    Usable means now < expires_at, status active or used, and the case
    is still active.

    Raises:
        ChildAccessDeniedError: on every failure
    """
    if not is_well_formed_child_token(raw_token):
        raise ChildAccessDeniedError()
    now = now or datetime.now(timezone.utc)

    # The child has no profile; token lookups bypass row policies
    with privileged():
        token = (
            db.query(ChildAccessToken)
            .filter(ChildAccessToken.token_hash == hash_child_token(raw_token))
            .first()
        )
        if token is None:
            raise ChildAccessDeniedError()
        if token.status not in USABLE_STATUSES or now >= as_utc(token.expires_at):
            raise ChildAccessDeniedError()
        case = db.query(Case).filter(Case.id == token.case_id).first()
        if case is None or case.status != CaseStatus.ACTIVE.value:
            raise ChildAccessDeniedError()
    return token


def redeem_child_token(
    db: Session,
    raw_token: str | None,
    device_info: dict | None = None,
    now: datetime | None = None,
    request: Request | None = None,
) -> ChildAccessToken:
    """Validate and, on first use, stamp used_at and device_info."""
    now = now or datetime.now(timezone.utc)
    token = validate_child_token(db, raw_token, now)
    if token.status == TokenStatus.ACTIVE.value:
        token.status = TokenStatus.USED.value
        token.used_at = now
        token.device_info = dict(device_info or {})
        with privileged():
            org_id = db.query(Case.organization_id).filter(Case.id == token.case_id).scalar()
        audit_service.log_event(
            db,
            org_id=org_id,
            action=AuditAction.TOKEN_USED,
            target_type="child_access_token",
            target_id=token.id,
            details={"case_id": str(token.case_id)},
            request=request,
        )
        db.flush()
    return token


def list_case_tokens(db: Session, session, case_id: UUID) -> list[ChildAccessToken]:
    case = case_service.get_case(db, session, case_id)
    return (
        scoped_query(db, session, ChildAccessToken)
        .filter(ChildAccessToken.case_id == case.id)
        .order_by(ChildAccessToken.created_at.desc())
        .all()
    )


def revoke_child_token(db: Session, session, token_id: UUID) -> ChildAccessToken:
    token = (
        scoped_query(db, session, ChildAccessToken)
        .filter(ChildAccessToken.id == token_id)
        .first()
    )
    if not token:
        raise TokenNotFoundError("Access link not found")
    token.status = TokenStatus.REVOKED.value
    db.flush()
    return token


def _first_name(full_name: str | None) -> str | None:
    if not full_name:
        return None
    return full_name.split()[0]


def get_child_view(db: Session, raw_token: str | None, now: datetime | None = None) -> dict:
    """Child-facing view of the case behind a valid token."""
    from whosehouse.services import media_service

    token = validate_child_token(db, raw_token, now)

    with privileged():
        case = db.query(Case).filter(Case.id == token.case_id).one()
        household = (
            db.query(Household).filter(Household.id == case.household_id).first()
            if case.household_id
            else None
        )
        carers = (
            db.query(Profile)
            .filter(Profile.household_id == household.id, Profile.is_active.is_(True))
            .order_by(Profile.is_primary_carer.desc(), Profile.full_name)
            .all()
            if household
            else []
        )
        social_worker = (
            db.query(Profile).filter(Profile.id == case.social_worker_id).first()
            if case.social_worker_id
            else None
        )
        sw_details = (
            db.query(SocialWorkerProfile)
            .filter(SocialWorkerProfile.profile_id == social_worker.id)
            .first()
            if social_worker
            else None
        )
        owner = CaseMedia.case_id == case.id
        if case.household_id:
            owner = or_(owner, CaseMedia.household_id == case.household_id)
        media = (
            db.query(CaseMedia)
            .filter(CaseMedia.is_visible_to_child.is_(True), owner)
            .order_by(CaseMedia.uploaded_at)
            .all()
        )
        token_ids = select_case_token_ids(db, case.id)
        messages = (
            db.query(Message)
            .filter(Message.case_id == case.id, Message.child_token_id.in_(token_ids))
            .order_by(Message.sent_at)
            .all()
        )

    return {
        "case_number": case.case_number,
        "expires_at": token.expires_at,
        "household": {
            "name": household.name if household else None,
            "carers": [_first_name(c.full_name) for c in carers],
        },
        "social_worker": {
            "name": social_worker.full_name if social_worker else None,
            "bio": sw_details.bio if sw_details else None,
        },
        "media": [
            {
                "id": m.id,
                "file_name": m.file_name,
                "media_type": m.media_type,
                "description": m.description,
                "url": media_service.generate_signed_url(m.storage_key),
            }
            for m in media
        ],
        "messages": messages,
    }


def select_case_token_ids(db: Session, case_id: UUID) -> list[UUID]:
    return [
        row[0]
        for row in db.query(ChildAccessToken.id).filter(ChildAccessToken.case_id == case_id)
    ]
