"""
Admin service - account lifecycle, assignments and organization stats.

Every function is scoped to the admin's organization; targets outside it
are reported as not found.
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import Request
from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from whosehouse.db.enums import AuditAction, CaseStatus, PlacementType, Role
from whosehouse.db.models import Case, Message, Profile
from whosehouse.services import audit_service, auth_service, case_service
from whosehouse.utils import normalize_name


logger = logging.getLogger(__name__)


class AdminServiceError(Exception):
    """Base exception for admin service errors."""

    pass


class UserNotFoundError(AdminServiceError):
    pass


class SelfTargetError(AdminServiceError):
    """Admins cannot deactivate themselves."""

    pass


class LastAdminError(AdminServiceError):
    """The organization must keep at least one active admin."""

    pass


class InvalidAssignmentError(AdminServiceError):
    pass


def _get_org_user(db: Session, session, user_id: UUID) -> Profile:
    user = (
        db.query(Profile)
        .filter(Profile.id == user_id, Profile.organization_id == session.org_id)
        .first()
    )
    if not user:
        raise UserNotFoundError("User not found")
    return user


def _active_admin_count(db: Session, org_id: UUID) -> int:
    return (
        db.query(func.count(Profile.id))
        .filter(
            Profile.organization_id == org_id,
            Profile.role == Role.ADMIN.value,
            Profile.is_active.is_(True),
        )
        .scalar()
    )


def create_user_account(
    db: Session,
    session,
    email: str,
    password: str,
    full_name: str,
    role: Role,
    phone_number: str | None = None,
    request: Request | None = None,
) -> Profile:
    profile = auth_service.create_profile(
        db, session.org_id, email, password, full_name, role, phone_number
    )
    audit_service.log_event(
        db,
        org_id=session.org_id,
        action=AuditAction.USER_CREATED,
        actor_user_id=session.user_id,
        target_type="profile",
        target_id=profile.id,
        details={"role": role.value},
        request=request,
    )
    return profile


def deactivate_user_account(
    db: Session,
    session,
    user_id: UUID,
    reason: str | None = None,
    request: Request | None = None,
) -> Profile:
    """
    Disable an account, revoke its sessions and unassign it from active cases.

    Raises:
        UserNotFoundError, SelfTargetError, LastAdminError
    """
    if user_id == session.user_id:
        raise SelfTargetError("You cannot deactivate your own account")
    user = _get_org_user(db, session, user_id)
    if not user.is_active:
        return user
    if user.role == Role.ADMIN.value and _active_admin_count(db, session.org_id) <= 1:
        raise LastAdminError("Cannot deactivate the last active admin")

    user.is_active = False
    user.token_version += 1

    active = (Case.organization_id == session.org_id, Case.status == CaseStatus.ACTIVE.value)
    cleared_sw = db.execute(
        update(Case)
        .where(*active, Case.social_worker_id == user.id)
        .values(social_worker_id=None)
        .execution_options(synchronize_session="fetch")
    ).rowcount
    cleared_fc = db.execute(
        update(Case)
        .where(*active, Case.foster_carer_id == user.id)
        .values(foster_carer_id=None)
        .execution_options(synchronize_session="fetch")
    ).rowcount

    audit_service.log_event(
        db,
        org_id=session.org_id,
        action=AuditAction.USER_DEACTIVATED,
        actor_user_id=session.user_id,
        target_type="profile",
        target_id=user.id,
        details={
            "reason": reason,
            "cases_unassigned": cleared_sw + cleared_fc,
        },
        request=request,
    )
    db.flush()
    return user


def reactivate_user_account(
    db: Session,
    session,
    user_id: UUID,
    request: Request | None = None,
) -> Profile:
    user = _get_org_user(db, session, user_id)
    if user.is_active:
        return user
    user.is_active = True
    audit_service.log_event(
        db,
        org_id=session.org_id,
        action=AuditAction.USER_REACTIVATED,
        actor_user_id=session.user_id,
        target_type="profile",
        target_id=user.id,
        request=request,
    )
    db.flush()
    return user


def update_user_details(
    db: Session,
    session,
    user_id: UUID,
    full_name: str | None = None,
    phone_number: str | None = None,
    role: Role | None = None,
    request: Request | None = None,
) -> Profile:
    """Edit name, phone or role. A role change revokes the user's sessions."""
    user = _get_org_user(db, session, user_id)
    changed = []

    if full_name is not None:
        name = normalize_name(full_name)
        if not name:
            raise AdminServiceError("Full name is required")
        if name != user.full_name:
            user.full_name = name
            changed.append("full_name")

    if phone_number is not None and phone_number != user.phone_number:
        user.phone_number = phone_number or None
        changed.append("phone_number")

    if role is not None and role.value != user.role:
        if (
            user.role == Role.ADMIN.value
            and user.is_active
            and _active_admin_count(db, session.org_id) <= 1
        ):
            raise LastAdminError("Cannot change the role of the last active admin")
        user.role = role.value
        user.token_version += 1
        changed.append("role")

    if changed:
        audit_service.log_event(
            db,
            org_id=session.org_id,
            action=AuditAction.PROFILE_UPDATED,
            actor_user_id=session.user_id,
            target_type="profile",
            target_id=user.id,
            details={"fields": changed},
            request=request,
        )
    db.flush()
    return user


def list_organization_users(
    db: Session,
    session,
    role: Role | None = None,
    is_active: bool | None = None,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Profile], int]:
    query = db.query(Profile).filter(Profile.organization_id == session.org_id)
    if role:
        query = query.filter(Profile.role == role.value)
    if is_active is not None:
        query = query.filter(Profile.is_active.is_(is_active))
    if search:
        term = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(func.lower(Profile.full_name).like(term), Profile.email.like(term))
        )
    total = query.count()
    items = query.order_by(Profile.full_name).offset(offset).limit(limit).all()
    return items, total


def assign_social_worker_to_carer(
    db: Session,
    session,
    social_worker_id: UUID,
    foster_carer_id: UUID,
    now: datetime | None = None,
    request: Request | None = None,
) -> Case:
    """
    Link a social worker and a foster carer through a new active case.

    The carer's current active cases are closed first, so the household
    still holds a single active case.
    """
    now = now or datetime.now(timezone.utc)
    worker = _get_org_user(db, session, social_worker_id)
    carer = _get_org_user(db, session, foster_carer_id)
    if worker.role != Role.SOCIAL_WORKER.value or not worker.is_active:
        raise InvalidAssignmentError("Target is not an active social worker")
    if carer.role != Role.FOSTER_CARER.value or not carer.is_active:
        raise InvalidAssignmentError("Target is not an active foster carer")

    previous = [Case.foster_carer_id == carer.id]
    if carer.household_id:
        previous.append(Case.household_id == carer.household_id)
    closing = (
        db.query(Case)
        .filter(Case.status == CaseStatus.ACTIVE.value, or_(*previous))
        .all()
    )
    for case in closing:
        case.status = CaseStatus.CLOSED.value
        case.closed_at = now
        audit_service.log_event(
            db,
            org_id=session.org_id,
            action=AuditAction.ASSIGNMENT_REMOVED,
            actor_user_id=session.user_id,
            target_type="case",
            target_id=case.id,
            details={"social_worker_id": str(case.social_worker_id) if case.social_worker_id else None},
            request=request,
        )
    db.flush()

    case = Case(
        organization_id=session.org_id,
        case_number=case_service.generate_case_number(db, now),
        status=CaseStatus.ACTIVE.value,
        social_worker_id=worker.id,
        foster_carer_id=carer.id,
        household_id=carer.household_id,
        placement_type=PlacementType.LONG_TERM.value,
    )
    db.add(case)
    db.flush()

    audit_service.log_event(
        db,
        org_id=session.org_id,
        action=AuditAction.ASSIGNMENT_CREATED,
        actor_user_id=session.user_id,
        target_type="case",
        target_id=case.id,
        details={
            "social_worker_id": str(worker.id),
            "foster_carer_id": str(carer.id),
            "closed_cases": len(closing),
        },
        request=request,
    )
    return case


def get_organization_stats(db: Session, session, now: datetime | None = None) -> dict:
    now = now or datetime.now(timezone.utc)
    org_id = session.org_id

    by_role = dict(
        db.query(Profile.role, func.count(Profile.id))
        .filter(Profile.organization_id == org_id)
        .group_by(Profile.role)
        .all()
    )
    active_users = (
        db.query(func.count(Profile.id))
        .filter(Profile.organization_id == org_id, Profile.is_active.is_(True))
        .scalar()
    )
    total_users = sum(by_role.values())
    by_status = dict(
        db.query(Case.status, func.count(Case.id))
        .filter(Case.organization_id == org_id)
        .group_by(Case.status)
        .all()
    )
    recent_messages = (
        db.query(func.count(Message.id))
        .join(Case, Case.id == Message.case_id)
        .filter(Case.organization_id == org_id, Message.sent_at >= now - timedelta(days=7))
        .scalar()
    )

    return {
        "users_by_role": {role.value: by_role.get(role.value, 0) for role in Role},
        "active_users": active_users,
        "inactive_users": total_users - active_users,
        "cases_by_status": {status.value: by_status.get(status.value, 0) for status in CaseStatus},
        "messages_last_7_days": recent_messages,
    }
