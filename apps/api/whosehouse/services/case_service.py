"""Case service - creation, listing, updates and participants."""

import secrets
from datetime import date, datetime, timezone
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from whosehouse.core.policies import can_write, is_case_participant, scoped_query
from whosehouse.core.row_security import privileged
from whosehouse.db.enums import (
    AuditAction,
    CaseStatus,
    PlacementType,
    ROLES_CAN_MANAGE_CASES,
    ROLES_CAN_VIEW_INTERNAL_NOTES,
    Role,
)
from whosehouse.db.models import Case, Profile
from whosehouse.services import audit_service
from whosehouse.utils.pagination import PaginationParams, paginate_query


class CaseServiceError(Exception):
    """Base exception for case service errors."""

    pass


class CaseNotFoundError(CaseServiceError):
    """Case missing or not visible to the caller."""

    pass


class CaseAccessDeniedError(CaseServiceError):
    """Caller can see the case but may not change it."""

    pass


class CaseStateError(CaseServiceError):
    """Operation not allowed in the case's current status."""

    pass


CASE_NUMBER_ATTEMPTS = 20


def generate_case_number(db: Session, now: datetime | None = None) -> str:
    """
    WH-YYYYMM-NNNN with a random suffix, regenerated until unused.
    """
    now = now or datetime.now(timezone.utc)
    prefix = f"WH-{now:%Y%m}-"
    with privileged():
        for _ in range(CASE_NUMBER_ATTEMPTS):
            candidate = f"{prefix}{secrets.randbelow(10000):04d}"
            exists = db.query(Case.id).filter(Case.case_number == candidate).first()
            if not exists:
                return candidate
    raise CaseServiceError("Could not allocate a unique case number")


def create_case(
    db: Session,
    session,
    placement_type: PlacementType = PlacementType.LONG_TERM,
    child_can_share: bool = True,
    child_age_range: str | None = None,
    child_gender: str | None = None,
    internal_notes: str | None = None,
    expected_end_date: date | None = None,
    request: Request | None = None,
) -> Case:
    """Create a pending case owned by the calling social worker."""
    if session.role not in ROLES_CAN_MANAGE_CASES:
        raise CaseAccessDeniedError("Only social workers can create cases")

    case = Case(
        organization_id=session.org_id,
        case_number=generate_case_number(db),
        status=CaseStatus.PENDING.value,
        social_worker_id=session.user_id,
        placement_type=placement_type.value,
        child_can_share=child_can_share,
        child_age_range=child_age_range,
        child_gender=child_gender,
        internal_notes=internal_notes,
        expected_end_date=expected_end_date,
    )
    db.add(case)
    db.flush()

    audit_service.log_event(
        db,
        org_id=session.org_id,
        action=AuditAction.CASE_CREATED,
        actor_user_id=session.user_id,
        target_type="case",
        target_id=case.id,
        details={"case_number": case.case_number, "placement_type": case.placement_type},
        request=request,
    )
    return case


def list_cases(
    db: Session,
    session,
    status: CaseStatus | None = None,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Case], int]:
    """Cases visible to the caller, newest first."""
    query = scoped_query(db, session, Case)
    if status:
        query = query.filter(Case.status == status.value)
    return paginate_query(
        query.order_by(Case.created_at.desc(), Case.case_number.desc()),
        PaginationParams(page=page, per_page=per_page),
    )


def get_case(db: Session, session, case_id: UUID) -> Case:
    """Fetch a visible case or raise CaseNotFoundError (hidden rows look missing)."""
    case = scoped_query(db, session, Case).filter(Case.id == case_id).first()
    if not case:
        raise CaseNotFoundError("Case not found")
    return case


def read_case(db: Session, session, case_id: UUID, request: Request | None = None) -> Case:
    """get_case plus a case_accessed audit entry."""
    case = get_case(db, session, case_id)
    audit_service.log_event(
        db,
        org_id=case.organization_id,
        action=AuditAction.CASE_ACCESSED,
        actor_user_id=session.user_id,
        target_type="case",
        target_id=case.id,
        request=request,
    )
    return case


def can_view_internal_notes(session) -> bool:
    return session.role in ROLES_CAN_VIEW_INTERNAL_NOTES


CASE_UPDATE_FIELDS = {
    "placement_type",
    "child_can_share",
    "child_age_range",
    "child_gender",
    "expected_end_date",
    "internal_notes",
}


def update_case(
    db: Session,
    session,
    case_id: UUID,
    updates: dict,
    request: Request | None = None,
) -> Case:
    case = get_case(db, session, case_id)
    if not can_write(db, session, case):
        raise CaseAccessDeniedError("Only the case social worker can update this case")
    if case.status == CaseStatus.CLOSED.value:
        raise CaseStateError("Closed cases cannot be changed")

    changed = []
    for key, value in updates.items():
        if key not in CASE_UPDATE_FIELDS:
            continue
        if key == "placement_type" and isinstance(value, PlacementType):
            value = value.value
        if getattr(case, key) != value:
            setattr(case, key, value)
            changed.append(key)

    if changed:
        audit_service.log_event(
            db,
            org_id=case.organization_id,
            action=AuditAction.CASE_UPDATED,
            actor_user_id=session.user_id,
            target_type="case",
            target_id=case.id,
            details={"fields": sorted(changed)},
            request=request,
        )
    db.flush()
    return case


def close_case(
    db: Session,
    session,
    case_id: UUID,
    now: datetime | None = None,
    request: Request | None = None,
) -> Case:
    case = get_case(db, session, case_id)
    if not can_write(db, session, case):
        raise CaseAccessDeniedError("Only the case social worker can close this case")
    if case.status == CaseStatus.CLOSED.value:
        raise CaseStateError("Case is already closed")

    previous = case.status
    case.status = CaseStatus.CLOSED.value
    case.closed_at = now or datetime.now(timezone.utc)
    audit_service.log_event(
        db,
        org_id=case.organization_id,
        action=AuditAction.CASE_UPDATED,
        actor_user_id=session.user_id,
        target_type="case",
        target_id=case.id,
        details={"from_status": previous, "to_status": CaseStatus.CLOSED.value},
        request=request,
    )
    db.flush()
    return case


def get_case_participants(db: Session, session, case_id: UUID) -> dict:
    """Social worker, assigned carer and household members of a visible case."""
    case = get_case(db, session, case_id)

    with privileged():
        social_worker = (
            db.query(Profile).filter(Profile.id == case.social_worker_id).first()
            if case.social_worker_id
            else None
        )
        foster_carer = (
            db.query(Profile).filter(Profile.id == case.foster_carer_id).first()
            if case.foster_carer_id
            else None
        )
        members = (
            db.query(Profile)
            .filter(Profile.household_id == case.household_id)
            .order_by(Profile.is_primary_carer.desc(), Profile.full_name)
            .all()
            if case.household_id
            else []
        )

    return {
        "case": case,
        "social_worker": social_worker,
        "foster_carer": foster_carer,
        "household_members": members,
    }


def participant_ids(db: Session, case: Case) -> list[UUID]:
    """Every profile id that takes part in the case thread."""
    ids = [case.social_worker_id, case.foster_carer_id]
    if case.household_id:
        with privileged():
            ids.extend(
                row[0]
                for row in db.query(Profile.id).filter(Profile.household_id == case.household_id)
            )
    return [i for i in dict.fromkeys(ids) if i]


def require_participant(db: Session, session, case: Case) -> None:
    if session.role == Role.ADMIN:
        return
    if not is_case_participant(db, session, case):
        raise CaseNotFoundError("Case not found")
