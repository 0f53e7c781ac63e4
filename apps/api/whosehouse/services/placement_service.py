"""
Placement request workflow.

A social worker offers a pending case to an available household; a member
of that household accepts or declines before the request expires.

Acceptance is one transaction of conditional updates. Every step checks
the state it expects (request pending, case pending, household placement
version unchanged) and a zero rowcount aborts the whole transaction with
PlacementConflictError. The partial unique index on active cases per
household backs this up at the database level.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from uuid import UUID

from fastapi import Request
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from whosehouse.core.config import settings
from whosehouse.core.policies import is_case_social_worker, is_household_member, scoped_query
from whosehouse.core.row_security import privileged
from whosehouse.db.enums import (
    AuditAction,
    CaseStatus,
    PlacementRequestStatus,
    Role,
)
from whosehouse.db.models import Case, Household, PlacementRequest, Profile
from whosehouse.db.types import as_utc
from whosehouse.services import audit_service, case_service, household_service
from whosehouse.utils import sanitize_text


logger = logging.getLogger(__name__)


class PlacementServiceError(Exception):
    """Base exception for placement service errors."""

    pass


class PlacementNotFoundError(PlacementServiceError):
    """Request missing or not visible to the caller."""

    pass


class PlacementAccessDeniedError(PlacementServiceError):
    """Caller may see the request but not act on it."""

    pass


class PlacementRequestNotPendingError(PlacementServiceError):
    """Request was already answered, cancelled or expired."""

    pass


class PlacementRequestExpiredError(PlacementServiceError):
    """Request is past expires_at; it has been marked expired."""

    pass


class PlacementConflictError(PlacementServiceError):
    """A concurrent change won; nothing was applied."""

    pass


class HouseholdUnavailableError(PlacementServiceError):
    """Household cannot take this placement."""

    pass


class DuplicatePlacementRequestError(PlacementServiceError):
    """A pending request for the same case and household exists."""

    pass


# =============================================================================
# Sending
# =============================================================================

def send_placement_request(
    db: Session,
    session,
    case_id: UUID,
    household_id: UUID,
    message: str | None = None,
    expected_start_date: date | None = None,
    expected_end_date: date | None = None,
    now: datetime | None = None,
    request: Request | None = None,
) -> PlacementRequest:
    """
    Offer a pending case to a household.

    Raises:
        CaseNotFoundError, PlacementAccessDeniedError, PlacementServiceError,
        HouseholdUnavailableError, DuplicatePlacementRequestError
    """
    now = now or datetime.now(timezone.utc)
    case = case_service.get_case(db, session, case_id)
    if not is_case_social_worker(session, case):
        raise PlacementAccessDeniedError("Only the case social worker can send placement requests")
    if case.status != CaseStatus.PENDING.value:
        raise PlacementServiceError(f"Case is {case.status}; only pending cases can be placed")

    household = (
        scoped_query(db, session, Household).filter(Household.id == household_id).first()
    )
    if not household or household.organization_id != case.organization_id:
        raise household_service.HouseholdNotFoundError("Household not found")

    if not household_service.is_household_available(
        db, household, case.child_can_share, case.placement_type, now
    ):
        raise HouseholdUnavailableError("Household is not available for this placement")

    existing = (
        db.query(PlacementRequest.id)
        .filter(
            PlacementRequest.case_id == case.id,
            PlacementRequest.household_id == household.id,
            PlacementRequest.status == PlacementRequestStatus.PENDING.value,
        )
        .first()
    )
    if existing:
        raise DuplicatePlacementRequestError(
            "A pending request for this household already exists"
        )

    placement = PlacementRequest(
        case_id=case.id,
        household_id=household.id,
        requested_by=session.user_id,
        status=PlacementRequestStatus.PENDING.value,
        placement_type=case.placement_type,
        expected_start_date=expected_start_date,
        expected_end_date=expected_end_date or case.expected_end_date,
        message=sanitize_text(message) if message else None,
        expires_at=now + timedelta(hours=settings.PLACEMENT_REQUEST_TTL_HOURS),
    )
    db.add(placement)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicatePlacementRequestError(
            "A pending request for this household already exists"
        )

    audit_service.log_event(
        db,
        org_id=case.organization_id,
        action=AuditAction.PLACEMENT_REQUEST_SENT,
        actor_user_id=session.user_id,
        target_type="placement_request",
        target_id=placement.id,
        details={"case_id": str(case.id), "household_id": str(household.id)},
        request=request,
    )
    return placement


def cancel_placement_request(db: Session, session, request_id: UUID) -> PlacementRequest:
    placement = get_placement_request(db, session, request_id)
    if placement.requested_by != session.user_id:
        raise PlacementAccessDeniedError("Only the requesting social worker can cancel")
    if placement.status != PlacementRequestStatus.PENDING.value:
        raise PlacementRequestNotPendingError(f"Request is already {placement.status}")

    placement.status = PlacementRequestStatus.CANCELLED.value
    db.flush()
    return placement


# =============================================================================
# Reading
# =============================================================================

def get_placement_request(db: Session, session, request_id: UUID) -> PlacementRequest:
    placement = (
        scoped_query(db, session, PlacementRequest)
        .filter(PlacementRequest.id == request_id)
        .first()
    )
    if not placement:
        raise PlacementNotFoundError("Placement request not found")
    return placement


def list_household_placement_requests(
    db: Session,
    session,
    status: PlacementRequestStatus | None = None,
) -> list[PlacementRequest]:
    """Requests addressed to the caller's household, newest first."""
    if session.role != Role.FOSTER_CARER:
        return []
    query = scoped_query(db, session, PlacementRequest)
    if status:
        query = query.filter(PlacementRequest.status == status.value)
    return query.order_by(PlacementRequest.created_at.desc()).all()


def list_case_placement_requests(db: Session, session, case_id: UUID) -> list[PlacementRequest]:
    case = case_service.get_case(db, session, case_id)
    return (
        scoped_query(db, session, PlacementRequest)
        .filter(PlacementRequest.case_id == case.id)
        .order_by(PlacementRequest.created_at.desc())
        .all()
    )


def household_member_ids(db: Session, household_id: UUID) -> list[UUID]:
    with privileged():
        return [
            row[0]
            for row in db.query(Profile.id).filter(
                Profile.household_id == household_id, Profile.is_active.is_(True)
            )
        ]


# =============================================================================
# Responding
# =============================================================================

def _load_actionable(
    db: Session, session, request_id: UUID, now: datetime
) -> PlacementRequest:
    """
    Load a request the caller's household may answer.

    A request past expiry is flipped to expired and PlacementRequestExpiredError
    is raised; the caller commits so the transition is kept.
    """
    placement = get_placement_request(db, session, request_id)
    if not is_household_member(db, session, placement.household_id):
        raise PlacementAccessDeniedError("Only members of the household can respond")
    if placement.status == PlacementRequestStatus.EXPIRED.value:
        raise PlacementRequestExpiredError("Placement request has expired")
    if placement.status != PlacementRequestStatus.PENDING.value:
        raise PlacementRequestNotPendingError(f"Request is already {placement.status}")
    if now >= as_utc(placement.expires_at):
        placement.status = PlacementRequestStatus.EXPIRED.value
        db.flush()
        raise PlacementRequestExpiredError("Placement request has expired")
    return placement


def accept_placement_request(
    db: Session,
    session,
    request_id: UUID,
    response_message: str | None = None,
    now: datetime | None = None,
    request: Request | None = None,
) -> Case:
    """
    Accept a request: the case becomes active in the household and any
    previous active case of the household is closed.

    Raises:
        PlacementNotFoundError, PlacementAccessDeniedError,
        PlacementRequestNotPendingError, PlacementRequestExpiredError,
        PlacementConflictError
    """
    now = now or datetime.now(timezone.utc)
    placement = _load_actionable(db, session, request_id, now)
    case_id = placement.case_id
    household_id = placement.household_id

    with privileged():
        version = (
            db.query(Household.placement_version)
            .filter(Household.id == household_id)
            .scalar()
        )

    try:
        claimed = db.execute(
            update(PlacementRequest)
            .where(
                PlacementRequest.id == placement.id,
                PlacementRequest.status == PlacementRequestStatus.PENDING.value,
            )
            .values(
                status=PlacementRequestStatus.ACCEPTED.value,
                responded_by=session.user_id,
                responded_at=now,
                response_message=sanitize_text(response_message) if response_message else None,
            )
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            raise PlacementConflictError("Request was answered by someone else")

        # Previous placement in this household ends now
        closed = db.execute(
            update(Case)
            .where(
                Case.household_id == household_id,
                Case.status == CaseStatus.ACTIVE.value,
                Case.id != case_id,
            )
            .values(status=CaseStatus.CLOSED.value, closed_at=now)
            .execution_options(synchronize_session=False)
        )

        activated = db.execute(
            update(Case)
            .where(Case.id == case_id, Case.status == CaseStatus.PENDING.value)
            .values(
                status=CaseStatus.ACTIVE.value,
                household_id=household_id,
                foster_carer_id=session.user_id,
            )
            .execution_options(synchronize_session=False)
        )
        if activated.rowcount != 1:
            raise PlacementConflictError("Case is no longer pending")

        db.execute(
            update(PlacementRequest)
            .where(
                PlacementRequest.case_id == case_id,
                PlacementRequest.id != placement.id,
                PlacementRequest.status == PlacementRequestStatus.PENDING.value,
            )
            .values(status=PlacementRequestStatus.CANCELLED.value)
            .execution_options(synchronize_session=False)
        )

        bumped = db.execute(
            update(Household)
            .where(Household.id == household_id, Household.placement_version == version)
            .values(placement_version=version + 1)
            .execution_options(synchronize_session=False)
        )
        if bumped.rowcount != 1:
            raise PlacementConflictError("Household placements changed concurrently")

        db.flush()
    except IntegrityError:
        db.rollback()
        raise PlacementConflictError("Household already has an active placement")
    except PlacementConflictError:
        db.rollback()
        raise

    with privileged():
        case = db.query(Case).filter(Case.id == case_id).populate_existing().one()
        db.query(PlacementRequest).filter(
            PlacementRequest.case_id == case_id
        ).populate_existing().all()
        db.query(Household).filter(Household.id == household_id).populate_existing().one()

    audit_service.log_event(
        db,
        org_id=case.organization_id,
        action=AuditAction.PLACEMENT_REQUEST_ACCEPTED,
        actor_user_id=session.user_id,
        target_type="placement_request",
        target_id=placement.id,
        details={
            "case_id": str(case_id),
            "household_id": str(household_id),
            "closed_cases": closed.rowcount,
        },
        request=request,
    )
    logger.info(
        "Placement accepted",
        extra={"case_id": str(case_id), "user_id": str(session.user_id)},
    )
    return case


def decline_placement_request(
    db: Session,
    session,
    request_id: UUID,
    response_message: str | None = None,
    now: datetime | None = None,
    request: Request | None = None,
) -> PlacementRequest:
    now = now or datetime.now(timezone.utc)
    placement = _load_actionable(db, session, request_id, now)

    placement.status = PlacementRequestStatus.DECLINED.value
    placement.responded_by = session.user_id
    placement.responded_at = now
    placement.response_message = sanitize_text(response_message) if response_message else None

    with privileged():
        case = db.query(Case).filter(Case.id == placement.case_id).one()
    audit_service.log_event(
        db,
        org_id=case.organization_id,
        action=AuditAction.PLACEMENT_REQUEST_DECLINED,
        actor_user_id=session.user_id,
        target_type="placement_request",
        target_id=placement.id,
        details={"case_id": str(case.id), "household_id": str(placement.household_id)},
        request=request,
    )
    db.flush()
    return placement


def respond_to_placement_request(
    db: Session,
    session,
    request_id: UUID,
    accept: bool,
    response_message: str | None = None,
    now: datetime | None = None,
    request: Request | None = None,
):
    if accept:
        return accept_placement_request(db, session, request_id, response_message, now, request)
    return decline_placement_request(db, session, request_id, response_message, now, request)


# =============================================================================
# Maintenance
# =============================================================================

def expire_stale_requests(db: Session, now: datetime | None = None) -> int:
    """Mark pending requests past expiry as expired. Returns rows changed."""
    now = now or datetime.now(timezone.utc)
    result = db.execute(
        update(PlacementRequest)
        .where(
            PlacementRequest.status == PlacementRequestStatus.PENDING.value,
            PlacementRequest.expires_at <= now,
        )
        .values(status=PlacementRequestStatus.EXPIRED.value)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount
