"""Placements router - placement requests and household responses."""

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from whosehouse.core.deps import get_current_session, get_db, require_csrf_header
from whosehouse.core.row_security import privileged
from whosehouse.db.enums import PlacementRequestStatus
from whosehouse.db.models import Case, Household, PlacementRequest
from whosehouse.routers.websocket import (
    push_notification,
    push_placement_request,
    push_placement_response,
)
from whosehouse.schemas.auth import UserSession
from whosehouse.schemas.case import PlacementRequestCreate, PlacementRequestRead, PlacementResponse
from whosehouse.services import (
    case_service,
    household_service,
    notification_service,
    placement_service,
)

router = APIRouter(tags=["placements"])


def _raise_for(e: Exception):
    if isinstance(
        e,
        (
            placement_service.PlacementNotFoundError,
            case_service.CaseNotFoundError,
            household_service.HouseholdNotFoundError,
        ),
    ):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, placement_service.PlacementAccessDeniedError):
        raise HTTPException(status_code=403, detail=str(e))
    if isinstance(e, placement_service.PlacementRequestExpiredError):
        raise HTTPException(status_code=410, detail=str(e))
    if isinstance(
        e,
        (
            placement_service.PlacementConflictError,
            placement_service.PlacementRequestNotPendingError,
            placement_service.DuplicatePlacementRequestError,
        ),
    ):
        raise HTTPException(status_code=409, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


def _payload(placement: PlacementRequest) -> dict:
    return PlacementRequestRead.model_validate(placement).model_dump(mode="json")


@router.post(
    "/placements",
    response_model=PlacementRequestRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def send_placement_request(
    data: PlacementRequestCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Offer a pending case to a household; every member is notified."""
    try:
        placement = placement_service.send_placement_request(
            db,
            session,
            case_id=data.case_id,
            household_id=data.household_id,
            message=data.message,
            expected_start_date=data.expected_start_date,
            expected_end_date=data.expected_end_date,
            request=request,
        )
    except (
        placement_service.PlacementServiceError,
        case_service.CaseServiceError,
        household_service.HouseholdServiceError,
    ) as e:
        _raise_for(e)

    case = case_service.get_case(db, session, placement.case_id)
    member_ids = placement_service.household_member_ids(db, placement.household_id)
    entries = notification_service.notify_placement_request(db, placement, case, member_ids)
    db.commit()
    db.refresh(placement)

    background_tasks.add_task(push_placement_request, member_ids, _payload(placement))
    for entry in entries:
        background_tasks.add_task(
            push_notification, entry.user_id, notification_service.serialize(entry)
        )
    return placement


@router.get("/placements/household", response_model=list[PlacementRequestRead])
def list_household_requests(
    status: PlacementRequestStatus | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Requests addressed to the caller's household."""
    return placement_service.list_household_placement_requests(db, session, status=status)


@router.get("/cases/{case_id}/placements", response_model=list[PlacementRequestRead])
def list_case_requests(
    case_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        return placement_service.list_case_placement_requests(db, session, case_id)
    except case_service.CaseServiceError as e:
        _raise_for(e)


@router.get("/placements/{request_id}", response_model=PlacementRequestRead)
def get_placement_request(
    request_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        return placement_service.get_placement_request(db, session, request_id)
    except placement_service.PlacementServiceError as e:
        _raise_for(e)


def _respond(
    db: Session,
    session: UserSession,
    request_id: UUID,
    accept: bool,
    data: PlacementResponse | None,
    request: Request,
    background_tasks: BackgroundTasks,
) -> PlacementRequest:
    try:
        placement_service.respond_to_placement_request(
            db,
            session,
            request_id,
            accept=accept,
            response_message=data.response_message if data else None,
            request=request,
        )
    except placement_service.PlacementRequestExpiredError as e:
        # Keep the expired status
        db.commit()
        _raise_for(e)
    except placement_service.PlacementServiceError as e:
        _raise_for(e)

    with privileged():
        placement = db.query(PlacementRequest).filter(PlacementRequest.id == request_id).one()
        case = db.query(Case).filter(Case.id == placement.case_id).one()
        household = db.query(Household).filter(Household.id == placement.household_id).one()
    entry = notification_service.notify_placement_response(db, placement, case, household.name)
    db.commit()
    db.refresh(placement)

    if placement.requested_by:
        background_tasks.add_task(
            push_placement_response, placement.requested_by, _payload(placement)
        )
    if entry:
        background_tasks.add_task(
            push_notification, entry.user_id, notification_service.serialize(entry)
        )
    return placement


@router.post(
    "/placements/{request_id}/accept",
    response_model=PlacementRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def accept_placement_request(
    request_id: UUID,
    request: Request,
    background_tasks: BackgroundTasks,
    data: PlacementResponse | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """
    Accept a placement request.

    The case becomes active in the caller's household; a previous active
    case of the household is closed and other pending requests for the
    case are cancelled. A concurrent acceptance returns 409.
    """
    return _respond(db, session, request_id, True, data, request, background_tasks)


@router.post(
    "/placements/{request_id}/decline",
    response_model=PlacementRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def decline_placement_request(
    request_id: UUID,
    request: Request,
    background_tasks: BackgroundTasks,
    data: PlacementResponse | None = None,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return _respond(db, session, request_id, False, data, request, background_tasks)


@router.post(
    "/placements/{request_id}/cancel",
    response_model=PlacementRequestRead,
    dependencies=[Depends(require_csrf_header)],
)
def cancel_placement_request(
    request_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        placement = placement_service.cancel_placement_request(db, session, request_id)
    except placement_service.PlacementServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(placement)
    return placement
