"""Cases router - case lifecycle and participants."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from whosehouse.core.deps import get_current_session, get_db, require_csrf_header
from whosehouse.db.enums import CaseStatus
from whosehouse.schemas.auth import UserSession
from whosehouse.schemas.case import (
    CaseCreate,
    CaseListResponse,
    CaseParticipants,
    CaseRead,
    CaseUpdate,
)
from whosehouse.services import case_service
from whosehouse.utils.pagination import PaginationParams, get_pagination, page_count

router = APIRouter(prefix="/cases", tags=["cases"])


def _to_read(session: UserSession, case) -> CaseRead:
    """Serialize a case, hiding internal notes from carers."""
    data = CaseRead.model_validate(case)
    if not case_service.can_view_internal_notes(session):
        data.internal_notes = None
    return data


def _raise_for(e: case_service.CaseServiceError):
    if isinstance(e, case_service.CaseNotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, case_service.CaseAccessDeniedError):
        raise HTTPException(status_code=403, detail=str(e))
    if isinstance(e, case_service.CaseStateError):
        raise HTTPException(status_code=409, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


@router.post("", response_model=CaseRead, status_code=201, dependencies=[Depends(require_csrf_header)])
def create_case(
    data: CaseCreate,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        case = case_service.create_case(
            db,
            session,
            placement_type=data.placement_type,
            child_can_share=data.child_can_share,
            child_age_range=data.child_age_range,
            child_gender=data.child_gender,
            internal_notes=data.internal_notes,
            expected_end_date=data.expected_end_date,
            request=request,
        )
    except case_service.CaseServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(case)
    return _to_read(session, case)


@router.get("", response_model=CaseListResponse)
def list_cases(
    status: CaseStatus | None = None,
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    items, total = case_service.list_cases(
        db, session, status=status, page=pagination.page, per_page=pagination.per_page
    )
    return CaseListResponse(
        items=[_to_read(session, c) for c in items],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
        pages=page_count(total, pagination.per_page),
    )


@router.get("/{case_id}", response_model=CaseRead)
def get_case(
    case_id: UUID,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Get a case. Every successful read is recorded in the audit trail."""
    try:
        case = case_service.read_case(db, session, case_id, request=request)
    except case_service.CaseServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(case)
    return _to_read(session, case)


@router.patch("/{case_id}", response_model=CaseRead, dependencies=[Depends(require_csrf_header)])
def update_case(
    case_id: UUID,
    data: CaseUpdate,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        case = case_service.update_case(
            db, session, case_id, data.model_dump(exclude_unset=True), request=request
        )
    except case_service.CaseServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(case)
    return _to_read(session, case)


@router.post(
    "/{case_id}/close", response_model=CaseRead, dependencies=[Depends(require_csrf_header)]
)
def close_case(
    case_id: UUID,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        case = case_service.close_case(db, session, case_id, request=request)
    except case_service.CaseServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(case)
    return _to_read(session, case)


@router.get("/{case_id}/participants", response_model=CaseParticipants)
def get_participants(
    case_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        result = case_service.get_case_participants(db, session, case_id)
    except case_service.CaseServiceError as e:
        _raise_for(e)
    return CaseParticipants(
        case_id=result["case"].id,
        social_worker=result["social_worker"],
        foster_carer=result["foster_carer"],
        household_members=result["household_members"],
    )
