"""Households router - capacity, availability, members, invitations and search."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from whosehouse.core.deps import (
    get_current_session,
    get_current_user,
    get_db,
    require_csrf_header,
    require_roles,
)
from whosehouse.db.enums import PlacementType, ROLES_CAN_SEARCH_HOUSEHOLDS
from whosehouse.schemas.auth import UserSession
from whosehouse.schemas.household import (
    AvailabilityUpdate,
    CapacityUpdate,
    HouseholdCreate,
    HouseholdDetail,
    HouseholdRead,
    HouseholdSearchResult,
    HouseholdUpdate,
    InvitationCreate,
    InvitationRead,
    TransferPrimaryRequest,
)
from whosehouse.services import household_service

router = APIRouter(prefix="/households", tags=["households"])


def _raise_for(e: household_service.HouseholdServiceError):
    """Map household service errors to HTTP errors."""
    if isinstance(
        e,
        (
            household_service.HouseholdNotFoundError,
            household_service.InvitationNotFoundError,
            household_service.MemberNotFoundError,
        ),
    ):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, household_service.NotPrimaryCarerError):
        raise HTTPException(status_code=403, detail=str(e))
    if isinstance(
        e,
        (
            household_service.AlreadyInHouseholdError,
            household_service.DuplicateInvitationError,
            household_service.InvitationNotPendingError,
        ),
    ):
        raise HTTPException(status_code=409, detail=str(e))
    if isinstance(e, household_service.InvitationExpiredError):
        raise HTTPException(status_code=410, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


def _detail(db: Session, household) -> HouseholdDetail:
    summary = household_service.household_summary(db, household)
    active = summary["active_case"]
    return HouseholdDetail(
        household=HouseholdRead.model_validate(household),
        members=summary["members"],
        available_beds=summary["available_beds"],
        active_case_id=active.id if active else None,
        active_case_number=active.case_number if active else None,
    )


@router.post(
    "",
    response_model=HouseholdDetail,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_household(
    data: HouseholdCreate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a household; the caller becomes its primary carer."""
    try:
        household = household_service.create_household_for_carer(db, user, data.name)
    except household_service.HouseholdServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(household)
    return _detail(db, household)


@router.get("/me", response_model=HouseholdDetail)
def get_my_household(user=Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        household = household_service.get_household_for_member(db, user)
    except household_service.HouseholdServiceError as e:
        _raise_for(e)
    return _detail(db, household)


@router.patch("/me", response_model=HouseholdDetail, dependencies=[Depends(require_csrf_header)])
def update_my_household(
    data: HouseholdUpdate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        household = household_service.update_household_details(
            db, user, data.model_dump(exclude_unset=True)
        )
    except household_service.HouseholdServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(household)
    return _detail(db, household)


@router.put(
    "/me/availability",
    response_model=HouseholdDetail,
    dependencies=[Depends(require_csrf_header)],
)
def update_availability(
    data: AvailabilityUpdate,
    request: Request,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        household = household_service.update_household_availability(
            db,
            user,
            data.availability_status,
            away_from=data.away_from,
            away_until=data.away_until,
            notes=data.availability_notes,
            request=request,
        )
    except household_service.HouseholdServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(household)
    return _detail(db, household)


@router.put(
    "/me/capacity",
    response_model=HouseholdDetail,
    dependencies=[Depends(require_csrf_header)],
)
def update_capacity(
    data: CapacityUpdate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        household = household_service.update_household_capacity(
            db, user, data.total_bedrooms, data.allows_house_sharing
        )
    except household_service.HouseholdServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(household)
    return _detail(db, household)


# =============================================================================
# Invitations
# =============================================================================

@router.post(
    "/me/invitations",
    response_model=InvitationRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def invite_member(
    data: InvitationCreate,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        invitation = household_service.invite_member(db, user, data.email)
        db.commit()
    except household_service.HouseholdServiceError as e:
        db.rollback()
        _raise_for(e)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="A pending invitation already exists for this email")
    db.refresh(invitation)
    return invitation


@router.get("/invitations", response_model=list[InvitationRead])
def list_invitations(
    pending_only: bool = True,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return household_service.list_my_invitations(db, session, pending_only=pending_only)


@router.post(
    "/invitations/{invitation_id}/accept",
    response_model=HouseholdDetail,
    dependencies=[Depends(require_csrf_header)],
)
def accept_invitation(
    invitation_id: UUID,
    request: Request,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        household = household_service.accept_invitation(db, user, invitation_id, request=request)
    except household_service.InvitationExpiredError as e:
        # Persist the expired status before reporting it
        db.commit()
        _raise_for(e)
    except household_service.HouseholdServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(household)
    return _detail(db, household)


@router.post(
    "/invitations/{invitation_id}/decline",
    response_model=InvitationRead,
    dependencies=[Depends(require_csrf_header)],
)
def decline_invitation(
    invitation_id: UUID,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        invitation = household_service.decline_invitation(db, user, invitation_id)
    except household_service.HouseholdServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(invitation)
    return invitation


# =============================================================================
# Members
# =============================================================================

@router.post("/me/leave", dependencies=[Depends(require_csrf_header)])
def leave_household(
    request: Request,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        household_service.leave_household(db, user, request=request)
    except household_service.HouseholdServiceError as e:
        _raise_for(e)
    db.commit()
    return {"status": "left"}


@router.post(
    "/me/transfer-primary",
    response_model=HouseholdDetail,
    dependencies=[Depends(require_csrf_header)],
)
def transfer_primary(
    data: TransferPrimaryRequest,
    user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        household = household_service.transfer_primary_carer(db, user, data.member_id)
    except household_service.HouseholdServiceError as e:
        _raise_for(e)
    db.commit()
    db.refresh(household)
    return _detail(db, household)


# =============================================================================
# Search (step 2 of the placement flow)
# =============================================================================

@router.get("/search", response_model=list[HouseholdSearchResult])
def search_households(
    child_can_share: bool = True,
    placement_type: PlacementType | None = None,
    session: UserSession = Depends(require_roles(list(ROLES_CAN_SEARCH_HOUSEHOLDS))),
    db: Session = Depends(get_db),
):
    """Available households in the caller's organization, most free beds first."""
    return household_service.search_available_households(
        db, session.org_id, child_can_share=child_can_share, placement_type=placement_type
    )
