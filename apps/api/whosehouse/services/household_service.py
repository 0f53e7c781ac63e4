"""Household management: capacity, availability, members and invitations."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from whosehouse.core.config import settings
from whosehouse.core.policies import scoped_query
from whosehouse.db.enums import (
    AuditAction,
    AvailabilityStatus,
    CaseStatus,
    InvitationStatus,
    PlacementType,
    Role,
)
from whosehouse.db.models import Case, Household, HouseholdInvitation, Profile
from whosehouse.db.types import as_utc
from whosehouse.services import audit_service
from whosehouse.utils import is_valid_email, normalize_email, normalize_name


class HouseholdServiceError(Exception):
    """Base exception for household service errors."""

    pass


class HouseholdNotFoundError(HouseholdServiceError):
    """Household missing or not visible to the caller."""

    pass


class NotInHouseholdError(HouseholdServiceError):
    """Caller does not belong to a household."""

    pass


class AlreadyInHouseholdError(HouseholdServiceError):
    """Caller already belongs to a household."""

    pass


class NotPrimaryCarerError(HouseholdServiceError):
    """Operation requires the household's primary carer."""

    pass


class InvalidCapacityError(HouseholdServiceError):
    """Bedroom count or availability window is invalid."""

    pass


class InvitationNotFoundError(HouseholdServiceError):
    """Invitation missing or not addressed to the caller."""

    pass


class InvitationNotPendingError(HouseholdServiceError):
    """Invitation was already answered."""

    pass


class InvitationExpiredError(HouseholdServiceError):
    """Invitation is past its expiry."""

    pass


class DuplicateInvitationError(HouseholdServiceError):
    """A pending invitation for this email already exists."""

    pass


class MemberNotFoundError(HouseholdServiceError):
    """Target profile is not a member of the household."""

    pass


# =============================================================================
# Capacity
# =============================================================================

def active_cases_for_household(db: Session, household_id: UUID) -> list[Case]:
    return (
        db.query(Case)
        .filter(Case.household_id == household_id, Case.status == CaseStatus.ACTIVE.value)
        .all()
    )


def get_household_available_beds(db: Session, household: Household) -> int:
    """
    Free beds for a new placement.

    Each active case whose child can share (in a household that allows
    sharing) blocks one bed. A child who cannot share, or any child in a
    household that does not allow sharing, blocks the whole house.
    """
    blocked = 0
    for case in active_cases_for_household(db, household.id):
        if case.child_can_share and household.allows_house_sharing:
            blocked += 1
        else:
            return 0
    return max(0, household.total_bedrooms - blocked)


def is_household_available(
    db: Session,
    household: Household,
    child_can_share: bool = True,
    placement_type: PlacementType | str | None = None,
    now: datetime | None = None,
) -> bool:
    """Whether the household can take a new placement with these needs."""
    now = now or datetime.now(timezone.utc)

    if household.availability_status in (
        AvailabilityStatus.AWAY.value,
        AvailabilityStatus.FULL.value,
    ):
        return False

    away_from = as_utc(household.away_from)
    away_until = as_utc(household.away_until)
    if away_from and away_until and away_from <= now <= away_until:
        return False

    if placement_type is not None:
        value = placement_type.value if isinstance(placement_type, PlacementType) else placement_type
        if value not in (household.accepted_placement_types or []):
            return False

    available = get_household_available_beds(db, household)
    if not child_can_share:
        # Exclusive placement needs the whole house free
        return available == household.total_bedrooms
    return available > 0


def search_available_households(
    db: Session,
    org_id: UUID,
    child_can_share: bool = True,
    placement_type: PlacementType | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """
    Households in the organization that can take this placement.

    Ordered by available beds (most first), then name.
    """
    households = db.query(Household).filter(Household.organization_id == org_id).all()
    results = []
    for household in households:
        if not is_household_available(db, household, child_can_share, placement_type, now):
            continue
        primary = (
            db.query(Profile)
            .filter(Profile.household_id == household.id, Profile.is_primary_carer.is_(True))
            .first()
        )
        results.append(
            {
                "household_id": household.id,
                "household_name": household.name,
                "city": household.city,
                "total_bedrooms": household.total_bedrooms,
                "available_beds": get_household_available_beds(db, household),
                "availability_status": household.availability_status,
                "allows_house_sharing": household.allows_house_sharing,
                "accepted_placement_types": list(household.accepted_placement_types or []),
                "primary_carer_name": primary.full_name if primary else None,
                "primary_carer_id": primary.id if primary else None,
                "active_cases_count": len(active_cases_for_household(db, household.id)),
            }
        )
    results.sort(key=lambda r: (-r["available_beds"], r["household_name"].lower()))
    return results


# =============================================================================
# Household lifecycle
# =============================================================================

def get_household_for_member(db: Session, profile: Profile) -> Household:
    if not profile.household_id:
        raise NotInHouseholdError("You do not belong to a household")
    household = db.query(Household).filter(Household.id == profile.household_id).first()
    if not household:
        raise HouseholdNotFoundError("Household not found")
    return household


def get_household(db: Session, session, household_id: UUID) -> Household:
    household = (
        scoped_query(db, session, Household).filter(Household.id == household_id).first()
    )
    if not household:
        raise HouseholdNotFoundError("Household not found")
    return household


def list_members(db: Session, household_id: UUID) -> list[Profile]:
    return (
        db.query(Profile)
        .filter(Profile.household_id == household_id)
        .order_by(Profile.is_primary_carer.desc(), Profile.full_name)
        .all()
    )


def create_household_for_carer(db: Session, profile: Profile, name: str) -> Household:
    """Create a household with the carer as primary carer."""
    if profile.role != Role.FOSTER_CARER.value:
        raise HouseholdServiceError("Only foster carers can create a household")
    if profile.household_id:
        raise AlreadyInHouseholdError("You already belong to a household")
    clean_name = normalize_name(name)
    if not clean_name:
        raise HouseholdServiceError("Household name is required")

    household = Household(organization_id=profile.organization_id, name=clean_name)
    db.add(household)
    db.flush()

    profile.household_id = household.id
    profile.is_primary_carer = True
    db.flush()
    return household


def _require_primary(profile: Profile, household: Household) -> None:
    if not (profile.household_id == household.id and profile.is_primary_carer):
        raise NotPrimaryCarerError("Only the primary carer can change this")


HOUSEHOLD_DETAIL_FIELDS = {
    "name",
    "address_line1",
    "address_line2",
    "city",
    "postcode",
    "country",
    "description",
    "accepted_placement_types",
}


def update_household_details(db: Session, profile: Profile, updates: dict) -> Household:
    household = get_household_for_member(db, profile)
    _require_primary(profile, household)

    for key, value in updates.items():
        if key not in HOUSEHOLD_DETAIL_FIELDS:
            continue
        if key == "name":
            value = normalize_name(value)
            if not value:
                raise HouseholdServiceError("Household name is required")
        if key == "accepted_placement_types":
            value = [PlacementType(v).value for v in value]
            if not value:
                raise InvalidCapacityError("At least one placement type must be accepted")
        setattr(household, key, value)
    db.flush()
    return household


def update_household_availability(
    db: Session,
    profile: Profile,
    status: AvailabilityStatus,
    away_from: datetime | None = None,
    away_until: datetime | None = None,
    notes: str | None = None,
    request: Request | None = None,
) -> Household:
    """Any member can set availability (the carer who is home may be either)."""
    household = get_household_for_member(db, profile)
    if away_from and away_until and as_utc(away_until) < as_utc(away_from):
        raise InvalidCapacityError("away_until must be after away_from")

    household.availability_status = status.value
    household.away_from = away_from
    household.away_until = away_until
    household.availability_notes = notes

    audit_service.log_event(
        db,
        org_id=household.organization_id,
        action=AuditAction.HOUSEHOLD_AVAILABILITY_UPDATED,
        actor_user_id=profile.id,
        target_type="household",
        target_id=household.id,
        details={
            "availability_status": status.value,
            "away_from": away_from.isoformat() if away_from else None,
            "away_until": away_until.isoformat() if away_until else None,
        },
        request=request,
    )
    db.flush()
    return household


def update_household_capacity(
    db: Session,
    profile: Profile,
    total_bedrooms: int,
    allows_house_sharing: bool = True,
) -> Household:
    household = get_household_for_member(db, profile)
    _require_primary(profile, household)
    if total_bedrooms < 1:
        raise InvalidCapacityError("Household must have at least 1 bedroom")

    household.total_bedrooms = total_bedrooms
    household.allows_house_sharing = allows_house_sharing
    db.flush()
    return household


# =============================================================================
# Members
# =============================================================================

def leave_household(db: Session, profile: Profile, request: Request | None = None) -> None:
    household = get_household_for_member(db, profile)
    if profile.is_primary_carer:
        raise HouseholdServiceError(
            "The primary carer cannot leave; transfer the primary role first"
        )
    profile.household_id = None
    profile.is_primary_carer = False
    audit_service.log_event(
        db,
        org_id=household.organization_id,
        action=AuditAction.HOUSEHOLD_MEMBER_LEFT,
        actor_user_id=profile.id,
        target_type="household",
        target_id=household.id,
        request=request,
    )
    db.flush()


def transfer_primary_carer(db: Session, profile: Profile, new_primary_id: UUID) -> Household:
    household = get_household_for_member(db, profile)
    _require_primary(profile, household)
    if new_primary_id == profile.id:
        return household

    target = (
        db.query(Profile)
        .filter(Profile.id == new_primary_id, Profile.household_id == household.id)
        .first()
    )
    if not target:
        raise MemberNotFoundError("Member not found in your household")

    profile.is_primary_carer = False
    target.is_primary_carer = True
    db.flush()
    return household


# =============================================================================
# Invitations
# =============================================================================

def invite_member(
    db: Session,
    profile: Profile,
    email: str,
    now: datetime | None = None,
) -> HouseholdInvitation:
    household = get_household_for_member(db, profile)
    _require_primary(profile, household)

    email = normalize_email(email)
    if not is_valid_email(email):
        raise HouseholdServiceError("Invalid email address")

    existing = (
        db.query(HouseholdInvitation)
        .filter(
            HouseholdInvitation.household_id == household.id,
            HouseholdInvitation.email == email,
            HouseholdInvitation.status == InvitationStatus.PENDING.value,
        )
        .first()
    )
    if existing:
        raise DuplicateInvitationError("A pending invitation already exists for this email")

    now = now or datetime.now(timezone.utc)
    invitation = HouseholdInvitation(
        household_id=household.id,
        invited_by=profile.id,
        email=email,
        status=InvitationStatus.PENDING.value,
        expires_at=now + timedelta(days=settings.HOUSEHOLD_INVITE_TTL_DAYS),
    )
    db.add(invitation)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise DuplicateInvitationError("A pending invitation already exists for this email")
    return invitation


def list_my_invitations(db: Session, session, pending_only: bool = True) -> list[HouseholdInvitation]:
    query = scoped_query(db, session, HouseholdInvitation)
    if pending_only:
        query = query.filter(HouseholdInvitation.status == InvitationStatus.PENDING.value)
    return query.order_by(HouseholdInvitation.created_at.desc()).all()


def _get_invitation_for(db: Session, profile: Profile, invitation_id: UUID) -> HouseholdInvitation:
    invitation = (
        db.query(HouseholdInvitation)
        .filter(
            HouseholdInvitation.id == invitation_id,
            HouseholdInvitation.email == profile.email,
        )
        .first()
    )
    if not invitation:
        raise InvitationNotFoundError("Invitation not found")
    return invitation


def accept_invitation(
    db: Session,
    profile: Profile,
    invitation_id: UUID,
    now: datetime | None = None,
    request: Request | None = None,
) -> Household:
    """
    Join the inviting household.

    An expired invitation is marked expired before InvitationExpiredError
    is raised; the caller commits so that transition sticks.
    """
    invitation = _get_invitation_for(db, profile, invitation_id)
    if invitation.status != InvitationStatus.PENDING.value:
        raise InvitationNotPendingError(f"Invitation is already {invitation.status}")

    now = now or datetime.now(timezone.utc)
    if as_utc(invitation.expires_at) <= now:
        invitation.status = InvitationStatus.EXPIRED.value
        db.flush()
        raise InvitationExpiredError("Invitation has expired")

    if profile.household_id:
        raise AlreadyInHouseholdError("You already belong to a household")

    household = db.query(Household).filter(Household.id == invitation.household_id).first()
    if not household or household.organization_id != profile.organization_id:
        raise HouseholdNotFoundError("Household not found")

    invitation.status = InvitationStatus.ACCEPTED.value
    invitation.accepted_at = now
    profile.household_id = household.id
    profile.is_primary_carer = False
    audit_service.log_event(
        db,
        org_id=household.organization_id,
        action=AuditAction.HOUSEHOLD_MEMBER_JOINED,
        actor_user_id=profile.id,
        target_type="household",
        target_id=household.id,
        details={"invitation_id": str(invitation.id)},
        request=request,
    )
    db.flush()
    return household


def decline_invitation(db: Session, profile: Profile, invitation_id: UUID) -> HouseholdInvitation:
    invitation = _get_invitation_for(db, profile, invitation_id)
    if invitation.status != InvitationStatus.PENDING.value:
        raise InvitationNotPendingError(f"Invitation is already {invitation.status}")
    invitation.status = InvitationStatus.DECLINED.value
    db.flush()
    return invitation


def household_summary(db: Session, household: Household) -> dict:
    """Household with members, capacity and the current placement."""
    active = active_cases_for_household(db, household.id)
    return {
        "household": household,
        "members": list_members(db, household.id),
        "available_beds": get_household_available_beds(db, household),
        "active_case": active[0] if active else None,
        "member_count": db.query(func.count(Profile.id))
        .filter(Profile.household_id == household.id)
        .scalar(),
    }
