"""Household capacity, availability, search, membership and invitations."""

from datetime import datetime, timedelta, timezone

import pytest

from whosehouse.db.enums import (
    AvailabilityStatus,
    CaseStatus,
    InvitationStatus,
    PlacementType,
    Role,
)
from whosehouse.db.models import Case, HouseholdInvitation
from whosehouse.services import household_service


NOW = datetime(2026, 6, 15, 10, 0, tzinfo=timezone.utc)


def _place(db, household, social_worker, child_can_share=True):
    case = Case(
        organization_id=household.organization_id,
        case_number=f"WH-202606-{db.query(Case).count():04d}",
        status=CaseStatus.ACTIVE.value,
        social_worker_id=social_worker.id,
        household_id=household.id,
        placement_type=PlacementType.LONG_TERM.value,
        child_can_share=child_can_share,
    )
    db.add(case)
    db.flush()
    return case


# =============================================================================
# Capacity
# =============================================================================

def test_empty_household_has_all_beds(db, household):
    household.total_bedrooms = 3
    assert household_service.get_household_available_beds(db, household) == 3


def test_sharing_child_blocks_one_bed(db, household, social_worker):
    household.total_bedrooms = 3
    _place(db, household, social_worker, child_can_share=True)

    assert household_service.get_household_available_beds(db, household) == 2
    assert household_service.is_household_available(db, household, True, now=NOW)
    # Exclusive placement needs the whole house
    assert not household_service.is_household_available(db, household, False, now=NOW)


def test_non_sharing_child_blocks_house(db, household, social_worker):
    household.total_bedrooms = 3
    _place(db, household, social_worker, child_can_share=False)

    assert household_service.get_household_available_beds(db, household) == 0
    assert not household_service.is_household_available(db, household, True, now=NOW)


def test_household_without_sharing_is_full_after_one(db, household, social_worker):
    household.total_bedrooms = 4
    household.allows_house_sharing = False
    _place(db, household, social_worker, child_can_share=True)

    assert household_service.get_household_available_beds(db, household) == 0


def test_away_window_blocks_availability(db, household):
    household.away_from = NOW - timedelta(days=1)
    household.away_until = NOW + timedelta(days=1)
    assert not household_service.is_household_available(db, household, now=NOW)
    assert household_service.is_household_available(db, household, now=NOW + timedelta(days=2))


@pytest.mark.parametrize("status", [AvailabilityStatus.AWAY, AvailabilityStatus.FULL])
def test_status_blocks_availability(db, household, status):
    household.availability_status = status.value
    assert not household_service.is_household_available(db, household, now=NOW)


def test_search_orders_by_free_beds_then_name(db, make_household, social_worker):
    _, small = make_household("Birch House", total_bedrooms=1)
    _, big = make_household("Ash House", total_bedrooms=4)
    _, medium_b = make_household("Cedar House", total_bedrooms=2)
    _, medium_a = make_household("Beech House", total_bedrooms=2)
    _, away = make_household("Alder House", total_bedrooms=5)
    away.availability_status = AvailabilityStatus.AWAY.value
    db.flush()

    results = household_service.search_available_households(
        db, social_worker.organization_id, now=NOW
    )
    assert [r["household_name"] for r in results] == [
        "Ash House",
        "Beech House",
        "Cedar House",
        "Birch House",
    ]
    assert results[0]["primary_carer_name"] == "Ash House Carer"


def test_search_filters_placement_type(db, make_household, social_worker):
    _, respite_only = make_household("Respite House")
    respite_only.accepted_placement_types = [PlacementType.RESPITE.value]
    make_household("Any House")
    db.flush()

    results = household_service.search_available_households(
        db, social_worker.organization_id, placement_type=PlacementType.EMERGENCY, now=NOW
    )
    assert [r["household_name"] for r in results] == ["Any House"]


def test_search_is_org_scoped(db, make_household, social_worker, test_org):
    from whosehouse.db.models import Organization

    other_org = Organization(name="Southshire", slug="southshire")
    db.add(other_org)
    db.flush()
    make_household("Foreign House", org=other_org)
    make_household("Local House")

    results = household_service.search_available_households(db, test_org.id, now=NOW)
    assert [r["household_name"] for r in results] == ["Local House"]


# =============================================================================
# Membership
# =============================================================================

def test_create_household_requires_carer(db, social_worker):
    with pytest.raises(household_service.HouseholdServiceError):
        household_service.create_household_for_carer(db, social_worker, "Nope")


def test_carer_cannot_create_second_household(db, carer):
    with pytest.raises(household_service.AlreadyInHouseholdError):
        household_service.create_household_for_carer(db, carer, "Second Home")


def test_capacity_change_needs_primary(db, make_profile, carer, household):
    partner = make_profile(Role.FOSTER_CARER, "Pat Partner")
    partner.household_id = household.id
    db.flush()

    with pytest.raises(household_service.NotPrimaryCarerError):
        household_service.update_household_capacity(db, partner, 3)
    household_service.update_household_capacity(db, carer, 3, allows_house_sharing=False)
    assert household.total_bedrooms == 3
    assert household.allows_house_sharing is False


def test_any_member_sets_availability(db, make_profile, household):
    partner = make_profile(Role.FOSTER_CARER, "Pat Partner")
    partner.household_id = household.id
    db.flush()

    household_service.update_household_availability(
        db,
        partner,
        AvailabilityStatus.AWAY,
        away_from=NOW,
        away_until=NOW + timedelta(days=7),
        notes="Family holiday",
    )
    assert household.availability_status == AvailabilityStatus.AWAY.value
    assert household.availability_notes == "Family holiday"


def test_primary_must_transfer_before_leaving(db, make_profile, carer, household):
    partner = make_profile(Role.FOSTER_CARER, "Pat Partner")
    partner.household_id = household.id
    db.flush()

    with pytest.raises(household_service.HouseholdServiceError):
        household_service.leave_household(db, carer)

    household_service.transfer_primary_carer(db, carer, partner.id)
    household_service.leave_household(db, carer)
    assert carer.household_id is None
    assert partner.is_primary_carer is True


# =============================================================================
# Invitations
# =============================================================================

def test_invitation_accept_joins_household(db, session_for, make_profile, carer, household):
    invitee = make_profile(Role.FOSTER_CARER, "Ivy Invitee")
    invitation = household_service.invite_member(db, carer, invitee.email.upper(), now=NOW)
    assert invitation.email == invitee.email
    assert invitation.expires_at == NOW + timedelta(days=7)

    pending = household_service.list_my_invitations(db, session_for(invitee))
    assert [i.id for i in pending] == [invitation.id]

    joined = household_service.accept_invitation(
        db, invitee, invitation.id, now=NOW + timedelta(days=1)
    )
    assert joined.id == household.id
    assert invitee.household_id == household.id
    assert invitee.is_primary_carer is False
    assert invitation.status == InvitationStatus.ACCEPTED.value


def test_duplicate_pending_invitation_rejected(db, carer):
    household_service.invite_member(db, carer, "new.carer@example.com", now=NOW)
    with pytest.raises(household_service.DuplicateInvitationError):
        household_service.invite_member(db, carer, "new.carer@example.com", now=NOW)


def test_expired_invitation_is_marked(db, make_profile, carer):
    invitee = make_profile(Role.FOSTER_CARER, "Ivy Invitee")
    invitation = household_service.invite_member(db, carer, invitee.email, now=NOW)

    with pytest.raises(household_service.InvitationExpiredError):
        household_service.accept_invitation(
            db, invitee, invitation.id, now=NOW + timedelta(days=8)
        )
    assert invitation.status == InvitationStatus.EXPIRED.value
    assert invitee.household_id is None


def test_invitation_for_someone_else_not_found(db, make_profile, carer):
    invitee = make_profile(Role.FOSTER_CARER, "Ivy Invitee")
    bystander = make_profile(Role.FOSTER_CARER, "Bo Bystander")
    invitation = household_service.invite_member(db, carer, invitee.email, now=NOW)

    with pytest.raises(household_service.InvitationNotFoundError):
        household_service.accept_invitation(db, bystander, invitation.id, now=NOW)


# =============================================================================
# API
# =============================================================================

async def test_household_endpoints(client_for, make_profile, db, carer, household):
    home = client_for(carer)

    res = await home.get("/households/me")
    assert res.status_code == 200
    assert res.json()["household"]["name"] == "Oak House"
    assert res.json()["available_beds"] == 2

    res = await home.put(
        "/households/me/capacity", json={"total_bedrooms": 3, "allows_house_sharing": True}
    )
    assert res.status_code == 200

    res = await home.put(
        "/households/me/availability",
        json={
            "availability_status": "away",
            "away_from": "2026-07-01T00:00:00Z",
            "away_until": "2026-06-01T00:00:00Z",
        },
    )
    assert res.status_code == 422


async def test_expired_invitation_returns_410(client_for, db, make_profile, carer):
    invitee = make_profile(Role.FOSTER_CARER, "Ivy Invitee")
    invitation = household_service.invite_member(
        db, carer, invitee.email, now=datetime.now(timezone.utc) - timedelta(days=10)
    )
    invitation_id = invitation.id

    res = await client_for(invitee).post(f"/households/invitations/{invitation_id}/accept")
    assert res.status_code == 410

    stored = db.query(HouseholdInvitation).filter(HouseholdInvitation.id == invitation_id).one()
    assert stored.status == InvitationStatus.EXPIRED.value


async def test_search_requires_worker_or_admin(client_for, carer):
    res = await client_for(carer).get("/households/search")
    assert res.status_code == 403
