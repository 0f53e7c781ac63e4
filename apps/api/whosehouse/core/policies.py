"""Authorization predicates and the row policies built from them."""

from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from whosehouse.core.row_security import PolicyRegistry, RowPolicy, deny, privileged
from whosehouse.db.enums import Role
from whosehouse.db.models import (
    AuditLog,
    Case,
    CaseMedia,
    ChildAccessToken,
    Household,
    HouseholdInvitation,
    Message,
    PlacementRequest,
    Profile,
)


# =============================================================================
# Predicates
# =============================================================================
#
# Role and organization come from the session claims. The table fallbacks
# below only run for identities built without claims (CLI, jobs) and always
# read under privileged() so they never trigger the profiles policy.


def current_role(db: Session, identity) -> Role | None:
    role = getattr(identity, "role", None)
    if role:
        return Role(role)
    with privileged():
        profile = db.query(Profile).filter(Profile.id == identity.user_id).first()
    return Role(profile.role) if profile else None


def current_org_id(db: Session, identity) -> UUID | None:
    org_id = getattr(identity, "org_id", None)
    if org_id:
        return org_id
    with privileged():
        profile = db.query(Profile).filter(Profile.id == identity.user_id).first()
    return profile.organization_id if profile else None


def caller_household_id(db: Session, identity) -> UUID | None:
    """Household of the caller (membership changes, so never cached in claims)."""
    with privileged():
        return (
            db.query(Profile.household_id)
            .filter(Profile.id == identity.user_id)
            .scalar()
        )


def is_admin(db: Session, identity) -> bool:
    return current_role(db, identity) == Role.ADMIN


def is_social_worker(db: Session, identity) -> bool:
    return current_role(db, identity) == Role.SOCIAL_WORKER


def is_foster_carer(db: Session, identity) -> bool:
    return current_role(db, identity) == Role.FOSTER_CARER


def same_organization(db: Session, identity, org_id: UUID | None) -> bool:
    return org_id is not None and current_org_id(db, identity) == org_id


def is_household_member(db: Session, identity, household_id: UUID | None) -> bool:
    if household_id is None:
        return False
    return caller_household_id(db, identity) == household_id


def is_primary_carer(db: Session, identity, household_id: UUID | None) -> bool:
    if household_id is None:
        return False
    with privileged():
        profile = db.query(Profile).filter(Profile.id == identity.user_id).first()
    return bool(profile and profile.household_id == household_id and profile.is_primary_carer)


def is_case_social_worker(identity, case: Case) -> bool:
    return case.social_worker_id is not None and case.social_worker_id == identity.user_id


def is_case_participant(db: Session, identity, case: Case) -> bool:
    """Assigned social worker, assigned carer, or a member of the assigned household."""
    if is_case_social_worker(identity, case):
        return True
    if case.foster_carer_id is not None and case.foster_carer_id == identity.user_id:
        return True
    return is_household_member(db, identity, case.household_id)


# =============================================================================
# Visibility filters
# =============================================================================


def _org_cases(org_id: UUID):
    return select(Case.id).where(Case.organization_id == org_id)


def _visible_case_ids(db: Session, identity):
    """Subquery of case ids the identity participates in (or all org cases for admins)."""
    role = current_role(db, identity)
    if role == Role.ADMIN:
        return _org_cases(current_org_id(db, identity))
    if role == Role.SOCIAL_WORKER:
        return select(Case.id).where(Case.social_worker_id == identity.user_id)
    household_id = caller_household_id(db, identity)
    conditions = [Case.foster_carer_id == identity.user_id]
    if household_id is not None:
        conditions.append(Case.household_id == household_id)
    return select(Case.id).where(or_(*conditions))


def _profiles_visible(db: Session, identity):
    return or_(
        Profile.id == identity.user_id,
        Profile.organization_id == current_org_id(db, identity),
    )


def _households_visible(db: Session, identity):
    role = current_role(db, identity)
    if role in (Role.ADMIN, Role.SOCIAL_WORKER):
        return Household.organization_id == current_org_id(db, identity)
    household_id = caller_household_id(db, identity)
    if household_id is None:
        return deny()
    return Household.id == household_id


def _cases_visible(db: Session, identity):
    return Case.id.in_(_visible_case_ids(db, identity))


def _placement_requests_visible(db: Session, identity):
    role = current_role(db, identity)
    if role == Role.ADMIN:
        return PlacementRequest.case_id.in_(_org_cases(current_org_id(db, identity)))
    if role == Role.SOCIAL_WORKER:
        return or_(
            PlacementRequest.requested_by == identity.user_id,
            PlacementRequest.case_id.in_(
                select(Case.id).where(Case.social_worker_id == identity.user_id)
            ),
        )
    household_id = caller_household_id(db, identity)
    if household_id is None:
        return deny()
    return PlacementRequest.household_id == household_id


def _messages_visible(db: Session, identity):
    return or_(
        Message.sender_id == identity.user_id,
        Message.recipient_id == identity.user_id,
        Message.case_id.in_(
            select(Case.id).where(Case.social_worker_id == identity.user_id)
        ),
    )


def _child_tokens_visible(db: Session, identity):
    return ChildAccessToken.case_id.in_(
        select(Case.id).where(Case.social_worker_id == identity.user_id)
    )


def _media_visible(db: Session, identity):
    org_id = current_org_id(db, identity)
    household_filter = _households_visible(db, identity)
    return and_(
        CaseMedia.organization_id == org_id,
        or_(
            CaseMedia.case_id.in_(_visible_case_ids(db, identity)),
            CaseMedia.household_id.in_(select(Household.id).where(household_filter)),
        ),
    )


def _invitations_visible(db: Session, identity):
    with privileged():
        email = db.query(Profile.email).filter(Profile.id == identity.user_id).scalar()
    return or_(
        HouseholdInvitation.email == email,
        HouseholdInvitation.invited_by == identity.user_id,
    )


def _audit_visible(db: Session, identity):
    if not is_admin(db, identity):
        return deny()
    return AuditLog.organization_id == current_org_id(db, identity)


# =============================================================================
# Write checks
# =============================================================================


def _case_writable(db: Session, identity, case: Case) -> bool:
    if is_admin(db, identity):
        return same_organization(db, identity, case.organization_id)
    return is_case_social_worker(identity, case)


def _household_writable(db: Session, identity, household: Household) -> bool:
    if is_admin(db, identity):
        return same_organization(db, identity, household.organization_id)
    return is_primary_carer(db, identity, household.id)


def _message_writable(db: Session, identity, message: Message) -> bool:
    # Only the recipient may move a message along sent -> delivered -> read
    return message.recipient_id is not None and message.recipient_id == identity.user_id


def _profile_writable(db: Session, identity, profile: Profile) -> bool:
    if profile.id == identity.user_id:
        return True
    return is_admin(db, identity) and same_organization(db, identity, profile.organization_id)


def _media_writable(db: Session, identity, media: CaseMedia) -> bool:
    if media.uploaded_by == identity.user_id:
        return True
    return is_admin(db, identity) and same_organization(db, identity, media.organization_id)


# =============================================================================
# Registry
# =============================================================================

ROW_POLICIES = PolicyRegistry()

ROW_POLICIES.register(RowPolicy("profiles", _profiles_visible, _profile_writable))
ROW_POLICIES.register(RowPolicy("households", _households_visible, _household_writable))
ROW_POLICIES.register(RowPolicy("household_invitations", _invitations_visible))
ROW_POLICIES.register(RowPolicy("cases", _cases_visible, _case_writable))
ROW_POLICIES.register(RowPolicy("placement_requests", _placement_requests_visible))
ROW_POLICIES.register(RowPolicy("messages", _messages_visible, _message_writable))
ROW_POLICIES.register(RowPolicy("child_access_tokens", _child_tokens_visible))
ROW_POLICIES.register(RowPolicy("case_media", _media_visible, _media_writable))
ROW_POLICIES.register(RowPolicy("audit_logs", _audit_visible))


def scoped_query(db: Session, identity, model):
    """Shortcut for ROW_POLICIES.scoped_query."""
    return ROW_POLICIES.scoped_query(db, identity, model)


def can_write(db: Session, identity, row) -> bool:
    return ROW_POLICIES.can_write(db, identity, row)
