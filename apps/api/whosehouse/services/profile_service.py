"""Profile service - own profile and social worker professional details."""

from uuid import UUID

from fastapi import Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from whosehouse.core.row_security import privileged
from whosehouse.db.enums import AuditAction, CaseStatus, ContactPreference, Role
from whosehouse.db.models import Case, Profile, SocialWorkerProfile
from whosehouse.services import audit_service
from whosehouse.utils import normalize_name


class ProfileServiceError(Exception):
    """Base exception for profile service errors."""

    pass


class ProfileNotFoundError(ProfileServiceError):
    pass


class NotSocialWorkerError(ProfileServiceError):
    """Professional details only exist for social workers."""

    pass


PROFILE_FIELDS = {
    "full_name",
    "phone_number",
    "avatar_url",
    "emergency_contact_name",
    "emergency_contact_phone",
    "emergency_contact_relationship",
    "preferred_contact",
}

SOCIAL_WORKER_FIELDS = {
    "employer_name",
    "team_name",
    "office_location",
    "manager_name",
    "work_phone",
    "registration_number",
    "registration_expiry",
    "is_on_leave",
    "leave_start_date",
    "leave_end_date",
    "out_of_office_message",
    "bio",
    "specialisms",
    "service_areas",
}

# Shown to carers (and, for name and bio, to the child)
PUBLIC_SOCIAL_WORKER_FIELDS = (
    "team_name",
    "office_location",
    "work_phone",
    "is_on_leave",
    "out_of_office_message",
    "bio",
    "specialisms",
)


def get_my_profile(db: Session, user_id: UUID) -> Profile:
    with privileged():
        profile = db.query(Profile).filter(Profile.id == user_id).first()
    if not profile:
        raise ProfileNotFoundError("Profile not found")
    return profile


def update_my_profile(
    db: Session,
    profile: Profile,
    updates: dict,
    request: Request | None = None,
) -> Profile:
    changed = []
    for key, value in updates.items():
        if key not in PROFILE_FIELDS:
            continue
        if key == "full_name":
            value = normalize_name(value)
            if not value:
                raise ProfileServiceError("Full name is required")
        if key == "preferred_contact" and value is not None:
            value = ContactPreference(value).value
        if getattr(profile, key) != value:
            setattr(profile, key, value)
            changed.append(key)

    if changed:
        audit_service.log_event(
            db,
            org_id=profile.organization_id,
            action=AuditAction.PROFILE_UPDATED,
            actor_user_id=profile.id,
            target_type="profile",
            target_id=profile.id,
            details={"fields": sorted(changed)},
            request=request,
        )
    db.flush()
    return profile


def get_social_worker_profile(db: Session, profile: Profile) -> SocialWorkerProfile | None:
    if profile.role != Role.SOCIAL_WORKER.value:
        raise NotSocialWorkerError("Only social workers have professional details")
    return (
        db.query(SocialWorkerProfile)
        .filter(SocialWorkerProfile.profile_id == profile.id)
        .first()
    )


def upsert_social_worker_profile(
    db: Session,
    profile: Profile,
    updates: dict,
) -> SocialWorkerProfile:
    details = get_social_worker_profile(db, profile)
    if details is None:
        details = SocialWorkerProfile(profile_id=profile.id, specialisms=[], service_areas=[])
        db.add(details)

    for key, value in updates.items():
        if key in SOCIAL_WORKER_FIELDS:
            setattr(details, key, value)
    db.flush()
    return details


def get_assigned_social_worker_for_carer(db: Session, profile: Profile) -> dict | None:
    """Social worker on the carer's active case (directly or via the household)."""
    conditions = [Case.foster_carer_id == profile.id]
    if profile.household_id:
        conditions.append(Case.household_id == profile.household_id)

    with privileged():
        case = (
            db.query(Case)
            .filter(Case.status == CaseStatus.ACTIVE.value, or_(*conditions))
            .order_by(Case.updated_at.desc())
            .first()
        )
        if not case or not case.social_worker_id:
            return None
        worker = db.query(Profile).filter(Profile.id == case.social_worker_id).first()
        details = (
            db.query(SocialWorkerProfile)
            .filter(SocialWorkerProfile.profile_id == case.social_worker_id)
            .first()
        )

    if not worker:
        return None
    result = {
        "case_id": case.id,
        "case_number": case.case_number,
        "social_worker_id": worker.id,
        "full_name": worker.full_name,
        "email": worker.email,
        "phone_number": worker.phone_number,
        "avatar_url": worker.avatar_url,
    }
    for field in PUBLIC_SOCIAL_WORKER_FIELDS:
        result[field] = getattr(details, field) if details else None
    return result
