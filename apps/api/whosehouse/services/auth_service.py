"""Account creation, credential checks and password changes."""

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from whosehouse.core.security import hash_password, password_problems, verify_password
from whosehouse.db.enums import AuditAction, Role
from whosehouse.db.models import Organization, Profile
from whosehouse.services import audit_service
from whosehouse.utils import is_valid_email, normalize_email, normalize_name


logger = logging.getLogger(__name__)


class AuthServiceError(Exception):
    """Base exception for auth service errors."""

    pass


class InvalidCredentialsError(AuthServiceError):
    """Email/password mismatch, unknown email, or disabled account."""

    pass


class InvalidEmailError(AuthServiceError):
    """Email address is malformed."""

    pass


class WeakPasswordError(AuthServiceError):
    """Password does not meet the strength rules."""

    def __init__(self, problems: list[str]):
        self.problems = problems
        super().__init__("; ".join(problems))


class EmailAlreadyRegisteredError(AuthServiceError):
    """An account with this email already exists."""

    pass


class OrganizationNotFoundError(AuthServiceError):
    """No organization with the given slug."""

    pass


def get_org_by_slug(db: Session, slug: str) -> Organization | None:
    return db.query(Organization).filter(Organization.slug == slug.strip().lower()).first()


def create_profile(
    db: Session,
    org_id: UUID,
    email: str,
    password: str,
    full_name: str,
    role: Role,
    phone_number: str | None = None,
) -> Profile:
    """
    Validate and insert a new account. Does not commit.

    Raises:
        InvalidEmailError, WeakPasswordError, EmailAlreadyRegisteredError
    """
    email = normalize_email(email)
    if not is_valid_email(email):
        raise InvalidEmailError("Invalid email address")

    problems = password_problems(password)
    if problems:
        raise WeakPasswordError(problems)

    name = normalize_name(full_name)
    if not name:
        raise AuthServiceError("Full name is required")

    if db.query(Profile.id).filter(Profile.email == email).first():
        raise EmailAlreadyRegisteredError("An account with this email already exists")

    profile = Profile(
        organization_id=org_id,
        email=email,
        password_hash=hash_password(password),
        full_name=name,
        role=role.value,
        phone_number=phone_number,
    )
    db.add(profile)
    db.flush()
    return profile


def signup_foster_carer(
    db: Session,
    email: str,
    password: str,
    full_name: str,
    organization_slug: str,
    household_name: str | None = None,
    request: Request | None = None,
) -> Profile:
    """
    Self-service signup. Only foster carers can register themselves;
    social workers and admins are created by an admin.

    When household_name is given the carer's household is created too,
    with the carer as primary carer.
    """
    from whosehouse.services import household_service

    org = get_org_by_slug(db, organization_slug)
    if not org:
        raise OrganizationNotFoundError("Organization not found")

    profile = create_profile(db, org.id, email, password, full_name, Role.FOSTER_CARER)
    audit_service.log_event(
        db,
        org_id=org.id,
        action=AuditAction.USER_CREATED,
        actor_user_id=profile.id,
        target_type="profile",
        target_id=profile.id,
        details={"role": Role.FOSTER_CARER.value, "self_signup": True},
        request=request,
    )
    if household_name:
        household_service.create_household_for_carer(db, profile, household_name)
    return profile


def authenticate(
    db: Session,
    email: str,
    password: str,
    request: Request | None = None,
) -> Profile:
    """
    Check credentials and stamp last_login.

    Failures are audited as unauthorized_access_attempt before raising;
    the caller commits in both cases.

    Raises:
        InvalidCredentialsError: Unknown email, wrong password or disabled account
    """
    normalized = normalize_email(email) or ""
    profile = db.query(Profile).filter(Profile.email == normalized).first()

    if not profile or not verify_password(profile.password_hash, password) or not profile.is_active:
        audit_service.log_event(
            db,
            org_id=profile.organization_id if profile else None,
            action=AuditAction.UNAUTHORIZED_ACCESS_ATTEMPT,
            actor_user_id=profile.id if profile else None,
            target_type="auth",
            details={
                "email": audit_service.hash_email(normalized),
                "reason": "inactive" if profile and profile.is_active is False else "bad_credentials",
            },
            request=request,
        )
        logger.info("Login failed for %s", audit_service.hash_email(normalized))
        raise InvalidCredentialsError("Invalid email or password")

    profile.last_login = datetime.now(timezone.utc)
    audit_service.log_event(
        db,
        org_id=profile.organization_id,
        action=AuditAction.USER_LOGIN,
        actor_user_id=profile.id,
        target_type="profile",
        target_id=profile.id,
        request=request,
    )
    return profile


def record_logout(db: Session, session, request: Request | None = None) -> None:
    audit_service.log_event(
        db,
        org_id=session.org_id,
        action=AuditAction.USER_LOGOUT,
        actor_user_id=session.user_id,
        target_type="profile",
        target_id=session.user_id,
        request=request,
    )


def change_password(
    db: Session,
    profile: Profile,
    current_password: str,
    new_password: str,
    request: Request | None = None,
) -> Profile:
    """
    Replace the password and revoke every existing session.

    Raises:
        InvalidCredentialsError: current password is wrong
        WeakPasswordError: new password fails the rules
    """
    if not verify_password(profile.password_hash, current_password):
        raise InvalidCredentialsError("Current password is incorrect")
    problems = password_problems(new_password)
    if problems:
        raise WeakPasswordError(problems)

    profile.password_hash = hash_password(new_password)
    profile.token_version += 1
    audit_service.log_event(
        db,
        org_id=profile.organization_id,
        action=AuditAction.PROFILE_UPDATED,
        actor_user_id=profile.id,
        target_type="profile",
        target_id=profile.id,
        details={"fields": ["password"]},
        request=request,
    )
    return profile
