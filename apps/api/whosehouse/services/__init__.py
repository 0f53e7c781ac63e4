"""Service layer modules."""

from whosehouse.services.auth_service import (
    authenticate,
    change_password,
    create_profile,
    get_org_by_slug,
    signup_foster_carer,
)
from whosehouse.services.household_service import (
    get_household_available_beds,
    is_household_available,
    search_available_households,
)
from whosehouse.services.session_guard import SessionGuard, build_session_guard

# Import service modules (not individual functions) for cleaner access
from whosehouse.services import (
    access_token_service,
    admin_service,
    audit_service,
    case_service,
    household_service,
    media_service,
    message_service,
    notification_service,
    placement_service,
    profile_service,
)

__all__ = [
    # Auth
    "authenticate",
    "change_password",
    "create_profile",
    "get_org_by_slug",
    "signup_foster_carer",
    # Households
    "get_household_available_beds",
    "is_household_available",
    "search_available_households",
    # Session guard
    "SessionGuard",
    "build_session_guard",
    # Modules
    "access_token_service",
    "admin_service",
    "audit_service",
    "case_service",
    "household_service",
    "media_service",
    "message_service",
    "notification_service",
    "placement_service",
    "profile_service",
]
