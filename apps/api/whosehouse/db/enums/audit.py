"""Audit enums."""

from enum import Enum


class AuditAction(str, Enum):
    """
    Actions recorded in the immutable audit trail.

    Details attached to an entry hold identifiers only, never message
    content or raw tokens.
    """

    # Sessions
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    UNAUTHORIZED_ACCESS_ATTEMPT = "unauthorized_access_attempt"
    PROFILE_UPDATED = "profile_updated"

    # Cases
    CASE_CREATED = "case_created"
    CASE_UPDATED = "case_updated"
    CASE_ACCESSED = "case_accessed"

    # Messaging
    MESSAGE_SENT = "message_sent"
    MESSAGE_READ = "message_read"

    # Child access
    TOKEN_GENERATED = "token_generated"
    TOKEN_USED = "token_used"

    # Assignments
    ASSIGNMENT_CREATED = "assignment_created"
    ASSIGNMENT_REMOVED = "assignment_removed"

    # Account administration
    USER_CREATED = "user_created"
    USER_DEACTIVATED = "user_deactivated"
    USER_REACTIVATED = "user_reactivated"

    # Placements
    PLACEMENT_REQUEST_SENT = "placement_request_sent"
    PLACEMENT_REQUEST_ACCEPTED = "placement_request_accepted"
    PLACEMENT_REQUEST_DECLINED = "placement_request_declined"

    # Households
    HOUSEHOLD_AVAILABILITY_UPDATED = "household_availability_updated"
    HOUSEHOLD_MEMBER_JOINED = "household_member_joined"
    HOUSEHOLD_MEMBER_LEFT = "household_member_left"

    # Media
    MEDIA_UPLOADED = "media_uploaded"
