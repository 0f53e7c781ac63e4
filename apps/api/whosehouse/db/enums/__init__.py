"""Enum definitions for application constants."""

from whosehouse.db.enums.audit import AuditAction
from whosehouse.db.enums.auth import ContactPreference, Role
from whosehouse.db.enums.cases import CaseStatus, PlacementRequestStatus, PlacementType
from whosehouse.db.enums.households import AvailabilityStatus, InvitationStatus
from whosehouse.db.enums.media import MediaType
from whosehouse.db.enums.messages import MessageStatus
from whosehouse.db.enums.notifications import (
    NotificationStatus,
    NotificationType,
    PushPlatform,
)
from whosehouse.db.enums.permissions import (
    ROLES_CAN_MANAGE_CASES,
    ROLES_CAN_MANAGE_USERS,
    ROLES_CAN_SEARCH_HOUSEHOLDS,
    ROLES_CAN_SEND_URGENT,
    ROLES_CAN_VIEW_AUDIT,
    ROLES_CAN_VIEW_INTERNAL_NOTES,
)
from whosehouse.db.enums.tokens import TOKEN_EXPIRY_DURATIONS, TokenExpiry, TokenStatus

__all__ = [
    "AuditAction",
    "AvailabilityStatus",
    "CaseStatus",
    "ContactPreference",
    "InvitationStatus",
    "MediaType",
    "MessageStatus",
    "NotificationStatus",
    "NotificationType",
    "PlacementRequestStatus",
    "PlacementType",
    "PushPlatform",
    "ROLES_CAN_MANAGE_CASES",
    "ROLES_CAN_MANAGE_USERS",
    "ROLES_CAN_SEARCH_HOUSEHOLDS",
    "ROLES_CAN_SEND_URGENT",
    "ROLES_CAN_VIEW_AUDIT",
    "ROLES_CAN_VIEW_INTERNAL_NOTES",
    "Role",
    "TOKEN_EXPIRY_DURATIONS",
    "TokenExpiry",
    "TokenStatus",
]
