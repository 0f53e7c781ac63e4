"""SQLAlchemy ORM models."""

from whosehouse.db.models.audit import AuditLog, AuditLogImmutableError
from whosehouse.db.models.auth import Organization, Profile, SocialWorkerProfile
from whosehouse.db.models.cases import Case, PlacementRequest
from whosehouse.db.models.households import Household, HouseholdInvitation
from whosehouse.db.models.media import CaseMedia
from whosehouse.db.models.messages import ChildAccessToken, Message
from whosehouse.db.models.notifications import (
    NotificationLog,
    NotificationPreferences,
    PushToken,
)

__all__ = [
    "AuditLog",
    "AuditLogImmutableError",
    "Case",
    "CaseMedia",
    "ChildAccessToken",
    "Household",
    "HouseholdInvitation",
    "Message",
    "NotificationLog",
    "NotificationPreferences",
    "Organization",
    "PlacementRequest",
    "Profile",
    "PushToken",
    "SocialWorkerProfile",
]
