"""Household enums."""

from enum import Enum


class AvailabilityStatus(str, Enum):
    """Availability a household sets for new placements."""

    AVAILABLE = "available"
    AWAY = "away"
    FULL = "full"


class InvitationStatus(str, Enum):
    """Status of an invitation to join a household."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
