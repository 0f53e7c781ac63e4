"""Case and placement enums."""

from enum import Enum


class CaseStatus(str, Enum):
    """
    Lifecycle of a case.

    Workflow: pending → active (placement accepted) → closed
    """

    PENDING = "pending"
    ACTIVE = "active"
    CLOSED = "closed"


class PlacementType(str, Enum):
    """Kind of placement a case needs."""

    RESPITE = "respite"
    LONG_TERM = "long_term"
    EMERGENCY = "emergency"


class PlacementRequestStatus(str, Enum):
    """
    Outcome of a placement request.

    Only PENDING is actionable; the others are terminal.
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"
    CANCELLED = "cancelled"  # Withdrawn, or superseded by another acceptance
