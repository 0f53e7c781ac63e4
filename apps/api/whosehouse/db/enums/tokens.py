"""Child access token enums."""

from datetime import timedelta
from enum import Enum


class TokenStatus(str, Enum):
    """Status of a child access token."""

    ACTIVE = "active"
    USED = "used"  # Redeemed at least once; still valid until expiry
    EXPIRED = "expired"
    REVOKED = "revoked"


class TokenExpiry(str, Enum):
    """Expiry windows a social worker can pick from."""

    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"

    @property
    def duration(self) -> timedelta:
        return TOKEN_EXPIRY_DURATIONS[self]


TOKEN_EXPIRY_DURATIONS = {
    TokenExpiry.SHORT: timedelta(hours=24),
    TokenExpiry.MEDIUM: timedelta(hours=72),
    TokenExpiry.LONG: timedelta(hours=168),
}
