"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Account roles.

    - SOCIAL_WORKER: Creates cases, searches households, sends placement requests
    - FOSTER_CARER: Household member, responds to placement requests
    - ADMIN: Organization admin (accounts, assignments, audit trail)
    """

    SOCIAL_WORKER = "social_worker"
    FOSTER_CARER = "foster_carer"
    ADMIN = "admin"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


class ContactPreference(str, Enum):
    """Preferred contact channel for a profile."""

    EMAIL = "email"
    PHONE = "phone"
    APP = "app"
