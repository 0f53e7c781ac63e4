"""Media enums."""

from enum import Enum


class MediaType(str, Enum):
    """Kinds of uploaded media."""

    HOUSE_PHOTO = "house_photo"
    PROFILE_PHOTO = "profile_photo"
    DOCUMENT = "document"
    OTHER = "other"
