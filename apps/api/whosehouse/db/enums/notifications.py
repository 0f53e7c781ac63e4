"""Notification-related enums."""

from enum import Enum


class NotificationType(str, Enum):
    """Types of push / in-app notifications."""

    MESSAGE = "message"
    URGENT_MESSAGE = "urgent_message"
    CASE_UPDATE = "case_update"
    PLACEMENT_REQUEST = "placement_request"
    PLACEMENT_RESPONSE = "placement_response"
    CHILD_ACCESS = "child_access"


class NotificationStatus(str, Enum):
    """Delivery status recorded in the notification log."""

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    CLICKED = "clicked"


class PushPlatform(str, Enum):
    """Device platforms that can register push tokens."""

    IOS = "ios"
    ANDROID = "android"
    WEB = "web"
