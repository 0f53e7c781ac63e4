"""Pydantic schemas for push tokens, preferences and notifications."""

from datetime import datetime, time
from uuid import UUID

from pydantic import BaseModel, Field

from whosehouse.db.enums import NotificationStatus, PushPlatform


class PushTokenRegister(BaseModel):
    token: str = Field(..., min_length=1, max_length=500)
    platform: PushPlatform
    device_name: str | None = Field(None, max_length=255)


class PushTokenRemove(BaseModel):
    token: str = Field(..., min_length=1, max_length=500)


class PushTokenRead(BaseModel):
    id: UUID
    platform: PushPlatform
    device_name: str | None = None
    is_active: bool
    last_used_at: datetime | None = None

    model_config = {"from_attributes": True}


class NotificationPreferencesRead(BaseModel):
    enabled: bool
    messages: bool
    urgent_messages: bool
    case_updates: bool
    child_access: bool
    quiet_hours_enabled: bool
    quiet_hours_start: time
    quiet_hours_end: time


class NotificationPreferencesUpdate(BaseModel):
    enabled: bool | None = None
    messages: bool | None = None
    urgent_messages: bool | None = None
    case_updates: bool | None = None
    child_access: bool | None = None
    quiet_hours_enabled: bool | None = None
    quiet_hours_start: time | None = None
    quiet_hours_end: time | None = None


class NotificationRead(BaseModel):
    id: UUID
    notification_type: str
    title: str
    body: str | None = None
    data: dict
    status: NotificationStatus
    sent_at: datetime
    clicked_at: datetime | None = None

    model_config = {"from_attributes": True}
