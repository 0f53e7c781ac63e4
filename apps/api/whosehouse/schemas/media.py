"""Pydantic schemas for media uploads."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from whosehouse.db.enums import MediaType


class MediaRead(BaseModel):
    id: UUID
    case_id: UUID | None = None
    household_id: UUID | None = None
    uploaded_by: UUID | None = None
    file_name: str
    content_type: str
    file_size: int
    checksum_sha256: str
    media_type: MediaType
    description: str | None = None
    is_visible_to_child: bool
    uploaded_at: datetime

    model_config = {"from_attributes": True}


class MediaUrl(BaseModel):
    url: str
    expires_in_seconds: int
