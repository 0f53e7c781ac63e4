"""Pydantic schemas for child access tokens and the child view."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from whosehouse.db.enums import TokenExpiry, TokenStatus
from whosehouse.schemas.message import MessageRead


class ChildTokenCreate(BaseModel):
    expiry: TokenExpiry = TokenExpiry.SHORT


class ChildTokenRead(BaseModel):
    """Token metadata. The raw token is never readable after creation."""

    id: UUID
    case_id: UUID
    status: TokenStatus
    created_at: datetime
    expires_at: datetime
    used_at: datetime | None = None

    model_config = {"from_attributes": True}


class ChildTokenCreated(ChildTokenRead):
    token: str
    deep_link: str
    access_url: str


class ChildAccessRequest(BaseModel):
    token: str | None = Field(None, max_length=128)
    device_info: dict = Field(default_factory=dict)


class ChildAccessResponse(BaseModel):
    valid: bool = True
    case_number: str
    expires_at: datetime


class ChildHousehold(BaseModel):
    name: str | None = None
    carers: list[str | None]


class ChildSocialWorker(BaseModel):
    name: str | None = None
    bio: str | None = None


class ChildMedia(BaseModel):
    id: UUID
    file_name: str
    media_type: str
    description: str | None = None
    url: str


class ChildView(BaseModel):
    case_number: str
    expires_at: datetime
    household: ChildHousehold
    social_worker: ChildSocialWorker
    media: list[ChildMedia]
    messages: list[MessageRead]
