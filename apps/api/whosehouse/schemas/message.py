"""Pydantic schemas for messages and conversations."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from whosehouse.db.enums import MessageStatus


class MessageCreate(BaseModel):
    recipient_id: UUID
    content: str = Field(..., min_length=1, max_length=20000)
    is_urgent: bool = False


class ChildMessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=20000)


class MessageStatusUpdate(BaseModel):
    status: MessageStatus


class MessageRead(BaseModel):
    id: UUID
    case_id: UUID
    sender_id: UUID | None = None
    recipient_id: UUID | None = None
    from_child: bool = False
    content: str
    is_urgent: bool
    status: MessageStatus
    sent_at: datetime
    delivered_at: datetime | None = None
    read_at: datetime | None = None

    model_config = {"from_attributes": True}


class ConversationRead(BaseModel):
    case_id: UUID
    case_number: str
    case_status: str
    last_message: MessageRead | None = None
    unread_count: int


class UnreadCountResponse(BaseModel):
    total: int
    by_case: dict[str, int]


class MarkReadResponse(BaseModel):
    marked: int
    unread_count: int


class TypingStatusResponse(BaseModel):
    case_id: UUID
    typing_user_ids: list[UUID]
