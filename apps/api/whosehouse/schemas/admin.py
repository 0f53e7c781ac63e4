"""Pydantic schemas for organization administration."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from whosehouse.db.enums import Role


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., max_length=128)
    full_name: str = Field(..., min_length=1, max_length=255)
    role: Role
    phone_number: str | None = Field(None, max_length=50)


class UserUpdate(BaseModel):
    full_name: str | None = Field(None, min_length=1, max_length=255)
    phone_number: str | None = Field(None, max_length=50)
    role: Role | None = None


class DeactivateRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class UserRead(BaseModel):
    id: UUID
    email: str
    full_name: str
    role: Role
    phone_number: str | None = None
    household_id: UUID | None = None
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    items: list[UserRead]
    total: int


class AssignmentCreate(BaseModel):
    social_worker_id: UUID
    foster_carer_id: UUID


class OrganizationStats(BaseModel):
    users_by_role: dict[str, int]
    active_users: int
    inactive_users: int
    cases_by_status: dict[str, int]
    messages_last_7_days: int


class AuditLogRead(BaseModel):
    id: UUID
    action: str
    actor_user_id: UUID | None = None
    target_type: str | None = None
    target_id: UUID | None = None
    details: dict
    ip_address: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogListResponse(BaseModel):
    items: list[AuditLogRead]
    total: int
