"""Pydantic schemas for profiles and social worker details."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from whosehouse.db.enums import ContactPreference, Role


class ProfileRead(BaseModel):
    id: UUID
    email: str
    full_name: str
    role: Role
    organization_id: UUID
    avatar_url: str | None = None
    phone_number: str | None = None
    household_id: UUID | None = None
    is_primary_carer: bool
    emergency_contact_name: str | None = None
    emergency_contact_phone: str | None = None
    emergency_contact_relationship: str | None = None
    preferred_contact: ContactPreference
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ProfileSummary(BaseModel):
    """Minimal profile for participant lists."""

    id: UUID
    full_name: str
    role: Role
    avatar_url: str | None = None
    is_primary_carer: bool = False

    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    """Partial update of the caller's own profile."""

    full_name: str | None = Field(None, min_length=1, max_length=255)
    phone_number: str | None = Field(None, max_length=50)
    avatar_url: str | None = Field(None, max_length=500)
    emergency_contact_name: str | None = Field(None, max_length=255)
    emergency_contact_phone: str | None = Field(None, max_length=50)
    emergency_contact_relationship: str | None = Field(None, max_length=100)
    preferred_contact: ContactPreference | None = None


class SocialWorkerProfileFields(BaseModel):
    employer_name: str | None = Field(None, max_length=255)
    team_name: str | None = Field(None, max_length=255)
    office_location: str | None = Field(None, max_length=255)
    manager_name: str | None = Field(None, max_length=255)
    work_phone: str | None = Field(None, max_length=50)
    registration_number: str | None = Field(None, max_length=50)
    registration_expiry: date | None = None
    is_on_leave: bool = False
    leave_start_date: date | None = None
    leave_end_date: date | None = None
    out_of_office_message: str | None = Field(None, max_length=2000)
    bio: str | None = Field(None, max_length=4000)
    specialisms: list[str] = Field(default_factory=list)
    service_areas: list[str] = Field(default_factory=list)


class SocialWorkerProfileRead(SocialWorkerProfileFields):
    id: UUID
    profile_id: UUID
    updated_at: datetime

    model_config = {"from_attributes": True}


class AssignedSocialWorker(BaseModel):
    """The carer's social worker with the fields shown to carers."""

    case_id: UUID
    case_number: str
    social_worker_id: UUID
    full_name: str
    email: str
    phone_number: str | None = None
    avatar_url: str | None = None
    team_name: str | None = None
    office_location: str | None = None
    work_phone: str | None = None
    is_on_leave: bool | None = None
    out_of_office_message: str | None = None
    bio: str | None = None
    specialisms: list[str] | None = None
