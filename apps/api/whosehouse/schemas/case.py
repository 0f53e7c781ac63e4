"""Pydantic schemas for cases and placement requests."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from whosehouse.db.enums import CaseStatus, PlacementRequestStatus, PlacementType
from whosehouse.schemas.profile import ProfileSummary


class CaseCreate(BaseModel):
    """Step 1 of the placement flow: the child's (anonymized) needs."""

    placement_type: PlacementType = PlacementType.LONG_TERM
    child_can_share: bool = True
    child_age_range: str | None = Field(None, max_length=20)
    child_gender: str | None = Field(None, max_length=20)
    internal_notes: str | None = Field(None, max_length=10000)
    expected_end_date: date | None = None


class CaseUpdate(BaseModel):
    placement_type: PlacementType | None = None
    child_can_share: bool | None = None
    child_age_range: str | None = Field(None, max_length=20)
    child_gender: str | None = Field(None, max_length=20)
    internal_notes: str | None = Field(None, max_length=10000)
    expected_end_date: date | None = None


class CaseRead(BaseModel):
    id: UUID
    case_number: str
    status: CaseStatus
    social_worker_id: UUID | None = None
    foster_carer_id: UUID | None = None
    household_id: UUID | None = None
    placement_type: PlacementType
    child_can_share: bool
    child_age_range: str | None = None
    child_gender: str | None = None
    expected_end_date: date | None = None
    internal_notes: str | None = None
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None

    model_config = {"from_attributes": True}


class CaseListResponse(BaseModel):
    items: list[CaseRead]
    total: int
    page: int
    per_page: int
    pages: int


class CaseParticipants(BaseModel):
    case_id: UUID
    social_worker: ProfileSummary | None = None
    foster_carer: ProfileSummary | None = None
    household_members: list[ProfileSummary]


class PlacementRequestCreate(BaseModel):
    """Step 3 of the placement flow: offer the case to a household."""

    case_id: UUID
    household_id: UUID
    message: str | None = Field(None, max_length=2000)
    expected_start_date: date | None = None
    expected_end_date: date | None = None


class PlacementResponse(BaseModel):
    response_message: str | None = Field(None, max_length=2000)


class PlacementRequestRead(BaseModel):
    id: UUID
    case_id: UUID
    household_id: UUID
    requested_by: UUID | None = None
    status: PlacementRequestStatus
    placement_type: PlacementType
    expected_start_date: date | None = None
    expected_end_date: date | None = None
    message: str | None = None
    responded_by: UUID | None = None
    response_message: str | None = None
    responded_at: datetime | None = None
    created_at: datetime
    expires_at: datetime

    model_config = {"from_attributes": True}
