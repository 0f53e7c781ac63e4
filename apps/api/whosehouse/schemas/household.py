"""Pydantic schemas for households and invitations."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from whosehouse.db.enums import AvailabilityStatus, InvitationStatus, PlacementType
from whosehouse.schemas.profile import ProfileSummary


class HouseholdCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class HouseholdRead(BaseModel):
    id: UUID
    name: str
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    postcode: str | None = None
    country: str
    description: str | None = None
    total_bedrooms: int
    allows_house_sharing: bool
    accepted_placement_types: list[PlacementType]
    availability_status: AvailabilityStatus
    away_from: datetime | None = None
    away_until: datetime | None = None
    availability_notes: str | None = None

    model_config = {"from_attributes": True}


class HouseholdDetail(BaseModel):
    """Household with members, capacity and the current placement."""

    household: HouseholdRead
    members: list[ProfileSummary]
    available_beds: int
    active_case_id: UUID | None = None
    active_case_number: str | None = None


class HouseholdUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    address_line1: str | None = Field(None, max_length=255)
    address_line2: str | None = Field(None, max_length=255)
    city: str | None = Field(None, max_length=100)
    postcode: str | None = Field(None, max_length=20)
    country: str | None = Field(None, max_length=100)
    description: str | None = Field(None, max_length=4000)
    accepted_placement_types: list[PlacementType] | None = Field(None, min_length=1)


class AvailabilityUpdate(BaseModel):
    availability_status: AvailabilityStatus
    away_from: datetime | None = None
    away_until: datetime | None = None
    availability_notes: str | None = Field(None, max_length=2000)

    @model_validator(mode="after")
    def check_window(self):
        if self.away_from and self.away_until and self.away_until < self.away_from:
            raise ValueError("away_until must be after away_from")
        return self


class CapacityUpdate(BaseModel):
    total_bedrooms: int = Field(..., ge=1, le=50)
    allows_house_sharing: bool = True


class InvitationCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)


class InvitationRead(BaseModel):
    id: UUID
    household_id: UUID
    email: str
    status: InvitationStatus
    expires_at: datetime
    accepted_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class TransferPrimaryRequest(BaseModel):
    member_id: UUID


class HouseholdSearchResult(BaseModel):
    household_id: UUID
    household_name: str
    city: str | None = None
    total_bedrooms: int
    available_beds: int
    availability_status: AvailabilityStatus
    allows_house_sharing: bool
    accepted_placement_types: list[PlacementType]
    primary_carer_name: str | None = None
    primary_carer_id: UUID | None = None
    active_cases_count: int
