"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from whosehouse.db.base import Base
from whosehouse.db.enums import AvailabilityStatus, InvitationStatus, PlacementType

if TYPE_CHECKING:
    from whosehouse.db.models import Organization, Profile


def _all_placement_types() -> list[str]:
    return [p.value for p in PlacementType]


class Household(Base):
    """
    A foster family unit with shared bedroom capacity.

    placement_version increments on every accepted placement and is the
    compare-and-swap guard against two acceptances landing at once.
    """

    __tablename__ = "households"
    __table_args__ = (
        CheckConstraint("total_bedrooms >= 1", name="ck_households_min_bedrooms"),
        Index("idx_households_org_status", "organization_id", "availability_status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Address (shared by every carer in the household)
    address_line1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address_line2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    postcode: Mapped[str | None] = mapped_column(String(20), nullable=True)
    country: Mapped[str] = mapped_column(String(100), default="United Kingdom", nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Capacity
    total_bedrooms: Mapped[int] = mapped_column(
        Integer, default=1, server_default=text("1"), nullable=False
    )
    allows_house_sharing: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    accepted_placement_types: Mapped[list] = mapped_column(
        JSON, default=_all_placement_types, nullable=False
    )

    # Availability
    availability_status: Mapped[str] = mapped_column(
        String(20), default=AvailabilityStatus.AVAILABLE.value, nullable=False
    )
    away_from: Mapped[datetime | None] = mapped_column(nullable=True)
    away_until: Mapped[datetime | None] = mapped_column(nullable=True)
    availability_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    placement_version: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    organization: Mapped["Organization"] = relationship()
    members: Mapped[list["Profile"]] = relationship(back_populates="household")


class HouseholdInvitation(Base):
    """Invitation for another carer to join a household (7-day expiry)."""

    __tablename__ = "household_invitations"
    __table_args__ = (
        # One pending invitation per household/email
        Index(
            "uq_household_invitation_pending",
            "household_id",
            "email",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("idx_household_invitations_email", "email"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("households.id", ondelete="CASCADE"), nullable=False
    )
    invited_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=InvitationStatus.PENDING.value, nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    household: Mapped["Household"] = relationship()
