"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from whosehouse.db.base import Base
from whosehouse.db.enums import CaseStatus, PlacementRequestStatus, PlacementType

if TYPE_CHECKING:
    from whosehouse.db.models import Household, Organization, Profile


class Case(Base):
    """
    A child's placement record.

    Created pending by a social worker, activated when a household accepts a
    placement request, closed when ended or superseded. A household holds at
    most one active case.
    """

    __tablename__ = "cases"
    __table_args__ = (
        # Only one active case per household
        Index(
            "uq_one_active_case_per_household",
            "household_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index("idx_cases_org_status", "organization_id", "status"),
        Index("idx_cases_social_worker", "social_worker_id"),
        Index("idx_cases_foster_carer", "foster_carer_id"),
        Index("idx_cases_household", "household_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    case_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=CaseStatus.PENDING.value, nullable=False
    )

    social_worker_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    foster_carer_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    household_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("households.id", ondelete="SET NULL"), nullable=True
    )

    # Placement details (anonymized child descriptors only)
    placement_type: Mapped[str] = mapped_column(
        String(20), default=PlacementType.LONG_TERM.value, nullable=False
    )
    child_can_share: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    child_age_range: Mapped[str | None] = mapped_column(String(20), nullable=True)
    child_gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    expected_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # Relationships
    organization: Mapped["Organization"] = relationship()
    social_worker: Mapped["Profile"] = relationship(foreign_keys=[social_worker_id])
    foster_carer: Mapped["Profile"] = relationship(foreign_keys=[foster_carer_id])
    household: Mapped["Household"] = relationship()


class PlacementRequest(Base):
    """
    Time-boxed offer from a social worker to a household to take a case.

    Only pending requests are actionable, and only before expires_at.
    """

    __tablename__ = "placement_requests"
    __table_args__ = (
        # Only one pending request per case/household pair
        Index(
            "uq_pending_request_per_case_household",
            "case_id",
            "household_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("idx_placement_requests_case", "case_id"),
        Index("idx_placement_requests_household_status", "household_id", "status"),
        Index("idx_placement_requests_requested_by", "requested_by"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False
    )
    household_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("households.id", ondelete="CASCADE"), nullable=False
    )
    requested_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), default=PlacementRequestStatus.PENDING.value, nullable=False
    )

    placement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    expected_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expected_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    responded_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    response_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)

    case: Mapped["Case"] = relationship()
    household: Mapped["Household"] = relationship()
    requester: Mapped["Profile"] = relationship(foreign_keys=[requested_by])
    responder: Mapped["Profile"] = relationship(foreign_keys=[responded_by])
