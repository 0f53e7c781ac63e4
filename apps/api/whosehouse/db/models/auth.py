"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import date, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
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
from whosehouse.db.enums import ContactPreference

if TYPE_CHECKING:
    from whosehouse.db.models import Household


class Organization(Base):
    """
    A fostering agency or local authority.

    Profiles, households and cases belong to exactly one organization and
    every query is scoped by organization_id.
    """

    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )


class Profile(Base):
    """
    An account: social worker, foster carer or admin.

    Foster carers point at their household; at most one member of a
    household is the primary carer. token_version is bumped to revoke
    every outstanding session for the account.
    """

    __tablename__ = "profiles"
    __table_args__ = (
        Index("idx_profiles_org_role", "organization_id", "role"),
        Index("idx_profiles_household", "household_id"),
        Index("idx_profiles_active", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    household_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("households.id", ondelete="SET NULL"), nullable=True
    )
    is_primary_carer: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )

    emergency_contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    emergency_contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    emergency_contact_relationship: Mapped[str | None] = mapped_column(String(100), nullable=True)
    preferred_contact: Mapped[str] = mapped_column(
        String(10), default=ContactPreference.APP.value, nullable=False
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("true"), nullable=False
    )
    token_version: Mapped[int] = mapped_column(
        Integer, default=1, server_default=text("1"), nullable=False
    )
    last_login: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    organization: Mapped["Organization"] = relationship()
    household: Mapped["Household"] = relationship(back_populates="members")
    social_worker_profile: Mapped["SocialWorkerProfile"] = relationship(
        back_populates="profile", uselist=False, cascade="all, delete-orphan"
    )


class SocialWorkerProfile(Base):
    """Professional details shown to carers and children for a social worker."""

    __tablename__ = "social_worker_profiles"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), unique=True, nullable=False
    )

    # Employment
    employer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    team_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    office_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    manager_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    work_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Professional registration
    registration_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    registration_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Availability
    is_on_leave: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    leave_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    leave_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    out_of_office_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Visible to carers and children
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    specialisms: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    service_areas: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    profile: Mapped["Profile"] = relationship(back_populates="social_worker_profile")
