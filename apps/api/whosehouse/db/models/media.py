"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from whosehouse.db.base import Base
from whosehouse.db.enums import MediaType


class CaseMedia(Base):
    """
    Uploaded file attached to a case or a household (house photos).

    Bytes live in the storage backend under storage_key; only metadata
    is stored here.
    """

    __tablename__ = "case_media"
    __table_args__ = (
        CheckConstraint(
            "case_id IS NOT NULL OR household_id IS NOT NULL",
            name="ck_case_media_owner",
        ),
        Index("idx_case_media_case", "case_id"),
        Index("idx_case_media_household", "household_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    case_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=True
    )
    household_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("households.id", ondelete="CASCADE"), nullable=True
    )
    uploaded_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    storage_key: Mapped[str] = mapped_column(String(500), unique=True, nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    checksum_sha256: Mapped[str] = mapped_column(String(64), nullable=False)
    media_type: Mapped[str] = mapped_column(
        String(20), default=MediaType.OTHER.value, nullable=False
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_visible_to_child: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    uploaded_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
