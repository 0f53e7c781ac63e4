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
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from whosehouse.db.base import Base
from whosehouse.db.enums import MessageStatus, TokenStatus

if TYPE_CHECKING:
    from whosehouse.db.models import Case, Profile


class ChildAccessToken(Base):
    """
    Opaque, expiring credential giving a child read access to their case.

    Only the sha256 of the raw token is stored.
    """

    __tablename__ = "child_access_tokens"
    __table_args__ = (
        CheckConstraint("expires_at > created_at", name="ck_child_tokens_valid_expiry"),
        Index("idx_child_tokens_case_status", "case_id", "status"),
        Index("idx_child_tokens_expires", "expires_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), default=TokenStatus.ACTIVE.value, nullable=False
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(nullable=True)
    device_info: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    case: Mapped["Case"] = relationship()


class Message(Base):
    """
    A message in a case thread.

    sender_id is NULL when the child wrote it through an access token; the
    token is then recorded in child_token_id.
    """

    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint(
            "sender_id IS NOT NULL OR child_token_id IS NOT NULL",
            name="ck_messages_valid_parties",
        ),
        Index("idx_messages_case_sent", "case_id", "sent_at"),
        Index("idx_messages_recipient_status", "recipient_id", "status"),
        Index("idx_messages_sender", "sender_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    recipient_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    child_token_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("child_access_tokens.id", ondelete="SET NULL"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_urgent: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=MessageStatus.SENT.value, nullable=False
    )
    sent_at: Mapped[datetime] = mapped_column(nullable=False)
    delivered_at: Mapped[datetime | None] = mapped_column(nullable=True)
    read_at: Mapped[datetime | None] = mapped_column(nullable=True)

    case: Mapped["Case"] = relationship()
    sender: Mapped["Profile"] = relationship(foreign_keys=[sender_id])
    recipient: Mapped["Profile"] = relationship(foreign_keys=[recipient_id])
