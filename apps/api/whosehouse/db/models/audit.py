"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Index, String, Uuid, event, func
from sqlalchemy.orm import Mapped, mapped_column

from whosehouse.db.base import Base


class AuditLogImmutableError(Exception):
    """Raised when code tries to change or remove an audit entry."""


class AuditLog(Base):
    """
    Append-only audit trail.

    Entries are written in the same transaction as the action they record.
    Updates and deletes are refused at flush time.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_org_created", "organization_id", "created_at"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_actor", "actor_user_id"),
        Index("idx_audit_target", "target_type", "target_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    target_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    target_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


@event.listens_for(AuditLog, "before_update")
def _refuse_audit_update(mapper, connection, target):
    raise AuditLogImmutableError("Audit logs are immutable and cannot be modified")


@event.listens_for(AuditLog, "before_delete")
def _refuse_audit_delete(mapper, connection, target):
    raise AuditLogImmutableError("Audit logs are immutable and cannot be deleted")
