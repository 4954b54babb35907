"""
Audit Log Model.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, uuid_pk, utcnow


class AuditLog(Base):
    """
    Records every privileged mutation: who did what, when, and the
    before/after state. Rows are write-once and only removed by retention
    cleanup.
    """

    __tablename__ = "audit_log"

    id: Mapped[str] = uuid_pk()

    # Who made the change (NULL for system actions). No FK: entries outlive users.
    user_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)

    # What was changed
    action: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    resource: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    resource_id: Mapped[Optional[str]] = mapped_column(String(64))

    # Change details (JSON)
    old_value: Mapped[Optional[str]] = mapped_column(Text)
    new_value: Mapped[Optional[str]] = mapped_column(Text)

    # Metadata
    ip_address: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

    __table_args__ = (
        Index("ix_audit_log_resource_ref", "resource", "resource_id"),
    )
