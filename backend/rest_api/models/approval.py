"""
Approval Request Model.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, uuid_pk, utcnow


class ApprovalRequest(Base):
    """
    A staff request for a privileged financial action.

    Created pending; a single conditional write moves it to approved or
    rejected, after which the row is never modified again. Expired pending
    requests stay in the table and are only hidden from the active queue.
    """

    __tablename__ = "approval_request"

    id: Mapped[str] = uuid_pk()
    type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", index=True)

    amount_cents: Mapped[Optional[int]] = mapped_column(Integer)
    original_amount_cents: Mapped[Optional[int]] = mapped_column(Integer)
    percentage: Mapped[Optional[float]] = mapped_column(Float)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text)

    # What the request applies to, e.g. ("order", <order id>)
    reference_type: Mapped[Optional[str]] = mapped_column(String(32))
    reference_id: Mapped[Optional[str]] = mapped_column(String(36))

    requested_by: Mapped[str] = mapped_column(
        String(36), ForeignKey("app_user.id"), nullable=False, index=True
    )
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("app_user.id"))
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    review_notes: Mapped[Optional[str]] = mapped_column(String(500))

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )

    __table_args__ = (
        CheckConstraint(
            "percentage IS NULL OR (percentage >= 0 AND percentage <= 100)",
            name="chk_approval_percentage_range",
        ),
        Index("ix_approval_status_expires", "status", "expires_at"),
        Index("ix_approval_reference", "reference_type", "reference_id"),
    )

    def __repr__(self) -> str:
        return f"<ApprovalRequest(id={self.id}, type='{self.type}', status='{self.status}')>"
