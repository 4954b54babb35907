"""
Approval Request Repository.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from sqlalchemy import Select, select, update, func

from rest_api.models import ApprovalRequest
from shared.config.constants import ApprovalStatus
from .base import BaseRepository, RepositoryFilters


@dataclass
class ApprovalFilters(RepositoryFilters):
    """Filters specific to approval requests."""

    status: str | None = None
    type: str | None = None
    requested_by: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    # Only requests whose expires_at is after this instant
    not_expired_at: datetime | None = None


class ApprovalRepository(BaseRepository[ApprovalRequest]):

    @property
    def model(self) -> type[ApprovalRequest]:
        return ApprovalRequest

    def _base_query(self) -> Select:
        return select(ApprovalRequest).order_by(ApprovalRequest.created_at.desc())

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        if not isinstance(filters, ApprovalFilters):
            return query

        if filters.status:
            query = query.where(ApprovalRequest.status == filters.status)
        if filters.type:
            query = query.where(ApprovalRequest.type == filters.type)
        if filters.requested_by:
            query = query.where(ApprovalRequest.requested_by == filters.requested_by)
        if filters.created_from:
            query = query.where(ApprovalRequest.created_at >= filters.created_from)
        if filters.created_to:
            query = query.where(ApprovalRequest.created_at <= filters.created_to)
        if filters.not_expired_at:
            query = query.where(ApprovalRequest.expires_at > filters.not_expired_at)

        return query

    def decide(
        self,
        approval_id: str,
        decision: str,
        reviewed_by: str,
        reviewed_at: datetime,
        notes: str | None,
    ) -> bool:
        """
        Record a review decision with a single conditional write.

        Matches only while the request is still pending, so of two concurrent
        reviewers exactly one gets True.
        """
        result = self._db.execute(
            update(ApprovalRequest)
            .where(
                ApprovalRequest.id == approval_id,
                ApprovalRequest.status == ApprovalStatus.PENDING,
            )
            .values(
                status=decision,
                reviewed_by=reviewed_by,
                reviewed_at=reviewed_at,
                review_notes=notes,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    def find_approved_for_reference(
        self,
        reference_type: str,
        reference_id: str,
        types: list[str],
    ) -> Sequence[ApprovalRequest]:
        """Approved requests of the given types, oldest decision first."""
        query = (
            select(ApprovalRequest)
            .where(
                ApprovalRequest.reference_type == reference_type,
                ApprovalRequest.reference_id == reference_id,
                ApprovalRequest.status == ApprovalStatus.APPROVED,
                ApprovalRequest.type.in_(types),
            )
            .order_by(ApprovalRequest.reviewed_at.asc())
        )
        return self._db.execute(query).scalars().all()

    def count_by_status(self, start: datetime, end: datetime) -> dict[str, int]:
        rows = self._db.execute(
            select(ApprovalRequest.status, func.count())
            .where(ApprovalRequest.created_at >= start, ApprovalRequest.created_at <= end)
            .group_by(ApprovalRequest.status)
        ).all()
        return {status: count for status, count in rows}

    def approved_totals_by_type(self, start: datetime, end: datetime) -> list[tuple[str, int, int]]:
        """(type, approved count, approved amount in cents) per type."""
        rows = self._db.execute(
            select(
                ApprovalRequest.type,
                func.count(),
                func.coalesce(func.sum(ApprovalRequest.amount_cents), 0),
            )
            .where(
                ApprovalRequest.status == ApprovalStatus.APPROVED,
                ApprovalRequest.created_at >= start,
                ApprovalRequest.created_at <= end,
            )
            .group_by(ApprovalRequest.type)
            .order_by(ApprovalRequest.type)
        ).all()
        return [(type_, count, int(amount)) for type_, count, amount in rows]
