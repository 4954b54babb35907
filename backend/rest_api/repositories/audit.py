"""
Audit Log Repository.
"""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import Select, select, delete, func

from rest_api.models import AuditLog
from shared.config.constants import Limits
from .base import BaseRepository, RepositoryFilters


@dataclass
class AuditFilters(RepositoryFilters):
    """Filters specific to audit entries."""

    limit: int = Limits.AUDIT_DEFAULT_LIMIT
    max_limit: int = Limits.AUDIT_MAX_LIMIT
    user_id: str | None = None
    action: str | None = None
    resource: str | None = None
    resource_id: str | None = None
    start: datetime | None = None
    end: datetime | None = None


class AuditRepository(BaseRepository[AuditLog]):
    """Newest entries first."""

    @property
    def model(self) -> type[AuditLog]:
        return AuditLog

    def _base_query(self) -> Select:
        return select(AuditLog).order_by(AuditLog.created_at.desc())

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        if not isinstance(filters, AuditFilters):
            return query

        if filters.user_id:
            query = query.where(AuditLog.user_id == filters.user_id)
        if filters.action:
            query = query.where(AuditLog.action == filters.action)
        if filters.resource:
            query = query.where(AuditLog.resource == filters.resource)
        if filters.resource_id:
            query = query.where(AuditLog.resource_id == filters.resource_id)
        if filters.start:
            query = query.where(AuditLog.created_at >= filters.start)
        if filters.end:
            query = query.where(AuditLog.created_at <= filters.end)

        return query

    def count_grouped(self, column, start: datetime | None, end: datetime | None) -> dict[str, int]:
        query = select(column, func.count()).group_by(column)
        if start:
            query = query.where(AuditLog.created_at >= start)
        if end:
            query = query.where(AuditLog.created_at <= end)
        return {key: count for key, count in self._db.execute(query).all()}

    def delete_older_than(self, cutoff: datetime) -> int:
        """Delete entries created before cutoff. Returns rows deleted."""
        result = self._db.execute(
            delete(AuditLog)
            .where(AuditLog.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
