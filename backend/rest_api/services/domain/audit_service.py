"""
Audit Trail Domain Service.

Append-only record of privileged mutations. Entries are validated completely
before anything is written; a write that fails is rolled back and surfaces as
LOG_FAILED so an unaudited change is never reported as success.

Other services write their audit entry inside their own transaction by
passing commit=False and committing themselves.
"""

import json
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rest_api.models import AuditLog, as_utc, utcnow
from rest_api.repositories import AuditRepository, AuditFilters, UserRepository
from shared.config.constants import AuditAction, AuditResource, Limits
from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.utils.exceptions import AuditLogError, DatabaseError, ErrorKind, NotFoundError, PolicyError
from shared.utils.schemas import AuditEntryInput, AuditLogListResponse, AuditLogOutput, AuditSummary
from shared.utils.validators import has_circular_reference, is_uuid

logger = get_logger(__name__)


def serialize_model(obj: Any, include: list[str] | None = None) -> dict:
    """
    Snapshot a SQLAlchemy model's columns for an audit entry.

    Datetimes become ISO strings so the snapshot is plain JSON.
    """
    result = {}
    for column in obj.__table__.columns:
        if include is not None and column.name not in include:
            continue
        value = getattr(obj, column.name)
        if isinstance(value, datetime):
            value = value.isoformat()
        result[column.name] = value
    return result


class AuditService:
    """Writes and queries the audit trail."""

    def __init__(self, db: Session):
        self._db = db
        self._repo = AuditRepository(db)
        self._users = UserRepository(db)

    # =========================================================================
    # Writing
    # =========================================================================

    def log_activity(self, entry: AuditEntryInput, commit: bool = True) -> AuditLog:
        """
        Validate and persist one audit entry.

        Raises:
            AuditLogError: INVALID_* / CIRCULAR_REFERENCE before any write,
                LOG_FAILED (500) if persisting fails.
        """
        self._validate_entry(entry)

        row = AuditLog(
            user_id=entry.user_id,
            action=entry.action,
            resource=entry.resource,
            resource_id=entry.resource_id,
            old_value=_dump(entry.old_value),
            new_value=_dump(entry.new_value),
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
        )

        try:
            self._db.add(row)
            self._db.flush()
            if commit:
                self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            raise AuditLogError(
                "Failed to write audit entry",
                code="LOG_FAILED",
                kind=ErrorKind.INTERNAL,
                action=entry.action,
                resource=entry.resource,
                resource_id=entry.resource_id,
                error=str(e),
            )

        return row

    def _validate_entry(self, entry: AuditEntryInput) -> None:
        if entry.user_id is not None and not is_uuid(entry.user_id):
            raise AuditLogError("Invalid user id", code="INVALID_USER_ID", user_id=entry.user_id)
        if entry.action not in AuditAction.ALL:
            raise AuditLogError(f"Invalid action '{entry.action}'", code="INVALID_ACTION")
        if entry.resource not in AuditResource.ALL:
            raise AuditLogError(f"Invalid resource '{entry.resource}'", code="INVALID_RESOURCE")
        if entry.resource_id is not None and not str(entry.resource_id).strip():
            raise AuditLogError("Resource id must not be empty", code="INVALID_RESOURCE_ID")

        for field, value, code in (
            ("old_value", entry.old_value, "INVALID_OLD_VALUE"),
            ("new_value", entry.new_value, "INVALID_NEW_VALUE"),
        ):
            if value is None:
                continue
            if not isinstance(value, Mapping):
                raise AuditLogError(f"{field} must be an object", code=code, field=field)
            if has_circular_reference(value):
                raise AuditLogError(
                    f"{field} contains a circular reference",
                    code="CIRCULAR_REFERENCE",
                    field=field,
                )

    # Convenience writers

    def log_create(self, user_id, resource: str, resource_id: str, new_value: Mapping | None = None,
                   commit: bool = True, **meta: Any) -> AuditLog:
        return self.log_activity(
            AuditEntryInput(
                action=AuditAction.CREATE, resource=resource, user_id=user_id,
                resource_id=resource_id, new_value=new_value, **meta,
            ),
            commit=commit,
        )

    def log_update(self, user_id, resource: str, resource_id: str, old_value: Mapping | None,
                   new_value: Mapping | None, commit: bool = True, **meta: Any) -> AuditLog:
        return self.log_activity(
            AuditEntryInput(
                action=AuditAction.UPDATE, resource=resource, user_id=user_id,
                resource_id=resource_id, old_value=old_value, new_value=new_value, **meta,
            ),
            commit=commit,
        )

    def log_delete(self, user_id, resource: str, resource_id: str, old_value: Mapping | None = None,
                   commit: bool = True, **meta: Any) -> AuditLog:
        return self.log_activity(
            AuditEntryInput(
                action=AuditAction.DELETE, resource=resource, user_id=user_id,
                resource_id=resource_id, old_value=old_value, **meta,
            ),
            commit=commit,
        )

    def log_login(self, user_id: str, commit: bool = True, **meta: Any) -> AuditLog:
        return self.log_activity(
            AuditEntryInput(
                action=AuditAction.LOGIN, resource=AuditResource.USER,
                user_id=user_id, resource_id=user_id, **meta,
            ),
            commit=commit,
        )

    def log_logout(self, user_id: str, commit: bool = True, **meta: Any) -> AuditLog:
        return self.log_activity(
            AuditEntryInput(
                action=AuditAction.LOGOUT, resource=AuditResource.USER,
                user_id=user_id, resource_id=user_id, **meta,
            ),
            commit=commit,
        )

    def log_role_change(self, actor_id: str, target_user_id: str, old_role: str, new_role: str,
                        commit: bool = True, **meta: Any) -> AuditLog:
        return self.log_activity(
            AuditEntryInput(
                action=AuditAction.ROLE_CHANGE, resource=AuditResource.USER,
                user_id=actor_id, resource_id=target_user_id,
                old_value={"role": old_role}, new_value={"role": new_role}, **meta,
            ),
            commit=commit,
        )

    def log_settings_update(self, user_id: str, old_value: Mapping | None, new_value: Mapping | None,
                            settings_key: str = "global", commit: bool = True, **meta: Any) -> AuditLog:
        return self.log_activity(
            AuditEntryInput(
                action=AuditAction.SETTINGS_UPDATE, resource=AuditResource.SETTINGS,
                user_id=user_id, resource_id=settings_key,
                old_value=old_value, new_value=new_value, **meta,
            ),
            commit=commit,
        )

    # =========================================================================
    # Reading
    # =========================================================================

    def get_logs(
        self,
        user_id: str | None = None,
        action: str | None = None,
        resource: str | None = None,
        resource_id: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = Limits.AUDIT_DEFAULT_LIMIT,
        offset: int = 0,
    ) -> AuditLogListResponse:
        """Filtered page of entries, newest first, with the total match count."""
        start, end = as_utc(start), as_utc(end)
        if not 1 <= limit <= Limits.AUDIT_MAX_LIMIT:
            raise AuditLogError(
                f"limit must be between 1 and {Limits.AUDIT_MAX_LIMIT}", code="INVALID_LIMIT", limit=limit
            )
        if offset < 0:
            raise AuditLogError("offset must not be negative", code="INVALID_OFFSET", offset=offset)
        if start and end and start > end:
            raise AuditLogError("start must not be after end", code="INVALID_DATE_RANGE")
        if user_id is not None and not is_uuid(user_id):
            raise AuditLogError("Invalid user id", code="INVALID_USER_ID", user_id=user_id)
        if action is not None and action not in AuditAction.ALL:
            raise AuditLogError(f"Invalid action '{action}'", code="INVALID_ACTION")
        if resource is not None and resource not in AuditResource.ALL:
            raise AuditLogError(f"Invalid resource '{resource}'", code="INVALID_RESOURCE")

        filters = AuditFilters(
            limit=limit,
            offset=offset,
            user_id=user_id,
            action=action,
            resource=resource,
            resource_id=resource_id,
            start=start,
            end=end,
        )
        rows = self._repo.find_all(filters)
        return AuditLogListResponse(
            items=self._to_outputs(rows),
            total=self._repo.count(filters),
            limit=limit,
            offset=offset,
        )

    def get_log(self, log_id: str) -> AuditLogOutput:
        row = self._repo.find_by_id(log_id)
        if row is None:
            raise NotFoundError("Audit log", log_id, code="LOG_NOT_FOUND")
        return self._to_outputs([row])[0]

    def get_logs_by_resource(
        self, resource: str, resource_id: str, limit: int = Limits.AUDIT_DEFAULT_LIMIT
    ) -> list[AuditLogOutput]:
        """History of one resource, newest first."""
        return self.get_logs(resource=resource, resource_id=resource_id, limit=limit).items

    def get_user_activity(self, user_id: str, limit: int = Limits.AUDIT_DEFAULT_LIMIT) -> list[AuditLogOutput]:
        return self.get_logs(user_id=user_id, limit=limit).items

    def get_summary(self, start: datetime | None = None, end: datetime | None = None) -> AuditSummary:
        start, end = as_utc(start), as_utc(end)
        if start and end and start > end:
            raise AuditLogError("start must not be after end", code="INVALID_DATE_RANGE")
        by_action = self._repo.count_grouped(AuditLog.action, start, end)
        by_resource = self._repo.count_grouped(AuditLog.resource, start, end)
        return AuditSummary(
            start=start,
            end=end,
            total=sum(by_action.values()),
            by_action=by_action,
            by_resource=by_resource,
        )

    def _to_outputs(self, rows) -> list[AuditLogOutput]:
        users = self._users.get_many(row.user_id for row in rows)
        outputs = []
        for row in rows:
            user = users.get(row.user_id)
            outputs.append(
                AuditLogOutput(
                    id=row.id,
                    user_id=row.user_id,
                    user_name=user.full_name if user else None,
                    user_email=user.email if user else None,
                    action=row.action,
                    resource=row.resource,
                    resource_id=row.resource_id,
                    old_value=_load(row.old_value),
                    new_value=_load(row.new_value),
                    ip_address=row.ip_address,
                    user_agent=row.user_agent,
                    created_at=row.created_at,
                )
            )
        return outputs

    # =========================================================================
    # Retention
    # =========================================================================

    def cleanup_old_logs(self, days: int) -> int:
        """
        Delete entries older than `days` days.

        Raises:
            PolicyError: INVALID_DAYS if days < 1, RETENTION_POLICY if days is
                below the retention floor (30 by default).
        """
        if days < 1:
            raise PolicyError("days must be at least 1", code="INVALID_DAYS", days=days)
        if days < settings.audit_retention_floor_days:
            raise PolicyError(
                f"Audit logs must be kept for at least {settings.audit_retention_floor_days} days",
                code="RETENTION_POLICY",
                days=days,
            )

        cutoff = utcnow() - timedelta(days=days)
        try:
            deleted = self._repo.delete_older_than(cutoff)
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            raise DatabaseError("audit log cleanup", error=str(e))

        logger.info("Old audit logs deleted", days=days, deleted=deleted)
        return deleted


def _dump(value: Mapping | None) -> str | None:
    if value is None:
        return None
    return json.dumps(dict(value), default=str)


def _load(value: str | None) -> Any:
    if value is None:
        return None
    return json.loads(value)
