"""
Audit log endpoints.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends

from rest_api.routers._common import get_audit_service
from rest_api.services.domain import AuditService
from shared.config.constants import Limits, REVIEWER_ROLES, Roles
from shared.security.auth import current_user_context, require_roles
from shared.utils.schemas import (
    AuditCleanupResponse,
    AuditLogListResponse,
    AuditLogOutput,
    AuditSummary,
)


router = APIRouter(prefix="/api/audit", tags=["audit"])


@router.get("/logs", response_model=AuditLogListResponse)
def get_audit_logs(
    user_id: str | None = None,
    action: str | None = None,
    resource: str | None = None,
    resource_id: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = Limits.AUDIT_DEFAULT_LIMIT,
    offset: int = 0,
    service: AuditService = Depends(get_audit_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> AuditLogListResponse:
    """
    Get audit log entries with optional filters, newest first.

    limit must be 1..1000 and offset non-negative; violations are reported
    with INVALID_LIMIT / INVALID_OFFSET.
    """
    require_roles(ctx, REVIEWER_ROLES)
    return service.get_logs(
        user_id=user_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    )


@router.get("/summary", response_model=AuditSummary)
def get_audit_summary(
    start: datetime | None = None,
    end: datetime | None = None,
    service: AuditService = Depends(get_audit_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> AuditSummary:
    require_roles(ctx, REVIEWER_ROLES)
    return service.get_summary(start, end)


@router.get("/logs/{log_id}", response_model=AuditLogOutput)
def get_audit_log(
    log_id: str,
    service: AuditService = Depends(get_audit_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> AuditLogOutput:
    require_roles(ctx, REVIEWER_ROLES)
    return service.get_log(log_id)


@router.delete("/logs", response_model=AuditCleanupResponse)
def cleanup_audit_logs(
    days: int,
    service: AuditService = Depends(get_audit_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> AuditCleanupResponse:
    """Delete entries older than `days` days (admins only, minimum 30)."""
    require_roles(ctx, [Roles.SUPER_ADMIN, Roles.ADMIN])
    return AuditCleanupResponse(deleted=service.cleanup_old_logs(days), days=days)
