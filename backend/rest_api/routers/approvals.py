"""
Approval router.
Staff file requests; managers and admins list and review them.
"""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query, status

from rest_api.routers._common import Pagination, get_approval_service, get_pagination
from rest_api.services.domain import ApprovalService
from shared.config.constants import REVIEWER_ROLES, STAFF_ROLES
from shared.security.auth import current_user_context, require_roles
from shared.utils.schemas import (
    ApprovalCreate,
    ApprovalListResponse,
    ApprovalOutput,
    ApprovalStats,
    ReviewDecision,
)


router = APIRouter(prefix="/api/approvals", tags=["approvals"])


@router.post("", response_model=ApprovalOutput, status_code=status.HTTP_201_CREATED)
def create_approval_request(
    body: ApprovalCreate,
    service: ApprovalService = Depends(get_approval_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> ApprovalOutput:
    require_roles(ctx, STAFF_ROLES)
    return service.create_request(body, requested_by=ctx["sub"])


@router.get("/pending", response_model=ApprovalListResponse)
def list_pending_approvals(
    type: str | None = None,
    pagination: Pagination = Depends(get_pagination),
    service: ApprovalService = Depends(get_approval_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> ApprovalListResponse:
    require_roles(ctx, REVIEWER_ROLES)
    return service.list_pending(type=type, limit=pagination.limit, offset=pagination.offset)


@router.get("/stats", response_model=ApprovalStats)
def get_approval_stats(
    start: datetime | None = None,
    end: datetime | None = None,
    service: ApprovalService = Depends(get_approval_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> ApprovalStats:
    require_roles(ctx, REVIEWER_ROLES)
    return service.get_stats(start, end)


@router.get("", response_model=ApprovalListResponse)
def list_approval_requests(
    status_filter: str | None = Query(default=None, alias="status"),
    type: str | None = None,
    requested_by: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    pagination: Pagination = Depends(get_pagination),
    service: ApprovalService = Depends(get_approval_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> ApprovalListResponse:
    require_roles(ctx, REVIEWER_ROLES)
    return service.list_requests(
        status=status_filter,
        type=type,
        requested_by=requested_by,
        start=start,
        end=end,
        limit=pagination.limit,
        offset=pagination.offset,
    )


@router.post("/{approval_id}/review", response_model=ApprovalOutput)
def review_approval_request(
    approval_id: str,
    body: ReviewDecision,
    service: ApprovalService = Depends(get_approval_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> ApprovalOutput:
    require_roles(ctx, REVIEWER_ROLES)
    return service.review_request(approval_id, body.decision, body.notes, reviewed_by=ctx["sub"])
