"""
Approval Domain Service.

Staff file requests for privileged financial actions; managers approve or
reject them. A request moves pending -> approved | rejected exactly once:
the decision is a single conditional UPDATE, so of two concurrent reviewers
one wins and the other gets ALREADY_REVIEWED.

The decision and its audit entry commit together. Applying an approved action
(refund, void, comp, ...) happens afterwards and is best-effort: a failure is
logged and never reverts the decision.

Creating a request writes no audit entry; only the review outcome is audited.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from rest_api.models import ApprovalRequest, as_utc, utcnow
from rest_api.repositories import ApprovalFilters, ApprovalRepository, UserRepository
from rest_api.services.domain.audit_service import AuditService
from rest_api.services.domain.notification_service import NotificationService
from rest_api.services.domain.order_service import OrderService
from shared.config.constants import (
    ApprovalStatus,
    ApprovalType,
    AuditAction,
    AuditResource,
    EventNames,
    Limits,
    REFERENCE_TYPE_ORDER,
    REVIEWER_ROLES,
)
from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.infrastructure.events import EventDispatcher, channel_role, channel_user
from shared.utils.exceptions import ConflictError, NotFoundError, ValidationError
from shared.utils.schemas import (
    ApprovalCreate,
    ApprovalListResponse,
    ApprovalOutput,
    ApprovalStats,
    ApprovalTypeStats,
    AuditEntryInput,
)
from shared.utils.validators import is_uuid

logger = get_logger(__name__)

_APPROVAL_TYPES = {approval_type.value for approval_type in ApprovalType}


class ApprovalService:
    """Domain service for the manager approval gate."""

    def __init__(
        self,
        db: Session,
        dispatcher: EventDispatcher,
        notifier: NotificationService | None = None,
        orders: OrderService | None = None,
    ):
        self._db = db
        self._dispatcher = dispatcher
        self._notifier = notifier
        self._orders = orders or OrderService(db, dispatcher, notifier)
        self._repo = ApprovalRepository(db)
        self._users = UserRepository(db)
        self._audit = AuditService(db)

    # =========================================================================
    # Requests
    # =========================================================================

    def create_request(self, request: ApprovalCreate, requested_by: str) -> ApprovalOutput:
        """
        File a pending request and notify reviewers.

        Raises:
            ValidationError: VALIDATION_ERROR for any malformed field.
        """
        if not is_uuid(requested_by):
            raise ValidationError("Invalid requester id", requested_by=requested_by)
        if request.type not in _APPROVAL_TYPES:
            raise ValidationError(f"Invalid approval type '{request.type}'", field="type")

        description = (request.description or "").strip()
        if not description or len(description) > Limits.DESCRIPTION_MAX_LENGTH:
            raise ValidationError(
                f"Description must be 1 to {Limits.DESCRIPTION_MAX_LENGTH} characters",
                field="description",
            )
        if request.reason is not None and len(request.reason) > Limits.REASON_MAX_LENGTH:
            raise ValidationError(
                f"Reason must be at most {Limits.REASON_MAX_LENGTH} characters", field="reason"
            )
        if request.percentage is not None and not 0 <= request.percentage <= 100:
            raise ValidationError("Percentage must be between 0 and 100", field="percentage")
        for field in ("amount_cents", "original_amount_cents"):
            value = getattr(request, field)
            if value is not None and value < 0:
                raise ValidationError(f"{field} must not be negative", field=field)
        if request.reference_type == REFERENCE_TYPE_ORDER and not request.reference_id:
            raise ValidationError("reference_id is required for order approvals", field="reference_id")

        approval = ApprovalRequest(
            type=request.type,
            status=ApprovalStatus.PENDING,
            description=description,
            reason=request.reason,
            amount_cents=request.amount_cents,
            original_amount_cents=request.original_amount_cents,
            percentage=request.percentage,
            reference_type=request.reference_type,
            reference_id=request.reference_id,
            requested_by=requested_by,
            expires_at=utcnow() + timedelta(hours=settings.approval_ttl_hours),
        )
        self._repo.add(approval)
        safe_commit(self._db)

        output = self._to_outputs([approval])[0]
        logger.info(
            "Approval request created",
            approval_id=output.id,
            type=output.type,
            reference_type=output.reference_type,
            reference_id=output.reference_id,
        )

        payload = {
            "id": output.id,
            "type": output.type,
            "description": output.description,
            "amount_cents": output.amount_cents,
            "requested_by": output.requested_by,
            "requester_name": output.requester_name,
        }
        for role in sorted(REVIEWER_ROLES):
            self._emit(channel_role(role), EventNames.APPROVAL_NEW, payload)

        return output

    def list_pending(
        self,
        type: str | None = None,
        limit: int = Limits.DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> ApprovalListResponse:
        """Pending, unexpired requests, newest first."""
        if type is not None and type not in _APPROVAL_TYPES:
            raise ValidationError(f"Invalid approval type '{type}'", field="type")

        filters = ApprovalFilters(
            limit=limit,
            offset=offset,
            status=ApprovalStatus.PENDING,
            type=type,
            not_expired_at=utcnow(),
        )
        return ApprovalListResponse(
            items=self._to_outputs(self._repo.find_all(filters)),
            total=self._repo.count(filters),
        )

    def list_requests(
        self,
        status: str | None = None,
        type: str | None = None,
        requested_by: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = Limits.DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> ApprovalListResponse:
        """Request history, expired and reviewed ones included."""
        start, end = as_utc(start), as_utc(end)
        if status is not None and status not in ApprovalStatus.ALL:
            raise ValidationError(f"Invalid approval status '{status}'", field="status")
        if type is not None and type not in _APPROVAL_TYPES:
            raise ValidationError(f"Invalid approval type '{type}'", field="type")
        if start and end and start > end:
            raise ValidationError("start must not be after end", code="INVALID_DATE_RANGE")

        filters = ApprovalFilters(
            limit=limit,
            offset=offset,
            status=status,
            type=type,
            requested_by=requested_by,
            created_from=start,
            created_to=end,
        )
        return ApprovalListResponse(
            items=self._to_outputs(self._repo.find_all(filters)),
            total=self._repo.count(filters),
        )

    def get_stats(self, start: datetime | None = None, end: datetime | None = None) -> ApprovalStats:
        """Counts by status and approved totals by type. Defaults to the last 30 days."""
        end = as_utc(end) or utcnow()
        start = as_utc(start) or end - timedelta(days=Limits.APPROVAL_STATS_DEFAULT_DAYS)
        if start > end:
            raise ValidationError("start must not be after end", code="INVALID_DATE_RANGE")

        by_status = self._repo.count_by_status(start, end)
        return ApprovalStats(
            start=start,
            end=end,
            total=sum(by_status.values()),
            pending=by_status.get(ApprovalStatus.PENDING, 0),
            approved=by_status.get(ApprovalStatus.APPROVED, 0),
            rejected=by_status.get(ApprovalStatus.REJECTED, 0),
            by_type=[
                ApprovalTypeStats(type=type_, approved_count=count, approved_amount_cents=amount)
                for type_, count, amount in self._repo.approved_totals_by_type(start, end)
            ],
        )

    # =========================================================================
    # Review
    # =========================================================================

    def review_request(
        self,
        approval_id: str,
        decision: str,
        notes: str | None,
        reviewed_by: str,
    ) -> ApprovalOutput:
        """
        Approve or reject a pending request.

        Raises:
            ValidationError: VALIDATION_ERROR for a bad decision, notes or reviewer.
            NotFoundError: NOT_FOUND if the request does not exist.
            ConflictError: ALREADY_REVIEWED if another review won.
            AuditLogError: LOG_FAILED if the review cannot be audited; the
                decision is rolled back with it.
        """
        if decision not in ApprovalStatus.DECISIONS:
            raise ValidationError(
                f"Decision must be one of {sorted(ApprovalStatus.DECISIONS)}", field="decision"
            )
        if notes is not None and len(notes) > Limits.REVIEW_NOTES_MAX_LENGTH:
            raise ValidationError(
                f"Notes must be at most {Limits.REVIEW_NOTES_MAX_LENGTH} characters", field="notes"
            )
        if not is_uuid(reviewed_by):
            raise ValidationError("Invalid reviewer id", reviewed_by=reviewed_by)

        if not self._repo.decide(approval_id, decision, reviewed_by, utcnow(), notes):
            self._db.rollback()
            if not self._repo.exists(approval_id):
                raise NotFoundError("Approval request", approval_id, code="NOT_FOUND")
            raise ConflictError(
                "Approval request was already reviewed",
                code="ALREADY_REVIEWED",
                approval_id=approval_id,
            )

        approval = self._repo.find_by_id(approval_id)
        self._audit.log_activity(
            AuditEntryInput(
                action=AuditAction.STATUS_CHANGE,
                resource=AuditResource.APPROVAL_REQUEST,
                user_id=reviewed_by,
                resource_id=approval_id,
                old_value={"status": ApprovalStatus.PENDING},
                new_value={
                    "status": decision,
                    "type": approval.type,
                    "notes": notes,
                    "reference_type": approval.reference_type,
                    "reference_id": approval.reference_id,
                },
            ),
            commit=False,
        )
        safe_commit(self._db)

        output = self._to_outputs([self._repo.find_by_id(approval_id)])[0]
        logger.info("Approval request reviewed", approval_id=approval_id, decision=decision, type=output.type)

        if decision == ApprovalStatus.APPROVED:
            self._apply_action(output, reviewed_by)

        self._emit(
            channel_user(output.requested_by),
            EventNames.APPROVAL_REVIEWED,
            {"id": output.id, "type": output.type, "status": output.status, "review_notes": notes},
        )
        if self._notifier is not None:
            self._notifier.notify(
                output.requested_by,
                f"Your {output.type.replace('_', ' ')} request was {decision}",
                {"approval_id": output.id, "status": output.status},
            )
        return output

    def _apply_action(self, approval: ApprovalOutput, actor_id: str) -> None:
        """Run the handler for an approved request. Failures are logged only."""
        if approval.reference_type != REFERENCE_TYPE_ORDER or not approval.reference_id:
            logger.info(
                "Approval has no order reference, no action applied",
                approval_id=approval.id,
                type=approval.type,
                reference_type=approval.reference_type,
            )
            return

        handler = _ACTION_HANDLERS[ApprovalType(approval.type)]
        try:
            handler(self, approval, actor_id)
        except Exception:
            self._db.rollback()
            logger.error(
                "Failed to apply approval action",
                approval_id=approval.id,
                type=approval.type,
                reference_id=approval.reference_id,
                exc_info=True,
            )
            return

        logger.info(
            "Approval action applied",
            approval_id=approval.id,
            type=approval.type,
            reference_id=approval.reference_id,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _to_outputs(self, rows) -> list[ApprovalOutput]:
        users = self._users.get_many(
            [row.requested_by for row in rows] + [row.reviewed_by for row in rows]
        )
        outputs = []
        for row in rows:
            requester = users.get(row.requested_by)
            reviewer = users.get(row.reviewed_by)
            outputs.append(
                ApprovalOutput.model_validate(row).model_copy(
                    update={
                        "requester_name": requester.full_name if requester else None,
                        "requester_email": requester.email if requester else None,
                        "reviewer_name": reviewer.full_name if reviewer else None,
                    }
                )
            )
        return outputs

    def _emit(self, channel: str, event_name: str, payload: dict) -> None:
        try:
            self._dispatcher.emit(channel, event_name, payload)
        except Exception as e:
            logger.warning("Event emit failed", channel=channel, event_type=event_name, error=str(e))


# =============================================================================
# Approved action handlers, one per ApprovalType
# =============================================================================


def _apply_refund(service: ApprovalService, approval: ApprovalOutput, actor_id: str) -> None:
    service._orders.mark_refunded(
        approval.reference_id, approval.amount_cents, actor_id, approval_id=approval.id
    )


def _apply_void(service: ApprovalService, approval: ApprovalOutput, actor_id: str) -> None:
    service._orders.cancel_order(
        approval.reference_id, approval.description, actor_id, approval_id=approval.id
    )


def _apply_discount(service: ApprovalService, approval: ApprovalOutput, actor_id: str) -> None:
    # Recorded only; POST /api/orders/{id}/reprice folds it into the totals
    service._audit.log_update(
        actor_id,
        AuditResource.ORDER,
        approval.reference_id,
        old_value=None,
        new_value={
            "applied": approval.type,
            "amount_cents": approval.amount_cents,
            "percentage": approval.percentage,
            "original_amount_cents": approval.original_amount_cents,
            "approval_id": approval.id,
        },
    )


def _apply_comp(service: ApprovalService, approval: ApprovalOutput, actor_id: str) -> None:
    service._orders.mark_comped(
        approval.reference_id, approval.description, actor_id, approval_id=approval.id
    )


def _apply_override(service: ApprovalService, approval: ApprovalOutput, actor_id: str) -> None:
    logger.info(
        "Override approved, no automatic action",
        approval_id=approval.id,
        reference_id=approval.reference_id,
    )


_ACTION_HANDLERS: dict[ApprovalType, Callable[[ApprovalService, ApprovalOutput, str], None]] = {
    ApprovalType.REFUND: _apply_refund,
    ApprovalType.VOID: _apply_void,
    ApprovalType.DISCOUNT: _apply_discount,
    ApprovalType.PRICE_ADJUSTMENT: _apply_discount,
    ApprovalType.COMP: _apply_comp,
    ApprovalType.OVERRIDE: _apply_override,
}

_unhandled = set(ApprovalType) - set(_ACTION_HANDLERS)
if _unhandled:
    raise RuntimeError(
        f"No approval action handler for: {sorted(member.value for member in _unhandled)}"
    )
