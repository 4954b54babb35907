"""
Order Domain Service.

Owns the order lifecycle:

    pending -> confirmed -> preparing -> ready -> completed
    (any non-terminal state) -> cancelled

Every status write is a conditional UPDATE guarded by the status the caller
validated against, so two staff members racing on the same order cannot both
apply a transition that is only valid from the state they each read.
Each mutation and its audit entry commit together; events and customer
notifications go out only after the commit.
"""

from __future__ import annotations

import secrets
import time
from datetime import date, datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rest_api.models import Order, OrderItem, utcnow
from rest_api.repositories import (
    ApprovalRepository,
    MenuItemRepository,
    OrderFilters,
    OrderRepository,
)
from rest_api.services.domain.audit_service import AuditService, serialize_model
from rest_api.services.domain.notification_service import NotificationService
from rest_api.services.domain.pricing import PricingConfig, PricingEngine
from shared.config.constants import (
    AuditAction,
    AuditResource,
    DISCOUNT_APPROVAL_TYPES,
    EventNames,
    Limits,
    ORDER_TRANSITIONS,
    OrderStatus,
    PaymentStatus,
    REFERENCE_TYPE_ORDER,
)
from shared.config.settings import settings
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.infrastructure.events import EventDispatcher, channel_unit
from shared.utils.exceptions import (
    ConflictError,
    DatabaseError,
    InternalError,
    InvalidTransitionError,
    NotFoundError,
    PolicyError,
    ValidationError,
)
from shared.utils.schemas import AuditEntryInput, OrderCreate, OrderListResponse, OrderOutput
from shared.utils.validators import is_uuid

if TYPE_CHECKING:
    from fastapi import BackgroundTasks

logger = get_logger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def generate_order_number(now: datetime | None = None) -> str:
    """
    R-YYMMDD-NNNNNNxxxx: order date, six random digits and the last four
    base-36 digits of the current millisecond timestamp.
    """
    now = now or utcnow()
    random_part = f"{secrets.randbelow(1_000_000):06d}"
    suffix = _to_base36(int(time.time() * 1000))[-4:]
    return f"R-{now:%y%m%d}-{random_part}{suffix}"


_CREATE_SNAPSHOT_COLUMNS = [
    "order_number", "order_type", "status", "payment_status", "customer_id",
    "subtotal_cents", "tax_cents", "service_charge_cents", "delivery_fee_cents",
    "discount_cents", "total_cents", "estimated_ready_time",
]

# Timestamp column stamped when an order enters a status
_STATUS_TIMESTAMPS = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.READY: "actual_ready_time",
    OrderStatus.COMPLETED: "completed_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


class OrderService:
    """
    Domain service for the order ledger.

    Collaborators are injected so tests can swap the dispatcher, notifier and
    pricing configuration.
    """

    def __init__(
        self,
        db: Session,
        dispatcher: EventDispatcher,
        notifier: NotificationService | None = None,
        pricing: PricingEngine | None = None,
    ):
        self._db = db
        self._dispatcher = dispatcher
        self._notifier = notifier
        self._pricing = pricing or PricingEngine(PricingConfig.from_settings())
        self._orders = OrderRepository(db)
        self._catalog = MenuItemRepository(db)
        self._audit = AuditService(db)

    # =========================================================================
    # Creation
    # =========================================================================

    def create_order(
        self,
        request: OrderCreate,
        actor_id: str | None = None,
        background_tasks: BackgroundTasks | None = None,
    ) -> OrderOutput:
        """
        Validate, price and persist a new order.

        All validation happens before the first write. The order header, its
        items and the creation audit entry commit in one transaction.

        Raises:
            ValidationError: VALIDATION_ERROR, INVALID_QUANTITY, ITEM_UNAVAILABLE
            NotFoundError: ITEM_NOT_FOUND
        """
        if not request.items:
            raise ValidationError("Order must contain at least one item")
        if request.customer_id is not None and not is_uuid(request.customer_id):
            raise ValidationError("Invalid customer id", customer_id=request.customer_id)

        for line in request.items:
            if line.quantity < 1:
                raise ValidationError(
                    "Quantity must be at least 1",
                    code="INVALID_QUANTITY",
                    menu_item_id=line.menu_item_id,
                    quantity=line.quantity,
                )

        catalog = self._catalog.get_by_ids([line.menu_item_id for line in request.items])
        for line in request.items:
            menu_item = catalog.get(line.menu_item_id)
            if menu_item is None:
                raise NotFoundError("Menu item", line.menu_item_id, code="ITEM_NOT_FOUND")
            if not menu_item.is_available:
                raise ValidationError(
                    f"Menu item '{menu_item.name}' is not available",
                    code="ITEM_UNAVAILABLE",
                    menu_item_id=menu_item.id,
                )

        priced_lines = [
            (catalog[line.menu_item_id].price_cents, line.quantity) for line in request.items
        ]
        totals = self._pricing.compute(priced_lines, request.order_type)

        now = utcnow()
        prep_minutes = max(
            catalog[line.menu_item_id].prep_time_minutes or settings.default_prep_time_minutes
            for line in request.items
        )
        estimated_ready_time = now + timedelta(
            minutes=prep_minutes + settings.ready_time_buffer_minutes
        )

        order = self._insert_order(request, catalog, totals.as_dict(), estimated_ready_time)

        self._audit.log_create(
            actor_id,
            AuditResource.ORDER,
            order.id,
            new_value={
                **serialize_model(order, include=_CREATE_SNAPSHOT_COLUMNS),
                "item_count": len(request.items),
            },
            commit=False,
        )
        safe_commit(self._db)

        output = self.get_order(order.id)

        logger.info(
            "Order created",
            order_id=output.id,
            order_number=output.order_number,
            order_type=output.order_type,
            total_cents=output.total_cents,
        )

        self._emit(
            channel_unit(),
            EventNames.ORDER_NEW,
            {
                "order_id": output.id,
                "order_number": output.order_number,
                "order_type": output.order_type,
                "module_id": output.module_id,
                "table_id": output.table_id,
                "total_cents": output.total_cents,
                "item_count": len(output.items),
            },
        )
        self._schedule_confirmation(output, background_tasks)
        return output

    def _insert_order(
        self,
        request: OrderCreate,
        catalog: dict,
        totals: dict[str, int],
        estimated_ready_time: datetime,
    ) -> Order:
        """Insert header and items, drawing a fresh order number on collision."""
        for attempt in range(1, settings.order_number_max_attempts + 1):
            order_number = generate_order_number()
            if self._orders.number_exists(order_number):
                logger.warning("Order number collision", order_number=order_number, attempt=attempt)
                continue

            first_item = catalog[request.items[0].menu_item_id]
            order = Order(
                order_number=order_number,
                customer_id=request.customer_id,
                customer_name=request.customer_name,
                customer_email=request.customer_email,
                customer_phone=request.customer_phone,
                table_id=request.table_id,
                module_id=first_item.module_id,
                special_instructions=request.special_instructions,
                order_type=request.order_type,
                status=OrderStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                payment_method=request.payment_method,
                estimated_ready_time=estimated_ready_time,
                **totals,
            )
            order.items = [
                OrderItem(
                    menu_item_id=line.menu_item_id,
                    quantity=line.quantity,
                    unit_price_cents=catalog[line.menu_item_id].price_cents,
                    subtotal_cents=PricingEngine.line_subtotal(
                        catalog[line.menu_item_id].price_cents, line.quantity
                    ),
                    special_instructions=line.special_instructions,
                )
                for line in request.items
            ]

            try:
                self._db.add(order)
                self._db.flush()
            except IntegrityError as e:
                self._db.rollback()
                if not self._orders.number_exists(order_number):
                    raise DatabaseError("order insert", error=str(e))
                # Another request took the number between the check and the insert
                logger.warning("Order number collision on insert", order_number=order_number, attempt=attempt)
                continue
            return order

        raise InternalError(
            "Could not allocate a unique order number",
            code="ORDER_NUMBER_EXHAUSTED",
            attempts=settings.order_number_max_attempts,
        )

    def _schedule_confirmation(
        self,
        order: OrderOutput,
        background_tasks: BackgroundTasks | None,
    ) -> None:
        if self._notifier is None or not order.customer_email:
            return
        if background_tasks is not None:
            background_tasks.add_task(self._notifier.send_order_confirmation, order)
            return
        try:
            self._notifier.send_order_confirmation(order)
        except Exception as e:
            logger.warning("Order confirmation email failed", order_id=order.id, error=str(e))

    # =========================================================================
    # Reads
    # =========================================================================

    def get_order(self, order_id: str) -> OrderOutput:
        order = self._orders.find_by_id(order_id)
        if order is None:
            raise NotFoundError("Order", order_id, code="ORDER_NOT_FOUND")
        return OrderOutput.model_validate(order)

    def get_order_by_number(self, order_number: str) -> OrderOutput:
        order = self._orders.find_by_number(order_number)
        if order is None:
            raise NotFoundError("Order", order_number, code="ORDER_NOT_FOUND")
        return OrderOutput.model_validate(order)

    def list_orders(
        self,
        status: str | None = None,
        on_date: date | None = None,
        module_id: str | None = None,
        customer_id: str | None = None,
        limit: int = Limits.DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> OrderListResponse:
        """Orders newest first, optionally restricted to one calendar day (UTC)."""
        if status is not None and status not in OrderStatus.ALL:
            raise ValidationError(f"Unknown order status '{status}'", code="INVALID_STATUS")

        created_from = created_to = None
        if on_date is not None:
            created_from = datetime(on_date.year, on_date.month, on_date.day, tzinfo=timezone.utc)
            created_to = created_from + timedelta(days=1)

        filters = OrderFilters(
            limit=limit,
            offset=offset,
            status=status,
            module_id=module_id,
            customer_id=customer_id,
            created_from=created_from,
            created_to=created_to,
        )
        orders = self._orders.find_all(filters)
        return OrderListResponse(
            items=[OrderOutput.model_validate(order) for order in orders],
            total=self._orders.count(filters),
        )

    def list_live_orders(self, module_id: str | None = None) -> list[OrderOutput]:
        """Orders still in progress, oldest first."""
        return [OrderOutput.model_validate(order) for order in self._orders.find_live(module_id)]

    # =========================================================================
    # Status transitions
    # =========================================================================

    def update_status(
        self,
        order_id: str,
        new_status: str,
        actor_id: str | None,
        notes: str | None = None,
    ) -> OrderOutput:
        """
        Move an order to new_status.

        Raises:
            ValidationError: INVALID_STATUS for an unknown status.
            NotFoundError: ORDER_NOT_FOUND
            InvalidTransitionError: INVALID_STATUS_TRANSITION, including when a
                concurrent writer moved the order first and the transition is no
                longer allowed from the new state.
        """
        if new_status not in OrderStatus.ALL:
            raise ValidationError(f"Unknown order status '{new_status}'", code="INVALID_STATUS")

        def build_values(order: Order, now: datetime) -> dict[str, Any]:
            if new_status not in ORDER_TRANSITIONS[order.status]:
                raise InvalidTransitionError("order", order.status, new_status, order_id=order_id)
            values: dict[str, Any] = {"status": new_status, "updated_at": now}
            if new_status in _STATUS_TIMESTAMPS:
                values[_STATUS_TIMESTAMPS[new_status]] = now
            if new_status == OrderStatus.COMPLETED:
                values["payment_status"] = PaymentStatus.PAID
            if new_status == OrderStatus.CANCELLED:
                values["cancellation_reason"] = notes
            return values

        order, old_status = self._write_status(order_id, build_values)

        self._audit.log_activity(
            _status_change_entry(actor_id, order_id, old_status, {"status": new_status, "notes": notes}),
            commit=False,
        )
        safe_commit(self._db)

        output = self.get_order(order_id)
        logger.info("Order status updated", order_id=order_id, from_status=old_status, to_status=new_status)

        self._emit(
            channel_unit(),
            EventNames.ORDER_STATUS,
            {
                "order_id": output.id,
                "order_number": output.order_number,
                "old_status": old_status,
                "status": output.status,
            },
        )
        self._notify_customer(output, f"Your order {output.order_number} is now {output.status}")
        return output

    def cancel_order(
        self,
        order_id: str,
        reason: str,
        actor_id: str | None,
        approval_id: str | None = None,
    ) -> OrderOutput:
        """
        Cancel a non-terminal order.

        Raises:
            ValidationError: VALIDATION_ERROR for an empty reason.
            NotFoundError: ORDER_NOT_FOUND
            ConflictError: CANNOT_CANCEL once the order is completed or cancelled.
        """
        if not reason or not reason.strip():
            raise ValidationError("Cancellation reason is required")
        reason = reason.strip()

        def build_values(order: Order, now: datetime) -> dict[str, Any]:
            if order.status in OrderStatus.TERMINAL:
                raise ConflictError(
                    f"Order in status '{order.status}' cannot be cancelled",
                    code="CANNOT_CANCEL",
                    order_id=order_id,
                )
            return {
                "status": OrderStatus.CANCELLED,
                "cancelled_at": now,
                "cancellation_reason": reason,
                "updated_at": now,
            }

        order, old_status = self._write_status(order_id, build_values)

        new_value: dict[str, Any] = {"status": OrderStatus.CANCELLED, "reason": reason}
        if approval_id:
            new_value["approval_id"] = approval_id
        self._audit.log_activity(
            _status_change_entry(actor_id, order_id, old_status, new_value),
            commit=False,
        )
        safe_commit(self._db)

        output = self.get_order(order_id)
        logger.info("Order cancelled", order_id=order_id, from_status=old_status, approval_id=approval_id)

        self._emit(
            channel_unit(),
            EventNames.ORDER_CANCELLED,
            {
                "order_id": output.id,
                "order_number": output.order_number,
                "old_status": old_status,
                "reason": reason,
            },
        )
        self._notify_customer(output, f"Your order {output.order_number} has been cancelled")
        return output

    def _write_status(self, order_id: str, build_values) -> tuple[Order, str]:
        """
        Read, validate and conditionally write an order's status.

        build_values(order, now) validates the transition against the order as
        read and returns the columns to write. When the conditional UPDATE
        matches no row another writer got there first: the order is re-read
        and validated again, up to status_write_max_attempts times.
        """
        for attempt in range(1, settings.status_write_max_attempts + 1):
            order = self._orders.find_current(order_id)
            if order is None:
                raise NotFoundError("Order", order_id, code="ORDER_NOT_FOUND")

            observed = order.status
            values = build_values(order, utcnow())
            if self._orders.compare_and_set_status(order_id, observed, values):
                return order, observed

            logger.info(
                "Order status changed concurrently, re-validating",
                order_id=order_id,
                observed_status=observed,
                attempt=attempt,
            )

        raise ConflictError(
            "Order is being modified concurrently, please retry",
            code="CONCURRENT_MODIFICATION",
            order_id=order_id,
        )

    # =========================================================================
    # Approval-driven corrections
    # =========================================================================

    def mark_refunded(
        self,
        order_id: str,
        amount_cents: int | None,
        actor_id: str | None,
        approval_id: str | None = None,
    ) -> OrderOutput:
        """Record an approved refund. Without an amount the whole total is refunded."""
        order = self._require_order(order_id)
        if order.payment_status == PaymentStatus.REFUNDED:
            raise ConflictError("Order is already refunded", code="ALREADY_REFUNDED", order_id=order_id)

        amount = order.total_cents if amount_cents is None else amount_cents
        if amount < 0 or amount > order.total_cents:
            raise ValidationError(
                "Refund amount must be between 0 and the order total",
                code="INVALID_REFUND_AMOUNT",
                order_id=order_id,
                amount_cents=amount,
            )

        old_value = {"payment_status": order.payment_status, "refund_cents": order.refund_cents}
        self._write_payment(
            order,
            {"payment_status": PaymentStatus.REFUNDED, "refund_cents": amount, "refunded_at": utcnow()},
        )

        self._audit.log_update(
            actor_id,
            AuditResource.ORDER,
            order_id,
            old_value=old_value,
            new_value={
                "payment_status": PaymentStatus.REFUNDED,
                "refund_cents": amount,
                "approval_id": approval_id,
            },
            commit=False,
        )
        safe_commit(self._db)
        logger.info("Order refunded", order_id=order_id, refund_cents=amount, approval_id=approval_id)
        return self._after_correction(order_id)

    def mark_comped(
        self,
        order_id: str,
        reason: str,
        actor_id: str | None,
        approval_id: str | None = None,
    ) -> OrderOutput:
        """Record an approved comp (order given away free of charge)."""
        order = self._require_order(order_id)
        if order.payment_status == PaymentStatus.COMPED:
            raise ConflictError("Order is already comped", code="ALREADY_COMPED", order_id=order_id)

        old_value = {"payment_status": order.payment_status}
        self._write_payment(
            order,
            {"payment_status": PaymentStatus.COMPED, "comp_reason": reason, "comped_at": utcnow()},
        )

        self._audit.log_update(
            actor_id,
            AuditResource.ORDER,
            order_id,
            old_value=old_value,
            new_value={
                "payment_status": PaymentStatus.COMPED,
                "comp_reason": reason,
                "approval_id": approval_id,
            },
            commit=False,
        )
        safe_commit(self._db)
        logger.info("Order comped", order_id=order_id, approval_id=approval_id)
        return self._after_correction(order_id)

    def reprice(self, order_id: str, actor_id: str | None) -> OrderOutput:
        """
        Recompute totals from the stored line prices and every approved
        discount or price adjustment that references this order.

        Raises:
            ConflictError: CANNOT_REPRICE for a cancelled order.
            PolicyError: NO_CHANGE when the totals are already current.
        """
        order = self._require_order(order_id)
        if order.status == OrderStatus.CANCELLED:
            raise ConflictError("Cancelled orders cannot be repriced", code="CANNOT_REPRICE", order_id=order_id)

        lines = [(item.unit_price_cents, item.quantity) for item in order.items]
        subtotal = sum(PricingEngine.line_subtotal(unit, qty) for unit, qty in lines)

        approvals = ApprovalRepository(self._db).find_approved_for_reference(
            REFERENCE_TYPE_ORDER,
            order_id,
            [approval_type.value for approval_type in DISCOUNT_APPROVAL_TYPES],
        )
        discount = sum(
            PricingEngine.discount_for(subtotal, approval.amount_cents, approval.percentage)
            for approval in approvals
        )
        totals = self._pricing.compute(lines, order.order_type, discount_cents=discount)

        old_totals = {
            "subtotal_cents": order.subtotal_cents,
            "tax_cents": order.tax_cents,
            "service_charge_cents": order.service_charge_cents,
            "delivery_fee_cents": order.delivery_fee_cents,
            "discount_cents": order.discount_cents,
            "total_cents": order.total_cents,
        }
        new_totals = totals.as_dict()
        if new_totals == old_totals:
            raise PolicyError("Order totals are already up to date", code="NO_CHANGE", order_id=order_id)

        for column, value in new_totals.items():
            setattr(order, column, value)

        self._audit.log_update(
            actor_id,
            AuditResource.ORDER,
            order_id,
            old_value=old_totals,
            new_value={**new_totals, "approval_ids": [approval.id for approval in approvals]},
            commit=False,
        )
        safe_commit(self._db)
        logger.info(
            "Order repriced",
            order_id=order_id,
            discount_cents=totals.discount_cents,
            total_cents=totals.total_cents,
        )
        return self._after_correction(order_id)

    def _require_order(self, order_id: str) -> Order:
        order = self._orders.find_current(order_id)
        if order is None:
            raise NotFoundError("Order", order_id, code="ORDER_NOT_FOUND")
        return order

    def _write_payment(self, order: Order, values: dict) -> None:
        """
        Write payment columns guarded on the payment status read earlier.

        A rival correction that landed in between wins; this one fails with
        ALREADY_REFUNDED or ALREADY_COMPED for the status it left behind.
        """
        observed = order.payment_status
        if self._orders.compare_and_set_payment(order.id, observed, values):
            return

        self._db.rollback()
        current = self._require_order(order.id)
        logger.warning(
            "Payment status changed concurrently",
            order_id=order.id,
            observed=observed,
            current=current.payment_status,
        )
        if current.payment_status == PaymentStatus.REFUNDED:
            raise ConflictError("Order is already refunded", code="ALREADY_REFUNDED", order_id=order.id)
        if current.payment_status == PaymentStatus.COMPED:
            raise ConflictError("Order is already comped", code="ALREADY_COMPED", order_id=order.id)
        raise ConflictError(
            "Order is being modified concurrently, please retry",
            code="CONCURRENT_MODIFICATION",
            order_id=order.id,
        )

    def _after_correction(self, order_id: str) -> OrderOutput:
        output = self.get_order(order_id)
        self._emit(
            channel_unit(),
            EventNames.ORDER_UPDATED,
            {
                "order_id": output.id,
                "order_number": output.order_number,
                "payment_status": output.payment_status,
                "total_cents": output.total_cents,
            },
        )
        return output

    # =========================================================================
    # Fan-out
    # =========================================================================

    def _emit(self, channel: str, event_name: str, payload: dict[str, Any]) -> None:
        try:
            self._dispatcher.emit(channel, event_name, payload)
        except Exception as e:
            logger.warning("Event emit failed", channel=channel, event_type=event_name, error=str(e))

    def _notify_customer(self, order: OrderOutput, message: str) -> None:
        if self._notifier is None or not order.customer_id:
            return
        self._notifier.notify(
            order.customer_id,
            message,
            {"order_id": order.id, "order_number": order.order_number, "status": order.status},
        )


def _status_change_entry(actor_id, order_id: str, old_status: str, new_value: dict[str, Any]) -> AuditEntryInput:
    return AuditEntryInput(
        action=AuditAction.STATUS_CHANGE,
        resource=AuditResource.ORDER,
        user_id=actor_id,
        resource_id=order_id,
        old_value={"status": old_status},
        new_value=new_value,
    )
