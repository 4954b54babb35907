"""
Tests for OrderService: creation, the status lifecycle and approval-driven
corrections.
"""

import re
from datetime import timedelta

import pytest
from sqlalchemy import func, select, update

from rest_api.models import ApprovalRequest, Order, utcnow
from rest_api.repositories import OrderRepository
from rest_api.services.domain import order_service as order_module
from shared.config.constants import EventNames, Roles
from shared.utils.exceptions import (
    ConflictError,
    InternalError,
    InvalidTransitionError,
    NotFoundError,
    PolicyError,
    ValidationError,
)
from shared.utils.schemas import OrderCreate, OrderItemInput


def _order_count(db_session) -> int:
    return db_session.scalar(select(func.count()).select_from(Order))


def _walk_to(order_service, order_id, target, actor_id):
    """Advance an order along the happy path until it reaches target."""
    path = ["confirmed", "preparing", "ready", "completed"]
    for status in path[: path.index(target) + 1]:
        order_service.update_status(order_id, status, actor_id)


class TestOrderNumber:
    def test_format(self):
        assert re.fullmatch(r"R-\d{6}-\d{6}[0-9a-z]{4}", order_module.generate_order_number())

    def test_numbers_differ(self):
        numbers = {order_module.generate_order_number() for _ in range(50)}
        assert len(numbers) > 1


class TestCreateOrder:
    """Tests for order creation."""

    def test_creates_pending_order_with_totals(self, make_order):
        order = make_order()

        assert order.status == "pending"
        assert order.payment_status == "pending"
        assert order.subtotal_cents == 2950
        assert order.tax_cents == 325
        assert order.service_charge_cents == 295
        assert order.total_cents == 3570
        assert len(order.items) == 2
        assert {item.item_name for item in order.items} == {"Burger", "Fries"}
        assert order.module_id == "kitchen"

    def test_total_identity_holds(self, make_order):
        order = make_order(order_type="delivery")

        assert order.total_cents == (
            order.subtotal_cents
            + order.tax_cents
            + order.service_charge_cents
            + order.delivery_fee_cents
            - order.discount_cents
        )

    def test_estimated_ready_time_uses_slowest_item_plus_buffer(self, make_order):
        order = make_order()

        # Burger takes 12 minutes, plus the 5 minute buffer
        delta = order.estimated_ready_time - order.created_at
        assert abs(delta - timedelta(minutes=17)) < timedelta(seconds=5)

    def test_creation_is_audited(self, make_order, audit_service, seed_users):
        order = make_order()

        logs = audit_service.get_logs_by_resource("order", order.id)
        assert len(logs) == 1
        assert logs[0].action == "create"
        assert logs[0].user_id == seed_users[Roles.STAFF].id
        assert logs[0].new_value["order_number"] == order.order_number
        assert logs[0].new_value["item_count"] == 2

    def test_emits_new_order_event(self, make_order, dispatcher):
        order = make_order()

        events = dispatcher.named(EventNames.ORDER_NEW)
        assert len(events) == 1
        channel, payload = events[0]
        assert channel == "unit:restaurant"
        assert payload["order_id"] == order.id
        assert payload["total_cents"] == 3570

    def test_sends_confirmation_email(self, make_order, email_sender):
        order = make_order(email="diner@test.com")

        assert len(email_sender.sent) == 1
        assert email_sender.sent[0]["to"] == "diner@test.com"
        assert order.order_number in email_sender.sent[0]["subject"]

    def test_guest_order_without_email(self, make_order, email_sender):
        order = make_order(customer=False, email=None)

        assert order.customer_id is None
        assert email_sender.sent == []

    def test_empty_items_rejected(self, order_service, db_session, seed_menu):
        with pytest.raises(ValidationError) as exc_info:
            order_service.create_order(OrderCreate(items=[]))

        assert exc_info.value.code == "VALIDATION_ERROR"
        assert _order_count(db_session) == 0

    def test_zero_quantity_rejected(self, order_service, db_session, seed_menu):
        request = OrderCreate(items=[OrderItemInput(menu_item_id=seed_menu["burger"].id, quantity=0)])

        with pytest.raises(ValidationError) as exc_info:
            order_service.create_order(request)

        assert exc_info.value.code == "INVALID_QUANTITY"
        assert _order_count(db_session) == 0

    def test_unknown_item_rejected(self, order_service, db_session, seed_menu):
        request = OrderCreate(
            items=[
                OrderItemInput(menu_item_id=seed_menu["burger"].id, quantity=1),
                OrderItemInput(menu_item_id="00000000-0000-0000-0000-000000000000", quantity=1),
            ]
        )

        with pytest.raises(NotFoundError) as exc_info:
            order_service.create_order(request)

        assert exc_info.value.code == "ITEM_NOT_FOUND"
        assert _order_count(db_session) == 0

    def test_unavailable_item_rejected(self, order_service, db_session, seed_menu):
        request = OrderCreate(items=[OrderItemInput(menu_item_id=seed_menu["soup"].id, quantity=1)])

        with pytest.raises(ValidationError) as exc_info:
            order_service.create_order(request)

        assert exc_info.value.code == "ITEM_UNAVAILABLE"
        assert _order_count(db_session) == 0

    def test_malformed_customer_id_rejected(self, order_service, seed_menu):
        request = OrderCreate(
            items=[OrderItemInput(menu_item_id=seed_menu["burger"].id, quantity=1)],
            customer_id="not-a-uuid",
        )

        with pytest.raises(ValidationError):
            order_service.create_order(request)

    def test_order_number_collision_draws_again(self, make_order, monkeypatch):
        first = make_order()
        numbers = iter([first.order_number, "R-250101-123456abcd"])
        monkeypatch.setattr(order_module, "generate_order_number", lambda: next(numbers))

        second = make_order()

        assert second.order_number == "R-250101-123456abcd"

    def test_order_number_exhaustion(self, make_order, monkeypatch):
        first = make_order()
        monkeypatch.setattr(order_module, "generate_order_number", lambda: first.order_number)

        with pytest.raises(InternalError) as exc_info:
            make_order()

        assert exc_info.value.code == "ORDER_NUMBER_EXHAUSTED"


class TestReads:
    def test_get_order_not_found(self, order_service, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            order_service.get_order("00000000-0000-0000-0000-000000000000")

        assert exc_info.value.code == "ORDER_NOT_FOUND"

    def test_get_by_number(self, make_order, order_service):
        order = make_order()

        assert order_service.get_order_by_number(order.order_number).id == order.id

    def test_list_filters_by_status(self, make_order, order_service, seed_users):
        confirmed = make_order()
        make_order()
        order_service.update_status(confirmed.id, "confirmed", seed_users[Roles.STAFF].id)

        result = order_service.list_orders(status="confirmed")

        assert result.total == 1
        assert result.items[0].id == confirmed.id

    def test_list_paginates_newest_first(self, make_order, order_service):
        orders = [make_order() for _ in range(3)]

        page = order_service.list_orders(limit=2, offset=0)

        assert page.total == 3
        assert [o.id for o in page.items] == [orders[2].id, orders[1].id]

    def test_list_rejects_unknown_status(self, order_service, db_session):
        with pytest.raises(ValidationError) as exc_info:
            order_service.list_orders(status="lost")

        assert exc_info.value.code == "INVALID_STATUS"

    def test_live_orders_exclude_terminal_and_are_oldest_first(self, make_order, order_service, seed_users):
        first = make_order()
        cancelled = make_order()
        third = make_order()
        order_service.cancel_order(cancelled.id, "Customer left", seed_users[Roles.STAFF].id)

        live = order_service.list_live_orders()

        assert [o.id for o in live] == [first.id, third.id]


class TestStatusTransitions:
    """Tests for the order lifecycle state machine."""

    def test_happy_path_stamps_timestamps(self, make_order, order_service, seed_users):
        order = make_order()
        staff_id = seed_users[Roles.STAFF].id

        confirmed = order_service.update_status(order.id, "confirmed", staff_id)
        assert confirmed.confirmed_at is not None

        order_service.update_status(order.id, "preparing", staff_id)
        ready = order_service.update_status(order.id, "ready", staff_id)
        assert ready.actual_ready_time is not None

        completed = order_service.update_status(order.id, "completed", staff_id)
        assert completed.status == "completed"
        assert completed.completed_at is not None
        assert completed.payment_status == "paid"

    def test_cannot_skip_states(self, make_order, order_service, seed_users):
        order = make_order()

        with pytest.raises(InvalidTransitionError) as exc_info:
            order_service.update_status(order.id, "ready", seed_users[Roles.STAFF].id)

        assert exc_info.value.code == "INVALID_STATUS_TRANSITION"
        assert exc_info.value.status_code == 409
        assert order_service.get_order(order.id).status == "pending"

    def test_completed_is_terminal(self, make_order, order_service, seed_users):
        order = make_order()
        staff_id = seed_users[Roles.STAFF].id
        _walk_to(order_service, order.id, "completed", staff_id)

        with pytest.raises(ConflictError) as exc_info:
            order_service.cancel_order(order.id, "Too late", staff_id)

        assert exc_info.value.code == "CANNOT_CANCEL"

    def test_cancelled_is_terminal(self, make_order, order_service, seed_users):
        order = make_order()
        staff_id = seed_users[Roles.STAFF].id
        order_service.cancel_order(order.id, "Duplicate", staff_id)

        with pytest.raises(InvalidTransitionError):
            order_service.update_status(order.id, "confirmed", staff_id)

    def test_unknown_status_rejected(self, make_order, order_service, seed_users):
        order = make_order()

        with pytest.raises(ValidationError) as exc_info:
            order_service.update_status(order.id, "eaten", seed_users[Roles.STAFF].id)

        assert exc_info.value.code == "INVALID_STATUS"

    def test_unknown_order(self, order_service, seed_users):
        with pytest.raises(NotFoundError):
            order_service.update_status(
                "00000000-0000-0000-0000-000000000000", "confirmed", seed_users[Roles.STAFF].id
            )

    def test_status_change_is_audited(self, make_order, order_service, audit_service, seed_users):
        order = make_order()
        order_service.update_status(order.id, "confirmed", seed_users[Roles.MANAGER].id, notes="Rush")

        logs = audit_service.get_logs(action="status_change", resource_id=order.id).items
        assert len(logs) == 1
        assert logs[0].old_value == {"status": "pending"}
        assert logs[0].new_value == {"status": "confirmed", "notes": "Rush"}
        assert logs[0].user_id == seed_users[Roles.MANAGER].id

    def test_status_change_emits_and_notifies(self, make_order, order_service, dispatcher, seed_users):
        order = make_order()
        order_service.update_status(order.id, "confirmed", seed_users[Roles.STAFF].id)

        status_events = dispatcher.named(EventNames.ORDER_STATUS)
        assert status_events[0][1]["old_status"] == "pending"
        assert status_events[0][1]["status"] == "confirmed"

        notifications = dispatcher.named(EventNames.NOTIFICATION)
        assert notifications[-1][0] == f"user:{seed_users[Roles.CUSTOMER].id}"

    def test_cancel_records_reason(self, make_order, order_service, audit_service, seed_users):
        order = make_order()

        cancelled = order_service.cancel_order(order.id, "  Kitchen closed  ", seed_users[Roles.STAFF].id)

        assert cancelled.status == "cancelled"
        assert cancelled.cancellation_reason == "Kitchen closed"
        assert cancelled.cancelled_at is not None
        log = audit_service.get_logs(action="status_change", resource_id=order.id).items[0]
        assert log.new_value == {"status": "cancelled", "reason": "Kitchen closed"}

    def test_cancel_requires_reason(self, make_order, order_service, seed_users):
        order = make_order()

        with pytest.raises(ValidationError):
            order_service.cancel_order(order.id, "   ", seed_users[Roles.STAFF].id)


class TestConcurrentStatusWrites:
    """
    A concurrent writer is simulated by changing the row between the read
    and the conditional write.
    """

    @staticmethod
    def _race(monkeypatch, new_status, times=1):
        original = OrderRepository.compare_and_set_status
        remaining = [times]

        def racing(self, order_id, expected_status, values):
            if remaining[0]:
                remaining[0] -= 1
                self._db.execute(
                    update(Order)
                    .where(Order.id == order_id)
                    .values(status=new_status)
                    .execution_options(synchronize_session=False)
                )
            return original(self, order_id, expected_status, values)

        monkeypatch.setattr(OrderRepository, "compare_and_set_status", racing)

    def test_stale_transition_is_revalidated_and_rejected(self, make_order, order_service, seed_users, monkeypatch):
        order = make_order()
        staff_id = seed_users[Roles.STAFF].id
        order_service.update_status(order.id, "confirmed", staff_id)
        self._race(monkeypatch, "cancelled")

        with pytest.raises(InvalidTransitionError):
            order_service.update_status(order.id, "preparing", staff_id)

        assert order_service.get_order(order.id).status == "cancelled"

    def test_stale_cancel_applies_to_fresh_state(self, make_order, order_service, audit_service, seed_users, monkeypatch):
        order = make_order()
        staff_id = seed_users[Roles.STAFF].id
        order_service.update_status(order.id, "confirmed", staff_id)
        self._race(monkeypatch, "preparing")

        cancelled = order_service.cancel_order(order.id, "Customer left", staff_id)

        assert cancelled.status == "cancelled"
        log = audit_service.get_logs(action="status_change", resource_id=order.id).items[0]
        assert log.old_value == {"status": "preparing"}

    def test_gives_up_after_repeated_conflicts(self, make_order, order_service, seed_users, monkeypatch):
        order = make_order()
        monkeypatch.setattr(OrderRepository, "compare_and_set_status", lambda *args: False)

        with pytest.raises(ConflictError) as exc_info:
            order_service.update_status(order.id, "confirmed", seed_users[Roles.STAFF].id)

        assert exc_info.value.code == "CONCURRENT_MODIFICATION"


class TestConcurrentPaymentWrites:
    """A rival correction commits between the read and the conditional write."""

    @staticmethod
    def _race(monkeypatch, payment_status):
        original = OrderRepository.compare_and_set_payment

        def racing(self, order_id, expected_payment_status, values):
            self._db.execute(
                update(Order)
                .where(Order.id == order_id)
                .values(payment_status=payment_status)
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
            return original(self, order_id, expected_payment_status, values)

        monkeypatch.setattr(OrderRepository, "compare_and_set_payment", racing)

    def test_second_refund_loses(self, make_order, order_service, audit_service, seed_users, monkeypatch):
        order = make_order()
        self._race(monkeypatch, "refunded")

        with pytest.raises(ConflictError) as exc_info:
            order_service.mark_refunded(order.id, 500, seed_users[Roles.MANAGER].id)

        assert exc_info.value.code == "ALREADY_REFUNDED"
        current = order_service.get_order(order.id)
        assert current.payment_status == "refunded"
        assert current.refund_cents != 500
        assert audit_service.get_logs(action="update", resource_id=order.id).total == 0

    def test_comp_loses_to_refund(self, make_order, order_service, seed_users, monkeypatch):
        order = make_order()
        self._race(monkeypatch, "refunded")

        with pytest.raises(ConflictError) as exc_info:
            order_service.mark_comped(order.id, "Birthday", seed_users[Roles.MANAGER].id)

        assert exc_info.value.code == "ALREADY_REFUNDED"
        assert order_service.get_order(order.id).comp_reason is None


class TestCorrections:
    """Refund, comp and reprice, normally driven by approved requests."""

    def test_full_refund(self, make_order, order_service, seed_users):
        order = make_order()

        refunded = order_service.mark_refunded(order.id, None, seed_users[Roles.MANAGER].id)

        assert refunded.payment_status == "refunded"
        assert refunded.refund_cents == order.total_cents

    def test_refund_twice_rejected(self, make_order, order_service, seed_users):
        order = make_order()
        order_service.mark_refunded(order.id, 500, seed_users[Roles.MANAGER].id)

        with pytest.raises(ConflictError) as exc_info:
            order_service.mark_refunded(order.id, 500, seed_users[Roles.MANAGER].id)

        assert exc_info.value.code == "ALREADY_REFUNDED"

    def test_refund_above_total_rejected(self, make_order, order_service, seed_users):
        order = make_order()

        with pytest.raises(ValidationError) as exc_info:
            order_service.mark_refunded(order.id, order.total_cents + 1, seed_users[Roles.MANAGER].id)

        assert exc_info.value.code == "INVALID_REFUND_AMOUNT"

    def test_comp(self, make_order, order_service, dispatcher, seed_users):
        order = make_order()

        comped = order_service.mark_comped(order.id, "Birthday", seed_users[Roles.MANAGER].id)

        assert comped.payment_status == "comped"
        assert comped.comp_reason == "Birthday"
        assert dispatcher.named(EventNames.ORDER_UPDATED)

    def test_reprice_applies_approved_discounts(self, make_order, order_service, db_session, seed_users):
        order = make_order()
        db_session.add(
            ApprovalRequest(
                type="discount",
                status="approved",
                description="Loyalty",
                percentage=10,
                reference_type="order",
                reference_id=order.id,
                requested_by=seed_users[Roles.STAFF].id,
                reviewed_by=seed_users[Roles.MANAGER].id,
                reviewed_at=utcnow(),
                expires_at=utcnow() + timedelta(hours=24),
            )
        )
        db_session.commit()

        repriced = order_service.reprice(order.id, seed_users[Roles.MANAGER].id)

        assert repriced.discount_cents == 295
        assert repriced.total_cents == 3570 - 295

        with pytest.raises(PolicyError) as exc_info:
            order_service.reprice(order.id, seed_users[Roles.MANAGER].id)
        assert exc_info.value.code == "NO_CHANGE"

    def test_reprice_cancelled_order_rejected(self, make_order, order_service, seed_users):
        order = make_order()
        order_service.cancel_order(order.id, "Duplicate", seed_users[Roles.STAFF].id)

        with pytest.raises(ConflictError) as exc_info:
            order_service.reprice(order.id, seed_users[Roles.MANAGER].id)

        assert exc_info.value.code == "CANNOT_REPRICE"
