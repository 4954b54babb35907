"""
Best-effort notifications: email through SMTP and in-app messages through the
event dispatcher. Nothing here raises into the caller.
"""

from html import escape
from typing import Any

from shared.config.constants import EventNames
from shared.config.logging import get_logger, mask_email
from shared.infrastructure.email import EmailSender
from shared.infrastructure.events import EventDispatcher, channel_user
from shared.utils.schemas import OrderOutput

logger = get_logger(__name__)


class NotificationService:

    def __init__(self, dispatcher: EventDispatcher, email_sender: EmailSender | None = None):
        self._dispatcher = dispatcher
        self._email = email_sender or EmailSender.from_settings()

    def send_email(self, to: str, subject: str, html: str) -> bool:
        try:
            return self._email.send(to, subject, html)
        except Exception as e:
            logger.warning("Email delivery failed", to=mask_email(to), subject=subject, error=str(e))
            return False

    def notify(self, user_id: str, message: str, data: dict[str, Any] | None = None) -> None:
        """Push an in-app notification to one user."""
        try:
            self._dispatcher.emit(
                channel_user(user_id),
                EventNames.NOTIFICATION,
                {"message": message, "data": data or {}},
            )
        except Exception as e:
            logger.warning("In-app notification failed", user_id=user_id, error=str(e))

    def send_order_confirmation(self, order: OrderOutput) -> bool:
        if not order.customer_email:
            return False
        subject = f"Order {order.order_number} confirmed"
        return self.send_email(order.customer_email, subject, render_order_confirmation(order))


def _money(cents: int) -> str:
    return f"${cents / 100:.2f}"


def render_order_confirmation(order: OrderOutput) -> str:
    rows = "".join(
        f"<tr><td>{escape(item.item_name or item.menu_item_id)}</td>"
        f"<td>{item.quantity}</td><td>{_money(item.subtotal_cents)}</td></tr>"
        for item in order.items
    )
    ready = order.estimated_ready_time.strftime("%H:%M") if order.estimated_ready_time else "-"
    return (
        f"<h2>Thank you{', ' + escape(order.customer_name) if order.customer_name else ''}!</h2>"
        f"<p>Your order <strong>{escape(order.order_number)}</strong> has been received.</p>"
        f"<table>{rows}</table>"
        f"<p>Subtotal: {_money(order.subtotal_cents)}<br>"
        f"Tax: {_money(order.tax_cents)}<br>"
        f"Service charge: {_money(order.service_charge_cents)}<br>"
        f"Delivery fee: {_money(order.delivery_fee_cents)}<br>"
        f"Discount: {_money(order.discount_cents)}<br>"
        f"<strong>Total: {_money(order.total_cents)}</strong></p>"
        f"<p>Estimated ready time: {ready}</p>"
    )
