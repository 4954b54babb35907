"""
Order Models: Order, OrderItem.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, uuid_pk

if TYPE_CHECKING:
    from .catalog import MenuItem


class Order(TimestampMixin, Base):
    """
    A customer order with its monetary totals and fulfilment status.

    All amounts are integer cents and always satisfy
    total = subtotal + tax + service_charge + delivery_fee - discount.
    Orders are never deleted; cancellation is a status.
    """

    __tablename__ = "customer_order"

    id: Mapped[str] = uuid_pk()
    order_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)

    customer_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("app_user.id"), index=True
    )  # NULL for guest orders
    customer_name: Mapped[Optional[str]] = mapped_column(Text)
    customer_email: Mapped[Optional[str]] = mapped_column(String(255))
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50))
    table_id: Mapped[Optional[str]] = mapped_column(String(36))
    module_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    special_instructions: Mapped[Optional[str]] = mapped_column(Text)

    order_type: Mapped[str] = mapped_column(String(20), nullable=False, default="dine_in")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    payment_method: Mapped[Optional[str]] = mapped_column(String(20))

    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tax_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    service_charge_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    delivery_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    estimated_ready_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    actual_ready_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text)

    # Set by approved refund / comp requests
    refund_cents: Mapped[Optional[int]] = mapped_column(Integer)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    comp_reason: Mapped[Optional[str]] = mapped_column(Text)
    comped_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", order_by="OrderItem.created_at"
    )

    __table_args__ = (
        CheckConstraint("total_cents >= 0", name="chk_order_total_non_negative"),
        Index("ix_order_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, number='{self.order_number}', status='{self.status}')>"


class OrderItem(TimestampMixin, Base):
    """
    A single line of an order.
    Stores the unit price at the time of order for historical accuracy.
    """

    __tablename__ = "order_item"

    id: Mapped[str] = uuid_pk()
    order_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("customer_order.id"), nullable=False, index=True
    )
    menu_item_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("menu_item.id"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    special_instructions: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_order_item_quantity_positive"),
        CheckConstraint("unit_price_cents >= 0", name="chk_order_item_price_non_negative"),
    )

    order: Mapped["Order"] = relationship(back_populates="items")
    menu_item: Mapped["MenuItem"] = relationship()

    @property
    def item_name(self) -> str | None:
        return self.menu_item.name if self.menu_item is not None else None
