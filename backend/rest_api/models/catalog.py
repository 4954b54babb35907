"""
Catalog Model: MenuItem.

Catalog CRUD lives elsewhere; the order workflow only reads items to validate
and price new orders.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, uuid_pk


class MenuItem(TimestampMixin, Base):
    """A sellable menu item and its current price."""

    __tablename__ = "menu_item"

    id: Mapped[str] = uuid_pk()
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Business unit (restaurant, snack bar, ...) the item is prepared in
    module_id: Mapped[Optional[str]] = mapped_column(String(36), index=True)
    prep_time_minutes: Mapped[Optional[int]] = mapped_column(Integer)

    __table_args__ = (
        CheckConstraint("price_cents >= 0", name="chk_menu_item_price_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<MenuItem(id={self.id}, name='{self.name}', price_cents={self.price_cents})>"
