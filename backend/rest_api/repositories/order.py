"""
Order Repository - Data access for orders.
Items and their menu items are always eager loaded.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import Select, select, update
from sqlalchemy.orm import selectinload

from rest_api.models import Order, OrderItem
from shared.config.constants import OrderStatus
from .base import BaseRepository, RepositoryFilters


@dataclass
class OrderFilters(RepositoryFilters):
    """Filters specific to orders."""

    status: str | None = None
    module_id: str | None = None
    customer_id: str | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None


class OrderRepository(BaseRepository[Order]):
    """
    Repository for Order entities.

    Guarantees eager loading of items -> menu_item.
    """

    @property
    def model(self) -> type[Order]:
        return Order

    def _base_query(self) -> Select:
        return (
            select(Order)
            .options(selectinload(Order.items).selectinload(OrderItem.menu_item))
            .order_by(Order.created_at.desc())
        )

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        if not isinstance(filters, OrderFilters):
            return query

        if filters.status:
            query = query.where(Order.status == filters.status)

        if filters.module_id:
            query = query.where(Order.module_id == filters.module_id)
        if filters.customer_id:
            query = query.where(Order.customer_id == filters.customer_id)
        if filters.created_from:
            query = query.where(Order.created_at >= filters.created_from)
        if filters.created_to:
            query = query.where(Order.created_at < filters.created_to)

        return query

    def find_current(self, order_id: str) -> Order | None:
        """Load an order, overwriting any stale copy held by the session."""
        return self._db.scalar(
            self._base_query()
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )

    def find_by_number(self, order_number: str) -> Order | None:
        return self._db.scalar(
            self._base_query().where(Order.order_number == order_number)
        )

    def number_exists(self, order_number: str) -> bool:
        return self._db.scalar(
            select(Order.id).where(Order.order_number == order_number)
        ) is not None

    def find_live(self, module_id: str | None = None) -> Sequence[Order]:
        """Non-terminal orders, oldest first (kitchen queue order)."""
        query = (
            select(Order)
            .options(selectinload(Order.items).selectinload(OrderItem.menu_item))
            .where(Order.status.in_(OrderStatus.ACTIVE))
            .order_by(Order.created_at.asc())
        )
        if module_id:
            query = query.where(Order.module_id == module_id)
        return self._db.execute(query).scalars().unique().all()

    def compare_and_set_status(
        self,
        order_id: str,
        expected_status: str,
        values: dict[str, Any],
    ) -> bool:
        """
        Conditionally write an order row.

        The UPDATE only matches while the row still has expected_status, so
        two writers that read the same status cannot both succeed.
        Returns True if the row was updated.
        """
        result = self._db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    def compare_and_set_payment(
        self,
        order_id: str,
        expected_payment_status: str,
        values: dict[str, Any],
    ) -> bool:
        """Conditionally write payment columns while payment_status is unchanged."""
        result = self._db.execute(
            update(Order)
            .where(Order.id == order_id, Order.payment_status == expected_payment_status)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1
