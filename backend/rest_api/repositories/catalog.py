"""
Menu item lookup used to validate and price new orders.
"""

from sqlalchemy import Select, select

from rest_api.models import MenuItem
from .base import BaseRepository, RepositoryFilters


class MenuItemRepository(BaseRepository[MenuItem]):

    @property
    def model(self) -> type[MenuItem]:
        return MenuItem

    def _base_query(self) -> Select:
        return select(MenuItem).order_by(MenuItem.name)

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        return query

    def get_by_ids(self, item_ids: list[str]) -> dict[str, MenuItem]:
        """Resolve catalog items keyed by id. Unknown ids are simply absent."""
        return {item.id: item for item in self.find_by_ids(list(set(item_ids)))}
