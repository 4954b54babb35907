"""
User lookup for enriching listings with display names.
"""

from sqlalchemy import Select, select

from rest_api.models import User
from .base import BaseRepository, RepositoryFilters


class UserRepository(BaseRepository[User]):

    @property
    def model(self) -> type[User]:
        return User

    def _base_query(self) -> Select:
        return select(User).order_by(User.full_name)

    def _apply_filters(self, query: Select, filters: RepositoryFilters) -> Select:
        return query

    def get_many(self, user_ids) -> dict[str, User]:
        """Batch-load users keyed by id, skipping None ids."""
        ids = [user_id for user_id in set(user_ids) if user_id]
        return {user.id: user for user in self.find_by_ids(ids)}
