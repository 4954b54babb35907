"""
Repository Pattern implementation.
Centralizes data access with guaranteed eager loading.

Usage:
    from rest_api.repositories import OrderRepository, OrderFilters

    repo = OrderRepository(db)
    orders = repo.find_all(OrderFilters(status="pending", limit=50))
    order = repo.find_by_id(order_id)
"""

from .base import BaseRepository, RepositoryFilters
from .catalog import MenuItemRepository
from .user import UserRepository
from .order import OrderRepository, OrderFilters
from .approval import ApprovalRepository, ApprovalFilters
from .audit import AuditRepository, AuditFilters

__all__ = [
    # Base
    "BaseRepository",
    "RepositoryFilters",
    # Catalog
    "MenuItemRepository",
    # User
    "UserRepository",
    # Order
    "OrderRepository",
    "OrderFilters",
    # Approval
    "ApprovalRepository",
    "ApprovalFilters",
    # Audit
    "AuditRepository",
    "AuditFilters",
]
