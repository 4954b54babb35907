"""
SQLAlchemy ORM Models Package.

- base: Base class, TimestampMixin, id/time helpers
- user: User
- catalog: MenuItem
- order: Order, OrderItem
- approval: ApprovalRequest
- audit: AuditLog
"""

from .base import Base, TimestampMixin, as_utc, new_id, utcnow
from .user import User
from .catalog import MenuItem
from .order import Order, OrderItem
from .approval import ApprovalRequest
from .audit import AuditLog

__all__ = [
    "Base",
    "TimestampMixin",
    "new_id",
    "as_utc",
    "utcnow",
    "User",
    "MenuItem",
    "Order",
    "OrderItem",
    "ApprovalRequest",
    "AuditLog",
]
