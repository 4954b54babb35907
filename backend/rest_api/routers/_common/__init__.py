"""
Common utilities shared across routers.
"""

from .dependencies import (
    get_approval_service,
    get_audit_service,
    get_notification_service,
    get_order_service,
)
from .pagination import Pagination, get_pagination

__all__ = [
    "get_approval_service",
    "get_audit_service",
    "get_notification_service",
    "get_order_service",
    "Pagination",
    "get_pagination",
]
