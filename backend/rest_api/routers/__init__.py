"""
API routers.
"""

from .approvals import router as approvals_router
from .audit import router as audit_router
from .health import router as health_router
from .orders import router as orders_router

__all__ = [
    "approvals_router",
    "audit_router",
    "health_router",
    "orders_router",
]
