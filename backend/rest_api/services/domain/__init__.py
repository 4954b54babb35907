"""
Domain Services - application layer.

Services contain business logic and orchestrate operations.
They use Repositories for data access and emit events after commit.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Repository (data access)
        ↓
    Model (entity)

Usage:
    from rest_api.services.domain import OrderService

    service = OrderService(db, dispatcher, notifier)
    order = service.update_status(order_id, "confirmed", actor_id=ctx["sub"])
"""

from .pricing import OrderTotals, PricingConfig, PricingEngine
from .audit_service import AuditService, serialize_model
from .notification_service import NotificationService
from .order_service import OrderService, generate_order_number
from .approval_service import ApprovalService

__all__ = [
    "OrderTotals",
    "PricingConfig",
    "PricingEngine",
    "AuditService",
    "serialize_model",
    "NotificationService",
    "OrderService",
    "generate_order_number",
    "ApprovalService",
]
