"""
Centralized constants for the order workflow core.

Usage:
    from shared.config.constants import OrderStatus, REVIEWER_ROLES, ApprovalType

    if status in OrderStatus.TERMINAL:
        ...

    if approval_type is ApprovalType.VOID:
        ...
"""

from enum import Enum
from typing import Final


# =============================================================================
# User Roles
# =============================================================================


class Roles:
    """User role constants."""

    SUPER_ADMIN: Final[str] = "super_admin"
    ADMIN: Final[str] = "admin"
    MANAGER: Final[str] = "manager"
    STAFF: Final[str] = "staff"
    CUSTOMER: Final[str] = "customer"

    ALL: Final[list[str]] = [SUPER_ADMIN, ADMIN, MANAGER, STAFF, CUSTOMER]


# Roles notified about (and allowed to review) approval requests
REVIEWER_ROLES: Final[frozenset[str]] = frozenset({Roles.SUPER_ADMIN, Roles.ADMIN, Roles.MANAGER})
STAFF_ROLES: Final[frozenset[str]] = frozenset(
    {Roles.SUPER_ADMIN, Roles.ADMIN, Roles.MANAGER, Roles.STAFF}
)


# =============================================================================
# Orders
# =============================================================================


class OrderStatus:
    """Order lifecycle status constants."""

    PENDING: Final[str] = "pending"
    CONFIRMED: Final[str] = "confirmed"
    PREPARING: Final[str] = "preparing"
    READY: Final[str] = "ready"
    COMPLETED: Final[str] = "completed"
    CANCELLED: Final[str] = "cancelled"

    ALL: Final[list[str]] = [PENDING, CONFIRMED, PREPARING, READY, COMPLETED, CANCELLED]
    ACTIVE: Final[list[str]] = [PENDING, CONFIRMED, PREPARING, READY]
    TERMINAL: Final[frozenset[str]] = frozenset({COMPLETED, CANCELLED})


# Allowed transitions per current status. Terminal states have none.
ORDER_TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


class OrderType:
    """Order fulfilment type constants."""

    DINE_IN: Final[str] = "dine_in"
    TAKEAWAY: Final[str] = "takeaway"
    DELIVERY: Final[str] = "delivery"
    ROOM_SERVICE: Final[str] = "room_service"

    ALL: Final[list[str]] = [DINE_IN, TAKEAWAY, DELIVERY, ROOM_SERVICE]


class PaymentStatus:
    """Order payment status constants."""

    PENDING: Final[str] = "pending"
    PAID: Final[str] = "paid"
    REFUNDED: Final[str] = "refunded"
    COMPED: Final[str] = "comped"


class PaymentMethod:
    """Payment method constants."""

    CASH: Final[str] = "cash"
    CARD: Final[str] = "card"
    WHISH: Final[str] = "whish"
    ONLINE: Final[str] = "online"
    ROOM_CHARGE: Final[str] = "room_charge"

    ALL: Final[list[str]] = [CASH, CARD, WHISH, ONLINE, ROOM_CHARGE]


# =============================================================================
# Approvals
# =============================================================================


class ApprovalType(str, Enum):
    """Kinds of privileged action that need manager sign-off."""

    REFUND = "refund"
    DISCOUNT = "discount"
    VOID = "void"
    OVERRIDE = "override"
    PRICE_ADJUSTMENT = "price_adjustment"
    COMP = "comp"


class ApprovalStatus:
    """Approval request status constants."""

    PENDING: Final[str] = "pending"
    APPROVED: Final[str] = "approved"
    REJECTED: Final[str] = "rejected"

    ALL: Final[list[str]] = [PENDING, APPROVED, REJECTED]
    DECISIONS: Final[frozenset[str]] = frozenset({APPROVED, REJECTED})


# Approval types whose approved requests reduce an order's total
DISCOUNT_APPROVAL_TYPES: Final[frozenset[ApprovalType]] = frozenset(
    {ApprovalType.DISCOUNT, ApprovalType.PRICE_ADJUSTMENT}
)

# reference_type value that ties an approval request to an order
REFERENCE_TYPE_ORDER: Final[str] = "order"


# =============================================================================
# Audit
# =============================================================================


class AuditAction:
    """Audit trail action constants."""

    CREATE: Final[str] = "create"
    UPDATE: Final[str] = "update"
    DELETE: Final[str] = "delete"
    LOGIN: Final[str] = "login"
    LOGOUT: Final[str] = "logout"
    PASSWORD_CHANGE: Final[str] = "password_change"
    ROLE_CHANGE: Final[str] = "role_change"
    STATUS_CHANGE: Final[str] = "status_change"
    SETTINGS_UPDATE: Final[str] = "settings_update"

    ALL: Final[list[str]] = [
        CREATE, UPDATE, DELETE, LOGIN, LOGOUT,
        PASSWORD_CHANGE, ROLE_CHANGE, STATUS_CHANGE, SETTINGS_UPDATE,
    ]


class AuditResource:
    """Audit trail resource kind constants."""

    USER: Final[str] = "user"
    BOOKING: Final[str] = "booking"
    ORDER: Final[str] = "order"
    CHALET: Final[str] = "chalet"
    MENU_ITEM: Final[str] = "menu_item"
    REVIEW: Final[str] = "review"
    SETTINGS: Final[str] = "settings"
    POOL_TICKET: Final[str] = "pool_ticket"
    SNACK_ITEM: Final[str] = "snack_item"
    SUPPORT_INQUIRY: Final[str] = "support_inquiry"
    APPROVAL_REQUEST: Final[str] = "approval_request"

    ALL: Final[list[str]] = [
        USER, BOOKING, ORDER, CHALET, MENU_ITEM, REVIEW, SETTINGS,
        POOL_TICKET, SNACK_ITEM, SUPPORT_INQUIRY, APPROVAL_REQUEST,
    ]


# =============================================================================
# Events
# =============================================================================


class EventNames:
    """Event names emitted through the dispatcher."""

    ORDER_NEW: Final[str] = "order:new"
    ORDER_STATUS: Final[str] = "order:status"
    ORDER_CANCELLED: Final[str] = "order:cancelled"
    ORDER_UPDATED: Final[str] = "order:updated"
    APPROVAL_NEW: Final[str] = "approval:new"
    APPROVAL_REVIEWED: Final[str] = "approval:reviewed"
    NOTIFICATION: Final[str] = "notification"


# =============================================================================
# Limits
# =============================================================================


class Limits:
    """Validation and pagination limits."""

    DESCRIPTION_MAX_LENGTH: Final[int] = 500
    REASON_MAX_LENGTH: Final[int] = 1000
    REVIEW_NOTES_MAX_LENGTH: Final[int] = 500
    DEFAULT_PAGE_SIZE: Final[int] = 20
    MAX_PAGE_SIZE: Final[int] = 200
    AUDIT_DEFAULT_LIMIT: Final[int] = 50
    AUDIT_MAX_LIMIT: Final[int] = 1000
    APPROVAL_STATS_DEFAULT_DAYS: Final[int] = 30
