"""
Shared Pydantic schemas used across the application.

Request schemas only check shapes and types. Business rules with their own
error codes (quantity, description length, enum membership) are validated in
the domain services, so direct callers get the same errors as HTTP callers.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field


# =============================================================================
# Common Types
# =============================================================================

OrderTypeLiteral = Literal["dine_in", "takeaway", "delivery", "room_service"]
PaymentMethodLiteral = Literal["cash", "card", "whish", "online", "room_charge"]


# =============================================================================
# Order Schemas
# =============================================================================


class OrderItemInput(BaseModel):
    """Input for a single line of a new order."""

    menu_item_id: str
    quantity: int
    special_instructions: str | None = Field(default=None, max_length=500)


class OrderCreate(BaseModel):
    """Request to place a new order."""

    items: list[OrderItemInput]
    order_type: OrderTypeLiteral = "dine_in"
    customer_id: str | None = None
    customer_name: str | None = Field(default=None, max_length=255)
    customer_email: EmailStr | None = None
    customer_phone: str | None = Field(default=None, max_length=50)
    table_id: str | None = None
    special_instructions: str | None = Field(default=None, max_length=1000)
    payment_method: PaymentMethodLiteral | None = None


class OrderItemOutput(BaseModel):
    """Output for a single order line."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    menu_item_id: str
    item_name: str | None = None
    quantity: int
    unit_price_cents: int
    subtotal_cents: int
    special_instructions: str | None = None


class OrderOutput(BaseModel):
    """Output for an order with its items."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    order_number: str
    customer_id: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    table_id: str | None = None
    module_id: str | None = None
    order_type: str
    status: str
    payment_status: str
    payment_method: str | None = None
    special_instructions: str | None = None
    subtotal_cents: int
    tax_cents: int
    service_charge_cents: int
    delivery_fee_cents: int
    discount_cents: int
    total_cents: int
    refund_cents: int | None = None
    estimated_ready_time: datetime | None = None
    confirmed_at: datetime | None = None
    actual_ready_time: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    refunded_at: datetime | None = None
    comped_at: datetime | None = None
    comp_reason: str | None = None
    created_at: datetime
    updated_at: datetime | None = None
    items: list[OrderItemOutput] = []


class OrderListResponse(BaseModel):
    items: list[OrderOutput]
    total: int


class UpdateOrderStatusRequest(BaseModel):
    """Request to move an order to a new status."""

    status: str
    notes: str | None = Field(default=None, max_length=500)


class CancelOrderRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=1000)


# =============================================================================
# Approval Schemas
# =============================================================================


class ApprovalCreate(BaseModel):
    """Request for a privileged action that needs manager sign-off."""

    type: str
    description: str
    amount_cents: int | None = None
    original_amount_cents: int | None = None
    percentage: float | None = None
    reason: str | None = None
    reference_type: str | None = None
    reference_id: str | None = None


class ReviewDecision(BaseModel):
    """Manager decision on a pending approval request."""

    decision: str
    notes: str | None = None


class ApprovalOutput(BaseModel):
    """Approval request, enriched with requester and reviewer names."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    status: str
    description: str
    reason: str | None = None
    amount_cents: int | None = None
    original_amount_cents: int | None = None
    percentage: float | None = None
    reference_type: str | None = None
    reference_id: str | None = None
    requested_by: str
    requester_name: str | None = None
    requester_email: str | None = None
    reviewed_by: str | None = None
    reviewer_name: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    expires_at: datetime
    created_at: datetime


class ApprovalListResponse(BaseModel):
    items: list[ApprovalOutput]
    total: int


class ApprovalTypeStats(BaseModel):
    type: str
    approved_count: int
    approved_amount_cents: int


class ApprovalStats(BaseModel):
    """Approval counts for a date window."""

    start: datetime
    end: datetime
    total: int
    pending: int
    approved: int
    rejected: int
    by_type: list[ApprovalTypeStats]


# =============================================================================
# Audit Schemas
# =============================================================================


@dataclass
class AuditEntryInput:
    """
    Input for AuditService.log_activity.

    A dataclass rather than a pydantic model: old_value/new_value are checked
    by the service itself (mapping type, cycles) and must reach it untouched.
    """

    action: str
    resource: str
    user_id: str | None = None
    resource_id: str | None = None
    old_value: Any = None
    new_value: Any = None
    ip_address: str | None = None
    user_agent: str | None = None


class AuditLogOutput(BaseModel):
    """Audit entry enriched with the acting user's name and email."""

    id: str
    user_id: str | None = None
    user_name: str | None = None
    user_email: str | None = None
    action: str
    resource: str
    resource_id: str | None = None
    old_value: Any = None
    new_value: Any = None
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime


class AuditLogListResponse(BaseModel):
    items: list[AuditLogOutput]
    total: int
    limit: int
    offset: int


class AuditSummary(BaseModel):
    start: datetime | None = None
    end: datetime | None = None
    total: int
    by_action: dict[str, int]
    by_resource: dict[str, int]


class AuditCleanupResponse(BaseModel):
    deleted: int
    days: int


# =============================================================================
# Error Schemas
# =============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str
    code: str | None = None
