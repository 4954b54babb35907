"""
Order router.
Thin controller over OrderService: auth and request parsing only.
"""

from datetime import date
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status

from rest_api.routers._common import Pagination, get_order_service, get_pagination
from rest_api.services.domain import OrderService
from shared.config.constants import Roles, STAFF_ROLES
from shared.security.auth import current_user_context, optional_user_context, require_roles
from shared.utils.schemas import (
    CancelOrderRequest,
    OrderCreate,
    OrderListResponse,
    OrderOutput,
    UpdateOrderStatusRequest,
)


router = APIRouter(prefix="/api/orders", tags=["orders"])


def _require_visible(ctx: dict[str, Any], order: OrderOutput) -> OrderOutput:
    """Staff see every order; customers only their own."""
    if set(ctx.get("roles", [])) & STAFF_ROLES:
        return order
    if order.customer_id is None or order.customer_id != ctx.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to view this order",
        )
    return order


@router.post("", response_model=OrderOutput, status_code=status.HTTP_201_CREATED)
def create_order(
    body: OrderCreate,
    background_tasks: BackgroundTasks,
    service: OrderService = Depends(get_order_service),
    ctx: dict[str, Any] | None = Depends(optional_user_context),
) -> OrderOutput:
    """
    Place an order. Guests order anonymously and cannot name a customer;
    a signed-in customer's order is always attributed to them.
    """
    actor_id = ctx["sub"] if ctx else None
    if ctx is None:
        body = body.model_copy(update={"customer_id": None})
    elif Roles.CUSTOMER in ctx.get("roles", []):
        body = body.model_copy(update={"customer_id": ctx["sub"]})
    return service.create_order(body, actor_id=actor_id, background_tasks=background_tasks)


@router.get("", response_model=OrderListResponse)
def list_orders(
    status_filter: str | None = Query(default=None, alias="status"),
    on_date: date | None = None,
    module_id: str | None = None,
    customer_id: str | None = None,
    pagination: Pagination = Depends(get_pagination),
    service: OrderService = Depends(get_order_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderListResponse:
    require_roles(ctx, STAFF_ROLES)
    return service.list_orders(
        status=status_filter,
        on_date=on_date,
        module_id=module_id,
        customer_id=customer_id,
        limit=pagination.limit,
        offset=pagination.offset,
    )


@router.get("/live", response_model=list[OrderOutput])
def list_live_orders(
    module_id: str | None = None,
    service: OrderService = Depends(get_order_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[OrderOutput]:
    """Kitchen queue: orders not yet completed or cancelled, oldest first."""
    require_roles(ctx, STAFF_ROLES)
    return service.list_live_orders(module_id)


@router.get("/number/{order_number}", response_model=OrderOutput)
def get_order_by_number(
    order_number: str,
    service: OrderService = Depends(get_order_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderOutput:
    return _require_visible(ctx, service.get_order_by_number(order_number))


@router.get("/{order_id}", response_model=OrderOutput)
def get_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderOutput:
    return _require_visible(ctx, service.get_order(order_id))


@router.patch("/{order_id}/status", response_model=OrderOutput)
def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    service: OrderService = Depends(get_order_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderOutput:
    require_roles(ctx, STAFF_ROLES)
    return service.update_status(order_id, body.status, actor_id=ctx["sub"], notes=body.notes)


@router.post("/{order_id}/cancel", response_model=OrderOutput)
def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    service: OrderService = Depends(get_order_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderOutput:
    require_roles(ctx, STAFF_ROLES)
    return service.cancel_order(order_id, body.reason, actor_id=ctx["sub"])


@router.post("/{order_id}/reprice", response_model=OrderOutput)
def reprice_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderOutput:
    """Fold approved discounts and price adjustments into the order totals."""
    require_roles(ctx, STAFF_ROLES)
    return service.reprice(order_id, actor_id=ctx["sub"])
