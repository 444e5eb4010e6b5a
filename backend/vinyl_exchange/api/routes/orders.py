"""Order Routes — scoped reads and seller fulfilment actions."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from vinyl_exchange.api.dependencies import get_current_user_id, get_order_lifecycle
from vinyl_exchange.core.domain_types import OrderStatus, PartyRole, UserId
from vinyl_exchange.schemas.order import CancelOrderRequest, OrderResponse, ShipOrderRequest
from vinyl_exchange.services.order_lifecycle import OrderLifecycle

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


@router.get("", response_model=list[OrderResponse])
async def list_orders(
    role: PartyRole | None = Query(None),
    status_filter: OrderStatus | None = Query(None, alias="status"),
    user_id: UserId = Depends(get_current_user_id),
    orders: OrderLifecycle = Depends(get_order_lifecycle),
):
    return await orders.list_orders(user_id, role, status_filter)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    user_id: UserId = Depends(get_current_user_id),
    orders: OrderLifecycle = Depends(get_order_lifecycle),
):
    return await orders.get_order(order_id, user_id)


@router.post("/{order_id}/ship", response_model=OrderResponse)
async def ship_order(
    order_id: UUID,
    body: ShipOrderRequest | None = None,
    user_id: UserId = Depends(get_current_user_id),
    orders: OrderLifecycle = Depends(get_order_lifecycle),
):
    body = body or ShipOrderRequest()
    return await orders.mark_shipped(order_id, user_id, body.tracking_number, body.notes)


@router.post("/{order_id}/complete", response_model=OrderResponse)
async def complete_order(
    order_id: UUID,
    user_id: UserId = Depends(get_current_user_id),
    orders: OrderLifecycle = Depends(get_order_lifecycle),
):
    return await orders.mark_completed(order_id, user_id)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: UUID,
    body: CancelOrderRequest | None = None,
    user_id: UserId = Depends(get_current_user_id),
    orders: OrderLifecycle = Depends(get_order_lifecycle),
):
    notes = body.notes if body else None
    return await orders.cancel_order(order_id, user_id, notes)
