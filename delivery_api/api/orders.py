"""
Delivery API — Orders API

Customer checkout, admin/restaurant status control and the tracking timeline.
Domain errors raised by ops are turned into HTTP responses by the handler in
main.py, so routes here only translate request shapes.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status

from delivery_api.models.order import ActorType, OrderStatus
from delivery_api.ops import orders as order_ops
from delivery_api.schemas.order import (
    AssignDriverRequest,
    CancelRequest,
    OrderCreate,
    OrderRead,
    OrderTrackResponse,
    OrderUpdate,
    StatusUpdate,
)
from delivery_api.storage import OrderFilter, Storage, get_storage

router = APIRouter(prefix="/api/orders", tags=["orders"])


def _parse_statuses(raw: str | None) -> list[OrderStatus] | None:
    """`?status=pending,confirmed` → [PENDING, CONFIRMED]."""
    if not raw:
        return None
    try:
        return [OrderStatus(s.strip()) for s in raw.split(",") if s.strip()]
    except ValueError:
        valid = ", ".join(s.value for s in OrderStatus)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid status filter '{raw}'. Valid statuses are: {valid}",
        )


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
async def create_order(payload: OrderCreate, storage: Storage = Depends(get_storage)):
    """Place an order. Repeats with the same Idempotency-Key are replayed by middleware."""
    return await order_ops.create_order(storage, payload)


@router.get("", response_model=list[OrderRead])
async def list_orders(
    driver_id: str | None = Query(None, alias="driverId"),
    status_filter: str | None = Query(None, alias="status", description="Comma-separated statuses"),
    restaurant_id: str | None = Query(None, alias="restaurantId"),
    storage: Storage = Depends(get_storage),
):
    return await storage.list_orders(OrderFilter(
        driver_id=driver_id,
        statuses=_parse_statuses(status_filter),
        restaurant_id=restaurant_id,
    ))


@router.get("/customer/{phone}", response_model=list[OrderRead])
async def list_customer_orders(phone: str, storage: Storage = Depends(get_storage)):
    return await storage.list_orders(OrderFilter(customer_phone=phone))


@router.get("/{order_id}", response_model=OrderRead)
async def get_order(order_id: str, storage: Storage = Depends(get_storage)):
    return await order_ops.get_order(storage, order_id)


@router.put("/{order_id}", response_model=OrderRead)
async def update_order(order_id: str, payload: OrderUpdate, storage: Storage = Depends(get_storage)):
    """Partial update of status and/or driver. Both go through the same guards as the dedicated endpoints."""
    return await order_ops.apply_order_update(
        storage,
        order_id,
        status=payload.status,
        driver_id=payload.driver_id,
        message=payload.message,
    )


@router.put("/{order_id}/assign-driver", response_model=OrderRead)
async def assign_driver(order_id: str, payload: AssignDriverRequest, storage: Storage = Depends(get_storage)):
    """Admin dispatch: same atomic claim as a driver accepting the order."""
    return await order_ops.accept_order(storage, order_id, payload.driver_id, actor_type=ActorType.SYSTEM)


@router.patch("/{order_id}/status", response_model=OrderRead)
async def update_order_status(order_id: str, payload: StatusUpdate, storage: Storage = Depends(get_storage)):
    return await order_ops.update_order_status(
        storage,
        order_id,
        payload.status,
        message=payload.message,
        actor_type=payload.updated_by_type,
        actor_id=payload.updated_by,
    )


@router.patch("/{order_id}/cancel", response_model=OrderRead)
async def cancel_order(order_id: str, payload: CancelRequest, storage: Storage = Depends(get_storage)):
    return await order_ops.cancel_order(
        storage, order_id, reason=payload.reason, cancelled_by=payload.cancelled_by,
    )


@router.get("/{order_id}/track", response_model=OrderTrackResponse)
async def track_order(order_id: str, storage: Storage = Depends(get_storage)):
    """Order, its persisted status timeline (oldest first) and the driver's last location."""
    return await order_ops.track_order(storage, order_id)
