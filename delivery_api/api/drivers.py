"""
Delivery API — Drivers API

Driver records, availability, the available-orders poll and the
accept/complete actions of the driver app. There is no authentication in
this build: the driver acts through the id in the path.
"""
from typing import Literal

from fastapi import APIRouter, Depends, Query, Response, status

from delivery_api.models.order import OrderStatus
from delivery_api.ops import drivers as driver_ops
from delivery_api.ops import orders as order_ops
from delivery_api.schemas.driver import (
    DriverCreate,
    DriverDashboard,
    DriverRead,
    DriverStats,
    DriverStatusUpdate,
    DriverUpdate,
)
from delivery_api.schemas.order import DriverOrderRequest, OrderRead
from delivery_api.storage import Storage, get_storage

router = APIRouter(prefix="/api/drivers", tags=["drivers"])


@router.get("", response_model=list[DriverRead])
async def list_drivers(available: bool = False, storage: Storage = Depends(get_storage)):
    return await storage.list_drivers(available_only=available)


@router.post("", response_model=DriverRead, status_code=status.HTTP_201_CREATED)
async def create_driver(payload: DriverCreate, storage: Storage = Depends(get_storage)):
    return await driver_ops.create_driver(storage, payload)


@router.get("/{driver_id}", response_model=DriverRead)
async def get_driver(driver_id: str, storage: Storage = Depends(get_storage)):
    return await driver_ops.get_driver(storage, driver_id)


@router.put("/{driver_id}", response_model=DriverRead)
async def update_driver(driver_id: str, payload: DriverUpdate, storage: Storage = Depends(get_storage)):
    return await driver_ops.update_driver(storage, driver_id, payload)


@router.delete("/{driver_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_driver(driver_id: str, storage: Storage = Depends(get_storage)):
    """Deactivates the driver; orders they delivered keep pointing at the row."""
    await driver_ops.deactivate_driver(storage, driver_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{driver_id}/status", response_model=DriverRead)
async def update_driver_status(driver_id: str, payload: DriverStatusUpdate, storage: Storage = Depends(get_storage)):
    """Go on/off duty, optionally reporting a position."""
    location = None
    if payload.latitude is not None and payload.longitude is not None:
        location = f"{payload.latitude},{payload.longitude}"
    return await driver_ops.set_availability(
        storage, driver_id, payload.status == "available", location=location,
    )


@router.get("/{driver_id}/available-orders", response_model=list[OrderRead])
async def available_orders(driver_id: str, storage: Storage = Depends(get_storage)):
    return await driver_ops.list_available_orders(storage, driver_id)


@router.get("/{driver_id}/orders", response_model=list[OrderRead])
async def driver_orders(
    driver_id: str,
    status_filter: OrderStatus | None = Query(None, alias="status"),
    storage: Storage = Depends(get_storage),
):
    return await driver_ops.list_driver_orders(storage, driver_id, status_filter)


@router.post("/{driver_id}/accept-order", response_model=OrderRead)
async def accept_order(driver_id: str, payload: DriverOrderRequest, storage: Storage = Depends(get_storage)):
    """Claim an order. 409 when another driver was first."""
    return await order_ops.accept_order(storage, payload.order_id, driver_id)


@router.post("/{driver_id}/complete-order", response_model=OrderRead)
async def complete_order(driver_id: str, payload: DriverOrderRequest, storage: Storage = Depends(get_storage)):
    return await order_ops.complete_order(storage, payload.order_id, driver_id)


@router.get("/{driver_id}/stats", response_model=DriverStats)
async def stats(
    driver_id: str,
    period: Literal["today", "week", "month"] = "today",
    storage: Storage = Depends(get_storage),
):
    return await driver_ops.driver_stats(storage, driver_id, period)


@router.get("/{driver_id}/dashboard", response_model=DriverDashboard)
async def dashboard(driver_id: str, storage: Storage = Depends(get_storage)):
    return await driver_ops.driver_dashboard(storage, driver_id)
