"""
Delivery API — Driver operations
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from delivery_api.core.config import get_settings
from delivery_api.core.exceptions import DriverNotFound
from delivery_api.models.order import OrderStatus
from delivery_api.ops.lifecycle import CLAIMABLE_STATUSES, OPEN_STATUSES
from delivery_api.schemas.driver import (
    DriverCreate,
    DriverDashboard,
    DriverDashboardStats,
    DriverRead,
    DriverStats,
    DriverUpdate,
)
from delivery_api.schemas.order import OrderRead
from delivery_api.storage.base import OrderFilter, Storage

settings = get_settings()
logger = logging.getLogger(__name__)


async def get_driver(storage: Storage, driver_id: str) -> DriverRead:
    driver = await storage.get_driver(driver_id)
    if driver is None:
        raise DriverNotFound(driver_id)
    return driver


async def create_driver(storage: Storage, payload: DriverCreate) -> DriverRead:
    driver = await storage.create_driver(payload.model_dump())
    logger.info("Driver %s registered (%s)", driver.id, driver.phone)
    return driver


async def update_driver(storage: Storage, driver_id: str, payload: DriverUpdate) -> DriverRead:
    changes = payload.model_dump(exclude_unset=True)
    driver = await storage.update_driver(driver_id, changes)
    if driver is None:
        raise DriverNotFound(driver_id)
    return driver


async def deactivate_driver(storage: Storage, driver_id: str) -> DriverRead:
    """Soft delete: the row stays so past orders keep their driver."""
    driver = await storage.update_driver(driver_id, {"is_active": False, "is_available": False})
    if driver is None:
        raise DriverNotFound(driver_id)
    logger.info("Driver %s deactivated", driver_id)
    return driver


async def set_availability(
    storage: Storage,
    driver_id: str,
    is_available: bool,
    location: str | None = None,
) -> DriverRead:
    changes: dict = {"is_available": is_available}
    if location is not None:
        changes["current_location"] = location
    driver = await storage.update_driver(driver_id, changes)
    if driver is None:
        raise DriverNotFound(driver_id)
    logger.info("Driver %s is now %s", driver_id, "available" if is_available else "offline")
    return driver


async def list_available_orders(storage: Storage, driver_id: str) -> list[OrderRead]:
    """Unassigned orders a driver could claim right now; empty while the driver is off duty."""
    driver = await get_driver(storage, driver_id)
    if not (driver.is_active and driver.is_available):
        return []
    return await storage.list_orders(OrderFilter(
        statuses=CLAIMABLE_STATUSES,
        unassigned_only=True,
        limit=settings.AVAILABLE_ORDERS_LIMIT,
    ))


async def list_driver_orders(storage: Storage, driver_id: str, status: OrderStatus | None = None) -> list[OrderRead]:
    await get_driver(storage, driver_id)
    return await storage.list_orders(OrderFilter(
        driver_id=driver_id,
        statuses=[status] if status else None,
    ))


def _period_start(period: str, now: datetime) -> datetime:
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now - timedelta(days=30)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


async def driver_stats(storage: Storage, driver_id: str, period: str = "today") -> DriverStats:
    """Delivered orders and earnings for the driver over the period."""
    await get_driver(storage, driver_id)
    end = datetime.now(timezone.utc)
    start = _period_start(period, end)
    delivered = await storage.list_orders(OrderFilter(
        driver_id=driver_id,
        statuses=[OrderStatus.DELIVERED],
        created_from=start,
        created_to=end,
    ))
    total = sum((o.driver_earnings for o in delivered), Decimal("0"))
    avg = (total / len(delivered)).quantize(Decimal("0.01")) if delivered else Decimal("0")
    return DriverStats(
        period=period,
        start_date=start,
        end_date=end,
        total_orders=len(delivered),
        total_earnings=total,
        avg_order_value=avg,
    )


def _earned(orders: list[OrderRead]) -> Decimal:
    return sum((o.driver_earnings for o in orders if o.status == OrderStatus.DELIVERED), Decimal("0"))


async def driver_dashboard(storage: Storage, driver_id: str) -> DriverDashboard:
    """Today's numbers, lifetime earnings, claimable orders and the orders in hand."""
    await get_driver(storage, driver_id)
    start_of_day = _period_start("today", datetime.now(timezone.utc))
    orders = await storage.list_orders(OrderFilter(driver_id=driver_id))
    today = await storage.list_orders(OrderFilter(driver_id=driver_id, created_from=start_of_day))
    completed_today = [o for o in today if o.status == OrderStatus.DELIVERED]

    return DriverDashboard(
        stats=DriverDashboardStats(
            today_orders=len(today),
            completed_today=len(completed_today),
            today_earnings=_earned(completed_today),
            total_orders=len(orders),
            total_earnings=_earned(orders),
        ),
        available_orders=await list_available_orders(storage, driver_id),
        current_orders=[o for o in orders if o.status in OPEN_STATUSES],
    )
