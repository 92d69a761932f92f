"""
Delivery API — In-memory storage

Rows are kept as plain dicts shaped like the SQL tables (items stay a JSON
string) so both backends feed the same schemas. A single asyncio.Lock
serialises every mutation; each method checks all of its preconditions before
changing anything, so a rejected call leaves no partial write behind.
"""
import asyncio
import itertools
import logging
import uuid
from collections.abc import Collection
from decimal import Decimal
from typing import Any

from delivery_api.core.exceptions import (
    DriverNotFound,
    DriverUnavailable,
    DuplicateDriver,
    InvalidTransition,
    OrderAlreadyAssigned,
    OrderNotFound,
)
from delivery_api.core.metrics import NOTIFICATION_WRITE_FAILURES
from delivery_api.core.optimistic_lock import StaleDataError
from delivery_api.models.order import OrderStatus, utcnow
from delivery_api.schemas.driver import DriverRead
from delivery_api.schemas.notification import NotificationCreate, NotificationRead
from delivery_api.schemas.order import OrderRead, TrackingEventCreate, TrackingEventRead
from delivery_api.storage.base import DriverSettlement, OrderChanges, OrderFilter, Storage

logger = logging.getLogger(__name__)


class MemoryStorage(Storage):

    def __init__(self):
        self._orders: dict[str, dict[str, Any]] = {}
        self._drivers: dict[str, dict[str, Any]] = {}
        self._events: list[dict[str, Any]] = []
        self._notifications: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()
        self._seq = itertools.count()

    # ── Helpers ───────────────────────────────────────────────
    def _insert_event(self, event: TrackingEventCreate) -> None:
        self._events.append({
            **event.model_dump(),
            "id": str(uuid.uuid4()),
            "created_at": utcnow(),
            "_seq": next(self._seq),
        })

    def _insert_notification(self, notification: NotificationCreate) -> dict[str, Any]:
        row = {
            **notification.model_dump(),
            "id": str(uuid.uuid4()),
            "is_read": False,
            "created_at": utcnow(),
            "_seq": next(self._seq),
        }
        self._notifications[row["id"]] = row
        return row

    def _write_notification(self, notification: NotificationCreate | None) -> None:
        if notification is None:
            return
        try:
            self._insert_notification(notification)
        except Exception:
            # Notification failures MUST NOT affect order processing
            NOTIFICATION_WRITE_FAILURES.labels(notification_type=notification.type).inc()
            logger.exception("Dropped %s notification for order %s", notification.type, notification.order_id)

    def _holds_other_order(self, settlement: DriverSettlement, order_id: str) -> bool:
        return any(
            o["driver_id"] == settlement.driver_id and o["id"] != order_id and o["status"] in settlement.busy_statuses
            for o in self._orders.values()
        )

    @staticmethod
    def _newest_first(rows):
        return sorted(rows, key=lambda r: (r["created_at"], r["_seq"]), reverse=True)

    # ── Orders ────────────────────────────────────────────────
    async def create_order(
        self,
        values: dict[str, Any],
        event: TrackingEventCreate | None = None,
        notification: NotificationCreate | None = None,
    ) -> OrderRead:
        async with self._lock:
            now = utcnow()
            row = {
                "status": OrderStatus.PENDING,
                "driver_id": None,
                "driver_earnings": Decimal("0"),
                "delivered_at": None,
                **values,
                "version_id": 1,
                "created_at": now,
                "updated_at": now,
                "_seq": next(self._seq),
            }
            self._orders[row["id"]] = row
            if event is not None:
                self._insert_event(event)
            self._write_notification(notification)
            return OrderRead.model_validate(row)

    async def get_order(self, order_id: str) -> OrderRead | None:
        row = self._orders.get(order_id)
        return OrderRead.model_validate(row) if row else None

    async def list_orders(self, filters: OrderFilter | None = None) -> list[OrderRead]:
        f = filters or OrderFilter()
        rows = []
        for row in self._orders.values():
            if f.driver_id is not None and row["driver_id"] != f.driver_id:
                continue
            if f.statuses is not None and row["status"] not in f.statuses:
                continue
            if f.restaurant_id is not None and row["restaurant_id"] != f.restaurant_id:
                continue
            if f.customer_phone is not None and row["customer_phone"] != f.customer_phone:
                continue
            if f.unassigned_only and row["driver_id"] is not None:
                continue
            if f.created_from is not None and row["created_at"] < f.created_from:
                continue
            if f.created_to is not None and row["created_at"] > f.created_to:
                continue
            rows.append(row)
        rows = self._newest_first(rows)
        if f.limit is not None:
            rows = rows[:f.limit]
        return [OrderRead.model_validate(r) for r in rows]

    async def claim_order(
        self,
        order_id: str,
        driver_id: str,
        *,
        claimable: Collection[OrderStatus],
        new_status: OrderStatus,
        driver_earnings: Decimal,
        event: TrackingEventCreate,
        notification: NotificationCreate | None = None,
    ) -> OrderRead:
        async with self._lock:
            row = self._orders.get(order_id)
            if row is None:
                raise OrderNotFound(order_id)
            if row["driver_id"] is not None:
                raise OrderAlreadyAssigned(order_id, row["driver_id"])
            if row["status"] not in claimable:
                raise InvalidTransition(row["status"], new_status, "Order is no longer open for drivers.")

            driver = self._drivers.get(driver_id)
            if driver is None:
                raise DriverNotFound(driver_id)
            if not (driver["is_active"] and driver["is_available"]):
                raise DriverUnavailable(driver_id)

            now = utcnow()
            row.update(
                driver_id=driver_id,
                status=new_status,
                driver_earnings=driver_earnings,
                version_id=row["version_id"] + 1,
                updated_at=now,
            )
            driver.update(is_available=False, updated_at=now)
            self._insert_event(event)
            self._write_notification(notification)
            return OrderRead.model_validate(row)

    async def transition_order(
        self,
        order_id: str,
        *,
        expected_version: int,
        changes: OrderChanges,
        event: TrackingEventCreate,
        settlement: DriverSettlement | None = None,
        notification: NotificationCreate | None = None,
    ) -> OrderRead:
        async with self._lock:
            row = self._orders.get(order_id)
            if row is None or row["version_id"] != expected_version:
                raise StaleDataError(f"Order {order_id} changed since version {expected_version}.")

            now = utcnow()
            row.update(
                status=changes.status,
                version_id=expected_version + 1,
                updated_at=now,
                **changes.extra,
            )
            if settlement is not None:
                driver = self._drivers.get(settlement.driver_id)
                if driver is not None:
                    driver["earnings"] = driver["earnings"] + settlement.earnings
                    if settlement.release and not self._holds_other_order(settlement, order_id):
                        driver["is_available"] = True
                    driver["updated_at"] = now
            self._insert_event(event)
            self._write_notification(notification)
            return OrderRead.model_validate(row)

    async def list_tracking_events(self, order_id: str) -> list[TrackingEventRead]:
        rows = [e for e in self._events if e["order_id"] == order_id]
        rows.sort(key=lambda e: (e["created_at"], e["_seq"]))
        return [TrackingEventRead.model_validate(e) for e in rows]

    # ── Drivers ───────────────────────────────────────────────
    async def create_driver(self, values: dict[str, Any]) -> DriverRead:
        async with self._lock:
            if any(d["phone"] == values["phone"] for d in self._drivers.values()):
                raise DuplicateDriver(values["phone"])
            now = utcnow()
            row = {
                "id": str(uuid.uuid4()),
                "email": None,
                "is_available": True,
                "is_active": True,
                "current_location": None,
                **values,
                "earnings": Decimal("0"),
                "created_at": now,
                "updated_at": now,
                "_seq": next(self._seq),
            }
            self._drivers[row["id"]] = row
            return DriverRead.model_validate(row)

    async def get_driver(self, driver_id: str) -> DriverRead | None:
        row = self._drivers.get(driver_id)
        return DriverRead.model_validate(row) if row else None

    async def list_drivers(self, available_only: bool = False) -> list[DriverRead]:
        rows = sorted(self._drivers.values(), key=lambda d: d["_seq"])
        if available_only:
            rows = [d for d in rows if d["is_active"] and d["is_available"]]
        return [DriverRead.model_validate(d) for d in rows]

    async def update_driver(self, driver_id: str, changes: dict[str, Any]) -> DriverRead | None:
        async with self._lock:
            row = self._drivers.get(driver_id)
            if row is None:
                return None
            phone = changes.get("phone")
            if phone and any(d["phone"] == phone and d["id"] != driver_id for d in self._drivers.values()):
                raise DuplicateDriver(phone)
            row.update(changes, updated_at=utcnow())
            return DriverRead.model_validate(row)

    # ── Notifications ─────────────────────────────────────────
    async def create_notification(self, notification: NotificationCreate) -> NotificationRead:
        async with self._lock:
            return NotificationRead.model_validate(self._insert_notification(notification))

    async def list_notifications(
        self,
        recipient_type: str | None = None,
        recipient_id: str | None = None,
        unread_only: bool = False,
    ) -> list[NotificationRead]:
        rows = [
            n for n in self._notifications.values()
            if (recipient_type is None or n["recipient_type"] == recipient_type)
            and (recipient_id is None or n["recipient_id"] == recipient_id)
            and (not unread_only or not n["is_read"])
        ]
        return [NotificationRead.model_validate(n) for n in self._newest_first(rows)]

    async def mark_notification_read(self, notification_id: str) -> NotificationRead | None:
        async with self._lock:
            row = self._notifications.get(notification_id)
            if row is None:
                return None
            row["is_read"] = True
            return NotificationRead.model_validate(row)

    async def ping(self) -> None:
        return None
