"""
Delivery API — Storage interface

Route handlers and ops never touch a database directly; they go through a
Storage. Two implementations exist: MemoryStorage (tests, demos) and
SqlStorage (PostgreSQL via SQLAlchemy). Every method that changes more than
one row does so atomically.
"""
import abc
from collections.abc import Collection
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from delivery_api.models.order import OrderStatus
from delivery_api.schemas.driver import DriverRead
from delivery_api.schemas.notification import NotificationCreate, NotificationRead
from delivery_api.schemas.order import OrderRead, TrackingEventCreate, TrackingEventRead


@dataclass
class OrderFilter:
    driver_id: str | None = None
    statuses: Collection[OrderStatus] | None = None
    restaurant_id: str | None = None
    customer_phone: str | None = None
    unassigned_only: bool = False
    created_from: datetime | None = None
    created_to: datetime | None = None
    limit: int | None = None


@dataclass
class DriverSettlement:
    """Driver-side effects of an order reaching a terminal status."""
    driver_id: str
    earnings: Decimal = Decimal("0")
    release: bool = True
    # the driver stays busy while holding another order in one of these statuses
    busy_statuses: Collection[OrderStatus] = frozenset()


@dataclass
class OrderChanges:
    status: OrderStatus
    extra: dict[str, Any] = field(default_factory=dict)


class Storage(abc.ABC):

    # ── Orders ────────────────────────────────────────────────
    @abc.abstractmethod
    async def create_order(
        self,
        values: dict[str, Any],
        event: TrackingEventCreate | None = None,
        notification: NotificationCreate | None = None,
    ) -> OrderRead:
        """Insert an order (its id and order_number already set in `values`)
        together with its first tracking event and a best-effort notification."""

    @abc.abstractmethod
    async def get_order(self, order_id: str) -> OrderRead | None: ...

    @abc.abstractmethod
    async def list_orders(self, filters: OrderFilter | None = None) -> list[OrderRead]:
        """Orders matching every given filter, newest first."""

    @abc.abstractmethod
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
        """
        Atomically give an unassigned order to a driver.

        Succeeds only while the order has no driver and its status is in
        `claimable`, and while the driver is active and available; the driver is
        marked unavailable in the same unit. Raises OrderNotFound,
        OrderAlreadyAssigned, InvalidTransition, DriverNotFound or DriverUnavailable.
        """

    @abc.abstractmethod
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
        """
        Apply a validated status change if the order is still at `expected_version`.
        Raises StaleDataError otherwise. The tracking event and driver settlement
        commit with the status; the notification is best-effort.
        """

    @abc.abstractmethod
    async def list_tracking_events(self, order_id: str) -> list[TrackingEventRead]:
        """Timeline for an order, oldest first."""

    # ── Drivers ───────────────────────────────────────────────
    @abc.abstractmethod
    async def create_driver(self, values: dict[str, Any]) -> DriverRead:
        """Raises DuplicateDriver when the phone is taken."""

    @abc.abstractmethod
    async def get_driver(self, driver_id: str) -> DriverRead | None: ...

    @abc.abstractmethod
    async def list_drivers(self, available_only: bool = False) -> list[DriverRead]:
        """available_only keeps drivers that are both active and available."""

    @abc.abstractmethod
    async def update_driver(self, driver_id: str, changes: dict[str, Any]) -> DriverRead | None: ...

    # ── Notifications ─────────────────────────────────────────
    @abc.abstractmethod
    async def create_notification(self, notification: NotificationCreate) -> NotificationRead: ...

    @abc.abstractmethod
    async def list_notifications(
        self,
        recipient_type: str | None = None,
        recipient_id: str | None = None,
        unread_only: bool = False,
    ) -> list[NotificationRead]:
        """Newest first."""

    @abc.abstractmethod
    async def mark_notification_read(self, notification_id: str) -> NotificationRead | None: ...

    # ── Health ────────────────────────────────────────────────
    @abc.abstractmethod
    async def ping(self) -> None:
        """Raise if the backing store is unreachable."""
