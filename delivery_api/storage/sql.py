"""
Delivery API — SQLAlchemy storage

Concurrency rules:
  - Claim:      UPDATE orders ... WHERE driver_id IS NULL AND status IN (...)
                The first committer takes the row lock; a concurrent claim
                re-evaluates the WHERE after it commits and matches nothing.
  - Transition: UPDATE orders ... WHERE version_id = <read_version>
                0 rows → StaleDataError → caller retries from a fresh read.
  - Status, tracking event and driver settlement commit together. The
    notification is written in a SAVEPOINT so a failure there only drops
    the notification.
"""
import logging
from collections.abc import Collection
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

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
from delivery_api.models import Driver, Notification, Order, OrderStatus, OrderTrackingEvent
from delivery_api.models.order import utcnow
from delivery_api.schemas.driver import DriverRead
from delivery_api.schemas.notification import NotificationCreate, NotificationRead
from delivery_api.schemas.order import OrderRead, TrackingEventCreate, TrackingEventRead
from delivery_api.storage.base import DriverSettlement, OrderChanges, OrderFilter, Storage

logger = logging.getLogger(__name__)


class SqlStorage(Storage):

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # ── Helpers ───────────────────────────────────────────────
    async def _write_notification(self, session: AsyncSession, notification: NotificationCreate | None) -> None:
        if notification is None:
            return
        try:
            async with session.begin_nested():
                session.add(Notification(**notification.model_dump()))
        except Exception:
            # Notification failures MUST NOT affect order processing
            NOTIFICATION_WRITE_FAILURES.labels(notification_type=notification.type).inc()
            logger.exception("Dropped %s notification for order %s", notification.type, notification.order_id)

    async def _holds_other_order(self, session: AsyncSession, settlement: DriverSettlement, order_id: str) -> bool:
        if not settlement.busy_statuses:
            return False
        result = await session.execute(
            select(func.count())
            .select_from(Order)
            .where(
                Order.driver_id == settlement.driver_id,
                Order.id != order_id,
                Order.status.in_(list(settlement.busy_statuses)),
            )
        )
        return result.scalar_one() > 0

    async def _fetch_order(self, session: AsyncSession, order_id: str) -> OrderRead:
        result = await session.execute(
            select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        )
        return OrderRead.model_validate(result.scalar_one())

    # ── Orders ────────────────────────────────────────────────
    async def create_order(
        self,
        values: dict[str, Any],
        event: TrackingEventCreate | None = None,
        notification: NotificationCreate | None = None,
    ) -> OrderRead:
        async with self._session_factory() as session:
            async with session.begin():
                order = Order(**values)
                session.add(order)
                await session.flush()
                if event is not None:
                    session.add(OrderTrackingEvent(**event.model_dump()))
                await self._write_notification(session, notification)
            return OrderRead.model_validate(order)

    async def get_order(self, order_id: str) -> OrderRead | None:
        async with self._session_factory() as session:
            order = await session.get(Order, order_id)
            return OrderRead.model_validate(order) if order else None

    async def list_orders(self, filters: OrderFilter | None = None) -> list[OrderRead]:
        f = filters or OrderFilter()
        query = select(Order).order_by(Order.created_at.desc())
        if f.driver_id is not None:
            query = query.where(Order.driver_id == f.driver_id)
        if f.statuses is not None:
            query = query.where(Order.status.in_(list(f.statuses)))
        if f.restaurant_id is not None:
            query = query.where(Order.restaurant_id == f.restaurant_id)
        if f.customer_phone is not None:
            query = query.where(Order.customer_phone == f.customer_phone)
        if f.unassigned_only:
            query = query.where(Order.driver_id.is_(None))
        if f.created_from is not None:
            query = query.where(Order.created_at >= f.created_from)
        if f.created_to is not None:
            query = query.where(Order.created_at <= f.created_to)
        if f.limit is not None:
            query = query.limit(f.limit)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return [OrderRead.model_validate(o) for o in result.scalars().all()]

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
        async with self._session_factory() as session:
            async with session.begin():
                now = utcnow()
                result = await session.execute(
                    update(Order)
                    .where(
                        Order.id == order_id,
                        Order.driver_id.is_(None),
                        Order.status.in_(list(claimable)),
                    )
                    .values(
                        driver_id=driver_id,
                        status=new_status,
                        driver_earnings=driver_earnings,
                        version_id=Order.version_id + 1,
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    current = await session.get(Order, order_id)
                    if current is None:
                        raise OrderNotFound(order_id)
                    if current.driver_id is not None:
                        raise OrderAlreadyAssigned(order_id, current.driver_id)
                    raise InvalidTransition(current.status, new_status, "Order is no longer open for drivers.")

                result = await session.execute(
                    update(Driver)
                    .where(Driver.id == driver_id, Driver.is_active.is_(True), Driver.is_available.is_(True))
                    .values(is_available=False, updated_at=now)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    # raising inside begin() rolls the order claim back too
                    if await session.get(Driver, driver_id) is None:
                        raise DriverNotFound(driver_id)
                    raise DriverUnavailable(driver_id)

                session.add(OrderTrackingEvent(**event.model_dump()))
                await self._write_notification(session, notification)
            return await self._fetch_order(session, order_id)

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
        async with self._session_factory() as session:
            async with session.begin():
                now = utcnow()
                result = await session.execute(
                    update(Order)
                    .where(Order.id == order_id, Order.version_id == expected_version)
                    .values(
                        status=changes.status,
                        version_id=expected_version + 1,
                        updated_at=now,
                        **changes.extra,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise StaleDataError(f"Order {order_id} changed since version {expected_version}.")

                if settlement is not None:
                    driver_values: dict[str, Any] = {
                        "earnings": Driver.earnings + settlement.earnings,
                        "updated_at": now,
                    }
                    if settlement.release and not await self._holds_other_order(session, settlement, order_id):
                        driver_values["is_available"] = True
                    await session.execute(
                        update(Driver)
                        .where(Driver.id == settlement.driver_id)
                        .values(**driver_values)
                        .execution_options(synchronize_session=False)
                    )

                session.add(OrderTrackingEvent(**event.model_dump()))
                await self._write_notification(session, notification)
            return await self._fetch_order(session, order_id)

    async def list_tracking_events(self, order_id: str) -> list[TrackingEventRead]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OrderTrackingEvent)
                .where(OrderTrackingEvent.order_id == order_id)
                .order_by(OrderTrackingEvent.created_at.asc())
            )
            return [TrackingEventRead.model_validate(e) for e in result.scalars().all()]

    # ── Drivers ───────────────────────────────────────────────
    async def create_driver(self, values: dict[str, Any]) -> DriverRead:
        async with self._session_factory() as session:
            driver = Driver(**values)
            session.add(driver)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise DuplicateDriver(values["phone"])
            return DriverRead.model_validate(driver)

    async def get_driver(self, driver_id: str) -> DriverRead | None:
        async with self._session_factory() as session:
            driver = await session.get(Driver, driver_id)
            return DriverRead.model_validate(driver) if driver else None

    async def list_drivers(self, available_only: bool = False) -> list[DriverRead]:
        query = select(Driver).order_by(Driver.created_at.asc())
        if available_only:
            query = query.where(Driver.is_active.is_(True), Driver.is_available.is_(True))
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [DriverRead.model_validate(d) for d in result.scalars().all()]

    async def update_driver(self, driver_id: str, changes: dict[str, Any]) -> DriverRead | None:
        async with self._session_factory() as session:
            driver = await session.get(Driver, driver_id)
            if driver is None:
                return None
            for key, value in changes.items():
                setattr(driver, key, value)
            driver.updated_at = utcnow()
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise DuplicateDriver(changes.get("phone", ""))
            return DriverRead.model_validate(driver)

    # ── Notifications ─────────────────────────────────────────
    async def create_notification(self, notification: NotificationCreate) -> NotificationRead:
        async with self._session_factory() as session:
            row = Notification(**notification.model_dump())
            session.add(row)
            await session.commit()
            return NotificationRead.model_validate(row)

    async def list_notifications(
        self,
        recipient_type: str | None = None,
        recipient_id: str | None = None,
        unread_only: bool = False,
    ) -> list[NotificationRead]:
        query = select(Notification).order_by(Notification.created_at.desc())
        if recipient_type is not None:
            query = query.where(Notification.recipient_type == recipient_type)
        if recipient_id is not None:
            query = query.where(Notification.recipient_id == recipient_id)
        if unread_only:
            query = query.where(Notification.is_read.is_(False))
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [NotificationRead.model_validate(n) for n in result.scalars().all()]

    async def mark_notification_read(self, notification_id: str) -> NotificationRead | None:
        async with self._session_factory() as session:
            row = await session.get(Notification, notification_id)
            if row is None:
                return None
            row.is_read = True
            await session.commit()
            return NotificationRead.model_validate(row)

    async def ping(self) -> None:
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))
