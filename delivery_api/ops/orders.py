"""
Delivery API — Order operations

create_order         checkout: order + first tracking event + restaurant notification
accept_order         one driver claims an unassigned order (atomic conditional write)
update_order_status  validated state-machine step, optimistic version check + retry
cancel_order / complete_order  thin wrappers over update_order_status
"""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from delivery_api.core.config import get_settings
from delivery_api.core.exceptions import NotAssignedDriver, OrderAlreadyAssigned, OrderNotFound
from delivery_api.core.metrics import ORDER_ASSIGNMENT_CONFLICTS, ORDER_TRANSITIONS
from delivery_api.core.optimistic_lock import with_optimistic_retry
from delivery_api.models.notification import RecipientType
from delivery_api.models.order import ActorType, OrderStatus
from delivery_api.ops.lifecycle import (
    CLAIMABLE_STATUSES,
    CLAIMED_STATUS,
    DRIVER_ASSIGNED_MESSAGE,
    OPEN_STATUSES,
    STATUS_MESSAGES,
    ensure_transition,
)
from delivery_api.schemas.notification import NotificationCreate
from delivery_api.schemas.order import (
    OrderCreate,
    OrderRead,
    OrderTrackResponse,
    TrackingEventCreate,
    dump_items,
)
from delivery_api.storage.base import DriverSettlement, OrderChanges, Storage

settings = get_settings()
logger = logging.getLogger(__name__)


def new_order_number() -> str:
    now = datetime.now(timezone.utc)
    return f"ORD-{now:%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


async def get_order(storage: Storage, order_id: str) -> OrderRead:
    order = await storage.get_order(order_id)
    if order is None:
        raise OrderNotFound(order_id)
    return order


async def create_order(storage: Storage, payload: OrderCreate) -> OrderRead:
    order_id = str(uuid.uuid4())
    order_number = new_order_number()
    values = {
        "id": order_id,
        "order_number": order_number,
        "customer_name": payload.customer_name,
        "customer_phone": payload.customer_phone,
        "customer_email": payload.customer_email,
        "delivery_address": payload.delivery_address,
        "notes": payload.notes,
        "payment_method": payload.payment_method,
        "restaurant_id": payload.restaurant_id,
        "status": OrderStatus.PENDING,
        "items": dump_items(payload.items),
        "subtotal": payload.subtotal,
        "delivery_fee": payload.delivery_fee,
        "total_amount": payload.total_amount,
        "estimated_time": settings.DEFAULT_ESTIMATED_TIME,
    }
    event = TrackingEventCreate(
        order_id=order_id,
        status=OrderStatus.PENDING,
        message=STATUS_MESSAGES[OrderStatus.PENDING],
        created_by_type=ActorType.SYSTEM,
    )
    notification = NotificationCreate(
        type="new_order",
        title="طلب جديد",
        message=f"طلب جديد رقم {order_number} من {payload.customer_name}",
        recipient_type=RecipientType.RESTAURANT,
        recipient_id=payload.restaurant_id,
        order_id=order_id,
    )
    order = await storage.create_order(values, event=event, notification=notification)
    logger.info("Order %s created for restaurant %s (total %s)", order.order_number, order.restaurant_id, order.total_amount)
    return order


async def accept_order(
    storage: Storage,
    order_id: str,
    driver_id: str,
    *,
    actor_type: ActorType = ActorType.DRIVER,
    actor_id: str | None = None,
) -> OrderRead:
    """
    Give an unassigned order to `driver_id`. Exactly one of several concurrent
    callers succeeds; the others get OrderAlreadyAssigned.
    """
    event = TrackingEventCreate(
        order_id=order_id,
        status=CLAIMED_STATUS,
        message=DRIVER_ASSIGNED_MESSAGE,
        created_by=actor_id or (driver_id if actor_type == ActorType.DRIVER else None),
        created_by_type=actor_type,
    )
    notification = NotificationCreate(
        type="order_assigned",
        title="طلب جديد",
        message=f"تم تكليفك بطلب جديد رقم {order_id[:8]}",
        recipient_type=RecipientType.DRIVER,
        recipient_id=driver_id,
        order_id=order_id,
    )
    try:
        order = await storage.claim_order(
            order_id,
            driver_id,
            claimable=CLAIMABLE_STATUSES,
            new_status=CLAIMED_STATUS,
            driver_earnings=settings.DRIVER_EARNINGS_PER_ORDER,
            event=event,
            notification=notification,
        )
    except OrderAlreadyAssigned as exc:
        ORDER_ASSIGNMENT_CONFLICTS.inc()
        logger.warning("Driver %s lost order %s to driver %s", driver_id, order_id, exc.driver_id)
        raise

    logger.info("Order %s assigned to driver %s", order.order_number, driver_id)
    return order


@with_optimistic_retry()
async def update_order_status(
    storage: Storage,
    order_id: str,
    new_status: OrderStatus,
    *,
    message: str | None = None,
    actor_type: ActorType = ActorType.SYSTEM,
    actor_id: str | None = None,
) -> OrderRead:
    """
    Move an order one step through the state machine.

    Re-run from the read on a version conflict, so a concurrent change is seen
    and the transition validated again. Setting the current status is a no-op.
    """
    order = await get_order(storage, order_id)

    if actor_type == ActorType.DRIVER and (actor_id is None or order.driver_id != actor_id):
        raise NotAssignedDriver(order_id, actor_id)

    if order.status == new_status:
        logger.debug("Order %s already %s, nothing to do", order.order_number, new_status.value)
        return order

    ensure_transition(order.status, new_status, has_driver=order.driver_id is not None)

    extra = {}
    if new_status == OrderStatus.DELIVERED:
        extra["delivered_at"] = datetime.now(timezone.utc)

    settlement = None
    if order.driver_id is not None and new_status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED):
        settlement = DriverSettlement(
            driver_id=order.driver_id,
            earnings=order.driver_earnings if new_status == OrderStatus.DELIVERED else Decimal("0"),
            busy_statuses=OPEN_STATUSES,
        )

    status_message = message or STATUS_MESSAGES[new_status]
    event = TrackingEventCreate(
        order_id=order_id,
        status=new_status,
        message=status_message,
        created_by=actor_id,
        created_by_type=actor_type,
    )
    notification = NotificationCreate(
        type="order_update",
        title="تحديث حالة الطلب",
        message=f"طلبك رقم {order.order_number}: {status_message}",
        recipient_type=RecipientType.CUSTOMER,
        recipient_id=order.customer_phone,
        order_id=order_id,
    )

    updated = await storage.transition_order(
        order_id,
        expected_version=order.version_id,
        changes=OrderChanges(status=new_status, extra=extra),
        event=event,
        settlement=settlement,
        notification=notification,
    )
    ORDER_TRANSITIONS.labels(from_status=order.status.value, to_status=new_status.value).inc()
    logger.info("Order %s: %s → %s", order.order_number, order.status.value, new_status.value)
    return updated


async def cancel_order(
    storage: Storage,
    order_id: str,
    *,
    reason: str | None = None,
    cancelled_by: str | None = None,
) -> OrderRead:
    message = f"تم إلغاء الطلب. السبب: {reason or 'غير محدد'}"
    return await update_order_status(
        storage, order_id, OrderStatus.CANCELLED, message=message, actor_id=cancelled_by,
    )


async def complete_order(storage: Storage, order_id: str, driver_id: str) -> OrderRead:
    return await update_order_status(
        storage, order_id, OrderStatus.DELIVERED, actor_type=ActorType.DRIVER, actor_id=driver_id,
    )


async def apply_order_update(
    storage: Storage,
    order_id: str,
    *,
    status: OrderStatus | None = None,
    driver_id: str | None = None,
    message: str | None = None,
) -> OrderRead:
    """Generic PUT: a driver change goes through the claim, a status change through the state machine."""
    order = await get_order(storage, order_id)
    if driver_id is not None and order.driver_id != driver_id:
        order = await accept_order(storage, order_id, driver_id, actor_type=ActorType.SYSTEM, actor_id=None)
    if status is not None:
        order = await update_order_status(storage, order_id, status, message=message)
    return order


async def track_order(storage: Storage, order_id: str) -> OrderTrackResponse:
    order = await get_order(storage, order_id)
    tracking = await storage.list_tracking_events(order_id)
    driver_location = None
    if order.driver_id:
        driver = await storage.get_driver(order.driver_id)
        if driver is not None:
            driver_location = driver.current_location
    return OrderTrackResponse(order=order, tracking=tracking, driver_location=driver_location)
