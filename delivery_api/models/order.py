"""
Delivery API — Order DB models

orders               — one row per customer checkout, never deleted (cancelled instead)
order_tracking_events — append-only status timeline shown to the customer
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from delivery_api.db.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    ON_WAY = "on_way"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class ActorType(str, PyEnum):
    SYSTEM = "system"
    RESTAURANT = "restaurant"
    DRIVER = "driver"


def _enum_column(enum_cls, name: str) -> Enum:
    # Store the lower-case values, not the member names
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=16,
        values_callable=lambda members: [m.value for m in members],
    )


class Order(Base):
    """
    version_id is the optimistic locking column — incremented on every update.
    driver_id is only ever set by a conditional UPDATE ... WHERE driver_id IS NULL.
    """
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_number: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)

    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    customer_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    delivery_address: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_method: Mapped[str] = mapped_column(String(32), nullable=False, default="cash")
    restaurant_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        _enum_column(OrderStatus, "order_status"), default=OrderStatus.PENDING, nullable=False, index=True
    )
    driver_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("drivers.id"), index=True, nullable=True
    )

    items: Mapped[str] = mapped_column(Text, nullable=False)  # JSON list of {name, quantity, price}
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    driver_earnings: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    estimated_time: Mapped[str | None] = mapped_column(String(64), nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)  # optimistic lock
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Order {self.order_number} status={self.status} driver={self.driver_id}>"


class OrderTrackingEvent(Base):
    """Display-only timeline entry. Never read back to derive order state."""
    __tablename__ = "order_tracking_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str] = mapped_column(String(36), ForeignKey("orders.id"), index=True, nullable=False)
    status: Mapped[OrderStatus] = mapped_column(_enum_column(OrderStatus, "tracking_status"), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_by_type: Mapped[ActorType] = mapped_column(
        _enum_column(ActorType, "actor_type"), default=ActorType.SYSTEM, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
