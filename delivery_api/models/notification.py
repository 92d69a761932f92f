"""
Delivery API — Notification DB model (read by polling clients)
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Boolean, DateTime, Enum, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from delivery_api.db.database import Base
from delivery_api.models.order import utcnow


class RecipientType(str, PyEnum):
    CUSTOMER = "customer"
    DRIVER = "driver"
    ADMIN = "admin"
    RESTAURANT = "restaurant"


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    recipient_type: Mapped[RecipientType] = mapped_column(
        Enum(
            RecipientType,
            name="recipient_type",
            native_enum=False,
            length=16,
            values_callable=lambda members: [m.value for m in members],
        ),
        index=True,
        nullable=False,
    )
    recipient_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    order_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
