"""
Delivery API — Notification Pydantic schemas
"""
from datetime import datetime

from pydantic import Field

from delivery_api.models.notification import RecipientType
from delivery_api.schemas.common import CamelModel


class NotificationCreate(CamelModel):
    type: str = Field(..., min_length=1, max_length=32)
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    recipient_type: RecipientType
    recipient_id: str | None = Field(None, max_length=64)
    order_id: str | None = Field(None, max_length=36)


class NotificationRead(NotificationCreate):
    id: str
    is_read: bool
    created_at: datetime
