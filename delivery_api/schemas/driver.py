"""
Delivery API — Driver Pydantic schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import Field

from delivery_api.schemas.common import CamelModel
from delivery_api.schemas.order import OrderRead


class DriverCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=3, max_length=32)
    email: str | None = Field(None, max_length=255)
    is_available: bool = True
    is_active: bool = True
    current_location: str | None = Field(None, max_length=64)


class DriverUpdate(CamelModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    phone: str | None = Field(None, min_length=3, max_length=32)
    email: str | None = Field(None, max_length=255)
    is_available: bool | None = None
    is_active: bool | None = None
    current_location: str | None = Field(None, max_length=64)


class DriverStatusUpdate(CamelModel):
    status: Literal["available", "offline"]
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)


class DriverRead(CamelModel):
    id: str
    name: str
    phone: str
    email: str | None = None
    is_available: bool
    is_active: bool
    current_location: str | None = None
    earnings: Decimal
    created_at: datetime
    updated_at: datetime


class DriverStats(CamelModel):
    period: Literal["today", "week", "month"]
    start_date: datetime
    end_date: datetime
    total_orders: int
    total_earnings: Decimal
    avg_order_value: Decimal


class DriverDashboardStats(CamelModel):
    today_orders: int
    completed_today: int
    today_earnings: Decimal
    total_orders: int
    total_earnings: Decimal


class DriverDashboard(CamelModel):
    stats: DriverDashboardStats
    available_orders: list[OrderRead]
    current_orders: list[OrderRead]
