"""
Delivery API — Order Pydantic schemas
"""
import json
from datetime import datetime
from decimal import Decimal

from pydantic import Field, field_validator, model_validator

from delivery_api.models.order import ActorType, OrderStatus
from delivery_api.schemas.common import CamelModel


class OrderItem(CamelModel):
    name: str = Field(..., min_length=1, max_length=255, examples=["شاورما دجاج"])
    quantity: int = Field(..., ge=1, le=100)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)


def dump_items(items: list[OrderItem]) -> str:
    """Serialize order items for the orders.items text column."""
    return json.dumps([item.model_dump(mode="json") for item in items], ensure_ascii=False)


class OrderCreate(CamelModel):
    """
    Checkout payload. subtotal is derived from items when omitted and
    total_amount from subtotal + delivery_fee; when the client sends them
    they must agree with the items.
    """
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_phone: str = Field(..., min_length=3, max_length=32)
    customer_email: str | None = Field(None, max_length=255)
    delivery_address: str = Field(..., min_length=1)
    notes: str | None = Field(None, max_length=1000)
    payment_method: str = Field("cash", max_length=32)
    restaurant_id: str = Field(..., min_length=1, max_length=36)
    items: list[OrderItem] = Field(..., min_length=1, max_length=50)
    subtotal: Decimal | None = Field(None, ge=0)
    delivery_fee: Decimal = Field(Decimal("0"), ge=0)
    total_amount: Decimal | None = Field(None, ge=0)

    @model_validator(mode="after")
    def check_amounts(self):
        computed = sum((item.price * item.quantity for item in self.items), Decimal("0"))
        if self.subtotal is None:
            self.subtotal = computed
        elif self.subtotal != computed:
            raise ValueError(f"subtotal {self.subtotal} does not match items total {computed}")

        total = self.subtotal + self.delivery_fee
        if self.total_amount is None:
            self.total_amount = total
        elif self.total_amount != total:
            raise ValueError(f"totalAmount {self.total_amount} must equal subtotal + deliveryFee ({total})")
        return self


class OrderRead(CamelModel):
    id: str
    order_number: str
    customer_name: str
    customer_phone: str
    customer_email: str | None = None
    delivery_address: str
    notes: str | None = None
    payment_method: str
    restaurant_id: str
    status: OrderStatus
    driver_id: str | None = None
    items: list[OrderItem]
    subtotal: Decimal
    delivery_fee: Decimal
    total_amount: Decimal
    driver_earnings: Decimal
    estimated_time: str | None = None
    version_id: int
    created_at: datetime
    updated_at: datetime
    delivered_at: datetime | None = None

    @field_validator("items", mode="before")
    @classmethod
    def parse_items(cls, value):
        if isinstance(value, str):
            return json.loads(value)
        return value


class OrderUpdate(CamelModel):
    """Generic partial update: routed through assignment and the status machine."""
    status: OrderStatus | None = None
    driver_id: str | None = None
    message: str | None = Field(None, max_length=500)


class StatusUpdate(CamelModel):
    status: OrderStatus
    message: str | None = Field(None, max_length=500)
    updated_by: str | None = Field(None, max_length=64)
    updated_by_type: ActorType = ActorType.SYSTEM


class CancelRequest(CamelModel):
    reason: str | None = Field(None, max_length=500)
    cancelled_by: str | None = Field(None, max_length=64)


class AssignDriverRequest(CamelModel):
    driver_id: str = Field(..., min_length=1, max_length=36)


class DriverOrderRequest(CamelModel):
    order_id: str = Field(..., min_length=1, max_length=36)


class TrackingEventCreate(CamelModel):
    order_id: str
    status: OrderStatus
    message: str
    created_by: str | None = None
    created_by_type: ActorType = ActorType.SYSTEM


class TrackingEventRead(TrackingEventCreate):
    id: str
    created_at: datetime


class OrderTrackResponse(CamelModel):
    order: OrderRead
    tracking: list[TrackingEventRead]
    driver_location: str | None = None
