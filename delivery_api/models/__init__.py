from delivery_api.models.driver import Driver
from delivery_api.models.notification import Notification, RecipientType
from delivery_api.models.order import ActorType, Order, OrderStatus, OrderTrackingEvent

__all__ = [
    "ActorType",
    "Driver",
    "Notification",
    "Order",
    "OrderStatus",
    "OrderTrackingEvent",
    "RecipientType",
]
