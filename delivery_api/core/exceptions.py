"""
Delivery API — Domain errors

Each error carries the HTTP status the API layer answers with; main.py
registers a single handler that turns them into {"detail": ...} responses.
"""
from fastapi import status


class DeliveryError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class OrderNotFound(DeliveryError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, order_id: str):
        super().__init__(f"Order '{order_id}' not found.")
        self.order_id = order_id


class DriverNotFound(DeliveryError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, driver_id: str):
        super().__init__(f"Driver '{driver_id}' not found.")
        self.driver_id = driver_id


class NotificationNotFound(DeliveryError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, notification_id: str):
        super().__init__(f"Notification '{notification_id}' not found.")
        self.notification_id = notification_id


class OrderAlreadyAssigned(DeliveryError):
    """Another driver claimed the order first."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, order_id: str, driver_id: str | None = None):
        super().__init__(f"Order '{order_id}' is already assigned to another driver.")
        self.order_id = order_id
        self.driver_id = driver_id


class DriverUnavailable(DeliveryError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, driver_id: str):
        super().__init__(f"Driver '{driver_id}' is inactive or not available for new orders.")
        self.driver_id = driver_id


class DuplicateDriver(DeliveryError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, phone: str):
        super().__init__(f"A driver with phone '{phone}' already exists.")
        self.phone = phone


class InvalidTransition(DeliveryError):
    """The requested status is not a legal successor of the current one."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current, target, reason: str | None = None):
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        message = f"Cannot move order from '{current_value}' to '{target_value}'."
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)
        self.current = current
        self.target = target


class NotAssignedDriver(DeliveryError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, order_id: str, driver_id: str | None):
        super().__init__(f"Driver '{driver_id}' is not assigned to order '{order_id}'.")
        self.order_id = order_id
        self.driver_id = driver_id
