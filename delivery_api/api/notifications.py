"""
Delivery API — Notifications API

Clients poll GET /api/notifications every few seconds; there is no push channel.
"""
from fastapi import APIRouter, Depends, Query, status

from delivery_api.core.exceptions import NotificationNotFound
from delivery_api.models.notification import RecipientType
from delivery_api.schemas.notification import NotificationCreate, NotificationRead
from delivery_api.storage import Storage, get_storage

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationRead])
async def list_notifications(
    recipient_type: RecipientType | None = Query(None, alias="recipientType"),
    recipient_id: str | None = Query(None, alias="recipientId"),
    unread: bool = False,
    storage: Storage = Depends(get_storage),
):
    return await storage.list_notifications(
        recipient_type=recipient_type.value if recipient_type else None,
        recipient_id=recipient_id,
        unread_only=unread,
    )


@router.post("", response_model=NotificationRead, status_code=status.HTTP_201_CREATED)
async def create_notification(payload: NotificationCreate, storage: Storage = Depends(get_storage)):
    return await storage.create_notification(payload)


@router.put("/{notification_id}/read", response_model=NotificationRead)
async def mark_read(notification_id: str, storage: Storage = Depends(get_storage)):
    notification = await storage.mark_notification_read(notification_id)
    if notification is None:
        raise NotificationNotFound(notification_id)
    return notification
