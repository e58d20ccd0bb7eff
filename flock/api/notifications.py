from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from flock.core.auth import CurrentUserId, OptionalUserId
from flock.schemas.schemas import MarkedCountResponse, NotificationPage, NotificationSettings
from flock.services import notification_service

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("", status_code=status.HTTP_200_OK)
async def list_notifications(
    user_id: OptionalUserId,
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[int] = None,
) -> NotificationPage:
    """
    Get the signed-in user's notifications, newest first.

    Returns:
    - **NotificationPage**: Notifications with actor profile and referenced post;
      empty when not signed in
    """
    return await notification_service.get_user_notifications(user_id, limit, cursor)


@router.get("/unread/count", status_code=status.HTTP_200_OK)
async def unread_count(user_id: OptionalUserId) -> dict:
    return {"count": await notification_service.get_unread_notification_count(user_id)}


@router.get("/settings", status_code=status.HTTP_200_OK)
async def settings(user_id: OptionalUserId) -> Optional[NotificationSettings]:
    return await notification_service.get_notification_settings(user_id)


@router.post("/read-all", status_code=status.HTTP_200_OK)
async def read_all(user_id: CurrentUserId) -> MarkedCountResponse:
    marked = await notification_service.mark_all_notifications_as_read(user_id)
    return MarkedCountResponse(marked_count=marked)


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def read_one(notification_id: UUID, user_id: CurrentUserId) -> None:
    """
    Mark one notification as read.

    Raises:
    - **403 Forbidden**: If the notification belongs to someone else
    - **404 Not Found**: If the notification does not exist
    """
    await notification_service.mark_notification_as_read(user_id, notification_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete(notification_id: UUID, user_id: CurrentUserId) -> None:
    await notification_service.delete_notification(user_id, notification_id)
