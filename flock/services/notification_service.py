import logging
from typing import Optional
from uuid import UUID

from flock.config_secrets import NOTIFICATION_DEDUP_WINDOW_MS
from flock.core.db import get_store
from flock.core.exceptions import ForbiddenError, NotFoundError, require_user
from flock.models.models import Notification, NotificationType, Post
from flock.schemas.schemas import EnrichedNotification, NotificationPage, NotificationSettings
from flock.services.enrichment import load_posts, load_profiles, post_to_enriched, profile_to_response
from flock.utils import timeutils
from flock.utils.pagination import clamp_limit, split_page

logger = logging.getLogger(__name__)


async def create_notification(
    recipient_id: UUID,
    actor_id: UUID,
    notification_type: NotificationType,
    post_id: Optional[UUID] = None,
) -> tuple[Optional[Notification], bool]:
    """
    Record that actor_id did something recipient_id should hear about.

    An equivalent notification (same recipient, type, actor and post) from the
    last 24 hours is bumped to now and marked unread instead of duplicated.

    Returns (notification, created). Self-notifications return (None, False).
    """
    if recipient_id == actor_id:
        return None, False

    store = get_store()
    now = timeutils.now_ms()
    existing = await store.find(
        "notifications",
        {
            "user_id": recipient_id,
            "type": notification_type.value,
            "actor_id": actor_id,
            "post_id": post_id,
        },
        since=now - NOTIFICATION_DEDUP_WINDOW_MS + 1,
        limit=1,
    )

    if existing:
        row = await store.update("notifications", existing[0]["id"], {"created_at": now, "read": False})
        logger.debug(f"Refreshed {notification_type.value} notification {row['id']} for {recipient_id}")
        return Notification(**row), False

    notification = Notification(
        user_id=recipient_id,
        type=notification_type,
        actor_id=actor_id,
        post_id=post_id,
        created_at=now,
    )
    record = notification.model_dump()
    record["type"] = notification_type.value
    row = await store.insert("notifications", record)
    logger.debug(f"Created {notification_type.value} notification for {recipient_id}")
    return Notification(**row), True


async def get_user_notifications(
    user_id: Optional[UUID],
    limit: Optional[int] = None,
    cursor: Optional[int] = None,
) -> NotificationPage:
    """Newest-first notifications joined with the actor and the referenced post"""
    if user_id is None:
        return NotificationPage()

    store = get_store()
    limit = clamp_limit(limit, 50)
    rows = await store.find("notifications", {"user_id": user_id}, before=cursor, limit=limit + 1)
    rows, next_cursor, has_more = split_page(rows, limit)
    notifications = [Notification(**row) for row in rows]

    posts: dict[UUID, Post] = await load_posts(store, [n.post_id for n in notifications if n.post_id])
    profiles = await load_profiles(
        store,
        [n.actor_id for n in notifications] + [p.author_id for p in posts.values()],
    )
    views = {user: profile_to_response(profile) for user, profile in profiles.items()}

    items = []
    for notification in notifications:
        post = posts.get(notification.post_id) if notification.post_id else None
        items.append(
            EnrichedNotification(
                **notification.model_dump(),
                actor=views.get(notification.actor_id),
                post=post_to_enriched(post, views.get(post.author_id)) if post else None,
            )
        )
    return NotificationPage(items=items, next_cursor=next_cursor, has_more=has_more)


async def get_unread_notification_count(user_id: Optional[UUID]) -> int:
    if user_id is None:
        return 0
    return await get_store().count("notifications", {"user_id": user_id, "read": False})


async def _get_owned_notification(user_id: UUID, notification_id: UUID) -> Notification:
    row = await get_store().get("notifications", notification_id)
    if row is None:
        raise NotFoundError("Notification not found")
    notification = Notification(**row)
    if notification.user_id != user_id:
        raise ForbiddenError("Not authorized to modify this notification")
    return notification


async def mark_notification_as_read(user_id: Optional[UUID], notification_id: UUID) -> None:
    user_id = require_user(user_id)
    await _get_owned_notification(user_id, notification_id)
    await get_store().update("notifications", notification_id, {"read": True})


async def mark_all_notifications_as_read(user_id: Optional[UUID]) -> int:
    """Mark every unread notification of the caller as read; returns how many changed"""
    user_id = require_user(user_id)
    marked = await get_store().update_where(
        "notifications",
        {"user_id": user_id, "read": False},
        {"read": True},
    )
    logger.info(f"Marked {marked} notifications as read for {user_id}")
    return marked


async def delete_notification(user_id: Optional[UUID], notification_id: UUID) -> None:
    user_id = require_user(user_id)
    await _get_owned_notification(user_id, notification_id)
    await get_store().delete("notifications", notification_id)


async def get_notification_settings(user_id: Optional[UUID]) -> Optional[NotificationSettings]:
    # Per-user settings are not stored yet; everyone gets every type.
    if user_id is None:
        return None
    return NotificationSettings()
