"""
Likes, reposts and bookmarks.

Each is a unique (user_id, post_id) edge. Likes and reposts keep a counter on
the post and notify its author; bookmarks are private and touch neither.
"""

import logging
from typing import Optional
from uuid import UUID

from flock.core.db import get_store
from flock.core.exceptions import ConflictError, NotFoundError, require_user
from flock.models.models import Bookmark, Like, NotificationType, Post, Repost
from flock.services.notification_service import create_notification
from flock.utils import timeutils

logger = logging.getLogger(__name__)

EDGE_MODELS = {"likes": Like, "reposts": Repost, "bookmarks": Bookmark}


async def _get_post(post_id: UUID) -> Post:
    row = await get_store().get("posts", post_id)
    if row is None:
        raise NotFoundError("Post not found")
    return Post(**row)


async def _add_edge(table: str, user_id: UUID, post_id: UUID, duplicate_message: str) -> None:
    store = get_store()
    if await store.find_one(table, {"user_id": user_id, "post_id": post_id}):
        raise ConflictError(duplicate_message)
    # A concurrent duplicate still fails on the unique (user_id, post_id) key
    edge = EDGE_MODELS[table](user_id=user_id, post_id=post_id, created_at=timeutils.now_ms())
    await store.insert(table, edge.model_dump())


async def _remove_edge(table: str, user_id: UUID, post_id: UUID, missing_message: str) -> None:
    store = get_store()
    edge = await store.find_one(table, {"user_id": user_id, "post_id": post_id})
    if edge is None:
        raise NotFoundError(missing_message)
    await store.delete(table, edge["id"])


async def like_post(user_id: Optional[UUID], post_id: UUID) -> None:
    user_id = require_user(user_id)
    post = await _get_post(post_id)
    await _add_edge("likes", user_id, post_id, "Already liked this post")
    await get_store().increment("posts", post_id, "likes_count", 1)
    await create_notification(post.author_id, user_id, NotificationType.LIKE, post_id)
    logger.debug(f"User {user_id} liked post {post_id}")


async def unlike_post(user_id: Optional[UUID], post_id: UUID) -> None:
    user_id = require_user(user_id)
    await _remove_edge("likes", user_id, post_id, "Not liked this post")
    # The post may already be gone; increment is a no-op then
    await get_store().increment("posts", post_id, "likes_count", -1)
    logger.debug(f"User {user_id} unliked post {post_id}")


async def repost_post(user_id: Optional[UUID], post_id: UUID) -> None:
    """Reposts are permanent; there is no inverse operation."""
    user_id = require_user(user_id)
    post = await _get_post(post_id)
    await _add_edge("reposts", user_id, post_id, "Already reposted this post")
    await get_store().increment("posts", post_id, "reposts_count", 1)
    await create_notification(post.author_id, user_id, NotificationType.REPOST, post_id)
    logger.debug(f"User {user_id} reposted post {post_id}")


async def bookmark_post(user_id: Optional[UUID], post_id: UUID) -> None:
    user_id = require_user(user_id)
    await _get_post(post_id)
    await _add_edge("bookmarks", user_id, post_id, "Already bookmarked this post")


async def unbookmark_post(user_id: Optional[UUID], post_id: UUID) -> None:
    user_id = require_user(user_id)
    await _remove_edge("bookmarks", user_id, post_id, "Not bookmarked this post")
