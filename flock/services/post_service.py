import logging
from collections import Counter
from typing import Optional
from uuid import UUID

from flock.config_secrets import (
    DEFAULT_PAGE_SIZE,
    POST_DELETE_CASCADE_BOOKMARKS,
    POST_MAX_LENGTH,
    POST_MAX_MEDIA,
    TRENDING_HASHTAGS_WINDOW_MS,
    TRENDING_POSTS_CANDIDATES,
    TRENDING_POSTS_WINDOW_MS,
)
from flock.core.db import get_store
from flock.core.exceptions import ForbiddenError, InvalidArgumentError, NotFoundError, require_user
from flock.core.store import In, Not
from flock.models.models import NotificationType, Post
from flock.schemas.schemas import EnrichedPost, PostPage, TrendingHashtag
from flock.services.enrichment import enrich_posts, load_post_with_author, load_posts, load_profile
from flock.services.notification_service import create_notification
from flock.utils import timeutils
from flock.utils.pagination import clamp_limit, split_page
from flock.utils.text import extract_hashtags, extract_mentions, format_count

logger = logging.getLogger(__name__)


def _validate_post(content: str, media_urls: Optional[list[str]]) -> None:
    if len(content) > POST_MAX_LENGTH:
        raise InvalidArgumentError(f"Post content exceeds {POST_MAX_LENGTH} characters")
    if not content.strip() and not media_urls:
        raise InvalidArgumentError("Post must have content or media")
    if media_urls and len(media_urls) > POST_MAX_MEDIA:
        raise InvalidArgumentError(f"A post can have at most {POST_MAX_MEDIA} media attachments")


async def _get_post_or_404(post_id: UUID) -> Post:
    row = await get_store().get("posts", post_id)
    if row is None:
        raise NotFoundError("Post not found")
    return Post(**row)


async def create_post(
    user_id: Optional[UUID],
    content: str,
    media_urls: Optional[list[str]] = None,
    reply_to_id: Optional[UUID] = None,
    quoted_post_id: Optional[UUID] = None,
) -> Post:
    """
    Create a post, reply or quote for the caller.

    Fans out reply, quote and mention notifications and keeps the author's
    posts_count and the parent's replies_count in step.
    """
    user_id = require_user(user_id)
    _validate_post(content, media_urls)

    store = get_store()
    parent = await _get_post_or_404(reply_to_id) if reply_to_id else None
    quoted = await _get_post_or_404(quoted_post_id) if quoted_post_id else None

    post = Post(
        author_id=user_id,
        content=content,
        media_urls=media_urls or None,
        reply_to_id=reply_to_id,
        quoted_post_id=quoted_post_id,
        created_at=timeutils.now_ms(),
    )
    row = await store.insert("posts", post.model_dump())
    post = Post(**row)

    author = await load_profile(store, user_id)
    if author:
        await store.increment("profiles", author.id, "posts_count", 1)

    if parent:
        await store.increment("posts", parent.id, "replies_count", 1)
        await create_notification(parent.author_id, user_id, NotificationType.REPLY, post.id)

    if quoted:
        await create_notification(quoted.author_id, user_id, NotificationType.QUOTE, post.id)

    mentions = extract_mentions(content)
    if mentions:
        mentioned = await store.find("profiles", {"username": In(mentions)})
        for profile in mentioned:
            await create_notification(profile["user_id"], user_id, NotificationType.MENTION, post.id)

    logger.info(f"User {user_id} created post {post.id}")
    return post


async def delete_post(user_id: Optional[UUID], post_id: UUID) -> None:
    """
    Delete one of the caller's posts together with its likes and reposts.

    Bookmarks go too only when POST_DELETE_CASCADE_BOOKMARKS is set. Replies and
    quotes of the post are left in place.
    """
    user_id = require_user(user_id)
    post = await _get_post_or_404(post_id)
    if post.author_id != user_id:
        raise ForbiddenError("Not authorized to delete this post")

    store = get_store()
    await store.delete("posts", post_id)

    author = await load_profile(store, user_id)
    if author:
        await store.increment("profiles", author.id, "posts_count", -1)
    if post.reply_to_id:
        await store.increment("posts", post.reply_to_id, "replies_count", -1)

    likes = await store.delete_where("likes", {"post_id": post_id})
    reposts = await store.delete_where("reposts", {"post_id": post_id})
    bookmarks = 0
    if POST_DELETE_CASCADE_BOOKMARKS:
        bookmarks = await store.delete_where("bookmarks", {"post_id": post_id})

    logger.info(
        f"Deleted post {post_id} ({likes} likes, {reposts} reposts, {bookmarks} bookmarks removed)"
    )


async def record_post_view(post_id: UUID) -> int:
    views = await get_store().increment("posts", post_id, "views_count", 1)
    if views is None:
        raise NotFoundError("Post not found")
    return views


async def get_post_by_id(post_id: UUID, viewer_id: Optional[UUID] = None) -> Optional[EnrichedPost]:
    """One post with its author, parent post, quoted post and the viewer's flags"""
    store = get_store()
    row = await store.get("posts", post_id)
    if row is None:
        return None

    [enriched] = await enrich_posts(store, [Post(**row)], viewer_id)
    enriched.parent_post = await load_post_with_author(store, enriched.reply_to_id)
    return enriched


async def _post_page(
    filters: Optional[dict],
    viewer_id: Optional[UUID],
    limit: Optional[int],
    cursor: Optional[int],
) -> PostPage:
    store = get_store()
    limit = clamp_limit(limit, DEFAULT_PAGE_SIZE)
    rows = await store.find("posts", filters, before=cursor, limit=limit + 1)
    rows, next_cursor, has_more = split_page(rows, limit)
    items = await enrich_posts(store, [Post(**row) for row in rows], viewer_id)
    return PostPage(items=items, next_cursor=next_cursor, has_more=has_more)


async def get_feed_posts(
    viewer_id: Optional[UUID],
    limit: Optional[int] = None,
    cursor: Optional[int] = None,
) -> PostPage:
    """
    Home timeline.

    Scans the global recent-posts stream and, for a signed-in viewer, keeps only
    posts by the viewer and accounts they follow. The cursor advances over the
    scanned posts, so a page may hold fewer than ``limit`` items while
    ``has_more`` is still true.
    """
    store = get_store()
    limit = clamp_limit(limit, DEFAULT_PAGE_SIZE)
    rows = await store.find("posts", before=cursor, limit=limit + 1)
    rows, next_cursor, has_more = split_page(rows, limit)
    posts = [Post(**row) for row in rows]

    if viewer_id is not None:
        following = await store.find("follows", {"follower_id": viewer_id})
        authors = {row["following_id"] for row in following} | {viewer_id}
        posts = [post for post in posts if post.author_id in authors]

    items = await enrich_posts(store, posts, viewer_id)
    return PostPage(items=items, next_cursor=next_cursor, has_more=has_more)


async def get_user_posts(
    user_id: UUID,
    viewer_id: Optional[UUID] = None,
    limit: Optional[int] = None,
    cursor: Optional[int] = None,
) -> PostPage:
    return await _post_page({"author_id": user_id}, viewer_id, limit, cursor)


async def get_post_replies(
    post_id: UUID,
    viewer_id: Optional[UUID] = None,
    limit: Optional[int] = None,
    cursor: Optional[int] = None,
) -> PostPage:
    return await _post_page({"reply_to_id": post_id}, viewer_id, limit, cursor)


async def get_user_replies(
    user_id: UUID,
    viewer_id: Optional[UUID] = None,
    limit: Optional[int] = None,
    cursor: Optional[int] = None,
) -> PostPage:
    """The user's replies, each with the post it answers (None once that is deleted)"""
    page = await _post_page({"author_id": user_id, "reply_to_id": Not(None)}, viewer_id, limit, cursor)
    if not page.items:
        return page

    store = get_store()
    parents = await load_posts(store, [item.reply_to_id for item in page.items])
    parent_views = {view.id: view for view in await enrich_posts(store, list(parents.values()), None)}
    for item in page.items:
        item.parent_post = parent_views.get(item.reply_to_id)
    return page


async def _edge_post_page(
    table: str,
    user_id: UUID,
    viewer_id: Optional[UUID],
    limit: Optional[int],
    cursor: Optional[int],
) -> tuple[list[tuple[dict, EnrichedPost]], Optional[int], bool]:
    # Pages over the edge rows; edges whose post is gone are dropped.
    store = get_store()
    limit = clamp_limit(limit, DEFAULT_PAGE_SIZE)
    edges = await store.find(table, {"user_id": user_id}, before=cursor, limit=limit + 1)
    edges, next_cursor, has_more = split_page(edges, limit)

    posts = await load_posts(store, [edge["post_id"] for edge in edges])
    live_edges = [edge for edge in edges if edge["post_id"] in posts]
    enriched = await enrich_posts(store, [posts[edge["post_id"]] for edge in live_edges], viewer_id)
    return list(zip(live_edges, enriched)), next_cursor, has_more


async def get_user_liked_posts(
    user_id: UUID,
    viewer_id: Optional[UUID] = None,
    limit: Optional[int] = None,
    cursor: Optional[int] = None,
) -> PostPage:
    """Posts the user liked, most recent like first; the cursor is a like timestamp"""
    pairs, next_cursor, has_more = await _edge_post_page("likes", user_id, viewer_id, limit, cursor)
    items = []
    for edge, post in pairs:
        post.liked_at = edge["created_at"]
        items.append(post)
    return PostPage(items=items, next_cursor=next_cursor, has_more=has_more)


async def get_user_bookmarks(
    user_id: Optional[UUID],
    limit: Optional[int] = None,
    cursor: Optional[int] = None,
) -> PostPage:
    if user_id is None:
        return PostPage()

    pairs, next_cursor, has_more = await _edge_post_page("bookmarks", user_id, user_id, limit, cursor)
    items = []
    for edge, post in pairs:
        post.bookmarked = True
        post.bookmarked_at = edge["created_at"]
        items.append(post)
    return PostPage(items=items, next_cursor=next_cursor, has_more=has_more)


async def search_posts(
    term: str,
    viewer_id: Optional[UUID] = None,
    limit: Optional[int] = None,
    cursor: Optional[int] = None,
) -> PostPage:
    if not term or not term.strip():
        return PostPage()

    store = get_store()
    limit = clamp_limit(limit, DEFAULT_PAGE_SIZE)
    rows = await store.search("posts", "content", term.strip(), before=cursor, limit=limit + 1)
    rows, next_cursor, has_more = split_page(rows, limit)
    items = await enrich_posts(store, [Post(**row) for row in rows], viewer_id)
    return PostPage(items=items, next_cursor=next_cursor, has_more=has_more)


def engagement_score(post: Post) -> int:
    return post.likes_count + 2 * post.reposts_count + post.replies_count


async def get_trending_posts(viewer_id: Optional[UUID] = None, limit: int = 20) -> list[EnrichedPost]:
    """Most engaging of the 100 most recent posts from the last 48 hours"""
    store = get_store()
    rows = await store.find(
        "posts",
        since=timeutils.now_ms() - TRENDING_POSTS_WINDOW_MS,
        limit=TRENDING_POSTS_CANDIDATES,
    )
    posts = sorted((Post(**row) for row in rows), key=engagement_score, reverse=True)
    return await enrich_posts(store, posts[: max(limit, 0)], viewer_id)


async def get_trending_hashtags(limit: int = 10) -> list[TrendingHashtag]:
    """Hashtags used in the last 24 hours, counted once per post"""
    rows = await get_store().find("posts", since=timeutils.now_ms() - TRENDING_HASHTAGS_WINDOW_MS)
    counts: Counter[str] = Counter()
    for row in rows:
        counts.update(extract_hashtags(row["content"]))

    return [
        TrendingHashtag(hashtag=hashtag, count=count, formatted_count=format_count(count))
        for hashtag, count in counts.most_common(max(limit, 0))
    ]
