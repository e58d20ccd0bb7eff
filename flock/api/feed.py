from typing import Optional

from fastapi import APIRouter, Query, status

from flock.core.auth import OptionalUserId
from flock.schemas.schemas import EnrichedPost, PostPage, TrendingHashtag
from flock.services import post_service

router = APIRouter(prefix="/api/v1/feed", tags=["feed"])


@router.get("", status_code=status.HTTP_200_OK)
async def home_timeline(
    viewer_id: OptionalUserId,
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[int] = None,
) -> PostPage:
    """
    Get the home timeline.

    Parameters:
    - **limit**: Number of recent posts to scan (default: 20, min: 1, max: 100)
    - **cursor**: created_at of the last scanned post, from next_cursor

    Returns:
    - **PostPage**: Posts, next_cursor and has_more

    Notes:
    - Signed-in callers see their own posts and posts of accounts they follow
    - Anonymous callers see the global stream
    - A page can hold fewer than limit posts while has_more is true
    """
    return await post_service.get_feed_posts(viewer_id, limit, cursor)


@router.get("/trending", status_code=status.HTTP_200_OK)
async def trending_posts(
    viewer_id: OptionalUserId,
    limit: int = Query(20, ge=1, le=100),
) -> list[EnrichedPost]:
    """
    Get trending posts.

    Notes:
    - Candidates are the 100 most recent posts of the last 48 hours
    - Ranked by likes + 2 * reposts + replies
    """
    return await post_service.get_trending_posts(viewer_id, limit)


@router.get("/trending/hashtags", status_code=status.HTTP_200_OK)
async def trending_hashtags(limit: int = Query(10, ge=1, le=50)) -> list[TrendingHashtag]:
    """Most used hashtags of the last 24 hours."""
    return await post_service.get_trending_hashtags(limit)
