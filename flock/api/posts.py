from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from flock.core.auth import CurrentUserId, OptionalUserId
from flock.schemas.schemas import EnrichedPost, PostCreate, PostCreatedResponse, PostPage
from flock.services import engagement_service, post_service

router = APIRouter(prefix="/api/v1/posts", tags=["posts"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_new_post(post_data: PostCreate, user_id: CurrentUserId) -> PostCreatedResponse:
    """
    Create a post, a reply (reply_to_id) or a quote (quoted_post_id).

    Parameters:
    - **post_data**: Content, optional media URLs, reply and quote targets

    Returns:
    - **PostCreatedResponse**: Id of the new post

    Raises:
    - **400 Bad Request**: If content is over 280 characters, empty without media, or has more than 4 media URLs
    - **401 Unauthorized**: If not authenticated
    - **404 Not Found**: If the replied-to or quoted post does not exist

    Notes:
    - Mentioned users, the parent author and the quoted author are notified
    """
    post = await post_service.create_post(
        user_id,
        content=post_data.content,
        media_urls=post_data.media_urls,
        reply_to_id=post_data.reply_to_id,
        quoted_post_id=post_data.quoted_post_id,
    )
    return PostCreatedResponse(id=post.id)


@router.get("/bookmarks", status_code=status.HTTP_200_OK)
async def my_bookmarks(
    user_id: OptionalUserId,
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[int] = None,
) -> PostPage:
    """Posts the signed-in user bookmarked, most recent bookmark first. Empty when anonymous."""
    return await post_service.get_user_bookmarks(user_id, limit, cursor)


@router.get("/search", status_code=status.HTTP_200_OK)
async def search(
    viewer_id: OptionalUserId,
    q: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[int] = None,
) -> PostPage:
    return await post_service.search_posts(q, viewer_id, limit, cursor)


@router.get("/user/{user_id}", status_code=status.HTTP_200_OK)
async def user_posts(
    user_id: UUID,
    viewer_id: OptionalUserId,
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[int] = None,
) -> PostPage:
    return await post_service.get_user_posts(user_id, viewer_id, limit, cursor)


@router.get("/user/{user_id}/replies", status_code=status.HTTP_200_OK)
async def user_replies(
    user_id: UUID,
    viewer_id: OptionalUserId,
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[int] = None,
) -> PostPage:
    return await post_service.get_user_replies(user_id, viewer_id, limit, cursor)


@router.get("/user/{user_id}/likes", status_code=status.HTTP_200_OK)
async def user_likes(
    user_id: UUID,
    viewer_id: OptionalUserId,
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[int] = None,
) -> PostPage:
    """Posts the user liked; the cursor is the liked_at of the last item."""
    return await post_service.get_user_liked_posts(user_id, viewer_id, limit, cursor)


@router.get("/{post_id}", status_code=status.HTTP_200_OK)
async def get_post_detail(post_id: UUID, viewer_id: OptionalUserId) -> EnrichedPost:
    """
    Get a post with its author, parent post and quoted post.

    Raises:
    - **404 Not Found**: If post does not exist
    """
    post = await post_service.get_post_by_id(post_id, viewer_id)
    if post is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return post


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(post_id: UUID, user_id: CurrentUserId) -> None:
    """
    Delete one of your posts, with its likes and reposts.

    Raises:
    - **403 Forbidden**: If you are not the author
    - **404 Not Found**: If post does not exist
    """
    await post_service.delete_post(user_id, post_id)


@router.post("/{post_id}/view", status_code=status.HTTP_200_OK)
async def view_post(post_id: UUID) -> dict:
    views = await post_service.record_post_view(post_id)
    return {"views_count": views}


@router.get("/{post_id}/replies", status_code=status.HTTP_200_OK)
async def post_replies(
    post_id: UUID,
    viewer_id: OptionalUserId,
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[int] = None,
) -> PostPage:
    return await post_service.get_post_replies(post_id, viewer_id, limit, cursor)


@router.post("/{post_id}/like", status_code=status.HTTP_204_NO_CONTENT)
async def like(post_id: UUID, user_id: CurrentUserId) -> None:
    """
    Like a post.

    Raises:
    - **404 Not Found**: If post does not exist
    - **409 Conflict**: If already liked
    """
    await engagement_service.like_post(user_id, post_id)


@router.delete("/{post_id}/like", status_code=status.HTTP_204_NO_CONTENT)
async def unlike(post_id: UUID, user_id: CurrentUserId) -> None:
    await engagement_service.unlike_post(user_id, post_id)


@router.post("/{post_id}/repost", status_code=status.HTTP_204_NO_CONTENT)
async def repost(post_id: UUID, user_id: CurrentUserId) -> None:
    """
    Repost a post. Reposts cannot be undone.

    Raises:
    - **404 Not Found**: If post does not exist
    - **409 Conflict**: If already reposted
    """
    await engagement_service.repost_post(user_id, post_id)


@router.post("/{post_id}/bookmark", status_code=status.HTTP_204_NO_CONTENT)
async def bookmark(post_id: UUID, user_id: CurrentUserId) -> None:
    await engagement_service.bookmark_post(user_id, post_id)


@router.delete("/{post_id}/bookmark", status_code=status.HTTP_204_NO_CONTENT)
async def unbookmark(post_id: UUID, user_id: CurrentUserId) -> None:
    await engagement_service.unbookmark_post(user_id, post_id)
