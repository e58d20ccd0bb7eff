"""
Read-time joins shared by the post, notification and message services.

Mapping functions (``profile_to_response``, ``post_to_enriched``) are pure;
the ``load_*``/``enrich_*`` coroutines batch the lookups they need so a page of
posts costs one query per related table rather than one per post.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Optional
from uuid import UUID

from flock.core.store import In, Store
from flock.models.models import Post, Profile
from flock.schemas.schemas import EnrichedPost, ProfileResponse
from flock.services import storage_service
from flock.utils.text import extract_hashtags, extract_mentions


def profile_to_response(
    profile: Profile,
    *,
    email: Optional[str] = None,
    is_following: Optional[bool] = None,
    is_own_profile: Optional[bool] = None,
) -> ProfileResponse:
    """Build the public view of a profile, resolving uploaded images to URLs."""
    avatar_url = profile.avatar_url
    if profile.avatar_storage_id:
        avatar_url = storage_service.get_file_url(profile.avatar_storage_id) or avatar_url
    banner_url = profile.banner_url
    if profile.banner_storage_id:
        banner_url = storage_service.get_file_url(profile.banner_storage_id) or banner_url

    return ProfileResponse(
        id=profile.id,
        user_id=profile.user_id,
        username=profile.username,
        display_name=profile.display_name,
        bio=profile.bio,
        location=profile.location,
        website=profile.website,
        avatar_url=avatar_url,
        banner_url=banner_url,
        verified=profile.verified,
        followers_count=profile.followers_count,
        following_count=profile.following_count,
        posts_count=profile.posts_count,
        created_at=profile.created_at,
        email=email,
        is_following=is_following,
        is_own_profile=is_own_profile,
    )


def post_to_enriched(
    post: Post,
    author: Optional[ProfileResponse],
    *,
    quoted_post: Optional[EnrichedPost] = None,
    liked: bool = False,
    reposted: bool = False,
    bookmarked: bool = False,
) -> EnrichedPost:
    return EnrichedPost(
        **post.model_dump(),
        hashtags=extract_hashtags(post.content),
        mentions=extract_mentions(post.content),
        author=author,
        quoted_post=quoted_post,
        liked=liked,
        reposted=reposted,
        bookmarked=bookmarked,
    )


async def load_profiles(store: Store, user_ids: Iterable[UUID]) -> dict[UUID, Profile]:
    """Profiles keyed by user id; users without a profile are simply absent."""
    ids = list(dict.fromkeys(user_ids))
    if not ids:
        return {}
    rows = await store.find("profiles", {"user_id": In(ids)})
    return {row["user_id"]: Profile(**row) for row in rows}


async def load_profile(store: Store, user_id: UUID) -> Optional[Profile]:
    row = await store.find_one("profiles", {"user_id": user_id})
    return Profile(**row) if row else None


async def load_posts(store: Store, post_ids: Iterable[UUID]) -> dict[UUID, Post]:
    ids = list(dict.fromkeys(post_ids))
    if not ids:
        return {}
    rows = await store.find("posts", {"id": In(ids)})
    return {row["id"]: Post(**row) for row in rows}


async def load_post_with_author(store: Store, post_id: Optional[UUID]) -> Optional[EnrichedPost]:
    """One post joined with its author only (parent posts, notification targets)."""
    if post_id is None:
        return None
    row = await store.get("posts", post_id)
    if row is None:
        return None
    post = Post(**row)
    author = await load_profile(store, post.author_id)
    return post_to_enriched(post, profile_to_response(author) if author else None)


async def _engaged_post_ids(store: Store, table: str, viewer_id: UUID, post_ids: list[UUID]) -> set[UUID]:
    rows = await store.find(table, {"user_id": viewer_id, "post_id": In(post_ids)})
    return {row["post_id"] for row in rows}


async def enrich_posts(store: Store, posts: list[Post], viewer_id: Optional[UUID]) -> list[EnrichedPost]:
    """
    Join a page of posts with authors, quoted posts (one level) and, for a
    signed-in viewer, the liked/reposted/bookmarked flags.
    """
    if not posts:
        return []

    quoted = await load_posts(store, [p.quoted_post_id for p in posts if p.quoted_post_id])
    authors = await load_profiles(
        store,
        [p.author_id for p in posts] + [q.author_id for q in quoted.values()],
    )
    author_views = {user_id: profile_to_response(profile) for user_id, profile in authors.items()}

    quoted_views = {
        post_id: post_to_enriched(post, author_views.get(post.author_id))
        for post_id, post in quoted.items()
    }

    liked: set[UUID] = set()
    reposted: set[UUID] = set()
    bookmarked: set[UUID] = set()
    if viewer_id is not None:
        post_ids = [p.id for p in posts]
        liked = await _engaged_post_ids(store, "likes", viewer_id, post_ids)
        reposted = await _engaged_post_ids(store, "reposts", viewer_id, post_ids)
        bookmarked = await _engaged_post_ids(store, "bookmarks", viewer_id, post_ids)

    return [
        post_to_enriched(
            post,
            author_views.get(post.author_id),
            quoted_post=quoted_views.get(post.quoted_post_id) if post.quoted_post_id else None,
            liked=post.id in liked,
            reposted=post.id in reposted,
            bookmarked=post.id in bookmarked,
        )
        for post in posts
    ]
