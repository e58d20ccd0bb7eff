import logging
from typing import Optional
from uuid import UUID

from flock.config_secrets import (
    BIO_MAX_LENGTH,
    DISPLAY_NAME_MAX_LENGTH,
    SUGGESTED_USERS_SAMPLE_SIZE,
    USERNAME_MAX_LENGTH,
)
from flock.core.db import get_store
from flock.core.exceptions import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    require_user,
)
from flock.models.models import Follow, NotificationType, Profile, User
from flock.schemas.schemas import ProfilePage, ProfileResponse
from flock.services import storage_service
from flock.services.enrichment import load_profile, load_profiles, profile_to_response
from flock.services.notification_service import create_notification
from flock.utils import timeutils
from flock.utils.pagination import clamp_limit, split_page
from flock.utils.text import normalize_username, username_base_from_email, username_error

logger = logging.getLogger(__name__)


def _validate_username(username: str) -> str:
    username = normalize_username(username)
    error = username_error(username)
    if error:
        raise InvalidArgumentError(error)
    return username


def _validate_text_fields(display_name: Optional[str], bio: Optional[str]) -> None:
    if display_name is not None:
        if not display_name.strip():
            raise InvalidArgumentError("Display name is required")
        if len(display_name) > DISPLAY_NAME_MAX_LENGTH:
            raise InvalidArgumentError(f"Display name must be {DISPLAY_NAME_MAX_LENGTH} characters or less")
    if bio is not None and len(bio) > BIO_MAX_LENGTH:
        raise InvalidArgumentError(f"Bio must be {BIO_MAX_LENGTH} characters or less")


async def _ensure_username_available(username: str, user_id: UUID) -> None:
    existing = await get_store().find_one("profiles", {"username": username})
    if existing and existing["user_id"] != user_id:
        raise ConflictError("Username is already taken")


async def _is_following(follower_id: Optional[UUID], following_id: UUID) -> bool:
    if follower_id is None:
        return False
    row = await get_store().find_one("follows", {"follower_id": follower_id, "following_id": following_id})
    return row is not None


async def _get_email(user_id: UUID) -> Optional[str]:
    row = await get_store().get("users", user_id)
    return row["email"] if row else None


async def create_or_update_profile(
    user_id: Optional[UUID],
    username: str,
    display_name: str,
    bio: Optional[str] = None,
    location: Optional[str] = None,
    website: Optional[str] = None,
) -> Profile:
    """Create the caller's profile, or overwrite its editable fields if it exists"""
    user_id = require_user(user_id)
    username = _validate_username(username)
    _validate_text_fields(display_name, bio)
    await _ensure_username_available(username, user_id)

    store = get_store()
    fields = {
        "username": username,
        "display_name": display_name.strip(),
        "bio": bio,
        "location": location,
        "website": website,
    }

    existing = await load_profile(store, user_id)
    if existing:
        row = await store.update("profiles", existing.id, fields)
        logger.info(f"Updated profile {username} for user {user_id}")
        return Profile(**row)

    profile = Profile(user_id=user_id, created_at=timeutils.now_ms(), **fields)
    row = await store.insert("profiles", profile.model_dump())
    logger.info(f"Created profile {username} for user {user_id}")
    return Profile(**row)


async def update_profile(
    user_id: Optional[UUID],
    username: Optional[str] = None,
    display_name: Optional[str] = None,
    bio: Optional[str] = None,
    location: Optional[str] = None,
    website: Optional[str] = None,
    avatar_url: Optional[str] = None,
    banner_url: Optional[str] = None,
    avatar_storage_id: Optional[str] = None,
    banner_storage_id: Optional[str] = None,
) -> tuple[Profile, str]:
    """
    Partially update the caller's profile.

    Only arguments that are not None are written. An uploaded avatar or banner
    (storage id) also refreshes the stored URL.

    Returns:
        (updated profile, resulting username)
    """
    user_id = require_user(user_id)
    store = get_store()
    profile = await load_profile(store, user_id)
    if profile is None:
        raise NotFoundError("Profile not found")

    _validate_text_fields(display_name, bio)

    fields = {
        "display_name": display_name.strip() if display_name is not None else None,
        "bio": bio,
        "location": location,
        "website": website,
        "avatar_url": avatar_url,
        "banner_url": banner_url,
        "avatar_storage_id": avatar_storage_id,
        "banner_storage_id": banner_storage_id,
    }

    if username is not None:
        username = _validate_username(username)
        if username != profile.username:
            await _ensure_username_available(username, user_id)
        fields["username"] = username

    if avatar_storage_id:
        fields["avatar_url"] = storage_service.get_file_url(avatar_storage_id) or avatar_url
    if banner_storage_id:
        fields["banner_url"] = storage_service.get_file_url(banner_storage_id) or banner_url

    fields = {key: value for key, value in fields.items() if value is not None}
    if not fields:
        return profile, profile.username

    row = await store.update("profiles", profile.id, fields)
    updated = Profile(**row)
    logger.info(f"Updated fields {sorted(fields)} of profile {updated.username}")
    return updated, updated.username


async def follow_user(user_id: Optional[UUID], target_user_id: UUID) -> None:
    """
    Follow another user and notify them.

    Raises:
        InvalidArgumentError: Following yourself
        NotFoundError: The target has no profile
        ConflictError: Already following
    """
    user_id = require_user(user_id)
    if user_id == target_user_id:
        raise InvalidArgumentError("Cannot follow yourself")

    store = get_store()
    target = await load_profile(store, target_user_id)
    if target is None:
        raise NotFoundError("User not found")
    if await _is_following(user_id, target_user_id):
        raise ConflictError("Already following this user")

    # Unique (follower_id, following_id) rejects a concurrent duplicate
    follow = Follow(follower_id=user_id, following_id=target_user_id, created_at=timeutils.now_ms())
    await store.insert("follows", follow.model_dump())

    await store.increment("profiles", target.id, "followers_count", 1)
    follower = await load_profile(store, user_id)
    if follower:
        await store.increment("profiles", follower.id, "following_count", 1)

    await create_notification(target_user_id, user_id, NotificationType.FOLLOW)
    logger.info(f"User {user_id} followed {target_user_id}")


async def unfollow_user(user_id: Optional[UUID], target_user_id: UUID) -> None:
    user_id = require_user(user_id)
    if user_id == target_user_id:
        raise InvalidArgumentError("Cannot unfollow yourself")

    store = get_store()
    edge = await store.find_one("follows", {"follower_id": user_id, "following_id": target_user_id})
    if edge is None:
        raise NotFoundError("Not following this user")
    await store.delete("follows", edge["id"])

    profiles = await load_profiles(store, [user_id, target_user_id])
    if target_user_id in profiles:
        await store.increment("profiles", profiles[target_user_id].id, "followers_count", -1)
    if user_id in profiles:
        await store.increment("profiles", profiles[user_id].id, "following_count", -1)
    logger.info(f"User {user_id} unfollowed {target_user_id}")


async def get_profile_by_username(username: str, viewer_id: Optional[UUID] = None) -> Optional[ProfileResponse]:
    row = await get_store().find_one("profiles", {"username": normalize_username(username)})
    if row is None:
        return None
    profile = Profile(**row)
    return profile_to_response(
        profile,
        email=await _get_email(profile.user_id),
        is_following=await _is_following(viewer_id, profile.user_id),
        is_own_profile=viewer_id == profile.user_id,
    )


async def get_current_user_profile(user_id: Optional[UUID]) -> Optional[ProfileResponse]:
    if user_id is None:
        return None
    profile = await load_profile(get_store(), user_id)
    if profile is None:
        return None
    return profile_to_response(profile, email=await _get_email(user_id), is_own_profile=True)


async def _follow_page(
    edge_filter: dict,
    target_column: str,
    limit: Optional[int],
    cursor: Optional[int],
) -> ProfilePage:
    store = get_store()
    limit = clamp_limit(limit, 50)
    rows = await store.find("follows", edge_filter, before=cursor, limit=limit + 1)
    rows, next_cursor, has_more = split_page(rows, limit)
    profiles = await load_profiles(store, [row[target_column] for row in rows])
    items = [profile_to_response(profiles[row[target_column]]) for row in rows if row[target_column] in profiles]
    return ProfilePage(items=items, next_cursor=next_cursor, has_more=has_more)


async def get_followers(user_id: UUID, limit: Optional[int] = None, cursor: Optional[int] = None) -> ProfilePage:
    """Profiles following user_id, most recent follow first"""
    return await _follow_page({"following_id": user_id}, "follower_id", limit, cursor)


async def get_following(user_id: UUID, limit: Optional[int] = None, cursor: Optional[int] = None) -> ProfilePage:
    """Profiles user_id follows, most recent follow first"""
    return await _follow_page({"follower_id": user_id}, "following_id", limit, cursor)


async def get_suggested_users(viewer_id: Optional[UUID], limit: int = 5) -> list[ProfileResponse]:
    """
    Who-to-follow suggestions.

    Candidates are the most recently created profiles, minus the viewer and
    accounts the viewer already follows, ranked by follower count.
    """
    if viewer_id is None:
        return []

    store = get_store()
    candidates = await store.find("profiles", limit=SUGGESTED_USERS_SAMPLE_SIZE)
    followed = await store.find("follows", {"follower_id": viewer_id})
    excluded = {row["following_id"] for row in followed} | {viewer_id}

    profiles = [Profile(**row) for row in candidates if row["user_id"] not in excluded]
    profiles.sort(key=lambda profile: profile.followers_count, reverse=True)
    return [profile_to_response(profile, is_following=False) for profile in profiles[: max(limit, 0)]]


async def search_profiles(
    term: str,
    limit: int = 10,
    exclude_user_id: Optional[UUID] = None,
) -> list[ProfileResponse]:
    """Username matches first, then display-name matches, without duplicates"""
    if not term or not term.strip():
        return []

    store = get_store()
    term = term.strip()
    by_username = await store.search("profiles", "username", term, limit=limit + 1)
    by_display_name = await store.search("profiles", "display_name", term, limit=limit + 1)

    seen: set[UUID] = set()
    results = []
    for row in by_username + by_display_name:
        if row["id"] in seen or row["user_id"] == exclude_user_id:
            continue
        seen.add(row["id"])
        results.append(profile_to_response(Profile(**row)))
    return results[:limit]


async def ensure_profile_for_user(user: User) -> Profile:
    """
    Return the user's profile, creating one on first sign-in.

    The username is derived from the email local-part; a numeric suffix is
    appended until it is free.
    """
    store = get_store()
    existing = await load_profile(store, user.id)
    if existing:
        return existing

    base = username_base_from_email(user.email)
    username = base
    suffix = 1
    while await store.find_one("profiles", {"username": username}):
        username = f"{base}{suffix}"[:USERNAME_MAX_LENGTH]
        suffix += 1

    profile = Profile(
        user_id=user.id,
        username=username,
        display_name=(user.name or base)[:DISPLAY_NAME_MAX_LENGTH],
        created_at=timeutils.now_ms(),
    )
    row = await store.insert("profiles", profile.model_dump())
    logger.info(f"Created profile {username} for new user {user.id}")
    return Profile(**row)

