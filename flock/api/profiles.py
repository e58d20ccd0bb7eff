from typing import Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from flock.core.auth import CurrentUserId, OptionalUserId
from flock.schemas.schemas import (
    ProfileCreate,
    ProfilePage,
    ProfileResponse,
    ProfileUpdate,
    ProfileUpdateResponse,
    UploadUrlResponse,
)
from flock.services import profile_service, storage_service
from flock.services.enrichment import profile_to_response

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])


@router.get("/me", status_code=status.HTTP_200_OK)
async def get_my_profile(user_id: CurrentUserId) -> ProfileResponse:
    """
    Get the signed-in user's profile.

    Raises:
    - **401 Unauthorized**: If not authenticated
    - **404 Not Found**: If the user has no profile yet
    """
    profile = await profile_service.get_current_user_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


@router.put("/me", status_code=status.HTTP_200_OK)
async def put_my_profile(profile_data: ProfileCreate, user_id: CurrentUserId) -> ProfileResponse:
    """
    Create the signed-in user's profile or overwrite it.

    Parameters:
    - **profile_data**: Username, display name and optional bio, location, website

    Returns:
    - **ProfileResponse**: The stored profile

    Raises:
    - **400 Bad Request**: If the username or text fields are invalid
    - **409 Conflict**: If the username belongs to someone else
    """
    profile = await profile_service.create_or_update_profile(
        user_id,
        username=profile_data.username,
        display_name=profile_data.display_name,
        bio=profile_data.bio,
        location=profile_data.location,
        website=profile_data.website,
    )
    return profile_to_response(profile, is_own_profile=True)


@router.patch("/me", status_code=status.HTTP_200_OK)
async def patch_my_profile(profile_data: ProfileUpdate, user_id: CurrentUserId) -> ProfileUpdateResponse:
    """
    Update only the supplied fields of the signed-in user's profile.

    Raises:
    - **404 Not Found**: If the user has no profile
    - **409 Conflict**: If the new username is taken
    """
    _, new_username = await profile_service.update_profile(user_id, **profile_data.model_dump())
    return ProfileUpdateResponse(new_username=new_username)


@router.post("/me/upload-url", status_code=status.HTTP_200_OK)
async def create_upload_url(user_id: CurrentUserId, content_type: Optional[str] = None) -> UploadUrlResponse:
    """
    Get a presigned URL to upload an avatar or banner.

    Notes:
    - PUT the file to upload_url, then PATCH /profiles/me with the storage_id
    """
    return UploadUrlResponse(**storage_service.generate_upload_url(content_type))


@router.get("/suggested", status_code=status.HTTP_200_OK)
async def suggested_users(
    user_id: OptionalUserId,
    limit: int = Query(5, ge=1, le=20),
) -> list[ProfileResponse]:
    """Who-to-follow suggestions; empty for anonymous callers."""
    return await profile_service.get_suggested_users(user_id, limit)


@router.get("/search", status_code=status.HTTP_200_OK)
async def search(
    q: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=50),
) -> list[ProfileResponse]:
    """Search profiles by username or display name."""
    return await profile_service.search_profiles(q, limit)


@router.get("/{username}", status_code=status.HTTP_200_OK)
async def get_profile(username: str, viewer_id: OptionalUserId) -> ProfileResponse:
    """
    Get a profile by username.

    Returns:
    - **ProfileResponse**: Includes is_following / is_own_profile for the caller

    Raises:
    - **404 Not Found**: If no profile has this username
    """
    profile = await profile_service.get_profile_by_username(username, viewer_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return profile


@router.get("/{user_id}/followers", status_code=status.HTTP_200_OK)
async def followers(
    user_id: UUID,
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[int] = None,
) -> ProfilePage:
    return await profile_service.get_followers(user_id, limit, cursor)


@router.get("/{user_id}/following", status_code=status.HTTP_200_OK)
async def following(
    user_id: UUID,
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[int] = None,
) -> ProfilePage:
    return await profile_service.get_following(user_id, limit, cursor)


@router.post("/{user_id}/follow", status_code=status.HTTP_204_NO_CONTENT)
async def follow(user_id: UUID, current_user_id: CurrentUserId) -> None:
    """
    Follow a user.

    Raises:
    - **400 Bad Request**: If following yourself
    - **404 Not Found**: If the user has no profile
    - **409 Conflict**: If already following
    """
    await profile_service.follow_user(current_user_id, user_id)


@router.delete("/{user_id}/follow", status_code=status.HTTP_204_NO_CONTENT)
async def unfollow(user_id: UUID, current_user_id: CurrentUserId) -> None:
    """
    Unfollow a user.

    Raises:
    - **404 Not Found**: If not following the user
    """
    await profile_service.unfollow_user(current_user_id, user_id)
