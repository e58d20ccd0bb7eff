from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from flock.core.auth import CurrentUserId, create_access_token
from flock.schemas.schemas import Token, UserCreate, UserResponse
from flock.services.user_service import authenticate_user, get_user_by_id, register_user

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate) -> UserResponse:
    """
    Register a new user and create their default profile.

    Parameters:
    - **user_data**: Email, password and optional display name

    Returns:
    - **UserResponse**: Newly created user information

    Raises:
    - **409 Conflict**: If the email is already registered
    - **422 Unprocessable Entity**: If the email is invalid or the password too short
    """
    user = await register_user(email=user_data.email, password=user_data.password, name=user_data.name)
    return UserResponse(**user.model_dump())


@router.post("/login", status_code=status.HTTP_200_OK)
async def login(form_data: Annotated[OAuth2PasswordRequestForm, Depends()]) -> Token:
    """
    Authenticate a user and return an access token.

    Parameters:
    - **form_data**: OAuth2 password form; the username field carries the email

    Returns:
    - **Token**: JWT bearer token

    Raises:
    - **401 Unauthorized**: If credentials are invalid
    """
    user = await authenticate_user(form_data.username, form_data.password)
    return Token(access_token=create_access_token(user.id), token_type="bearer")


@router.get("/me", status_code=status.HTTP_200_OK)
async def read_me(user_id: CurrentUserId) -> UserResponse:
    """Return the signed-in user."""
    user = await get_user_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserResponse(**user.model_dump())
