import logging
from typing import Optional
from uuid import UUID

from flock.core.auth import get_password_hash, verify_password
from flock.core.db import get_store
from flock.core.exceptions import ConflictError, UnauthenticatedError
from flock.models.models import User
from flock.services.profile_service import ensure_profile_for_user
from flock.utils import timeutils

logger = logging.getLogger(__name__)


async def register_user(email: str, password: str, name: Optional[str] = None) -> User:
    """
    Create an account and its default profile.

    Raises:
        ConflictError: The email is already registered
    """
    store = get_store()
    email = email.strip().lower()
    if await store.find_one("users", {"email": email}):
        raise ConflictError("Email already registered")

    user = User(
        email=email,
        password_hash=get_password_hash(password),
        name=name,
        created_at=timeutils.now_ms(),
    )
    row = await store.insert("users", user.model_dump())
    user = User(**row)
    await ensure_profile_for_user(user)
    logger.info(f"Registered user {user.id}")
    return user


async def authenticate_user(email: str, password: str) -> User:
    """Check credentials and make sure the user has a profile"""
    row = await get_store().find_one("users", {"email": email.strip().lower()})
    if row is None or not verify_password(password, row["password_hash"]):
        raise UnauthenticatedError("Incorrect email or password")
    user = User(**row)
    await ensure_profile_for_user(user)
    return user


async def get_user_by_id(user_id: UUID) -> Optional[User]:
    row = await get_store().get("users", user_id)
    return User(**row) if row else None
