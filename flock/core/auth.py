from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated, Any, cast
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from flock.config_secrets import JWT_ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET_KEY

SECRET_KEY = JWT_SECRET_KEY
ALGORITHM = JWT_ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = JWT_ACCESS_TOKEN_EXPIRE_MINUTES

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)


class AuthError(HTTPException):
    """Authentication exception with WWW-Authenticate header."""

    def __init__(self, detail: str = "Could not validate credentials") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a bcrypt hash."""
    return cast(bool, pwd_context.verify(plain_password, hashed_password))


def get_password_hash(password: str) -> str:
    """Hash a plain password with bcrypt."""
    return cast(str, pwd_context.hash(password))


def create_access_token(subject_user_id: UUID, expires_delta: timedelta | None = None) -> str:
    """Create signed JWT token for one user id."""
    expire_at = datetime.now(UTC) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode: dict[str, Any] = {
        "sub": str(subject_user_id),
        "exp": expire_at,
    }
    return cast(str, jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM))


async def _resolve_user_id(token: str) -> UUID:
    from flock.services.user_service import get_user_by_id

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as exc:
        raise AuthError() from exc

    subject = payload.get("sub")
    if not isinstance(subject, str):
        raise AuthError()

    try:
        user_id = UUID(subject)
    except ValueError as exc:
        raise AuthError("Invalid token subject") from exc

    if await get_user_by_id(user_id) is None:
        raise AuthError()
    return user_id


async def get_current_user_id(token: Annotated[str, Depends(oauth2_scheme)]) -> UUID:
    """Resolve the caller from the bearer JWT; the endpoint requires a signed-in user."""
    return await _resolve_user_id(token)


async def get_optional_user_id(token: Annotated[str | None, Depends(optional_oauth2_scheme)]) -> UUID | None:
    """Resolve the caller if a token was sent; anonymous requests get None."""
    if token is None:
        return None
    return await _resolve_user_id(token)


CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
OptionalUserId = Annotated[UUID | None, Depends(get_optional_user_id)]
