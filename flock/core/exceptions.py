from fastapi import status


class ServiceError(Exception):
    """Base service exception."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class UnauthenticatedError(ServiceError):
    """Raised when a caller identity is required but missing."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(ServiceError):
    """Raised when the caller does not own or participate in the entity."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(ServiceError):
    """Raised when a referenced entity is absent."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ServiceError):
    """Raised for uniqueness or duplicate-state violations."""

    status_code = status.HTTP_409_CONFLICT


class InvalidArgumentError(ServiceError):
    """Raised for malformed input."""

    status_code = status.HTTP_400_BAD_REQUEST


def require_user(user_id):
    """Return user_id or raise if the caller is anonymous."""
    if user_id is None:
        raise UnauthenticatedError("Not authenticated")
    return user_id
