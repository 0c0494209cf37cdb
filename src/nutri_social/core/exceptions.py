"""Domain exceptions and their HTTP mapping."""

from __future__ import annotations

from fastapi import HTTPException, status


class SocialError(Exception):
    """Base class for errors raised by the interaction and listing services."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "internal_error"

    def __init__(self, detail: str, *, field: str | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.field = field

    def to_payload(self) -> dict[str, str]:
        """Return the JSON body rendered for this error."""
        payload = {"detail": self.detail, "error": self.error}
        if self.field is not None:
            payload["field"] = self.field
        return payload


class NotFoundError(SocialError):
    """A referenced post, comment, challenge, recipe or user does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"


class InvalidInputError(SocialError):
    """A field failed validation (missing, malformed or out of range)."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_input"


class InvalidOperationError(SocialError):
    """The request is well formed but not allowed, e.g. following yourself."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "invalid_operation"


class PermissionDeniedError(SocialError):
    """The actor tried to modify content owned by someone else."""

    status_code = status.HTTP_403_FORBIDDEN
    error = "permission_denied"


class ConflictError(SocialError):
    """A concurrent writer invalidated the current unit of work.

    Raised by repositories and retried by the interaction service; only
    reaches the client once every attempt has failed.
    """

    status_code = status.HTTP_409_CONFLICT
    error = "conflict"


class AuthenticationRequired(HTTPException):
    """Exception raised when no authenticated actor is present."""

    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
