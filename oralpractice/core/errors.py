"""
Domain errors raised by controllers and services.

Every error carries a short, user-safe message and the HTTP status it maps
to. `oralpractice.main` installs one exception handler that renders them as
``{"detail": message}``.
"""
from starlette import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Missing or malformed input the caller can fix."""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(AppError):
    """Missing credential. Invalid/expired credentials use 403."""
    status_code = status.HTTP_401_UNAUTHORIZED


class Forbidden(AuthError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT


class StorageError(AppError):
    """Audio store or database unavailable. Safe for the caller to retry."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class ScoringProviderError(AppError):
    """
    The speech-evaluation vendor failed. Never surfaced to clients:
    submission falls back to the placeholder scorer and returns a warning.
    """
    status_code = status.HTTP_502_BAD_GATEWAY
