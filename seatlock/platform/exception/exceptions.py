from typing import Any


class CustomBaseError(Exception):
    """Base class for all custom exceptions - controls logging behavior in @Logger.io"""

    code: str = 'ERROR'

    def __init__(
        self,
        message: str,
        status_code: int,
        *,
        code: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.code = code or self.code
        self.extra = extra or {}
        super().__init__(message)


class DomainError(CustomBaseError):
    code = 'INVALID_REQUEST'

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message, status_code)


class AuthenticationError(CustomBaseError):
    code = 'UNAUTHENTICATED'

    def __init__(self, message: str) -> None:
        super().__init__(message, 401)


class ForbiddenError(CustomBaseError):
    code = 'FORBIDDEN'

    def __init__(self, message: str) -> None:
        super().__init__(message, 403)


class NotFoundError(CustomBaseError):
    code = 'NOT_FOUND'

    def __init__(self, message: str) -> None:
        super().__init__(message, 404)


class RequestTimeoutError(CustomBaseError):
    code = 'PENDING'

    def __init__(self, message: str, *, extra: dict[str, Any] | None = None) -> None:
        super().__init__(message, 408, extra=extra)


class ConflictError(CustomBaseError):
    """Seat is validly held by someone else. Retryable."""

    code = 'CONFLICT'

    def __init__(self, message: str, *, extra: dict[str, Any] | None = None) -> None:
        super().__init__(message, 409, extra=extra)


class ExpiredError(CustomBaseError):
    """A lease lapsed or a queued request aged out before the operation. Retryable."""

    code = 'EXPIRED'

    def __init__(self, message: str) -> None:
        super().__init__(message, 410)


class OverloadedError(CustomBaseError):
    """Queue ceiling reached; the caller should back off before retrying."""

    code = 'OVERLOADED'

    def __init__(self, message: str, *, retry_after_seconds: int = 1) -> None:
        super().__init__(message, 503, extra={'retryAfterSeconds': retry_after_seconds})
        self.retry_after_seconds = retry_after_seconds
