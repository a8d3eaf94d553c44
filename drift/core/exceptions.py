"""
Domain errors raised by the service layer.

Each error carries the HTTP status the API layer answers with; the handlers
registered in ``drift.main`` do the translation.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse


class DriftError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or self.code


class NotFoundError(DriftError):
    """Referenced profile, conversation or message does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class InvalidArgumentError(DriftError, ValueError):
    """Malformed or out-of-range argument."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "invalid_argument"


class UnauthorizedError(DriftError):
    """Caller may not act on this resource."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "unauthorized"


class ConflictError(DriftError):
    """The action conflicts with existing state."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class AlreadySwipedError(ConflictError):
    """Already swiped on this profile."""

    code = "already_swiped"


class RateLimitedError(DriftError):
    """Too many requests."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"


class TransientDependencyFailure(DriftError):
    """An external dependency (push delivery) failed. Never surfaced to callers."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "dependency_failure"


async def drift_error_handler(request: Request, exc: DriftError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )
