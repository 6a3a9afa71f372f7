import uuid
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from api.config.logging import get_logger

logger = get_logger(__name__)


class NewsletterServiceException(Exception):
    """Base exception for errors surfaced to HTTP callers."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(NewsletterServiceException):
    """Raised when user input is invalid and can be corrected by the user."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class NotFoundError(NewsletterServiceException):
    """Raised when a resource is not found."""

    def __init__(
        self, message: str = "Not found", details: dict[str, Any] | None = None
    ):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class StorageError(NewsletterServiceException):
    """Raised when the database fails. Callers should retry later."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY, details)


class UpstreamUnavailableError(NewsletterServiceException):
    """Raised when a collaborator (queue, storage) cannot take the request."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_502_BAD_GATEWAY, details)


# Job-side errors never reach an HTTP response; the queue logs them.
class JobError(Exception):
    """Base exception for background job failures."""


class UnknownJobError(JobError):
    """Raised when a message names no job, or a job nobody registered."""

    def __init__(self, job: str | None):
        self.job = job
        super().__init__(f"unknown job: {job!r}")


class MessageError(JobError):
    """Raised when a message is malformed. Never retried."""


class JobExecutionError(JobError):
    """Raised when a handler's collaborator fails."""


class QueueError(JobError):
    """Raised when the queue cannot accept a message."""


class QueueFullError(QueueError):
    """Raised when the queue buffer is full."""


class QueueClosedError(QueueError):
    """Raised when sending to a queue that is stopped or not started."""


def create_error_response(
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Create standardized error response envelope."""
    return {
        "ok": False,
        "error": {
            "message": message,
            "code": status_code,
            "details": details or {},
        },
        "request_id": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def create_success_response(
    data: Any, message: str | None = None, request_id: str | None = None
) -> dict[str, Any]:
    """Create standardized success response envelope."""
    return {
        "ok": True,
        "data": data,
        "message": message,
        "request_id": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def newsletter_service_exception_handler(
    request: Request, exc: NewsletterServiceException
) -> JSONResponse:
    """Handle application exceptions."""
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))

    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Application exception",
        exception=exc.__class__.__name__,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        cause=repr(exc.__cause__) if exc.__cause__ else None,
        request_id=request_id,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(
            status_code=exc.status_code,
            message=exc.message,
            details=exc.details,
            request_id=request_id,
        ),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))

    logger.warning(
        "HTTP exception",
        status_code=exc.status_code,
        detail=exc.detail,
        request_id=request_id,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(
            status_code=exc.status_code,
            message=str(exc.detail),
            request_id=request_id,
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))

    logger.error(
        "Unhandled exception",
        exception=exc.__class__.__name__,
        message=str(exc),
        request_id=request_id,
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=create_error_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message="Internal server error",
            request_id=request_id,
        ),
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to add request context and correlation IDs."""

    async def dispatch(self, request: Request, call_next):
        # Generate correlation ID for request tracking
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        # Add to log context
        from api.config.logging import add_request_context

        add_request_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)

        # Add request ID to response headers
        response.headers["X-Request-ID"] = request_id

        return response
