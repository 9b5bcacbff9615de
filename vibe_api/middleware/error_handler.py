# vibe_api/middleware/error_handler.py
# Structured error handling middleware
# Catches unhandled exceptions and returns consistent JSON responses

import logging
import traceback
from typing import Any, Awaitable, Callable, Optional, TypeVar

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from vibe_api.utils.logger import log_exception, log_warning

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AppError(Exception):
    """Base application error with structured response."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: dict = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}


class UnauthorizedError(AppError):
    """Missing or invalid caller identity."""
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message=message, error_code="UNAUTHORIZED", status_code=401)


class BadRequestError(AppError):
    """Required field missing or malformed."""
    def __init__(self, message: str = "Bad request", details: dict = None):
        super().__init__(message=message, error_code="BAD_REQUEST", status_code=400, details=details)


class ValidationError(AppError):
    """Request body or query failed schema validation."""
    def __init__(self, message: str = "Invalid request data", details: dict = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details=details
        )


class NotFoundError(AppError):
    """Resource not found."""
    def __init__(self, message: str = "Resource not found", details: dict = None):
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=404,
            details=details
        )


class UpstreamError(AppError):
    """An external service call failed. The message stays generic."""
    def __init__(self, message: str = "Upstream service failed"):
        super().__init__(message=message, error_code="UPSTREAM_ERROR", status_code=500)


class RateLimitError(AppError):
    """Rate limit exceeded."""
    def __init__(self, retry_after: int = 60):
        super().__init__(
            message=f"Rate limit exceeded. Retry after {retry_after} seconds.",
            error_code="RATE_LIMIT_EXCEEDED",
            status_code=429,
            details={"retry_after": retry_after}
        )


class NonCriticalError(Exception):
    """Failure of a side effect that must never fail the parent operation."""

    def __init__(self, context: str, cause: BaseException):
        super().__init__(f"{context}: {cause}")
        self.context = context
        self.cause = cause


async def best_effort(awaitable: Awaitable[T], context: str) -> Optional[T]:
    """Await a non-critical side effect, logging and discarding any failure."""
    try:
        return await awaitable
    except Exception as e:
        err = NonCriticalError(context, e)
        log_warning(f"Non-critical side effect failed: {err}")
        logger.warning(str(err))
        return None


def create_error_response(
    error_code: str,
    message: str,
    status_code: int,
    details: dict = None,
    request_id: str = None,
    headers: dict = None,
) -> JSONResponse:
    """Create a standardized JSON error response."""
    content: dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    if request_id:
        content["error"]["request_id"] = request_id

    return JSONResponse(status_code=status_code, content=content, headers=headers)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware that catches all unhandled exceptions and returns
    consistent JSON error responses.
    """

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next: Callable):
        request_id = request.headers.get("X-Request-ID", str(id(request)))

        try:
            return await call_next(request)

        except AppError as e:
            logger.warning(
                f"AppError: {e.error_code} - {e.message}",
                extra={"request_id": request_id, "path": request.url.path}
            )
            return create_error_response(
                error_code=e.error_code,
                message=e.message,
                status_code=e.status_code,
                details=e.details,
                request_id=request_id
            )

        except HTTPException as e:
            logger.warning(
                f"HTTPException: {e.status_code} - {e.detail}",
                extra={"request_id": request_id, "path": request.url.path}
            )
            return create_error_response(
                error_code="HTTP_ERROR",
                message=str(e.detail),
                status_code=e.status_code,
                request_id=request_id
            )

        except Exception as e:
            error_details = None
            if self.debug:
                error_details = {
                    "type": type(e).__name__,
                    "traceback": traceback.format_exc()
                }

            log_exception(e, context=f"Unhandled error on {request.url.path}")
            logger.error(
                f"Unhandled exception: {type(e).__name__}: {str(e)}",
                extra={"request_id": request_id, "path": request.url.path},
                exc_info=True
            )

            return create_error_response(
                error_code="INTERNAL_ERROR",
                message="An internal error occurred. Please try again later.",
                status_code=500,
                details=error_details,
                request_id=request_id
            )


def setup_exception_handlers(app):
    """Register exception handlers on FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            log_exception(exc, context=f"{request.method} {request.url.path}")
        return create_error_response(
            error_code=exc.error_code,
            message=exc.message,
            status_code=exc.status_code,
            details=exc.details
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return create_error_response(
            error_code="VALIDATION_ERROR",
            message="Invalid request data",
            status_code=400,
            details={"errors": format_validation_errors(exc.errors())}
        )


def format_validation_errors(errors) -> list[dict]:
    """Keep the serializable parts of pydantic error entries."""
    return [
        {"loc": list(err.get("loc", ())), "msg": str(err.get("msg", "")), "type": str(err.get("type", ""))}
        for err in errors
    ]
