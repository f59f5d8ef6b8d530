"""Domain exceptions and standardized error responses across all API endpoints."""
from typing import Any

import sentry_sdk
import structlog
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error envelope returned by all API error handlers."""
    error: str
    message: str
    detail: Any = None
    request_id: str = "unknown"

logger = structlog.get_logger()


# ── Domain exceptions ────────────────────────────────────────────────────────


class DomainError(Exception):
    """Base class for errors raised by the scheduling core."""

    code = "domain_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, issues: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.issues = issues or []


class ValidationError(DomainError):
    """Caller-supplied data violates a contract. Never retried."""

    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(DomainError, LookupError):
    """A referenced template, project, item, worker or quote does not exist."""

    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictPolicyError(DomainError):
    """The operation would overwrite committed work without confirmation."""

    code = "already_exists"
    status_code = status.HTTP_409_CONFLICT


AlreadyExistsError = ConflictPolicyError


class BestEffortFailure(DomainError):
    """A side-channel write (conflict flag, notification) failed.

    Raised and caught inside the conflict detector only; the enclosing save
    still succeeds.
    """

    code = "best_effort_failure"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def http_error(exc: DomainError) -> HTTPException:
    """Translate a domain exception into the HTTPException a router raises."""
    return HTTPException(
        status_code=exc.status_code,
        detail={"error": exc.code, "message": exc.message, "detail": exc.issues or None},
    )


# ── Handlers ─────────────────────────────────────────────────────────────────


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch unhandled exceptions and return a consistent JSON envelope."""
    request_id = request.headers.get("x-request-id", "unknown")

    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        request_id=request_id,
    )

    sentry_sdk.capture_exception(exc)

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred.",
            "request_id": request_id,
        },
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Standardize HTTPException responses into the same JSON envelope."""
    request_id = request.headers.get("x-request-id", "unknown")

    if isinstance(exc.detail, dict):
        error = exc.detail.get("error", f"http_{exc.status_code}")
        message = exc.detail.get("message", str(exc.detail))
        detail: Any = exc.detail.get("detail")
    else:
        error = f"http_{exc.status_code}"
        message = str(exc.detail)
        detail = exc.detail

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": error,
            "message": message,
            "detail": detail,
            "request_id": request_id,
        },
        headers=dict(exc.headers or {}),
    )
