"""
Custom exception hierarchy for the watch-time engine.

Rule: every error has a machine-readable `code` string so callers (the HTTP
layer, the job runner, log processors) can branch on it without parsing
English messages.

Platform errors never escape a polling run: the poller turns them into
Unknown verdicts. They still carry codes so the run log is greppable.
"""
from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------

class WatchtimeException(Exception):
    """Base class for all application-level errors."""
    http_status: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class PlatformRequestError(WatchtimeException):
    """Transient upstream failure: timeout, 5xx, 429, auth. Retried once."""
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "PLATFORM_REQUEST_FAILED"

    def __init__(self, platform: str, message: str, status_code: int | None = None):
        details: dict[str, Any] = {"platform": platform}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message=message, details=details)
        self.platform = platform
        self.status_code = status_code


class MalformedPayloadError(WatchtimeException):
    """Upstream answered, but not with the shape we expect. Not retried."""
    http_status = status.HTTP_502_BAD_GATEWAY
    code = "PLATFORM_MALFORMED_PAYLOAD"

    def __init__(self, platform: str, message: str):
        super().__init__(message=message, details={"platform": platform})
        self.platform = platform


class UnsupportedPlatformError(WatchtimeException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "UNSUPPORTED_PLATFORM"

    def __init__(self, platform: str, reason: str | None = None):
        message = f"Platform {platform!r} is not supported."
        if reason:
            message = f"Platform {platform!r} is not available: {reason}"
        super().__init__(message=message, details={"platform": platform})


class SessionNotFoundError(WatchtimeException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "SESSION_NOT_FOUND"

    def __init__(self, session_id: int):
        super().__init__(
            message=f"Stream session {session_id} does not exist.",
            details={"session_id": session_id},
        )


class InvalidRollupDayError(WatchtimeException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "INVALID_ROLLUP_DAY"

    def __init__(self, day: date, today: date):
        super().__init__(
            message=f"Cannot roll up {day}: it is after today ({today}).",
            details={"day": str(day), "today": str(today)},
        )


class UnknownRepairFieldError(WatchtimeException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "UNKNOWN_REPAIR_FIELD"

    def __init__(self, field: str, allowed: list[str]):
        super().__init__(
            message=f"Field {field!r} cannot be repaired.",
            details={"field": field, "allowed": allowed},
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

async def watchtime_exception_handler(request: Request, exc: WatchtimeException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=exc.to_dict(),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Return structured 422 with machine-readable field errors."""
    field_errors = []
    for error in exc.errors():
        field_errors.append({
            "field": ".".join(str(loc) for loc in error["loc"] if loc not in ("body", "query", "path")),
            "message": error["msg"],
            "type": error["type"],
        })
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "code": "VALIDATION_ERROR",
            "message": "Request validation failed.",
            "details": {"errors": field_errors},
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )
