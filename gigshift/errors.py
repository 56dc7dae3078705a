from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details


class ValidationFailedError(ApiError):
    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(422, code, message, details)


class AccessDeniedError(ApiError):
    """Caller is not the owner of the resource (e.g. not the gig's brand)."""

    def __init__(self, code: str, message: str):
        super().__init__(403, code, message)


class ForbiddenError(ApiError):
    """Caller lacks the required relationship (e.g. usher not approved)."""

    def __init__(self, code: str, message: str):
        super().__init__(403, code, message)


class NotFoundError(ApiError):
    def __init__(self, code: str, message: str):
        super().__init__(404, code, message)


class ExpiredError(ApiError):
    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(410, code, message, details)


class InvalidStateError(ApiError):
    def __init__(self, code: str, message: str):
        super().__init__(409, code, message)


class ConflictError(ApiError):
    def __init__(self, code: str, message: str):
        super().__init__(409, code, message)


class OutOfWindowError(ApiError):
    def __init__(
        self,
        *,
        window_start: datetime,
        window_end: datetime,
        current_time: datetime,
        message: str = "QR sessions can only be generated during the gig opening window.",
    ):
        super().__init__(
            422,
            "OUTSIDE_TIME_WINDOW",
            message,
            details={
                "window_start": window_start.isoformat(),
                "window_end": window_end.isoformat(),
                "current_time": current_time.isoformat(),
            },
        )
        self.window_start = window_start
        self.window_end = window_end
        self.current_time = current_time


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    error: dict[str, Any] = {
        "code": code,
        "message": message,
        "request_id": get_request_id(request),
    }
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})
