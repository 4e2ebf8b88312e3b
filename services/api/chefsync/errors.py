"""Structured API errors.

Every error the sync engine raises on purpose carries a status code, a
machine-readable `code` and optional `details`, and is rendered as
`{"error": ..., "code": ..., "details": ...}`.
"""

import logging
from typing import Any, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("chefsync.errors")


class AppError(HTTPException):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        super().__init__(status_code=self.status_code, detail=message)
        self.message = message
        if code:
            self.code = code
        self.details = details or {}

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class Unauthorized(AppError):
    status_code = 401
    code = "UNAUTHORIZED"


class ValidationFailed(AppError):
    status_code = 400
    code = "VALIDATION_FAILED"


class InvalidCursor(AppError):
    status_code = 400
    code = "INVALID_CURSOR"

    def __init__(self, message: str = "Invalid cursor"):
        super().__init__(message)


class QuotaExceeded(AppError):
    status_code = 403
    code = "QUOTA_EXCEEDED"


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"


class SyncWriteFailed(AppError):
    status_code = 500
    code = "SYNC_WRITE_FAILED"


def format_validation_errors(errors: list[dict], limit: int = 10, prefix: str = "") -> list[dict[str, str]]:
    """Flatten pydantic error dicts into [{path, message}]."""
    out = []
    for err in errors[:limit]:
        path = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        if prefix:
            path = f"{prefix}.{path}" if path else prefix
        out.append({"path": path, "message": err.get("msg", "invalid")})
    return out


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    err = ValidationFailed(
        "Invalid request payload",
        details={"errors": format_validation_errors(list(exc.errors()))},
    )
    return JSONResponse(status_code=err.status_code, content=err.to_body())
