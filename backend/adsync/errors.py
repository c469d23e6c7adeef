"""
API error taxonomy and the uniform `{error, code}` response envelope.

Route handlers raise ApiError; the handlers registered in main.py render it.
Anything else that escapes a handler is logged and returned as INTERNAL_ERROR.
"""

import enum
import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorCode(str, enum.Enum):
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ApiError(Exception):
    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"error": self.message, "code": self.code.value}
        if self.details:
            body["details"] = self.details
        return body


def not_found_error(resource: str, resource_id: Any) -> ApiError:
    return ApiError(404, ErrorCode.NOT_FOUND, f"{resource} not found: {resource_id}")


def validation_error(message: str, details: Optional[dict[str, Any]] = None) -> ApiError:
    return ApiError(400, ErrorCode.VALIDATION_ERROR, message, details)


def forbidden_error(message: str) -> ApiError:
    return ApiError(403, ErrorCode.FORBIDDEN, message)


def internal_error(message: str) -> ApiError:
    return ApiError(500, ErrorCode.INTERNAL_ERROR, message)


def unauthorized_error(message: str) -> ApiError:
    return ApiError(401, ErrorCode.UNAUTHORIZED, message)


def code_for_status(status_code: int) -> ErrorCode:
    if status_code == 401:
        return ErrorCode.UNAUTHORIZED
    if status_code == 403:
        return ErrorCode.FORBIDDEN
    if status_code == 404:
        return ErrorCode.NOT_FOUND
    if status_code >= 500:
        return ErrorCode.INTERNAL_ERROR
    return ErrorCode.VALIDATION_ERROR


# ── Exception handlers (registered in main.py) ─────────────────────────

async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Framework-raised errors (unknown route, wrong method) in the same envelope."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail), "code": code_for_status(exc.status_code).value},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": "Invalid request",
            "code": ErrorCode.VALIDATION_ERROR.value,
            "details": {"errors": jsonable_errors(exc)},
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unexpected error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "code": ErrorCode.INTERNAL_ERROR.value},
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Keep only the JSON-safe parts of pydantic's error list."""
    return [
        {"loc": [str(p) for p in err.get("loc", ())], "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
