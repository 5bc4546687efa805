from __future__ import annotations

import logging
from enum import Enum
from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class DenialReason(str, Enum):
    PIN_REQUIRED = "pin_required"
    PIN_INVALID = "pin_invalid"
    ROLE_INSUFFICIENT = "role_insufficient"


class AppError(Exception):
    """Base class for domain failures that map onto a stable response code."""

    status_code: int = 500
    code: str = "internal_server_error"
    message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(AppError):
    status_code = 401
    code = "authentication_required"
    message = "Authentication required"


class AuthorizationError(AppError):
    status_code = 403
    code = "forbidden"
    message = "Access forbidden"

    _MESSAGES = {
        DenialReason.PIN_REQUIRED: "PIN required",
        DenialReason.PIN_INVALID: "Invalid PIN",
        DenialReason.ROLE_INSUFFICIENT: "Admin access required",
    }

    def __init__(self, reason: DenialReason, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or self._MESSAGES[reason], code=reason.value)


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"
    message = "Invalid request"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"
    message = "Conflict"


class PinLockedError(AppError):
    status_code = 429
    code = "pin_locked"
    message = "Too many failed PIN attempts; try later"


_STATUS_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
    422: "validation_error",
    429: "rate_limited",
}


def _status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Request failed"


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """The error half of the ``{code, message, data, details}`` envelope."""
    payload = {"code": code, "message": message, "data": None, "details": details or {}}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload), headers=headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s", exc.code, request.method, request.url.path)
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Raised by the framework itself (unknown route, wrong method, ...).
    code = _STATUS_CODES.get(exc.status_code, "http_error")
    message = exc.detail if isinstance(exc.detail, str) else _status_phrase(exc.status_code)
    return error_response(exc.status_code, code, message, headers=getattr(exc, "headers", None))


def _field_path(error: dict[str, Any]) -> str:
    return ".".join(str(part) for part in error.get("loc") or () if part not in {"body", "query", "path", "header"})


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Request bodies may carry PINs or passwords; submitted values are never echoed.
    errors = [{k: v for k, v in err.items() if k not in {"input", "ctx", "url"}} for err in exc.errors()]
    message = "Validation failed"
    if errors:
        path = _field_path(errors[0])
        msg = errors[0].get("msg") or message
        message = f"{path}: {msg}" if path else str(msg)
    return error_response(422, "validation_error", message, {"errors": errors})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, "internal_server_error", "Internal server error")


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return error_response(
        429,
        "rate_limited",
        "Too many requests",
        {"limit": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
