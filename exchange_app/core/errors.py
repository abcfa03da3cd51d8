"""Shared error primitives and FastAPI exception handlers."""

from __future__ import annotations

import logging
from enum import StrEnum
from http import HTTPStatus
from typing import Awaitable, Callable, Mapping, Sequence, cast

from fastapi import FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from exchange_app.exceptions.init_data import InitDataError

ExceptionHandlerCallable = Callable[[Request, Exception], Awaitable[Response]]

logger = logging.getLogger("exchange_app.errors")


class ErrorCode(StrEnum):
    """Canonical machine-readable error codes of the public API."""

    # Authentication & authorization
    AUTH_FAILED = "AUTH_FAILED"
    NO_INIT_DATA = "NO_INIT_DATA"
    NOT_OWNER = "NOT_OWNER"
    FORBIDDEN = "FORBIDDEN"

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATES_MISSING = "RATES_MISSING"
    BAD_NUMBERS = "BAD_NUMBERS"
    BAD_CURRENCY = "BAD_CURRENCY"
    BAD_AMOUNT = "BAD_AMOUNT"
    BAD_METHOD = "BAD_METHOD"
    BAD_TG_ID = "BAD_TG_ID"
    BAD_STATUS = "BAD_STATUS"
    BAD_STATE = "BAD_STATE"
    BAD_RATING = "BAD_RATING"
    TEXT_TOO_SHORT = "TEXT_TOO_SHORT"
    RATE_MISSING = "RATE_MISSING"
    GROUP_NOT_SET = "GROUP_NOT_SET"

    # Resources
    USER_NOT_FOUND = "USER_NOT_FOUND"
    REQUEST_NOT_FOUND = "REQUEST_NOT_FOUND"
    NOT_FOUND = "NOT_FOUND"

    # External services
    TELEGRAM_SEND_FAILED = "TELEGRAM_SEND_FAILED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    # Internal
    INTERNAL_ERROR = "INTERNAL_ERROR"
    STORE_CORRUPTED = "STORE_CORRUPTED"

    # Transport/common
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"


class ApplicationError(Exception):
    """Domain/business error that should be rendered in the public API."""

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        *,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: object | None = None,
    ) -> None:
        super().__init__(message)
        self.code = str(code)
        self.message = message
        self.status_code = status_code
        self.details = details


class NotFoundError(ApplicationError):
    """404 error with a domain specific code."""

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        *,
        details: object | None = None,
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
        )


class ForbiddenError(ApplicationError):
    """403 error for owner-only operations."""

    def __init__(self, message: str = "Доступно только владельцу.") -> None:
        super().__init__(
            code=ErrorCode.NOT_OWNER,
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
        )


class ExternalServiceError(ApplicationError):
    """502/503 error when dependencies fail."""

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        *,
        status_code: int = status.HTTP_502_BAD_GATEWAY,
        details: object | None = None,
    ) -> None:
        if status_code not in (status.HTTP_502_BAD_GATEWAY, status.HTTP_503_SERVICE_UNAVAILABLE):
            raise ValueError("External service errors must map to 502 or 503.")
        super().__init__(
            code=code,
            message=message,
            status_code=status_code,
            details=details,
        )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach global exception handlers to the FastAPI app."""

    app.add_exception_handler(
        ApplicationError,
        cast(ExceptionHandlerCallable, application_error_handler),
    )
    app.add_exception_handler(
        InitDataError,
        cast(ExceptionHandlerCallable, init_data_error_handler),
    )
    app.add_exception_handler(
        RequestValidationError,
        cast(ExceptionHandlerCallable, request_validation_exception_handler),
    )
    app.add_exception_handler(
        StarletteHTTPException,
        cast(ExceptionHandlerCallable, http_exception_handler),
    )
    app.add_exception_handler(
        Exception,
        cast(ExceptionHandlerCallable, unexpected_exception_handler),
    )


async def application_error_handler(request: Request, exc: ApplicationError) -> JSONResponse:
    return error_response(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details,
    )


async def init_data_error_handler(request: Request, exc: InitDataError) -> JSONResponse:
    """Every initData verification failure is a 401 carrying the failure kind."""
    logger.info(
        "initData rejected",
        extra={"reason": exc.code, "http_path": request.url.path},
    )
    return error_response(
        status_code=status.HTTP_401_UNAUTHORIZED,
        code=exc.code,
        message=str(exc),
    )


async def request_validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    details = _format_validation_errors(exc)
    return error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code=ErrorCode.VALIDATION_ERROR,
        message="Ошибка валидации",
        details=details or None,
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    detail = exc.detail

    if isinstance(detail, Mapping):
        code = _coerce_code(detail.get("code"))
        message = str(detail.get("message") or HTTPStatus(exc.status_code).phrase)
        details = detail.get("details")
    else:
        code = _default_code_for_status(exc.status_code)
        message = str(detail or HTTPStatus(exc.status_code).phrase)
        details = None

    return error_response(
        status_code=exc.status_code,
        code=code,
        message=message,
        details=details,
    )


async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled exception during request",
        exc_info=(exc.__class__, exc, exc.__traceback__),
    )
    return error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code=ErrorCode.INTERNAL_ERROR,
        message="Внутренняя ошибка сервера. Попробуйте позже.",
    )


def error_response(
    *,
    status_code: int,
    code: ErrorCode | str,
    message: str,
    details: object | None = None,
) -> JSONResponse:
    """Return JSONResponse adhering to the public error contract."""
    body = build_error_payload(code=code, message=message, details=details)
    return JSONResponse(content=jsonable_encoder(body), status_code=status_code)


def build_error_payload(
    *,
    code: ErrorCode | str,
    message: str,
    details: object | None = None,
) -> dict[str, object]:
    error_section: dict[str, object] = {
        "code": _coerce_code(code),
        "message": message,
    }
    if details is not None:
        error_section["details"] = details

    return {"ok": False, "error": error_section}


def _format_validation_errors(exc: RequestValidationError) -> dict[str, str]:
    formatted: dict[str, str] = {}
    for error in exc.errors():
        loc = error.get("loc") or ()
        field = _format_error_location(loc)
        message = error.get("msg", "Invalid value")
        if field in formatted:
            formatted[field] = f"{formatted[field]}; {message}"
        else:
            formatted[field] = message
    return formatted


def _format_error_location(location: Sequence[object]) -> str:
    filtered = [
        str(part)
        for part in location
        if part not in {"body", "query", "path", "header"}  # hide transport-specific prefixes
    ]
    if not filtered:
        filtered = [str(part) for part in location]
    return ".".join(filtered) if filtered else "_schema"


def _default_code_for_status(status_code: int) -> str:
    mapping: dict[int, ErrorCode] = {
        status.HTTP_400_BAD_REQUEST: ErrorCode.VALIDATION_ERROR,
        status.HTTP_401_UNAUTHORIZED: ErrorCode.AUTH_FAILED,
        status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
        status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
        status.HTTP_405_METHOD_NOT_ALLOWED: ErrorCode.METHOD_NOT_ALLOWED,
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: ErrorCode.PAYLOAD_TOO_LARGE,
        status.HTTP_500_INTERNAL_SERVER_ERROR: ErrorCode.INTERNAL_ERROR,
        status.HTTP_502_BAD_GATEWAY: ErrorCode.SERVICE_UNAVAILABLE,
        status.HTTP_503_SERVICE_UNAVAILABLE: ErrorCode.SERVICE_UNAVAILABLE,
    }
    return mapping.get(status_code, ErrorCode.INTERNAL_ERROR)


def _coerce_code(code: ErrorCode | str | None) -> str:
    if code is None:
        return ErrorCode.INTERNAL_ERROR
    return str(code)


__all__ = [
    "ApplicationError",
    "ErrorCode",
    "ExternalServiceError",
    "ForbiddenError",
    "NotFoundError",
    "application_error_handler",
    "build_error_payload",
    "error_response",
    "http_exception_handler",
    "init_data_error_handler",
    "register_exception_handlers",
    "request_validation_exception_handler",
    "unexpected_exception_handler",
]
