"""HTTP middlewares: request correlation, access log, headers and body cap."""

from __future__ import annotations

import logging
import time
from uuid import uuid4

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from exchange_app.core.errors import ErrorCode, error_response
from exchange_app.core.logging import bind_request_id, reset_request_id

# Telegram clients embed the Mini App in an iframe on these origins.
TELEGRAM_FRAME_ANCESTORS = (
    "https://web.telegram.org",
    "https://webk.telegram.org",
    "https://webz.telegram.org",
)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request id (incoming ``X-Request-ID`` or a fresh one) to logs and response."""

    header_name = "X-Request-ID"
    max_length = 128

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        incoming = (request.headers.get(self.header_name) or "").strip()
        request_id = incoming[: self.max_length] if incoming else uuid4().hex

        request.state.request_id = request_id
        token = bind_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)

        response.headers[self.header_name] = request_id
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """One structured ``access`` record per request, with the Telegram user when known."""

    def __init__(self, app: ASGIApp, logger_name: str = "exchange_app.access") -> None:
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            self._log(request, status_code, (time.perf_counter() - start) * 1000)

    def _log(self, request: Request, status_code: int, duration_ms: float) -> None:
        level = logging.WARNING if status_code >= 500 else logging.INFO
        self.logger.log(
            level,
            "access",
            extra={
                "event": "access",
                "http_method": request.method,
                "http_path": request.url.path,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
                "client_ip": request.client.host if request.client else None,
                # set by the auth dependency after initData verification
                "tg_user_id": getattr(request.state, "tg_user_id", None),
            },
        )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Attach security headers suitable for a Telegram Mini App backend.

    Framing is restricted with CSP ``frame-ancestors`` rather than
    ``X-Frame-Options: DENY``: Telegram Web renders the Mini App in an iframe.
    HSTS is only sent when enabled (deployed environments).
    """

    def __init__(self, app: ASGIApp, enable_hsts: bool = False) -> None:
        super().__init__(app)
        self.enable_hsts = enable_hsts
        ancestors = " ".join(("'self'", *TELEGRAM_FRAME_ANCESTORS))
        self.content_security_policy = f"frame-ancestors {ancestors}"

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Content-Security-Policy", self.content_security_policy)
        response.headers.setdefault("Referrer-Policy", "same-origin")
        if self.enable_hsts:
            response.headers.setdefault(
                "Strict-Transport-Security",
                "max-age=31536000; includeSubDomains",
            )
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject bodies above ``max_request_bytes`` with a 413 error envelope."""

    body_methods = frozenset({"POST", "PUT", "PATCH"})

    def __init__(self, app: ASGIApp, max_request_bytes: int) -> None:
        if max_request_bytes <= 0:
            raise ValueError("max_request_bytes must be greater than zero.")
        super().__init__(app)
        self.max_request_bytes = max_request_bytes

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method not in self.body_methods:
            return await call_next(request)

        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.max_request_bytes:
            return self._too_large()

        # header may be absent (chunked) or lie; the buffered body is cached for the route
        if len(await request.body()) > self.max_request_bytes:
            return self._too_large()
        return await call_next(request)

    def _too_large(self) -> Response:
        return error_response(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            code=ErrorCode.PAYLOAD_TOO_LARGE,
            message="Слишком большой запрос.",
            details={"max_bytes": self.max_request_bytes},
        )


__all__ = [
    "AccessLogMiddleware",
    "RequestIDMiddleware",
    "RequestSizeLimitMiddleware",
    "SecurityHeadersMiddleware",
    "TELEGRAM_FRAME_ANCESTORS",
]
