"""FastAPI application factory and entrypoint."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from exchange_app.api.dependencies.auth import ADMIN_KEY_HEADER, INIT_DATA_HEADER
from exchange_app.api.routes import api_router, root_router
from exchange_app.core.config import settings
from exchange_app.core.errors import register_exception_handlers
from exchange_app.core.logging import configure_logging
from exchange_app.core.middleware import (
    AccessLogMiddleware,
    RequestIDMiddleware,
    RequestSizeLimitMiddleware,
    SecurityHeadersMiddleware,
)
from exchange_app.core.version import APP_VERSION
from exchange_app.services.market import market_worker
from exchange_app.telegram.runtime import telegram_bot

ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]
ALLOWED_HEADERS = [
    "Authorization",
    "Content-Type",
    "Accept",
    "X-Requested-With",
    INIT_DATA_HEADER,
    ADMIN_KEY_HEADER,
]


def _secrets_to_redact() -> tuple[str, ...]:
    secrets = [settings.telegram_bot_token.get_secret_value()]
    if settings.admin_web_key is not None:
        secrets.append(settings.admin_web_key.get_secret_value())
    return tuple(secrets)


configure_logging(settings.log_level, secrets=_secrets_to_redact())
logger = logging.getLogger("exchange_app.main")


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""

    application = FastAPI(
        title=settings.project_name,
        debug=settings.debug,
        version=APP_VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    register_exception_handlers(application)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
        max_age=86400,
    )
    application.add_middleware(
        SecurityHeadersMiddleware,
        enable_hsts=settings.environment in {"staging", "production"},
    )
    application.add_middleware(AccessLogMiddleware)
    application.add_middleware(
        RequestSizeLimitMiddleware,
        max_request_bytes=settings.max_request_bytes,
    )
    application.add_middleware(RequestIDMiddleware)

    application.include_router(root_router)
    application.include_router(api_router)

    # the built Mini App is served from the same origin when it is present
    if settings.webapp_dist_dir.is_dir():
        application.mount(
            "/",
            StaticFiles(directory=settings.webapp_dist_dir, html=True),
            name="webapp",
        )
        logger.info("Serving Mini App", extra={"path": str(settings.webapp_dist_dir)})

    @application.on_event("startup")
    async def _startup() -> None:
        await telegram_bot.sync_webhook(settings.telegram_webhook_base_url)
        if settings.market_worker_enabled:
            market_worker.start()

    @application.on_event("shutdown")
    async def _shutdown() -> None:
        await telegram_bot.shutdown()
        if settings.market_worker_enabled:
            await market_worker.shutdown()

    return application


app = create_app()

__all__ = ["app", "create_app"]
