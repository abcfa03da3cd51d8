"""Endpoint receiving Telegram bot webhook updates."""

from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Request, status

from exchange_app.core.config import settings
from exchange_app.core.errors import ApplicationError, ErrorCode
from exchange_app.schemas.common import OkResponse
from exchange_app.telegram.runtime import telegram_bot

logger = logging.getLogger("exchange_app.api.telegram")
router = APIRouter()


@router.post(
    "/telegram-webhook/{bot_token}",
    response_model=OkResponse,
    status_code=status.HTTP_200_OK,
    summary="Handle Telegram webhook updates",
    tags=["telegram"],
)
async def telegram_webhook(bot_token: str, request: Request) -> OkResponse:
    """Check the token embedded in the webhook URL and hand the update to the bot."""
    expected_token = settings.telegram_bot_token.get_secret_value()
    if not hmac.compare_digest(bot_token.encode("utf-8"), expected_token.encode("utf-8")):
        raise ApplicationError(
            code=ErrorCode.FORBIDDEN,
            message="Invalid Telegram bot token.",
            status_code=status.HTTP_403_FORBIDDEN,
        )

    payload = await request.json()
    await telegram_bot.process_payload(payload)

    logger.debug("Telegram update processed")
    return OkResponse()
