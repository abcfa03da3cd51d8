"""Process-wide bot instance wired to the settings."""

from __future__ import annotations

from exchange_app.core.config import settings
from exchange_app.repositories.store import json_store
from exchange_app.telegram.bot import TelegramBot

telegram_bot = TelegramBot(
    token=settings.telegram_bot_token.get_secret_value(),
    environment=settings.environment,
    store=json_store,
    owner_ids=settings.owner_ids,
    webapp_url=settings.webapp_url,
    tz=settings.timezone,
    fallback_group_chat_id=settings.group_chat_id,
)

__all__ = ["telegram_bot"]
