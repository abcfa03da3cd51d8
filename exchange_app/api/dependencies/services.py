"""Service factories injected into routes (overridable in tests)."""

from __future__ import annotations

from exchange_app.core.config import settings
from exchange_app.repositories.store import json_store
from exchange_app.services.exchange_requests import ExchangeRequestService
from exchange_app.services.market import MarketRatesCache, market_cache
from exchange_app.telegram.runtime import telegram_bot


def get_exchange_request_service() -> ExchangeRequestService:
    return ExchangeRequestService(
        store=json_store,
        sender=telegram_bot.send_group_message,
        tz=settings.timezone,
        fallback_group_chat_id=settings.group_chat_id,
    )


def get_market_cache() -> MarketRatesCache:
    return market_cache


__all__ = ["get_exchange_request_service", "get_market_cache"]
