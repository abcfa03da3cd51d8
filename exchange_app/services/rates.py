"""Daily desk rates: reading today's table and saving the owner's update."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

from exchange_app.core.config import settings
from exchange_app.core.errors import ApplicationError, ErrorCode
from exchange_app.models.store import Currency, DayRates, RatePair
from exchange_app.repositories.store import JsonStore, json_store

logger = logging.getLogger("exchange_app.services.rates")

REQUIRED_CURRENCIES = (Currency.USD, Currency.RUB, Currency.USDT)
OPTIONAL_CURRENCIES = (Currency.EUR, Currency.THB)


def business_date(tz: ZoneInfo, now: Optional[datetime] = None) -> str:
    """Return ``YYYY-MM-DD`` of ``now`` in the desk's timezone."""
    moment = now or datetime.now(timezone.utc)
    return moment.astimezone(tz).date().isoformat()


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _pair(raw: Any) -> tuple[float, float]:
    if not isinstance(raw, Mapping):
        return math.nan, math.nan
    return _number(raw.get("buy_vnd")), _number(raw.get("sell_vnd"))


def _valid(*values: float) -> bool:
    return all(math.isfinite(value) and value > 0 for value in values)


def parse_rates_input(payload: Mapping[str, Any]) -> dict[Currency, RatePair]:
    """
    Build the rates table from owner input.

    Accepts either ``{"rates": {...}}`` or the table itself. USD, RUB and USDT
    are required and must be positive numbers; EUR and THB are kept only when
    both sides are positive.
    """
    table = payload.get("rates", payload)
    if not isinstance(table, Mapping) or any(
        not isinstance(table.get(code.value), Mapping) for code in REQUIRED_CURRENCIES
    ):
        raise ApplicationError(ErrorCode.RATES_MISSING, "Нужны курсы USD, RUB и USDT.")

    rates: dict[Currency, RatePair] = {}
    for code in REQUIRED_CURRENCIES:
        buy, sell = _pair(table[code.value])
        if not _valid(buy, sell):
            raise ApplicationError(
                ErrorCode.BAD_NUMBERS,
                "Курсы должны быть положительными числами.",
                details={"currency": code.value},
            )
        rates[code] = RatePair(buy_vnd=buy, sell_vnd=sell)

    for code in OPTIONAL_CURRENCIES:
        buy, sell = _pair(table.get(code.value))
        if _valid(buy, sell):
            rates[code] = RatePair(buy_vnd=buy, sell_vnd=sell)
    return rates


class RatesService:
    """Operations on ``rates_by_date``."""

    def __init__(self, *, store: JsonStore, tz: ZoneInfo) -> None:
        self._store = store
        self._tz = tz

    def get_today(self, now: Optional[datetime] = None) -> tuple[str, Optional[DayRates]]:
        day = business_date(self._tz, now)
        return day, self._store.read().rates_by_date.get(day)

    def set_today(
        self,
        payload: Mapping[str, Any],
        *,
        updated_by: Optional[int],
        now: Optional[datetime] = None,
    ) -> tuple[str, DayRates]:
        rates = parse_rates_input(payload)
        moment = now or datetime.now(timezone.utc)
        day = business_date(self._tz, moment)
        entry = DayRates(updated_at=moment, updated_by=updated_by, rates=rates)

        with self._store.transaction() as document:
            document.rates_by_date[day] = entry

        logger.info(
            "Daily rates updated",
            extra={"date": day, "updated_by": updated_by, "currencies": sorted(rates)},
        )
        return day, entry


def get_rates_service() -> RatesService:
    return RatesService(store=json_store, tz=settings.timezone)


__all__ = [
    "OPTIONAL_CURRENCIES",
    "REQUIRED_CURRENCIES",
    "RatesService",
    "business_date",
    "get_rates_service",
    "parse_rates_input",
]
