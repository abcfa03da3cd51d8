"""Currency conversion through VND using the desk's daily rates."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

from exchange_app.core.errors import ApplicationError, ErrorCode
from exchange_app.models.store import Currency, DayRates, RatePair


class Direction(StrEnum):
    """Which amount the client typed in."""

    SELL_TO_BUY = "sell_to_buy"
    BUY_TO_SELL = "buy_to_sell"


@dataclass(frozen=True)
class Conversion:
    sell_currency: Currency
    buy_currency: Currency
    sell_amount: float
    buy_amount: float
    vnd: float


def _rate(rates: Mapping[Currency, RatePair], currency: Currency) -> RatePair:
    pair = rates.get(currency)
    if pair is None:
        raise ApplicationError(
            ErrorCode.RATE_MISSING,
            f"Нет курса для {currency.value}.",
            details={"currency": currency.value},
        )
    return pair


def sell_to_buy(
    sell_currency: Currency,
    buy_currency: Currency,
    sell_amount: float,
    rates: Mapping[Currency, RatePair],
) -> Conversion:
    """The desk buys the sold currency at ``buy_vnd`` and sells the bought one at ``sell_vnd``."""
    if sell_currency == Currency.VND:
        vnd = sell_amount
    else:
        vnd = sell_amount * _rate(rates, sell_currency).buy_vnd

    if buy_currency == Currency.VND:
        buy_amount = vnd
    else:
        buy_amount = vnd / _rate(rates, buy_currency).sell_vnd

    return Conversion(sell_currency, buy_currency, sell_amount, buy_amount, vnd)


def buy_to_sell(
    sell_currency: Currency,
    buy_currency: Currency,
    desired_buy_amount: float,
    rates: Mapping[Currency, RatePair],
) -> Conversion:
    """Inverse of :func:`sell_to_buy`: how much to give to receive ``desired_buy_amount``."""
    if buy_currency == Currency.VND:
        vnd = desired_buy_amount
    else:
        vnd = desired_buy_amount * _rate(rates, buy_currency).sell_vnd

    if sell_currency == Currency.VND:
        sell_amount = vnd
    else:
        sell_amount = vnd / _rate(rates, sell_currency).buy_vnd

    return Conversion(sell_currency, buy_currency, sell_amount, desired_buy_amount, vnd)


def quote(
    day_rates: DayRates | None,
    *,
    sell_currency: Currency,
    buy_currency: Currency,
    amount: float,
    direction: Direction = Direction.SELL_TO_BUY,
) -> Conversion:
    if day_rates is None:
        raise ApplicationError(ErrorCode.RATES_MISSING, "Курсы на сегодня ещё не заданы.")
    if sell_currency == buy_currency:
        raise ApplicationError(ErrorCode.BAD_CURRENCY, "Валюты должны различаться.")
    if not amount > 0:
        raise ApplicationError(ErrorCode.BAD_AMOUNT, "Сумма должна быть больше нуля.")

    if direction == Direction.BUY_TO_SELL:
        return buy_to_sell(sell_currency, buy_currency, amount, day_rates.rates)
    return sell_to_buy(sell_currency, buy_currency, amount, day_rates.rates)


__all__ = ["Conversion", "Direction", "buy_to_sell", "quote", "sell_to_buy"]
