"""Schemas for daily desk rates, calculator and market rates."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from exchange_app.models.store import Currency, DayRates
from exchange_app.services.calculator import Direction


class TodayRatesResponse(BaseModel):
    ok: Literal[True] = True
    date: str = Field(..., description="Business date (YYYY-MM-DD) in the desk timezone")
    data: Optional[DayRates] = None


class RatesUpdateRequest(BaseModel):
    """
    Body of POST /api/admin/rates/today.

    Either ``{"rates": {"USD": {...}}}`` or the currency table at the top
    level; values are validated by the rates service.
    """

    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "rates": {
                    "USD": {"buy_vnd": 25200, "sell_vnd": 25500},
                    "RUB": {"buy_vnd": 290, "sell_vnd": 310},
                    "USDT": {"buy_vnd": 25100, "sell_vnd": 25600},
                }
            }
        },
    )

    rates: Optional[dict[str, Any]] = None


class CalcRequest(BaseModel):
    sell_currency: Currency
    buy_currency: Currency
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    direction: Direction = Direction.SELL_TO_BUY


class CalcResponse(BaseModel):
    ok: Literal[True] = True
    date: str
    sell_currency: Currency
    buy_currency: Currency
    sell_amount: float
    buy_amount: float
    vnd: float


__all__ = ["CalcRequest", "CalcResponse", "RatesUpdateRequest", "TodayRatesResponse"]
