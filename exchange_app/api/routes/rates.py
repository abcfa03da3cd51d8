"""Public rate endpoints: today's desk rates, market cross rates, calculator."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from exchange_app.api.dependencies.services import get_market_cache
from exchange_app.models.market import MarketSnapshot
from exchange_app.schemas.rates import CalcRequest, CalcResponse, TodayRatesResponse
from exchange_app.services.calculator import quote
from exchange_app.services.market import MarketRatesCache
from exchange_app.services.rates import RatesService, get_rates_service

router = APIRouter(tags=["rates"])


@router.get("/rates/today", response_model=TodayRatesResponse)
def today_rates(
    rates_service: RatesService = Depends(get_rates_service),
) -> TodayRatesResponse:
    """Rates for the current business day; ``data`` is null until the owner sets them."""
    day, entry = rates_service.get_today()
    return TodayRatesResponse(date=day, data=entry)


@router.get("/market", response_model=MarketSnapshot)
async def market_rates(cache: MarketRatesCache = Depends(get_market_cache)) -> MarketSnapshot:
    return await cache.get_snapshot()


@router.post("/calc", response_model=CalcResponse)
def calculate(
    payload: CalcRequest,
    rates_service: RatesService = Depends(get_rates_service),
) -> CalcResponse:
    """Convert using today's rates in either direction."""
    day, entry = rates_service.get_today()
    result = quote(
        entry,
        sell_currency=payload.sell_currency,
        buy_currency=payload.buy_currency,
        amount=payload.amount,
        direction=payload.direction,
    )
    return CalcResponse(
        date=day,
        sell_currency=result.sell_currency,
        buy_currency=result.buy_currency,
        sell_amount=result.sell_amount,
        buy_amount=result.buy_amount,
        vnd=result.vnd,
    )
