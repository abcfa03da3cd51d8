"""Market cross rates fetched from public USD-based sources and cached in memory."""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from exchange_app.core.config import settings
from exchange_app.models.market import MarketSnapshot

logger = logging.getLogger("exchange_app.services.market")

USER_AGENT = "exchange-desk-backend"
SOURCE_UNAVAILABLE = "market_source_unavailable"

_RETRYABLE_ERRORS = (httpx.TransportError, httpx.HTTPStatusError)


@dataclass(frozen=True)
class MarketSource:
    name: str
    url: str


MARKET_SOURCES: tuple[MarketSource, ...] = (
    MarketSource("exchangerate.host", "https://api.exchangerate.host/latest?base=USD&symbols=RUB,THB,EUR"),
    MarketSource("open.er-api.com", "https://open.er-api.com/v6/latest/USD"),
    MarketSource("exchangerate-api.com", "https://api.exchangerate-api.com/v4/latest/USD"),
)


@dataclass(frozen=True)
class UsdQuotes:
    """Units of each currency per one USD."""

    rub: float
    thb: float
    eur: float
    source: str


class MarketSourceUnavailable(Exception):
    """No configured source returned usable quotes."""


def _positive(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) and number > 0 else None


def parse_usd_quotes(payload: Any, source: str) -> Optional[UsdQuotes]:
    """Extract RUB/THB/EUR from ``{"rates": {...}}``; ``None`` if any is unusable."""
    rates = payload.get("rates") if isinstance(payload, dict) else None
    if not isinstance(rates, dict):
        return None
    rub, thb, eur = (_positive(rates.get(code)) for code in ("RUB", "THB", "EUR"))
    if rub is None or thb is None or eur is None:
        return None
    return UsdQuotes(rub=rub, thb=thb, eur=eur, source=source)


def build_cross_rates(quotes: UsdQuotes) -> dict[str, float]:
    """Derive the displayed pairs; USDT is treated as USD."""
    eur_usd = 1 / quotes.eur
    pairs = {
        "USDT/RUB": quotes.rub,
        "USD/RUB": quotes.rub,
        "EUR/RUB": eur_usd * quotes.rub,
        "THB/RUB": quotes.rub / quotes.thb,
        "USD/USDT": 1.0,
        "EUR/USD": eur_usd,
        "EUR/USDT": eur_usd,
        "USD/THB": quotes.thb,
        "USDT/THB": quotes.thb,
        "EUR/THB": eur_usd * quotes.thb,
    }
    return {pair: value for pair, value in pairs.items() if math.isfinite(value) and value > 0}


class MarketRatesCache:
    """
    TTL cache around the market sources.

    Refreshes are single-flight: concurrent callers wait on one lock, and a
    caller that queued behind a refresh reuses its outcome instead of
    hitting the sources again. When every source fails the previous value is
    served with ``stale=True``.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float,
        http_timeout: float,
        sources: Sequence[MarketSource] = MARKET_SOURCES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_attempts: int = 3,
        retry_wait: Optional[wait_base] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.value: Optional[MarketSnapshot] = None
        self.fetched_at: Optional[float] = None
        self._http_timeout = http_timeout
        self._sources = tuple(sources)
        self._transport = transport
        self._retry_attempts = retry_attempts
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=4)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._completed_at: Optional[float] = None
        self._last_result: Optional[MarketSnapshot] = None

    def is_fresh(self) -> bool:
        if self.value is None or self.fetched_at is None:
            return False
        return self._clock() - self.fetched_at < self.ttl_seconds

    async def get_snapshot(self) -> MarketSnapshot:
        if self.is_fresh():
            return self.value  # type: ignore[return-value]

        requested_at = self._clock()
        async with self._lock:
            if self.is_fresh():
                return self.value  # type: ignore[return-value]
            if (
                self._completed_at is not None
                and self._completed_at >= requested_at
                and self._last_result is not None
            ):
                return self._last_result

            self._last_result = await self._refresh_or_fallback()
            self._completed_at = self._clock()
            return self._last_result

    async def _refresh_or_fallback(self) -> MarketSnapshot:
        try:
            return await self.refresh()
        except MarketSourceUnavailable:
            if self.value is not None:
                logger.warning(
                    "Market sources unavailable, serving stale rates",
                    extra={"source": self.value.source},
                )
                return self.value.model_copy(update={"stale": True})
            logger.error("Market sources unavailable and nothing cached")
            return MarketSnapshot(ok=False, stale=True, error=SOURCE_UNAVAILABLE)

    async def refresh(self) -> MarketSnapshot:
        """Fetch new quotes and replace the cached value."""
        quotes = await self._fetch_usd_base()
        snapshot = MarketSnapshot(
            ok=True,
            stale=False,
            updated_at=datetime.now(timezone.utc),
            source=quotes.source,
            g=build_cross_rates(quotes),
        )
        self.value = snapshot
        self.fetched_at = self._clock()
        logger.info("Market rates refreshed", extra={"source": quotes.source, "pairs": len(snapshot.g)})
        return snapshot

    async def _fetch_usd_base(self) -> UsdQuotes:
        async with httpx.AsyncClient(
            timeout=self._http_timeout,
            headers={"User-Agent": USER_AGENT},
            transport=self._transport,
        ) as client:
            for source in self._sources:
                try:
                    payload = await self._fetch_json(client, source.url)
                except (*_RETRYABLE_ERRORS, ValueError) as exc:
                    logger.warning(
                        "Market source failed",
                        extra={"source": source.name, "error": type(exc).__name__},
                    )
                    continue

                quotes = parse_usd_quotes(payload, source.name)
                if quotes is not None:
                    return quotes
                logger.warning("Market source returned unusable rates", extra={"source": source.name})

        raise MarketSourceUnavailable(SOURCE_UNAVAILABLE)

    async def _fetch_json(self, client: httpx.AsyncClient, url: str) -> Any:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=self._retry_wait,
            retry=retry_if_exception_type(_RETRYABLE_ERRORS),
            reraise=True,
        ):
            with attempt:
                response = await client.get(url)
                response.raise_for_status()
                return response.json()
        raise RuntimeError(f"retry loop for {url} ended without a result")  # pragma: no cover


class MarketRatesWorker:
    """Keeps the market cache warm in the background."""

    def __init__(self, cache: MarketRatesCache, interval_seconds: float) -> None:
        self.interval_seconds = interval_seconds
        self._cache = cache
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    def start(self) -> None:
        if self._task is not None:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run(), name="market-rates-worker")
        logger.info("Market rates worker started", extra={"interval_seconds": self.interval_seconds})

    async def shutdown(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        logger.info("Market rates worker stopped")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self._cache.get_snapshot()
            except Exception:  # noqa: BLE001
                logger.exception("Market rates warm-up failed")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue


market_cache = MarketRatesCache(
    ttl_seconds=settings.market_refresh_seconds,
    http_timeout=settings.market_http_timeout,
)
market_worker = MarketRatesWorker(market_cache, interval_seconds=settings.market_refresh_seconds)

__all__ = [
    "MARKET_SOURCES",
    "MarketRatesCache",
    "MarketRatesWorker",
    "MarketSource",
    "MarketSourceUnavailable",
    "UsdQuotes",
    "build_cross_rates",
    "market_cache",
    "market_worker",
    "parse_usd_quotes",
]
