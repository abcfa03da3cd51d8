"""Health check endpoint."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from exchange_app.core.version import APP_VERSION
from exchange_app.repositories.store import json_store
from exchange_app.services.market import market_cache

router = APIRouter()


class HealthResponse(BaseModel):
    """Schema returned by the /health endpoint."""

    ok: bool
    status: Literal["healthy", "unhealthy"]
    timestamp: datetime
    checks: dict[str, str]
    version: str = Field(default=APP_VERSION)


def _store_check() -> str:
    try:
        json_store.read()
    except Exception:  # noqa: BLE001
        return "error"
    return "ok"


def _market_check() -> str:
    if market_cache.value is None:
        return "empty"
    return "fresh" if market_cache.is_fresh() else "stale"


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Health check",
    tags=["health"],
)
def health() -> HealthResponse:
    """Report store readability and market cache state."""

    checks = {"store": _store_check(), "market": _market_check()}
    healthy = checks["store"] == "ok"
    return HealthResponse(
        ok=healthy,
        status="healthy" if healthy else "unhealthy",
        timestamp=datetime.now(tz=timezone.utc),
        checks=checks,
        version=APP_VERSION,
    )
