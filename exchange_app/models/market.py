"""Market ("G") cross-rate snapshot returned by the market cache."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class MarketSnapshot(BaseModel):
    ok: bool
    stale: bool = False
    updated_at: Optional[datetime] = None
    source: Optional[str] = None
    g: dict[str, float] = Field(default_factory=dict)
    error: Optional[str] = None


__all__ = ["MarketSnapshot"]
