"""Schemas for client reviews."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from exchange_app.models.store import Review


class ReviewCreate(BaseModel):
    rating: Any = None
    text: Any = Field(default=None, description="At least 3 characters after trimming")


class ReviewListResponse(BaseModel):
    ok: Literal[True] = True
    reviews: list[Review]


class ReviewResponse(BaseModel):
    ok: Literal[True] = True
    review: Review


__all__ = ["ReviewCreate", "ReviewListResponse", "ReviewResponse"]
