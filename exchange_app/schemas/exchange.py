"""Schemas for exchange requests."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from exchange_app.models.store import ExchangeRequest


class ExchangeRequestCreate(BaseModel):
    """
    Body of POST /api/requests.

    Values are validated by the request service, which reports BAD_CURRENCY,
    BAD_AMOUNT or BAD_METHOD.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sell_currency: Any = Field(
        default=None, validation_alias=AliasChoices("sell_currency", "sellCurrency")
    )
    buy_currency: Any = Field(
        default=None, validation_alias=AliasChoices("buy_currency", "buyCurrency")
    )
    sell_amount: Any = Field(default=None, validation_alias=AliasChoices("sell_amount", "sellAmount"))
    buy_amount: Any = Field(default=None, validation_alias=AliasChoices("buy_amount", "buyAmount"))
    receive_method: Any = Field(
        default=None, validation_alias=AliasChoices("receive_method", "receiveMethod")
    )
    note: Optional[str] = Field(default=None, max_length=1000)


class ExchangeRequestResponse(BaseModel):
    ok: Literal[True] = True
    request: ExchangeRequest


class ExchangeRequestListResponse(BaseModel):
    ok: Literal[True] = True
    requests: list[ExchangeRequest]


class RequestStateUpdate(BaseModel):
    state: Any = None


__all__ = [
    "ExchangeRequestCreate",
    "ExchangeRequestListResponse",
    "ExchangeRequestResponse",
    "RequestStateUpdate",
]
