"""Public exports for Pydantic schemas."""

from __future__ import annotations

from .admin import UserListResponse, UserStatusResponse, UserStatusUpdate
from .auth import AuthResponse, TelegramUserOut
from .common import OkResponse
from .exchange import (
    ExchangeRequestCreate,
    ExchangeRequestListResponse,
    ExchangeRequestResponse,
    RequestStateUpdate,
)
from .rates import CalcRequest, CalcResponse, RatesUpdateRequest, TodayRatesResponse
from .reviews import ReviewCreate, ReviewListResponse, ReviewResponse

__all__ = [
    "AuthResponse",
    "CalcRequest",
    "CalcResponse",
    "ExchangeRequestCreate",
    "ExchangeRequestListResponse",
    "ExchangeRequestResponse",
    "OkResponse",
    "RatesUpdateRequest",
    "RequestStateUpdate",
    "ReviewCreate",
    "ReviewListResponse",
    "ReviewResponse",
    "TelegramUserOut",
    "TodayRatesResponse",
    "UserListResponse",
    "UserStatusResponse",
    "UserStatusUpdate",
]
