"""Domain models shared across the backend."""

from exchange_app.models.identity import VerifiedIdentity
from exchange_app.models.market import MarketSnapshot
from exchange_app.models.store import (
    Currency,
    DayRates,
    ExchangeRequest,
    RatePair,
    ReceiveMethod,
    RequestState,
    RequestUser,
    Review,
    StoreConfig,
    StoreDocument,
    UserRecord,
    UserStatus,
)

__all__ = [
    "Currency",
    "DayRates",
    "ExchangeRequest",
    "MarketSnapshot",
    "RatePair",
    "ReceiveMethod",
    "RequestState",
    "RequestUser",
    "Review",
    "StoreConfig",
    "StoreDocument",
    "UserRecord",
    "UserStatus",
    "VerifiedIdentity",
]
