"""Pydantic models describing the persisted JSON document."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class UserStatus(StrEnum):
    """Client tier assigned by the owner."""

    STANDARD = "standard"
    SILVER = "silver"
    GOLD = "gold"


class RequestState(StrEnum):
    """Lifecycle of an exchange request handled by the owner."""

    NEW = "new"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    CANCELED = "canceled"


class Currency(StrEnum):
    RUB = "RUB"
    USD = "USD"
    USDT = "USDT"
    VND = "VND"
    EUR = "EUR"
    THB = "THB"


class ReceiveMethod(StrEnum):
    CASH = "cash"
    TRANSFER = "transfer"
    ATM = "atm"


# Tiers written by older deployments of the bot.
_LEGACY_STATUSES = {"none": UserStatus.STANDARD, "bronze": UserStatus.STANDARD}

_STATUS_INPUT_ALIASES = {
    "standard": UserStatus.STANDARD,
    "стандарт": UserStatus.STANDARD,
    "silver": UserStatus.SILVER,
    "серебро": UserStatus.SILVER,
    "gold": UserStatus.GOLD,
    "золото": UserStatus.GOLD,
}


def normalize_status(value: object) -> UserStatus:
    """Map any stored value onto a current tier; unknown values become standard."""
    raw = str(value or "").strip().lower()
    if raw in _LEGACY_STATUSES:
        return _LEGACY_STATUSES[raw]
    try:
        return UserStatus(raw)
    except ValueError:
        return UserStatus.STANDARD


def parse_status_input(value: object) -> UserStatus | None:
    """Parse owner input (English id or Russian label); ``None`` when unknown."""
    return _STATUS_INPUT_ALIASES.get(str(value or "").strip().lower())


class _StoreModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StoreConfig(_StoreModel):
    group_chat_id: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("group_chat_id", "groupChatId"),
    )


class UserRecord(_StoreModel):
    tg_id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    status: UserStatus = UserStatus.STANDARD
    created_at: datetime
    last_seen_at: datetime

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> UserStatus:
        return normalize_status(value)


class RatePair(_StoreModel):
    """VND per one unit: what the desk pays (buy) and charges (sell)."""

    buy_vnd: float = Field(gt=0)
    sell_vnd: float = Field(gt=0)


class DayRates(_StoreModel):
    updated_at: datetime
    updated_by: Optional[int] = None
    rates: dict[Currency, RatePair]


class RequestUser(_StoreModel):
    id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class ExchangeRequest(_StoreModel):
    id: str
    created_at: datetime
    user: RequestUser = Field(validation_alias=AliasChoices("user", "from"))
    status: UserStatus = UserStatus.STANDARD
    sell_currency: Currency = Field(validation_alias=AliasChoices("sell_currency", "sellCurrency"))
    buy_currency: Currency = Field(validation_alias=AliasChoices("buy_currency", "buyCurrency"))
    sell_amount: float = Field(validation_alias=AliasChoices("sell_amount", "sellAmount"))
    buy_amount: float = Field(validation_alias=AliasChoices("buy_amount", "buyAmount"))
    receive_method: ReceiveMethod = Field(
        validation_alias=AliasChoices("receive_method", "receiveMethod")
    )
    note: Optional[str] = None
    state: RequestState = RequestState.NEW
    state_updated_at: Optional[datetime] = None
    source: Literal["api", "bot"] = "api"

    @model_validator(mode="before")
    @classmethod
    def _upgrade_bot_entry(cls, data: Any) -> Any:
        """
        Older bot deployments stored the raw ``sendData`` payload with the
        Telegram sender under ``from`` and without an id.

        The id is derived from ``created_at`` (epoch milliseconds, as API
        requests were numbered) so it stays stable across reads.
        """
        if not isinstance(data, dict) or data.get("id") or "from" not in data:
            return data
        upgraded = dict(data)
        upgraded.setdefault("source", "bot")
        try:
            created = datetime.fromisoformat(str(data.get("created_at")).replace("Z", "+00:00"))
        except ValueError:
            return upgraded
        upgraded["id"] = str(int(created.timestamp() * 1000))
        return upgraded

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> UserStatus:
        return normalize_status(value)

    @field_validator("receive_method", mode="before")
    @classmethod
    def _lower_method(cls, value: object) -> object:
        return value.strip().lower() if isinstance(value, str) else value


class Review(_StoreModel):
    id: str
    tg_id: int
    username: Optional[str] = None
    rating: int = Field(ge=1, le=5)
    text: str
    created_at: datetime
    is_public: bool = True


class StoreDocument(_StoreModel):
    """Root of ``store.json``."""

    config: StoreConfig = Field(default_factory=StoreConfig)
    users: dict[str, UserRecord] = Field(default_factory=dict)
    rates_by_date: dict[str, DayRates] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("rates_by_date", "ratesByDate"),
    )
    requests: list[ExchangeRequest] = Field(default_factory=list)
    reviews: list[Review] = Field(default_factory=list)


__all__ = [
    "Currency",
    "DayRates",
    "ExchangeRequest",
    "RatePair",
    "ReceiveMethod",
    "RequestState",
    "RequestUser",
    "Review",
    "StoreConfig",
    "StoreDocument",
    "UserRecord",
    "UserStatus",
    "normalize_status",
    "parse_status_input",
]
