"""Exchange requests: validation, delivery to the owner's group and bookkeeping."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Literal, Optional
from uuid import uuid4
from zoneinfo import ZoneInfo

from exchange_app.core.errors import ApplicationError, ErrorCode, NotFoundError
from exchange_app.models.store import (
    Currency,
    ExchangeRequest,
    ReceiveMethod,
    RequestState,
    RequestUser,
    StoreDocument,
    UserStatus,
)
from exchange_app.repositories.store import JsonStore
from exchange_app.telegram.formatters import format_request_message

logger = logging.getLogger("exchange_app.services.exchange_requests")

GroupSender = Callable[[int, str], Awaitable[None]]


@dataclass(frozen=True)
class RequestDraft:
    """Validated client input, not yet delivered."""

    sell_currency: Currency
    buy_currency: Currency
    sell_amount: float
    buy_amount: float
    receive_method: ReceiveMethod
    note: Optional[str] = None


def _field(payload: Mapping[str, Any], snake: str, camel: str) -> Any:
    value = payload.get(snake)
    return payload.get(camel) if value is None else value


def _amount(value: Any) -> float:
    if isinstance(value, bool):
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def parse_request_draft(payload: Mapping[str, Any]) -> RequestDraft:
    """
    Validate a request coming from the Mini App (JSON body or ``sendData``).

    Both ``sell_currency`` and ``sellCurrency`` spellings are accepted.
    """
    try:
        sell = Currency(str(_field(payload, "sell_currency", "sellCurrency") or ""))
        buy = Currency(str(_field(payload, "buy_currency", "buyCurrency") or ""))
    except ValueError as exc:
        raise ApplicationError(ErrorCode.BAD_CURRENCY, "Неизвестная валюта.") from exc
    if sell == buy:
        raise ApplicationError(ErrorCode.BAD_CURRENCY, "Валюты должны различаться.")

    sell_amount = _amount(_field(payload, "sell_amount", "sellAmount"))
    buy_amount = _amount(_field(payload, "buy_amount", "buyAmount"))
    if not all(math.isfinite(value) and value > 0 for value in (sell_amount, buy_amount)):
        raise ApplicationError(ErrorCode.BAD_AMOUNT, "Сумма должна быть больше нуля.")

    raw_method = str(_field(payload, "receive_method", "receiveMethod") or "").strip().lower()
    try:
        method = ReceiveMethod(raw_method)
    except ValueError as exc:
        raise ApplicationError(ErrorCode.BAD_METHOD, "Неизвестный способ получения.") from exc

    note = payload.get("note")
    note = str(note).strip() if note is not None else ""
    return RequestDraft(
        sell_currency=sell,
        buy_currency=buy,
        sell_amount=sell_amount,
        buy_amount=buy_amount,
        receive_method=method,
        note=note or None,
    )


def parse_state(value: object) -> RequestState:
    try:
        return RequestState(str(value or "").strip().lower())
    except ValueError as exc:
        raise ApplicationError(ErrorCode.BAD_STATE, "Неизвестное состояние заявки.") from exc


class ExchangeRequestService:
    """Creates requests, forwards them to the group chat and manages their state."""

    def __init__(
        self,
        *,
        store: JsonStore,
        sender: GroupSender,
        tz: ZoneInfo,
        fallback_group_chat_id: Optional[int] = None,
    ) -> None:
        self._store = store
        self._sender = sender
        self._tz = tz
        self._fallback_group_chat_id = fallback_group_chat_id

    def resolve_group_chat_id(self, document: Optional[StoreDocument] = None) -> Optional[int]:
        """Group saved by /setgroup wins over GROUP_CHAT_ID."""
        document = document or self._store.read()
        return document.config.group_chat_id or self._fallback_group_chat_id

    async def submit(
        self,
        draft: RequestDraft,
        *,
        user: RequestUser,
        status: UserStatus,
        source: Literal["api", "bot"] = "api",
        now: Optional[datetime] = None,
    ) -> ExchangeRequest:
        """Deliver the request to the group, then persist it with state ``new``."""
        group_chat_id = await asyncio.to_thread(self.resolve_group_chat_id)
        if not group_chat_id:
            raise ApplicationError(
                ErrorCode.GROUP_NOT_SET,
                "Группа для заявок не задана. Добавьте бота в группу и выполните /setgroup.",
            )

        request = ExchangeRequest(
            id=uuid4().hex,
            created_at=now or datetime.now(timezone.utc),
            user=user,
            status=status,
            sell_currency=draft.sell_currency,
            buy_currency=draft.buy_currency,
            sell_amount=draft.sell_amount,
            buy_amount=draft.buy_amount,
            receive_method=draft.receive_method,
            note=draft.note,
            source=source,
        )

        await self._sender(group_chat_id, format_request_message(request, self._tz))

        await asyncio.to_thread(self._append, request)

        logger.info(
            "Exchange request submitted",
            extra={
                "exchange_request_id": request.id,
                "tg_user_id": user.id,
                "pair": f"{draft.sell_currency}/{draft.buy_currency}",
                "source": source,
            },
        )
        return request

    def _append(self, request: ExchangeRequest) -> None:
        with self._store.transaction() as document:
            document.requests.append(request)

    def list_requests(self) -> list[ExchangeRequest]:
        """Newest first."""
        return list(reversed(self._store.read().requests))

    def set_state(
        self,
        request_id: str,
        state: object,
        *,
        now: Optional[datetime] = None,
    ) -> ExchangeRequest:
        """Move a request to any lifecycle state."""
        next_state = parse_state(state)

        with self._store.transaction() as document:
            for index, existing in enumerate(document.requests):
                if existing.id != request_id:
                    continue
                updated = existing.model_copy(
                    update={
                        "state": next_state,
                        "state_updated_at": now or datetime.now(timezone.utc),
                    }
                )
                document.requests[index] = updated
                break
            else:
                raise NotFoundError(ErrorCode.REQUEST_NOT_FOUND, "Заявка не найдена.")

        logger.info(
            "Exchange request state changed",
            extra={"exchange_request_id": updated.id, "state": next_state.value},
        )
        return updated


__all__ = [
    "ExchangeRequestService",
    "GroupSender",
    "RequestDraft",
    "parse_request_draft",
    "parse_state",
]
