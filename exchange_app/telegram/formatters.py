"""Форматирование сообщений бота (HTML parse mode)."""

from __future__ import annotations

import html
import math
from datetime import datetime
from zoneinfo import ZoneInfo

from exchange_app.models.store import (
    Currency,
    ExchangeRequest,
    ReceiveMethod,
    UserStatus,
)

# Telegram message limit
MAX_MESSAGE_LENGTH = 4096

STATUS_LABELS: dict[UserStatus, str] = {
    UserStatus.STANDARD: "стандарт",
    UserStatus.SILVER: "серебро",
    UserStatus.GOLD: "золото",
}

METHOD_LABELS: dict[ReceiveMethod, str] = {
    ReceiveMethod.CASH: "Наличка",
    ReceiveMethod.TRANSFER: "Перевод",
    ReceiveMethod.ATM: "Банкомат",
}


def escape_html(text: str) -> str:
    """
    Экранировать текст для Telegram HTML parse mode.

    Example:
        >>> escape_html("<b>&'")
        '&lt;b&gt;&amp;&#x27;'
    """
    return html.escape(text, quote=True)


def format_amount(currency: Currency | str, value: float) -> str:
    """
    Отформатировать сумму в стиле ru-RU.

    VND округляется до целого, USDT показывается с точностью до 4 знаков,
    остальные валюты до 2 знаков. Разряды разделяются пробелом, дробная часть
    отделяется запятой, хвостовые нули отбрасываются.

    Args:
        currency: Код валюты
        value: Сумма

    Returns:
        Строка с суммой или "—" для нечисловых значений
    """
    if not math.isfinite(value):
        return "—"

    if currency == Currency.VND:
        return f"{math.floor(value + 0.5):,}".replace(",", " ")

    digits = 4 if currency == Currency.USDT else 2
    rendered = f"{value:,.{digits}f}"
    integer, _, fraction = rendered.partition(".")
    fraction = fraction.rstrip("0")
    integer = integer.replace(",", " ")
    return f"{integer},{fraction}" if fraction else integer


def pay_method_for(currency: Currency) -> ReceiveMethod:
    """Каким способом клиент отдаёт валюту."""
    if currency in (Currency.RUB, Currency.USDT):
        return ReceiveMethod.TRANSFER
    return ReceiveMethod.CASH


def status_label(status: UserStatus) -> str:
    return STATUS_LABELS[status]


def format_request_message(request: ExchangeRequest, tz: ZoneInfo) -> str:
    """
    Собрать текст заявки для группы владельца.

    Args:
        request: Сохраняемая заявка
        tz: Часовой пояс, в котором показывается время

    Returns:
        Текст в HTML-разметке
    """
    user = request.user
    name = " ".join(part for part in (user.first_name, user.last_name) if part).strip()
    handle = f"@{user.username}" if user.username else "(нет username)"
    pay_method = pay_method_for(request.sell_currency)

    lines = [
        "<b>Заявка на обмен</b>",
        f"Клиент: <b>{escape_html(name or 'Без имени')}</b> "
        f"({escape_html(handle)}, id: <code>{user.id}</code>)",
        f"Статус: <b>{escape_html(status_label(request.status))}</b>",
        "",
        f"Продаёт: <b>{format_amount(request.sell_currency, request.sell_amount)} "
        f"{request.sell_currency}</b> ({METHOD_LABELS[pay_method]})",
        f"Покупает: <b>{format_amount(request.buy_currency, request.buy_amount)} "
        f"{request.buy_currency}</b> ({METHOD_LABELS[request.receive_method]})",
    ]
    if request.note:
        lines.extend(["", f"Комментарий: {escape_html(request.note)}"])
    lines.extend(["", f"Время: {format_local_time(request.created_at, tz)} ({tz.key})"])
    return truncate_message("\n".join(lines))


def format_local_time(moment: datetime, tz: ZoneInfo) -> str:
    """Время в формате ``ДД.ММ.ГГГГ, ЧЧ:ММ:СС`` в указанном поясе."""
    return moment.astimezone(tz).strftime("%d.%m.%Y, %H:%M:%S")


def format_whoami(user_id: int, username: str | None) -> str:
    handle = f"@{username}" if username else "(нет)"
    return f"Ваш tg_id: {user_id}\nusername: {handle}"


def truncate_message(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> str:
    """Обрезать текст до лимита Telegram."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


__all__ = [
    "MAX_MESSAGE_LENGTH",
    "METHOD_LABELS",
    "STATUS_LABELS",
    "escape_html",
    "format_amount",
    "format_local_time",
    "format_request_message",
    "format_whoami",
    "pay_method_for",
    "status_label",
    "truncate_message",
]
