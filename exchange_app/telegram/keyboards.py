"""Inline-клавиатуры для Telegram бота."""

from __future__ import annotations

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, WebAppInfo

OPEN_MINI_APP_TEXT = "Открыть мини-приложение"


def normalize_webapp_url(url: str) -> str:
    """Добавить ``https://``, если схема не указана."""
    candidate = url.strip()
    if candidate and not candidate.lower().startswith(("http://", "https://")):
        return f"https://{candidate}"
    return candidate


def create_mini_app_keyboard(url: str) -> InlineKeyboardMarkup:
    """
    Создать клавиатуру с кнопкой открытия Mini App.

    Args:
        url: Публичный HTTPS URL мини-приложения

    Returns:
        Inline-клавиатура с web_app кнопкой
    """
    button = InlineKeyboardButton(
        OPEN_MINI_APP_TEXT,
        web_app=WebAppInfo(url=normalize_webapp_url(url)),
    )
    return InlineKeyboardMarkup([[button]])


__all__ = ["OPEN_MINI_APP_TEXT", "create_mini_app_keyboard", "normalize_webapp_url"]
