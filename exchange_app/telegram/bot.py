"""Telegram bot lifecycle management and handlers."""

from __future__ import annotations

import asyncio
import json
import logging
import socket
from typing import TYPE_CHECKING, AbstractSet, Any, Optional, Sequence, TypeAlias
from urllib.parse import urlsplit
from zoneinfo import ZoneInfo

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from exchange_app.core.errors import ApplicationError, ErrorCode, ExternalServiceError
from exchange_app.models.store import RequestUser, UserRecord
from exchange_app.repositories.store import JsonStore
from exchange_app.services.exchange_requests import (
    ExchangeRequestService,
    parse_request_draft,
)
from exchange_app.services.users import UserAdminService, parse_status, parse_tg_id
from exchange_app.telegram.formatters import format_whoami, status_label
from exchange_app.telegram.keyboards import create_mini_app_keyboard, normalize_webapp_url
from telegram import Update as TelegramUpdate
from telegram.constants import ChatType, ParseMode
from telegram.error import NetworkError, TelegramError
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

if TYPE_CHECKING:
    from telegram import User as TelegramUser

BotApplication: TypeAlias = Application[Any, Any, Any, Any, Any, Any]

WebhookEnvironments = frozenset({"staging", "production"})

OWNER_ONLY_MESSAGE = "Только владелец может делать {command}"
WEBAPP_URL_MISSING_MESSAGE = (
    "WEBAPP_URL не задан. Укажи публичный HTTPS URL в переменных окружения и снова /start."
)
SETSTATUS_USAGE = "Использование: /setstatus <tg_id> <standard|silver|gold>"


class TelegramBot:
    """Encapsulates the python-telegram-bot application for reuse."""

    def __init__(
        self,
        *,
        token: str,
        environment: str,
        store: JsonStore,
        owner_ids: AbstractSet[int] = frozenset(),
        webapp_url: Optional[str] = None,
        tz: ZoneInfo = ZoneInfo("Asia/Ho_Chi_Minh"),
        fallback_group_chat_id: Optional[int] = None,
        allowed_updates: Sequence[str] | None = None,
    ) -> None:
        self._token = token
        self._environment = environment
        self._store = store
        self._owner_ids = frozenset(owner_ids)
        self._webapp_url = normalize_webapp_url(webapp_url) if webapp_url else None
        self._allowed_updates: tuple[str, ...] = tuple(allowed_updates or ("message",))
        self._application: BotApplication = ApplicationBuilder().token(token).build()
        self._lifecycle_lock = asyncio.Lock()
        self._started = False
        self._logger = logging.getLogger("exchange_app.telegram.bot")
        self._requests = ExchangeRequestService(
            store=store,
            sender=self.send_group_message,
            tz=tz,
            fallback_group_chat_id=fallback_group_chat_id,
        )
        self._users = UserAdminService(store=store)

        self._register_handlers()

    @property
    def application(self) -> BotApplication:
        """Return the underlying Application instance."""
        return self._application

    @property
    def allowed_updates(self) -> tuple[str, ...]:
        return self._allowed_updates

    async def start(self) -> None:
        """Initialize the telegram application lazily."""
        async with self._lifecycle_lock:
            if self._started:
                return

            await self._application.initialize()
            await self._application.start()
            self._started = True
            self._logger.info("Telegram application initialized")

    async def shutdown(self) -> None:
        async with self._lifecycle_lock:
            if not self._started:
                return

            await self._application.stop()
            await self._application.shutdown()
            self._started = False
            self._logger.info("Telegram application shut down")

    async def ensure_started(self) -> None:
        if not self._started:
            await self.start()

    async def sync_webhook(self, webhook_base_url: str | None) -> None:
        """
        Point Telegram at ``/telegram-webhook/<token>`` in staging/production.

        Local and test environments use long polling (exchange_app.telegram.polling).
        """
        if not webhook_base_url:
            self._logger.info("Skipping webhook configuration: BACKEND_DOMAIN is not set")
            return

        if self._environment not in WebhookEnvironments:
            self._logger.info(
                "Skipping webhook configuration outside staging/production",
                extra={"environment": self._environment},
            )
            return

        base = webhook_base_url.rstrip("/")
        host = urlsplit(base).hostname
        if not host or not self._is_hostname_resolvable(host):
            self._logger.error(
                "Skipping webhook configuration: webhook host is not resolvable",
                extra={"environment": self._environment, "webhook_base": base},
            )
            return

        await self.ensure_started()
        await self._application.bot.set_webhook(
            url=f"{base}/telegram-webhook/{self._token}",
            drop_pending_updates=True,
            allowed_updates=list(self._allowed_updates),
        )
        self._logger.info(
            "Telegram webhook configured",
            extra={"environment": self._environment, "webhook_base": base},
        )

    async def process_payload(self, payload: dict[str, Any]) -> None:
        """Deserialize a Telegram update and dispatch it into the application."""
        await self.ensure_started()
        update = Update.de_json(payload, self._application.bot)
        await self._application.process_update(update)

    async def send_group_message(self, chat_id: int, text: str) -> None:
        """Send an HTML message to the owner's group; failures become 502 errors."""
        await self.ensure_started()
        try:
            await self._send_html(chat_id, text)
        except TelegramError as exc:
            self._logger.error(
                "Telegram sendMessage failed",
                extra={"chat_id": chat_id, "error": type(exc).__name__},
            )
            raise ExternalServiceError(
                code=ErrorCode.TELEGRAM_SEND_FAILED,
                message="Не удалось отправить заявку в Telegram.",
            ) from exc

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(NetworkError),
        reraise=True,
    )
    async def _send_html(self, chat_id: int, text: str) -> None:
        await self._application.bot.send_message(
            chat_id=chat_id,
            text=text,
            parse_mode=ParseMode.HTML,
            disable_web_page_preview=True,
        )

    def is_owner(self, tg_id: int | None) -> bool:
        return tg_id is not None and tg_id in self._owner_ids

    def _register_handlers(self) -> None:
        self._application.add_handler(CommandHandler("start", self._handle_start))
        self._application.add_handler(CommandHandler("whoami", self._handle_whoami))
        self._application.add_handler(CommandHandler("chatid", self._handle_chatid))
        self._application.add_handler(CommandHandler("setgroup", self._handle_setgroup))
        self._application.add_handler(CommandHandler("setstatus", self._handle_setstatus))
        self._application.add_handler(CommandHandler("setwebapp", self._handle_setwebapp))
        self._application.add_handler(
            MessageHandler(filters.StatusUpdate.WEB_APP_DATA, self._handle_web_app_data)
        )
        self._application.add_error_handler(self._handle_error)

    async def _remember(self, user: "TelegramUser") -> UserRecord:
        return await asyncio.to_thread(
            self._store.upsert_user,
            user.id,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
        )

    def _save_group_chat_id(self, chat_id: int) -> None:
        with self._store.transaction() as document:
            document.config.group_chat_id = chat_id

    async def _handle_start(
        self, update: TelegramUpdate, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Register the user and offer the Mini App button."""
        del context
        message = update.effective_message
        user = update.effective_user
        if message is None or user is None:
            return

        await self._remember(user)
        if not self._webapp_url:
            await message.reply_text(WEBAPP_URL_MISSING_MESSAGE)
            return

        try:
            await message.reply_text(
                "Открывай мини-приложение 👇",
                reply_markup=create_mini_app_keyboard(self._webapp_url),
            )
        except TelegramError:
            # Telegram rejects web_app buttons with non-HTTPS or unknown URLs
            self._logger.warning("Mini App button rejected", extra={"webapp_url": self._webapp_url})
            await message.reply_text(f"Открой мини-приложение по ссылке: {self._webapp_url}")

    async def _handle_whoami(
        self, update: TelegramUpdate, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        del context
        message = update.effective_message
        user = update.effective_user
        if message is None or user is None:
            return

        record = await self._remember(user)
        text = format_whoami(user.id, user.username)
        await message.reply_text(f"{text}\nстатус: {status_label(record.status)}")

    async def _handle_chatid(
        self, update: TelegramUpdate, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        del context
        message = update.effective_message
        chat = update.effective_chat
        if message is None or chat is None:
            return
        await message.reply_text(f"chat_id: {chat.id}")

    async def _handle_setgroup(
        self, update: TelegramUpdate, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Remember the current group as the destination for requests."""
        del context
        message = update.effective_message
        chat = update.effective_chat
        user = update.effective_user
        if message is None or chat is None:
            return

        if not self.is_owner(user.id if user else None):
            await message.reply_text(OWNER_ONLY_MESSAGE.format(command="/setgroup"))
            return
        if chat.type == ChatType.PRIVATE:
            await message.reply_text("Используй /setgroup в группе.")
            return

        await asyncio.to_thread(self._save_group_chat_id, chat.id)

        self._logger.info("Group chat saved", extra={"chat_id": chat.id})
        await message.reply_text(f"Группа сохранена ✅ group_chat_id={chat.id}")

    async def _handle_setstatus(
        self, update: TelegramUpdate, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """``/setstatus <tg_id> <tier>``; unknown users get a stub record."""
        message = update.effective_message
        user = update.effective_user
        if message is None:
            return

        if not self.is_owner(user.id if user else None):
            await message.reply_text(OWNER_ONLY_MESSAGE.format(command="/setstatus"))
            return

        args = list(context.args or [])
        if len(args) < 2:
            await message.reply_text(SETSTATUS_USAGE)
            return

        try:
            tg_id = parse_tg_id(args[0])
            tier = parse_status(args[1])
        except ApplicationError as exc:
            await message.reply_text(f"{exc.message}\n{SETSTATUS_USAGE}")
            return

        await asyncio.to_thread(self._users.assign_status, tg_id, tier)
        await message.reply_text(f"Готово ✅ tg_id={tg_id} → статус {status_label(tier)}")

    async def _handle_setwebapp(
        self, update: TelegramUpdate, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        message = update.effective_message
        user = update.effective_user
        if message is None:
            return

        if not self.is_owner(user.id if user else None):
            await message.reply_text(OWNER_ONLY_MESSAGE.format(command="/setwebapp"))
            return
        if not context.args:
            await message.reply_text("Использование: /setwebapp https://xxxx.tld")
            return

        await message.reply_text(
            "Ок ✅ URL мини-приложения задаётся переменной WEBAPP_URL. После изменения: /start."
        )

    async def _handle_web_app_data(
        self, update: TelegramUpdate, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Turn ``Telegram.WebApp.sendData`` payloads into exchange requests."""
        del context
        message = update.effective_message
        user = update.effective_user
        if message is None or user is None or message.web_app_data is None:
            return

        record = await self._remember(user)
        try:
            payload = json.loads(message.web_app_data.data)
        except json.JSONDecodeError:
            await message.reply_text("Не смог прочитать payload (не JSON).")
            return
        if not isinstance(payload, dict):
            await message.reply_text("Не смог прочитать payload (не JSON).")
            return

        try:
            draft = parse_request_draft(payload)
            await self._requests.submit(
                draft,
                user=RequestUser(
                    id=user.id,
                    username=user.username,
                    first_name=user.first_name,
                    last_name=user.last_name,
                ),
                status=record.status,
                source="bot",
            )
        except ApplicationError as exc:
            await message.reply_text(exc.message)
            return

        await message.reply_text("Заявка отправлена ✅")

    async def _handle_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        self._logger.error(
            "Telegram handler error",
            extra={"exception": repr(context.error), "update": repr(update)},
        )

    @staticmethod
    def _is_hostname_resolvable(host: str) -> bool:
        try:
            socket.getaddrinfo(host, None)
        except socket.gaierror:
            return False
        return True


# Re-export Update for test monkeypatching.
Update = TelegramUpdate

__all__ = ["BotApplication", "TelegramBot", "Update"]
