from __future__ import annotations

import json
import socket
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError

import exchange_app.telegram.bot as telegram_bot_module
from exchange_app.core.errors import ExternalServiceError
from exchange_app.models.store import RequestState, UserStatus
from exchange_app.repositories.store import JsonStore
from exchange_app.telegram.bot import (
    OWNER_ONLY_MESSAGE,
    SETSTATUS_USAGE,
    WEBAPP_URL_MISSING_MESSAGE,
    TelegramBot,
)

OWNER_ID = 777


class DummyApplication:
    def __init__(self) -> None:
        self.process_update = AsyncMock()
        self.initialize = AsyncMock()
        self.start = AsyncMock()
        self.stop = AsyncMock()
        self.shutdown = AsyncMock()
        self.add_handler = Mock()
        self.add_error_handler = Mock()
        self.bot = SimpleNamespace(
            set_webhook=AsyncMock(),
            delete_webhook=AsyncMock(),
            send_message=AsyncMock(),
        )


class RecordingMessage:
    def __init__(self, web_app_data: str | None = None, fail_with_markup: bool = False) -> None:
        self.web_app_data = SimpleNamespace(data=web_app_data) if web_app_data is not None else None
        self.fail_with_markup = fail_with_markup
        self.replies: list[str] = []
        self.reply_kwargs: list[dict[str, object]] = []

    async def reply_text(self, text: str, **kwargs: object) -> None:
        if self.fail_with_markup and kwargs.get("reply_markup") is not None:
            raise BadRequest("Button_url_invalid")
        self.replies.append(text)
        self.reply_kwargs.append(kwargs)


def build_bot(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    *,
    environment: str = "test",
    **bot_kwargs: object,
) -> tuple[TelegramBot, DummyApplication]:
    dummy_app = DummyApplication()

    class DummyBuilder:
        def token(self, token: str) -> "DummyBuilder":
            self.token_value = token
            return self

        def build(self) -> DummyApplication:
            return dummy_app

    monkeypatch.setattr(telegram_bot_module, "ApplicationBuilder", lambda: DummyBuilder())
    bot_kwargs.setdefault("owner_ids", frozenset({OWNER_ID}))
    bot = TelegramBot(
        token="dummy-token",  # noqa: S106
        environment=environment,
        store=JsonStore(tmp_path / "store.json"),
        **bot_kwargs,  # type: ignore[arg-type]
    )
    return bot, dummy_app


def make_update(
    message: RecordingMessage,
    *,
    user_id: int = 42,
    chat_id: int = 42,
    chat_type: str = "private",
) -> SimpleNamespace:
    return SimpleNamespace(
        effective_message=message,
        effective_user=SimpleNamespace(
            id=user_id,
            username="alice",
            first_name="Alice",
            last_name=None,
        ),
        effective_chat=SimpleNamespace(id=chat_id, type=chat_type),
    )


def store_of(bot: TelegramBot) -> JsonStore:
    return bot._store


@pytest.mark.asyncio
async def test_process_payload_dispatches_update(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    bot, dummy_app = build_bot(monkeypatch, tmp_path)
    payload = {"update_id": 1}
    expected_update = object()

    class DummyUpdate:
        @staticmethod
        def de_json(data: dict[str, object], bot_instance: object) -> object:
            assert data is payload
            assert bot_instance is dummy_app.bot
            return expected_update

    monkeypatch.setattr(telegram_bot_module, "Update", DummyUpdate)

    await bot.process_payload(payload)
    await bot.process_payload(payload)

    dummy_app.initialize.assert_awaited_once()
    dummy_app.start.assert_awaited_once()
    assert dummy_app.process_update.await_count == 2


@pytest.mark.asyncio
async def test_shutdown_stops_started_application(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    bot, dummy_app = build_bot(monkeypatch, tmp_path)

    await bot.shutdown()
    dummy_app.stop.assert_not_awaited()

    await bot.start()
    await bot.shutdown()

    dummy_app.stop.assert_awaited_once()
    dummy_app.shutdown.assert_awaited_once()


@pytest.mark.asyncio
async def test_sync_webhook_configures_in_production(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    bot, dummy_app = build_bot(monkeypatch, tmp_path, environment="production")
    webhook_url = "https://api.example.com/"

    monkeypatch.setattr(
        telegram_bot_module.socket,
        "getaddrinfo",
        lambda *args, **kwargs: [(None, None, None, None, None)],
    )

    await bot.sync_webhook(webhook_url)

    dummy_app.bot.set_webhook.assert_awaited_once()
    called_with = dummy_app.bot.set_webhook.await_args.kwargs
    assert called_with["url"] == "https://api.example.com/telegram-webhook/dummy-token"
    assert called_with["drop_pending_updates"] is True
    assert called_with["allowed_updates"] == ["message"]


@pytest.mark.asyncio
@pytest.mark.parametrize(("environment", "base"), [("test", "https://x.example.com"), ("production", None)])
async def test_sync_webhook_skipped(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, environment: str, base: str | None
) -> None:
    bot, dummy_app = build_bot(monkeypatch, tmp_path, environment=environment)

    await bot.sync_webhook(base)

    dummy_app.bot.set_webhook.assert_not_awaited()


@pytest.mark.asyncio
async def test_sync_webhook_skips_when_host_not_resolvable(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    bot, dummy_app = build_bot(monkeypatch, tmp_path, environment="production")

    def fake_getaddrinfo(host: str, *_args: object, **_kwargs: object) -> None:
        raise socket.gaierror(f"cannot resolve {host}")

    monkeypatch.setattr(telegram_bot_module.socket, "getaddrinfo", fake_getaddrinfo)

    await bot.sync_webhook("https://missing.example.com")

    dummy_app.bot.set_webhook.assert_not_awaited()


@pytest.mark.asyncio
async def test_send_group_message_uses_html(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    bot, dummy_app = build_bot(monkeypatch, tmp_path)

    await bot.send_group_message(-100123, "<b>Заявка</b>")

    dummy_app.bot.send_message.assert_awaited_once_with(
        chat_id=-100123,
        text="<b>Заявка</b>",
        parse_mode=ParseMode.HTML,
        disable_web_page_preview=True,
    )


@pytest.mark.asyncio
async def test_send_group_message_failure_is_external_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    bot, dummy_app = build_bot(monkeypatch, tmp_path)
    dummy_app.bot.send_message.side_effect = TelegramError("chat not found")

    with pytest.raises(ExternalServiceError) as exc_info:
        await bot.send_group_message(-100123, "text")

    assert exc_info.value.code == "TELEGRAM_SEND_FAILED"
    assert exc_info.value.status_code == 502


def test_handlers_registered(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _, dummy_app = build_bot(monkeypatch, tmp_path)

    assert dummy_app.add_handler.call_count == 7
    dummy_app.add_error_handler.assert_called_once()


def test_owner_check(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    bot, _ = build_bot(monkeypatch, tmp_path)
    nobody, _ = build_bot(monkeypatch, tmp_path, owner_ids=frozenset())

    assert bot.is_owner(OWNER_ID) is True
    assert bot.is_owner(1) is False
    assert bot.is_owner(None) is False
    assert nobody.is_owner(OWNER_ID) is False


@pytest.mark.asyncio
async def test_start_offers_mini_app_button(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    bot, _ = build_bot(monkeypatch, tmp_path, webapp_url="mini.example.com")
    message = RecordingMessage()

    await bot._handle_start(make_update(message), context=None)  # type: ignore[arg-type]

    markup = message.reply_kwargs[0]["reply_markup"]
    assert markup.inline_keyboard[0][0].web_app.url == "https://mini.example.com"
    assert store_of(bot).read().users["42"].username == "alice"


@pytest.mark.asyncio
async def test_start_without_webapp_url(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    bot, _ = build_bot(monkeypatch, tmp_path)
    message = RecordingMessage()

    await bot._handle_start(make_update(message), context=None)  # type: ignore[arg-type]

    assert message.replies == [WEBAPP_URL_MISSING_MESSAGE]
    assert "42" in store_of(bot).read().users


@pytest.mark.asyncio
async def test_start_falls_back_to_link_when_button_rejected(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    bot, _ = build_bot(monkeypatch, tmp_path, webapp_url="https://mini.example.com")
    message = RecordingMessage(fail_with_markup=True)

    await bot._handle_start(make_update(message), context=None)  # type: ignore[arg-type]

    assert message.replies == ["Открой мини-приложение по ссылке: https://mini.example.com"]


@pytest.mark.asyncio
async def test_whoami_reports_status(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    bot, _ = build_bot(monkeypatch, tmp_path)
    message = RecordingMessage()

    await bot._handle_whoami(make_update(message), context=None)  # type: ignore[arg-type]

    assert message.replies == ["Ваш tg_id: 42\nusername: @alice\nстатус: стандарт"]


@pytest.mark.asyncio
async def test_chatid(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    bot, _ = build_bot(monkeypatch, tmp_path)
    message = RecordingMessage()

    await bot._handle_chatid(
        make_update(message, chat_id=-100500, chat_type="supergroup"),
        context=None,  # type: ignore[arg-type]
    )

    assert message.replies == ["chat_id: -100500"]


@pytest.mark.asyncio
async def test_setgroup_requires_owner(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    bot, _ = build_bot(monkeypatch, tmp_path)
    message = RecordingMessage()

    await bot._handle_setgroup(
        make_update(message, chat_id=-100500, chat_type="group"),
        context=None,  # type: ignore[arg-type]
    )

    assert message.replies == [OWNER_ONLY_MESSAGE.format(command="/setgroup")]
    assert store_of(bot).read().config.group_chat_id is None


@pytest.mark.asyncio
async def test_setgroup_rejects_private_chat(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    bot, _ = build_bot(monkeypatch, tmp_path)
    message = RecordingMessage()

    await bot._handle_setgroup(
        make_update(message, user_id=OWNER_ID, chat_id=OWNER_ID),
        context=None,  # type: ignore[arg-type]
    )

    assert message.replies == ["Используй /setgroup в группе."]
    assert store_of(bot).read().config.group_chat_id is None


@pytest.mark.asyncio
async def test_setgroup_saves_group(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    bot, _ = build_bot(monkeypatch, tmp_path)
    message = RecordingMessage()

    await bot._handle_setgroup(
        make_update(message, user_id=OWNER_ID, chat_id=-100500, chat_type="supergroup"),
        context=None,  # type: ignore[arg-type]
    )

    assert message.replies == ["Группа сохранена ✅ group_chat_id=-100500"]
    assert store_of(bot).read().config.group_chat_id == -100500


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("user_id", "args", "expected"),
    [
        (42, ["5", "gold"], OWNER_ONLY_MESSAGE.format(command="/setstatus")),
        (OWNER_ID, ["5"], SETSTATUS_USAGE),
        (OWNER_ID, ["5", "platinum"], f"Статус только: standard | silver | gold.\n{SETSTATUS_USAGE}"),
        (OWNER_ID, ["abc", "gold"], f"Некорректный tg_id.\n{SETSTATUS_USAGE}"),
    ],
)
async def test_setstatus_rejections(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    user_id: int,
    args: list[str],
    expected: str,
) -> None:
    bot, _ = build_bot(monkeypatch, tmp_path)
    message = RecordingMessage()

    await bot._handle_setstatus(
        make_update(message, user_id=user_id),
        context=SimpleNamespace(args=args),  # type: ignore[arg-type]
    )

    assert message.replies == [expected]
    assert store_of(bot).read().users == {}


@pytest.mark.asyncio
async def test_setstatus_creates_stub_user(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    bot, _ = build_bot(monkeypatch, tmp_path)
    message = RecordingMessage()

    await bot._handle_setstatus(
        make_update(message, user_id=OWNER_ID),
        context=SimpleNamespace(args=["5", "Золото"]),  # type: ignore[arg-type]
    )

    assert message.replies == ["Готово ✅ tg_id=5 → статус золото"]
    assert store_of(bot).read().users["5"].status is UserStatus.GOLD


@pytest.mark.asyncio
async def test_setwebapp(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    bot, _ = build_bot(monkeypatch, tmp_path)
    stranger = RecordingMessage()
    owner = RecordingMessage()

    await bot._handle_setwebapp(
        make_update(stranger),
        context=SimpleNamespace(args=["https://x.example.com"]),  # type: ignore[arg-type]
    )
    await bot._handle_setwebapp(
        make_update(owner, user_id=OWNER_ID),
        context=SimpleNamespace(args=["https://x.example.com"]),  # type: ignore[arg-type]
    )

    assert stranger.replies == [OWNER_ONLY_MESSAGE.format(command="/setwebapp")]
    assert "WEBAPP_URL" in owner.replies[0]


WEB_APP_PAYLOAD = {
    "sellCurrency": "USD",
    "buyCurrency": "VND",
    "sellAmount": 100,
    "buyAmount": 2500000,
    "receiveMethod": "cash",
}


@pytest.mark.asyncio
async def test_web_app_data_creates_request(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    bot, dummy_app = build_bot(monkeypatch, tmp_path, fallback_group_chat_id=-100500)
    message = RecordingMessage(web_app_data=json.dumps(WEB_APP_PAYLOAD))

    await bot._handle_web_app_data(make_update(message), context=None)  # type: ignore[arg-type]

    assert message.replies == ["Заявка отправлена ✅"]
    dummy_app.bot.send_message.assert_awaited_once()
    assert dummy_app.bot.send_message.await_args.kwargs["chat_id"] == -100500
    requests = store_of(bot).read().requests
    assert len(requests) == 1
    assert requests[0].source == "bot"
    assert requests[0].state is RequestState.NEW
    assert requests[0].user.id == 42


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["not json", "[1, 2]"])
async def test_web_app_data_rejects_non_object(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, raw: str
) -> None:
    bot, dummy_app = build_bot(monkeypatch, tmp_path, fallback_group_chat_id=-100500)
    message = RecordingMessage(web_app_data=raw)

    await bot._handle_web_app_data(make_update(message), context=None)  # type: ignore[arg-type]

    assert message.replies == ["Не смог прочитать payload (не JSON)."]
    dummy_app.bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_web_app_data_reports_validation_errors(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    bot, dummy_app = build_bot(monkeypatch, tmp_path, fallback_group_chat_id=-100500)
    message = RecordingMessage(web_app_data=json.dumps({**WEB_APP_PAYLOAD, "sellAmount": 0}))

    await bot._handle_web_app_data(make_update(message), context=None)  # type: ignore[arg-type]

    assert message.replies == ["Сумма должна быть больше нуля."]
    assert store_of(bot).read().requests == []


@pytest.mark.asyncio
async def test_web_app_data_without_group(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    bot, dummy_app = build_bot(monkeypatch, tmp_path)
    message = RecordingMessage(web_app_data=json.dumps(WEB_APP_PAYLOAD))

    await bot._handle_web_app_data(make_update(message), context=None)  # type: ignore[arg-type]

    assert message.replies[0].startswith("Группа для заявок не задана.")
    dummy_app.bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_handle_error_logs(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    bot, _ = build_bot(monkeypatch, tmp_path)
    caplog.set_level("ERROR")
    context = SimpleNamespace(error=ValueError("boom"))

    await bot._handle_error(update={"update_id": 1}, context=context)  # type: ignore[arg-type]

    assert any("Telegram handler error" in record.message for record in caplog.records)
