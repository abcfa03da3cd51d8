from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from exchange_app.core.config import settings
from exchange_app.telegram.runtime import telegram_bot


@pytest.mark.asyncio
async def test_telegram_webhook_accepts_valid_token(
    client: AsyncClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    mock_process = AsyncMock()
    monkeypatch.setattr(telegram_bot, "process_payload", mock_process)
    token = settings.telegram_bot_token.get_secret_value()
    payload = {"update_id": 1, "message": {"message_id": 1, "text": "/start"}}

    response = await client.post(f"/telegram-webhook/{token}", json=payload)

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    mock_process.assert_awaited_once_with(payload)


@pytest.mark.asyncio
async def test_telegram_webhook_rejects_invalid_token(
    client: AsyncClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    mock_process = AsyncMock()
    monkeypatch.setattr(telegram_bot, "process_payload", mock_process)

    response = await client.post("/telegram-webhook/invalid", json={"update_id": 1})

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"
    mock_process.assert_not_awaited()
