from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncIterator, Iterator
from pathlib import Path
from typing import Final

import pytest
import pytest_asyncio

_TEST_DIR: Final[Path] = Path(tempfile.mkdtemp(prefix="exchange-desk-tests-"))

_TEST_ENV_VARS: Final[dict[str, str]] = {
    "APP_ENV": "test",
    "TELEGRAM_BOT_TOKEN": "999999:TEST_TOKEN",
    "OWNER_TG_IDS": "777",
    "ADMIN_WEB_KEY": "test-admin-key",
    "STORE_PATH": str(_TEST_DIR / "store.json"),
    "WEBAPP_DIST_DIR": str(_TEST_DIR / "missing-dist"),
    "WEBAPP_URL": "https://mini.example.com",
    "BACKEND_CORS_ORIGINS": "http://localhost:5173",
}

for key, value in _TEST_ENV_VARS.items():
    os.environ.setdefault(key, value)

from httpx import ASGITransport, AsyncClient  # noqa: E402

from exchange_app.main import app  # noqa: E402
from exchange_app.repositories.store import json_store  # noqa: E402


@pytest.fixture(autouse=True)
def clean_store() -> Iterator[None]:
    json_store.reset()
    yield
    json_store.reset()


@pytest.fixture()
def dependency_overrides() -> Iterator[dict[object, object]]:
    try:
        yield app.dependency_overrides
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client() -> AsyncIterator[AsyncClient]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client
