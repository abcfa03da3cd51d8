"""Shared helpers for tests."""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any, Dict, Optional
from urllib.parse import urlencode

TEST_BOT_TOKEN = "999999:TEST_TOKEN"
TEST_ADMIN_KEY = "test-admin-key"
OWNER_TG_ID = 777

DEFAULT_USER: Dict[str, Any] = {
    "id": 123456,
    "first_name": "John",
    "last_name": "Doe",
    "username": "john_doe",
}


def sign_fields(fields: Dict[str, str], bot_token: str) -> Dict[str, str]:
    """Return ``fields`` plus the ``hash`` Telegram would attach."""

    data_check_string = "\n".join(f"{k}={v}" for k, v in sorted(fields.items()))
    secret_key = hmac.new(
        key="WebAppData".encode(),
        msg=bot_token.encode(),
        digestmod=hashlib.sha256,
    ).digest()
    hash_value = hmac.new(
        key=secret_key,
        msg=data_check_string.encode(),
        digestmod=hashlib.sha256,
    ).hexdigest()
    return {**fields, "hash": hash_value}


def generate_init_data(
    bot_token: str = TEST_BOT_TOKEN,
    overrides: Optional[Dict[str, str]] = None,
    *,
    user: Optional[Dict[str, Any]] = None,
) -> str:
    """Create signed initData payload resembling Telegram WebApp data."""

    payload = {
        "query_id": "test-query",
        "user": json.dumps(user or DEFAULT_USER, separators=(",", ":")),
        "auth_date": str(int(time.time())),
    }
    if overrides:
        payload.update(overrides)
    return urlencode(sign_fields(payload, bot_token))


def tma_headers(init_data: str) -> Dict[str, str]:
    return {"Authorization": f"tma {init_data}"}


def owner_headers() -> Dict[str, str]:
    return tma_headers(generate_init_data(user={"id": OWNER_TG_ID, "username": "owner"}))


def admin_key_headers() -> Dict[str, str]:
    return {"X-Admin-Key": TEST_ADMIN_KEY}
