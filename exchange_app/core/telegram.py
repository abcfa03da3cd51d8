"""Telegram WebApp initData verification.

The check follows the Telegram Mini Apps documentation: every field except
``hash`` is rendered as ``key=value``, the lines are sorted and joined with
``\\n``, and the result is signed with HMAC-SHA256 keyed by
``HMAC-SHA256(key="WebAppData", msg=bot_token)``.

Verification is a pure function of its arguments. It performs no I/O, keeps
no state and does not log; callers decide how failures are reported.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any, Dict
from urllib.parse import parse_qsl, unquote

from exchange_app.exceptions.init_data import (
    Expired,
    InvalidInput,
    MalformedToken,
    MalformedUser,
    MissingTimestamp,
    MissingUser,
    SignatureMismatch,
)
from exchange_app.models.identity import VerifiedIdentity

WEB_APP_DATA_KEY = b"WebAppData"
INIT_DATA_DEFAULT_MAX_AGE_SECONDS = 48 * 3600


def verify_init_data(
    init_data: str,
    bot_token: str,
    *,
    now: int | None = None,
    max_age_seconds: int = INIT_DATA_DEFAULT_MAX_AGE_SECONDS,
) -> VerifiedIdentity:
    """
    Verify Telegram WebApp initData and return the embedded identity.

    Args:
        init_data: Raw ``Telegram.WebApp.initData`` string (single URL-encoded).
        bot_token: Bot token the Mini App belongs to; it is the shared secret.
        now: Current time in seconds since epoch. Defaults to the system clock.
        max_age_seconds: Accepted age of ``auth_date``.

    Raises:
        InvalidInput, MalformedToken, SignatureMismatch, MissingTimestamp,
        Expired, MissingUser, MalformedUser
    """
    if not init_data or not bot_token:
        raise InvalidInput("initData and bot token must be non-empty")

    claims = parse_init_data(init_data)
    received_hash = claims.pop("hash", None)
    if received_hash is None:
        raise MalformedToken("hash is missing in initData")

    expected_hash = compute_signature(build_data_check_string(claims), bot_token)
    # compare bytes: compare_digest rejects non-ASCII str input
    if not hmac.compare_digest(expected_hash.encode(), received_hash.encode("utf-8")):
        raise SignatureMismatch("initData signature mismatch")

    auth_date = _read_auth_date(claims)
    current = int(time.time()) if now is None else now
    if current - auth_date > max_age_seconds:
        raise Expired("initData is too old")

    user = _read_user(claims)
    return VerifiedIdentity(
        user_id=user["id"],
        username=user.get("username"),
        first_name=user.get("first_name"),
        last_name=user.get("last_name"),
        auth_timestamp=auth_date,
        query_id=claims.get("query_id"),
    )


def parse_init_data(init_data: str) -> Dict[str, str]:
    """Decode ``key=value&...`` into a mapping; later duplicates win."""
    pairs = parse_qsl(init_data, keep_blank_values=True)
    if not pairs:
        raise MalformedToken("initData contains no fields")
    return dict(pairs)


def build_data_check_string(claims: Dict[str, str]) -> str:
    """Render claims as sorted ``key=value`` lines (``hash`` must be removed already)."""
    return "\n".join(sorted(f"{key}={value}" for key, value in claims.items()))


def compute_signature(data_check_string: str, bot_token: str) -> str:
    """Return the lowercase hex HMAC-SHA256 of the check string."""
    secret_key = hmac.new(
        key=WEB_APP_DATA_KEY,
        msg=bot_token.encode("utf-8"),
        digestmod=hashlib.sha256,
    ).digest()

    return hmac.new(
        key=secret_key,
        msg=data_check_string.encode("utf-8"),
        digestmod=hashlib.sha256,
    ).hexdigest()


def unwrap_double_encoded(init_data: str) -> str:
    """
    Undo one extra layer of URL encoding.

    Some clients send ``encodeURIComponent(initData)``: such a payload has no
    literal ``&`` but contains ``%26``/``%3D``. It is decoded exactly once;
    anything else is returned untouched.
    """
    if "&" not in init_data and ("%3D" in init_data or "%26" in init_data):
        return unquote(init_data)
    return init_data


def _read_auth_date(claims: Dict[str, str]) -> int:
    raw = claims.get("auth_date")
    if raw is None:
        raise MissingTimestamp("auth_date is missing")
    # int() alone would accept signs, whitespace and underscores
    if not (raw.isascii() and raw.isdigit()):
        raise MissingTimestamp("auth_date must be an integer")
    return int(raw)


def _read_user(claims: Dict[str, str]) -> Dict[str, Any]:
    payload = claims.get("user")
    if payload is None:
        raise MissingUser("user is missing")

    try:
        user = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise MalformedUser("user is not valid JSON") from exc

    if not isinstance(user, dict):
        raise MalformedUser("user must be a JSON object")

    user_id = user.get("id")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise MalformedUser("user.id must be an integer")

    for field in ("username", "first_name", "last_name"):
        value = user.get(field)
        if value is not None and not isinstance(value, str):
            raise MalformedUser(f"user.{field} must be a string")

    return user


__all__ = [
    "build_data_check_string",
    "compute_signature",
    "parse_init_data",
    "unwrap_double_encoded",
    "verify_init_data",
]
