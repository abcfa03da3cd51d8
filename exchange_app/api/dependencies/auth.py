"""Authentication dependencies: Telegram initData and the owner gate."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Literal, Optional

from fastapi import Depends, Request, status

from exchange_app.core.errors import ApplicationError, ErrorCode, ForbiddenError
from exchange_app.core.telegram import unwrap_double_encoded
from exchange_app.services.auth_service import AuthContext, AuthService, get_auth_service

TMA_SCHEME = "tma "
INIT_DATA_HEADER = "X-Telegram-Init-Data"
ADMIN_KEY_HEADER = "X-Admin-Key"
INIT_DATA_BODY_FIELDS = ("initData", "init_data")


@dataclass(frozen=True)
class OwnerPrincipal:
    """Who passed the owner gate; ``tg_id`` is ``None`` for the admin key."""

    tg_id: Optional[int]
    via: Literal["init_data", "admin_key"]


async def extract_init_data(request: Request) -> Optional[str]:
    """
    Locate initData: ``Authorization: tma <initData>``, then the
    ``X-Telegram-Init-Data`` header, then ``initData``/``init_data`` in a JSON body.
    """
    authorization = request.headers.get("Authorization") or ""
    candidate: Optional[str] = None
    if authorization.startswith(TMA_SCHEME):
        candidate = authorization[len(TMA_SCHEME) :].strip() or None
    if candidate is None:
        candidate = (request.headers.get(INIT_DATA_HEADER) or "").strip() or None
    if candidate is None:
        candidate = await _init_data_from_body(request)

    # tolerate clients that URL-encode initData a second time
    return unwrap_double_encoded(candidate) if candidate else None


async def _init_data_from_body(request: Request) -> Optional[str]:
    if request.method not in {"POST", "PUT", "PATCH"}:
        return None
    if "json" not in (request.headers.get("content-type") or ""):
        return None
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if not isinstance(body, dict):
        return None
    for field in INIT_DATA_BODY_FIELDS:
        value = body.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


async def get_auth_context(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthContext:
    """Verify initData of the current request; failures are rendered as 401."""
    init_data = await extract_init_data(request)
    if not init_data:
        raise ApplicationError(
            code=ErrorCode.NO_INIT_DATA,
            message="initData не передан.",
            status_code=status.HTTP_401_UNAUTHORIZED,
        )

    # verification upserts the user in the file store
    context = await asyncio.to_thread(auth_service.authenticate, init_data)
    request.state.tg_user_id = context.identity.user_id
    return context


async def require_owner(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> OwnerPrincipal:
    """Allow the standalone admin (X-Admin-Key) or an owner's initData."""
    if auth_service.check_admin_key(request.headers.get(ADMIN_KEY_HEADER)):
        return OwnerPrincipal(tg_id=None, via="admin_key")

    context = await get_auth_context(request, auth_service)
    if not context.is_owner:
        raise ForbiddenError()
    return OwnerPrincipal(tg_id=context.identity.user_id, via="init_data")


__all__ = [
    "ADMIN_KEY_HEADER",
    "INIT_DATA_HEADER",
    "OwnerPrincipal",
    "extract_init_data",
    "get_auth_context",
    "require_owner",
]
