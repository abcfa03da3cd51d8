"""
Authentication API endpoints.

The Mini App sends Telegram ``initData`` with every call; there is no
session or token of our own. ``/auth`` and ``/me`` return who the caller is.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status

from exchange_app.api.dependencies.auth import get_auth_context
from exchange_app.schemas.auth import AuthResponse, TelegramUserOut
from exchange_app.services.auth_service import AuthContext
from exchange_app.telegram.formatters import status_label

logger = logging.getLogger("exchange_app.api.auth")

router = APIRouter(tags=["authentication"])


def _auth_response(context: AuthContext) -> AuthResponse:
    identity = context.identity
    return AuthResponse(
        user=TelegramUserOut(
            id=identity.user_id,
            username=identity.username,
            first_name=identity.first_name,
            last_name=identity.last_name,
        ),
        status=context.user.status,
        status_label=status_label(context.user.status),
        is_owner=context.is_owner,
    )


@router.post("/auth", response_model=AuthResponse, status_code=status.HTTP_200_OK)
async def authenticate(context: AuthContext = Depends(get_auth_context)) -> AuthResponse:
    """
    Verify Telegram initData and register the visit.

    **Errors:**
    - 401 NO_INIT_DATA: initData was not sent
    - 401 SIGNATURE_MISMATCH / EXPIRED / MALFORMED_TOKEN / ...: verification failed
    """
    logger.info(
        "User authenticated",
        extra={"tg_user_id": context.identity.user_id, "is_owner": context.is_owner},
    )
    return _auth_response(context)


@router.get("/me", response_model=AuthResponse)
async def me(context: AuthContext = Depends(get_auth_context)) -> AuthResponse:
    return _auth_response(context)


__all__ = ["router"]
