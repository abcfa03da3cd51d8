"""
Pydantic schemas for authentication endpoints.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from exchange_app.models.store import UserStatus


class TelegramUserOut(BaseModel):
    """Telegram user as verified from initData."""

    id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class AuthResponse(BaseModel):
    """Response schema for POST /api/auth and GET /api/me."""

    ok: Literal[True] = True
    user: TelegramUserOut
    status: UserStatus
    status_label: str = Field(..., description="Human readable tier name")
    is_owner: bool

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "ok": True,
                "user": {"id": 123456789, "username": "alice", "first_name": "Alice"},
                "status": "silver",
                "status_label": "серебро",
                "is_owner": False,
            }
        }
    )


__all__ = ["AuthResponse", "TelegramUserOut"]
