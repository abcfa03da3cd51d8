"""Schemas for owner-only endpoints."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

from exchange_app.models.store import UserRecord


class UserListResponse(BaseModel):
    ok: Literal[True] = True
    users: list[UserRecord]


class UserStatusUpdate(BaseModel):
    status: Any = None


class UserStatusResponse(BaseModel):
    ok: Literal[True] = True
    user: UserRecord


__all__ = ["UserListResponse", "UserStatusResponse", "UserStatusUpdate"]
