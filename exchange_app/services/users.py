"""Owner operations on client records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from exchange_app.core.errors import ApplicationError, ErrorCode, NotFoundError
from exchange_app.models.store import UserRecord, UserStatus, parse_status_input
from exchange_app.repositories.store import JsonStore, json_store

logger = logging.getLogger("exchange_app.services.users")


def parse_tg_id(value: object) -> int:
    try:
        tg_id = int(str(value).strip())
    except ValueError as exc:
        raise ApplicationError(ErrorCode.BAD_TG_ID, "Некорректный tg_id.") from exc
    if tg_id <= 0:
        raise ApplicationError(ErrorCode.BAD_TG_ID, "Некорректный tg_id.")
    return tg_id


def parse_status(value: object) -> UserStatus:
    parsed = parse_status_input(value)
    if parsed is None:
        raise ApplicationError(
            ErrorCode.BAD_STATUS,
            "Статус только: standard | silver | gold.",
        )
    return parsed


class UserAdminService:
    def __init__(self, *, store: JsonStore) -> None:
        self._store = store

    def list_users(self) -> list[UserRecord]:
        """Most recently seen first."""
        users = self._store.read().users.values()
        return sorted(users, key=lambda user: user.last_seen_at, reverse=True)

    def set_status(self, tg_id: object, new_status: object) -> UserRecord:
        """Change the tier of a known user (admin API)."""
        user_id = parse_tg_id(tg_id)
        tier = parse_status(new_status)

        with self._store.transaction() as document:
            existing = document.users.get(str(user_id))
            if existing is None:
                raise NotFoundError(ErrorCode.USER_NOT_FOUND, "Пользователь не найден.")
            updated = existing.model_copy(update={"status": tier})
            document.users[str(user_id)] = updated

        logger.info("User status changed", extra={"tg_user_id": user_id, "status": tier.value})
        return updated

    def assign_status(
        self,
        tg_id: int,
        tier: UserStatus,
        *,
        now: Optional[datetime] = None,
    ) -> UserRecord:
        """Set the tier, creating a stub record for users who never opened the bot."""
        moment = now or datetime.now(timezone.utc)
        key = str(tg_id)

        with self._store.transaction() as document:
            existing = document.users.get(key)
            if existing is None:
                record = UserRecord(tg_id=tg_id, status=tier, created_at=moment, last_seen_at=moment)
            else:
                record = existing.model_copy(update={"status": tier, "last_seen_at": moment})
            document.users[key] = record

        logger.info("User status assigned", extra={"tg_user_id": tg_id, "status": tier.value})
        return record


def get_user_admin_service() -> UserAdminService:
    return UserAdminService(store=json_store)


__all__ = ["UserAdminService", "get_user_admin_service", "parse_status", "parse_tg_id"]
