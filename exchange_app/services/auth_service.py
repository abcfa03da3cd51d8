"""Authentication service: initData verification, user upsert and owner checks."""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import AbstractSet, Optional

from exchange_app.core.config import settings
from exchange_app.core.telegram import verify_init_data
from exchange_app.models.identity import VerifiedIdentity
from exchange_app.models.store import UserRecord
from exchange_app.repositories.store import JsonStore, json_store

logger = logging.getLogger("exchange_app.services.auth")


@dataclass(frozen=True)
class AuthContext:
    """Result of a successful initData authentication."""

    identity: VerifiedIdentity
    user: UserRecord
    is_owner: bool


class AuthService:
    """Business logic around Mini App authentication."""

    def __init__(
        self,
        *,
        store: JsonStore,
        bot_token: str,
        max_age_seconds: int,
        owner_ids: AbstractSet[int],
        admin_web_key: Optional[str] = None,
    ) -> None:
        self._store = store
        self._bot_token = bot_token
        self._max_age_seconds = max_age_seconds
        self._owner_ids = frozenset(owner_ids)
        self._admin_web_key = admin_web_key

    def authenticate(self, init_data: str, *, now: Optional[int] = None) -> AuthContext:
        """Verify initData and register the visit; verification errors propagate."""

        identity = verify_init_data(
            init_data,
            self._bot_token,
            now=now,
            max_age_seconds=self._max_age_seconds,
        )
        user = self._store.upsert_user(
            identity.user_id,
            username=identity.username,
            first_name=identity.first_name,
            last_name=identity.last_name,
        )
        return AuthContext(identity=identity, user=user, is_owner=self.is_owner(identity.user_id))

    def is_owner(self, tg_id: int) -> bool:
        """With no owner configured nobody is an owner."""

        return tg_id in self._owner_ids

    def check_admin_key(self, candidate: Optional[str]) -> bool:
        """Constant-time comparison against ADMIN_WEB_KEY; disabled when unset."""

        if not self._admin_web_key or not candidate:
            return False
        matched = hmac.compare_digest(
            candidate.encode("utf-8"),
            self._admin_web_key.encode("utf-8"),
        )
        if not matched:
            logger.warning("Rejected admin key")
        return matched


def get_auth_service() -> AuthService:
    """Factory returning an AuthService wired to the current settings."""

    admin_key = settings.admin_web_key
    return AuthService(
        store=json_store,
        bot_token=settings.telegram_bot_token.get_secret_value(),
        max_age_seconds=settings.init_data_max_age_seconds,
        owner_ids=settings.owner_ids,
        admin_web_key=admin_key.get_secret_value() if admin_key else None,
    )


__all__ = ["AuthContext", "AuthService", "get_auth_service"]
