"""File-backed repository holding the whole service state in one JSON document."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from threading import RLock
from typing import Optional

from fastapi import status
from pydantic import ValidationError

from exchange_app.core.config import settings
from exchange_app.core.errors import ApplicationError, ErrorCode
from exchange_app.models.store import StoreDocument, UserRecord

logger = logging.getLogger("exchange_app.repositories.store")


class StoreCorruptedError(ApplicationError):
    """Raised when the document on disk cannot be parsed."""

    def __init__(self, path: Path) -> None:
        super().__init__(
            code=ErrorCode.STORE_CORRUPTED,
            message="Хранилище повреждено.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        self.path = path


class JsonStore:
    """
    Single-writer JSON store.

    Every mutation goes through :meth:`transaction`, which reads the current
    document, hands it to the caller and writes it back atomically (temp file
    plus ``os.replace``) while holding a process-wide lock.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = RLock()

    def read(self) -> StoreDocument:
        """Return the current document, creating an empty one on first use."""
        with self._lock:
            if not self.path.exists():
                document = StoreDocument()
                self.write(document)
                return document

            raw = self.path.read_text(encoding="utf-8")
            try:
                return StoreDocument.model_validate(json.loads(raw) if raw.strip() else {})
            except (json.JSONDecodeError, ValidationError) as exc:
                logger.error("Store document is corrupted", extra={"path": str(self.path)})
                raise StoreCorruptedError(self.path) from exc

    def write(self, document: StoreDocument) -> None:
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_name(f"{self.path.name}.tmp")
            payload = json.dumps(document.model_dump(mode="json"), ensure_ascii=False, indent=2)
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, self.path)

    @contextmanager
    def transaction(self) -> Iterator[StoreDocument]:
        """Read-modify-write; nothing is written when the block raises."""
        with self._lock:
            document = self.read()
            yield document
            self.write(document)

    def upsert_user(
        self,
        tg_id: int,
        *,
        username: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> UserRecord:
        """
        Create the user with the baseline tier or refresh ``last_seen_at``.

        Names are only overwritten by values that are present, so a visit
        that carries no username keeps the one seen earlier.
        """
        seen_at = now or datetime.now(timezone.utc)
        key = str(tg_id)
        profile = {"username": username, "first_name": first_name, "last_name": last_name}

        with self.transaction() as document:
            existing = document.users.get(key)
            if existing is None:
                record = UserRecord(
                    tg_id=tg_id,
                    created_at=seen_at,
                    last_seen_at=seen_at,
                    **profile,
                )
                logger.info("Registered new user", extra={"tg_user_id": tg_id})
            else:
                updates: dict[str, object] = {"last_seen_at": seen_at}
                updates.update({field: value for field, value in profile.items() if value is not None})
                record = existing.model_copy(update=updates)
            document.users[key] = record
            return record

    def reset(self) -> None:
        """Replace the stored document with an empty one (used in tests)."""
        self.write(StoreDocument())


json_store = JsonStore(settings.store_path)

__all__ = ["JsonStore", "StoreCorruptedError", "json_store"]
