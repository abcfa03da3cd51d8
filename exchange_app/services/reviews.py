"""Client reviews shown in the Mini App."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from exchange_app.core.errors import ApplicationError, ErrorCode
from exchange_app.models.identity import VerifiedIdentity
from exchange_app.models.store import Review
from exchange_app.repositories.store import JsonStore, json_store

logger = logging.getLogger("exchange_app.services.reviews")

PUBLIC_REVIEWS_LIMIT = 50
MIN_TEXT_LENGTH = 3


def _parse_rating(value: object) -> int:
    try:
        rating = float(str(value))
    except ValueError as exc:
        raise ApplicationError(ErrorCode.BAD_RATING, "Оценка от 1 до 5.") from exc
    if not math.isfinite(rating) or not rating.is_integer() or not 1 <= rating <= 5:
        raise ApplicationError(ErrorCode.BAD_RATING, "Оценка от 1 до 5.")
    return int(rating)


class ReviewService:
    def __init__(self, *, store: JsonStore) -> None:
        self._store = store

    def list_public(self, limit: int = PUBLIC_REVIEWS_LIMIT) -> list[Review]:
        """Latest public reviews, newest first."""
        public = [review for review in self._store.read().reviews if review.is_public]
        return list(reversed(public[-limit:]))

    def add(
        self,
        identity: VerifiedIdentity,
        *,
        rating: object,
        text: object,
        now: Optional[datetime] = None,
    ) -> Review:
        score = _parse_rating(rating)
        body = str(text or "").strip()
        if len(body) < MIN_TEXT_LENGTH:
            raise ApplicationError(ErrorCode.TEXT_TOO_SHORT, "Отзыв слишком короткий.")

        review = Review(
            id=uuid4().hex,
            tg_id=identity.user_id,
            username=identity.username,
            rating=score,
            text=body,
            created_at=now or datetime.now(timezone.utc),
        )
        with self._store.transaction() as document:
            document.reviews.append(review)

        logger.info("Review added", extra={"tg_user_id": identity.user_id, "rating": score})
        return review


def get_review_service() -> ReviewService:
    return ReviewService(store=json_store)


__all__ = ["MIN_TEXT_LENGTH", "PUBLIC_REVIEWS_LIMIT", "ReviewService", "get_review_service"]
