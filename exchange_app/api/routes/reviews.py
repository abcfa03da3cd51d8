"""Client reviews."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from exchange_app.api.dependencies.auth import get_auth_context
from exchange_app.schemas.reviews import ReviewCreate, ReviewListResponse, ReviewResponse
from exchange_app.services.auth_service import AuthContext
from exchange_app.services.reviews import ReviewService, get_review_service

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.get("", response_model=ReviewListResponse)
def list_reviews(
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewListResponse:
    return ReviewListResponse(reviews=reviews.list_public())


@router.post("", response_model=ReviewResponse)
def add_review(
    payload: ReviewCreate,
    context: AuthContext = Depends(get_auth_context),
    reviews: ReviewService = Depends(get_review_service),
) -> ReviewResponse:
    """Rating 1..5 (BAD_RATING otherwise) and at least 3 characters of text (TEXT_TOO_SHORT)."""
    review = reviews.add(context.identity, rating=payload.rating, text=payload.text)
    return ReviewResponse(review=review)


__all__ = ["router"]
