"""Router aggregations for public API endpoints."""

from fastapi import APIRouter

from exchange_app.api.routes import admin, auth, health, rates, requests, reviews, telegram
from exchange_app.core.config import settings

# Health and Telegram webhook routers (no prefix)
root_router = APIRouter()
root_router.include_router(health.router, tags=["health"])
root_router.include_router(telegram.router)

api_router = APIRouter(prefix=settings.api_v1_prefix)
api_router.include_router(auth.router)
api_router.include_router(rates.router)
api_router.include_router(requests.router)
api_router.include_router(reviews.router)
api_router.include_router(admin.router)

__all__ = ["api_router", "root_router"]
