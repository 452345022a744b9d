"""HTTP API for the market journal, mounted under ``API_PREFIX``."""

from fastapi import APIRouter

from api.routes import articles, health, market_data

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(articles.router)
api_router.include_router(market_data.router)

__all__ = ["api_router"]
