"""Common dependencies for API routes."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_session
from services.container import AppServices
from services.market_data import MarketDataService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async for session in get_session():
        yield session


def get_services(request: Request) -> AppServices:
    """Service graph built during application startup."""
    return request.app.state.services


def get_market_data(services: Annotated[AppServices, Depends(get_services)]) -> MarketDataService:
    return services.market_data


# Type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
Services = Annotated[AppServices, Depends(get_services)]
MarketData = Annotated[MarketDataService, Depends(get_market_data)]
