"""Health check endpoint."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from api.deps import DbSession, Services
from schemas.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()

VERSION = "1.0.0"


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession, services: Services) -> HealthResponse:
    """Return health status of the API including database connectivity."""
    db_status = "connected"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Health check database query failed: %s", exc)
        db_status = "disconnected"

    store = services.store
    cache = services.document_cache
    return HealthResponse(
        status="healthy",
        version=VERSION,
        database=db_status,
        articles_dir="available" if store.articles_dir.is_dir() else "missing",
        cache=f"enabled ({cache.ttl_seconds:g}s)" if cache.enabled else "disabled",
        timestamp=datetime.now(timezone.utc),
    )
