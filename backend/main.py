"""FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Set up before the app modules below create their module loggers.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ],
    force=True,
)

logging.getLogger("uvicorn").setLevel(logging.INFO)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

from api import api_router  # noqa: E402
from api.exceptions import (  # noqa: E402
    NotFoundError,
    ValidationError,
    article_io_error_handler,
    not_found_handler,
    validation_error_handler,
)
from articles.errors import ArticleIOError, SlotValidationError  # noqa: E402
from config import get_settings  # noqa: E402
from database import async_session_factory, close_db, init_db  # noqa: E402
from services.article_service import article_service  # noqa: E402
from services.container import AppServices  # noqa: E402

settings = get_settings()

VERSION = "1.0.0"


def _log_configuration() -> None:
    for name, value in settings.summary().items():
        logger.info("config %s=%s", name, value)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown."""
    _log_configuration()
    await init_db()

    services = getattr(app.state, "services", None)
    if services is None:
        services = AppServices.from_settings(settings)
        app.state.services = services

    async with async_session_factory() as session:
        await article_service.sync_from_store(session, services.store)

    logger.info("SET market journal API %s ready", VERSION)
    yield
    await services.aclose()
    await close_db()


app = FastAPI(
    title="SET Market Journal API",
    description="Daily Thai stock market session articles with AI commentary",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register exception handlers
app.add_exception_handler(NotFoundError, not_found_handler)
app.add_exception_handler(ValidationError, validation_error_handler)
app.add_exception_handler(SlotValidationError, validation_error_handler)
app.add_exception_handler(ArticleIOError, article_io_error_handler)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "An unexpected error occurred",
            "detail": str(exc) if settings.DEBUG else None,
        },
    )


app.include_router(api_router, prefix=settings.API_PREFIX)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default=settings.HOST)
    parser.add_argument("--port", type=int, default=settings.PORT)
    args = parser.parse_args()

    import uvicorn

    uvicorn.run(app, host=args.host, port=args.port)
