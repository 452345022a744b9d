"""Custom exception classes and handlers for the API."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from articles.errors import ArticleIOError, SlotValidationError

logger = logging.getLogger(__name__)


class NotFoundError(Exception):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str | int | None = None):
        self.resource = resource
        self.identifier = identifier
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} '{identifier}' not found"
        super().__init__(message)


class ValidationError(Exception):
    """Raised when request validation fails."""

    def __init__(self, message: str, field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(message)


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle NotFoundError exceptions."""
    return JSONResponse(
        status_code=404,
        content={
            "success": False,
            "message": str(exc),
            "resource": exc.resource,
            "identifier": exc.identifier,
        },
    )


async def validation_error_handler(
    request: Request, exc: ValidationError | SlotValidationError
) -> JSONResponse:
    """Handle request and slot validation errors."""
    content = {
        "success": False,
        "message": exc.message,
    }
    if exc.field:
        content["field"] = exc.field
    return JSONResponse(
        status_code=422,
        content=content,
    )


async def article_io_error_handler(request: Request, exc: ArticleIOError) -> JSONResponse:
    """Handle failures reading or writing article files."""
    logger.error("Article storage error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": str(exc),
        },
    )
