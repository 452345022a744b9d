"""Article listing, detail and registration endpoints."""

import logging

from fastapi import APIRouter, Query, status

from api.deps import DbSession, Services
from api.exceptions import NotFoundError
from articles.record import parse_article_date
from schemas.article import (
    ArticleCreate,
    ArticleDetailResponse,
    ArticleListResponse,
    ArticleResponse,
)
from schemas.market_data import SessionRecordResponse
from services.article_service import article_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/articles", tags=["articles"])


@router.get("", response_model=ArticleListResponse)
async def list_articles(
    db: DbSession,
    services: Services,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> ArticleListResponse:
    """List article previews, newest first."""
    articles, total = await article_service.list_articles(db, skip=skip, limit=limit)
    previews = []
    for article in articles:
        record_date = article.published_on or parse_article_date(article.slug)
        record = await services.store.get(record_date)
        previews.append(article_service.preview(article, record))
    return ArticleListResponse(articles=previews, total=total)


@router.get("/{slug}", response_model=ArticleDetailResponse)
async def get_article(slug: str, db: DbSession, services: Services) -> ArticleDetailResponse:
    """Article metadata with its parsed session data."""
    article = await article_service.get_by_slug(db, slug)
    if article is None:
        raise NotFoundError("Article", slug)

    record_date = article.published_on or parse_article_date(article.slug)
    record = await services.store.get(record_date)
    markdown = await services.store.get_text(record_date)
    return ArticleDetailResponse(
        article=ArticleResponse.model_validate(article),
        record=SessionRecordResponse.from_record(record),
        markdown=markdown,
    )


@router.post("", response_model=ArticleResponse, status_code=status.HTTP_201_CREATED)
async def create_article(payload: ArticleCreate, db: DbSession, services: Services) -> ArticleResponse:
    """Register an article for a date and create its document if missing."""
    record_date = parse_article_date(payload.slug)
    article, created = await article_service.ensure_article(
        db, record_date, title=payload.title, summary=payload.summary
    )
    if await services.store.ensure_document(record_date):
        logger.info("Created empty document for %s", payload.slug)
    if not created:
        logger.info("Article %s already registered", payload.slug)
    return ArticleResponse.model_validate(article)
