"""Service layer for the article index table."""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from articles.record import SessionRecord, SlotName, display_date
from articles.store import ArticleStore
from models.article import DEFAULT_SUMMARY, Article
from schemas.article import ArticlePreview

logger = logging.getLogger(__name__)

TITLE_TEMPLATE = "Stock Market Analysis - {}"


def article_title(record_date: date) -> str:
    return TITLE_TEMPLATE.format(display_date(record_date))


def _two_places(value: Decimal, signed: bool = False) -> str:
    return format(value, "+.2f" if signed else ".2f")


class ArticleService:
    """Service for listing and registering articles."""

    async def list_articles(
        self,
        db: AsyncSession,
        skip: int = 0,
        limit: int = 20,
    ) -> tuple[list[Article], int]:
        """List articles newest first.

        Args:
            db: Database session
            skip: Number of rows to skip
            limit: Maximum number of rows to return

        Returns:
            The page of articles and the total row count
        """
        total = (await db.execute(select(func.count()).select_from(Article))).scalar() or 0
        query = (
            select(Article)
            .order_by(Article.published_on.desc(), Article.slug.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(query)
        return list(result.scalars().all()), total

    async def get_by_slug(self, db: AsyncSession, slug: str) -> Article | None:
        result = await db.execute(select(Article).where(Article.slug == slug))
        return result.scalar_one_or_none()

    async def ensure_article(
        self,
        db: AsyncSession,
        record_date: date,
        title: str | None = None,
        summary: str | None = None,
    ) -> tuple[Article, bool]:
        """Get the row for ``record_date``, creating it when missing.

        Two first submissions for the same date may race to insert the row;
        the loser rolls back and returns the winner's row.

        Args:
            db: Database session
            record_date: Trading date of the article
            title: Title for a new row; defaults to the dated title
            summary: Summary for a new row; defaults to the standard blurb

        Returns:
            The article row and whether it was created
        """
        slug = record_date.isoformat()
        article = await self.get_by_slug(db, slug)
        if article is not None:
            return article, False

        article = Article(
            slug=slug,
            title=title or article_title(record_date),
            summary=summary or DEFAULT_SUMMARY,
            published_on=record_date,
        )
        db.add(article)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            existing = await self.get_by_slug(db, slug)
            if existing is None:
                raise
            logger.info("Article index row for %s was created concurrently", slug)
            return existing, False
        await db.refresh(article)
        logger.info("Created article index row for %s", slug)
        return article, True

    async def sync_from_store(self, db: AsyncSession, store: ArticleStore) -> int:
        """Create index rows for article files that have none.

        Returns:
            Number of rows created
        """
        existing = set((await db.execute(select(Article.slug))).scalars().all())
        created = 0
        for record_date in store.list_dates():
            if record_date.isoformat() in existing:
                continue
            db.add(Article(
                slug=record_date.isoformat(),
                title=article_title(record_date),
                summary=DEFAULT_SUMMARY,
                published_on=record_date,
            ))
            created += 1
        if created:
            await db.commit()
            logger.info("Indexed %d article file(s) from %s", created, store.articles_dir)
        return created

    @staticmethod
    def preview(article: Article, record: SessionRecord, base_url: str = "") -> ArticlePreview:
        """Listing card for an article.

        The headline figure is the most recent reading of the day: afternoon
        close, then morning close, then afternoon open, then morning open.
        """
        _, latest = record.latest_reading()
        if record.slot(SlotName.AFTERNOON_OPEN).has_reading:
            short_summary = "Daily full analysis available"
        else:
            short_summary = "Morning session analysis available."
        return ArticlePreview(
            slug=article.slug,
            title=article.title,
            display_date=display_date(record.date),
            index=_two_places(latest.index) if latest.has_reading else None,
            change=_two_places(latest.change, signed=True) if latest.has_reading else None,
            summary=article.summary or DEFAULT_SUMMARY,
            short_summary=short_summary,
            url=f"{base_url.rstrip('/')}/articles/{article.slug}",
        )


article_service = ArticleService()
