"""Article index model.

One row per trading day. The markdown file is the source of truth for the
session data; the row carries what listings need.
"""

from datetime import date, datetime

from sqlalchemy import Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from database import Base

DEFAULT_SUMMARY = (
    "Thai stock market analysis including SET index movements, sector highlights, and key insights."
)


class Article(Base):
    """Index row for a daily market article."""

    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(primary_key=True)
    slug: Mapped[str] = mapped_column(String(32), unique=True)  # YYYY-MM-DD
    title: Mapped[str] = mapped_column(String(255))
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    published_on: Mapped[date | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=func.now(),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=func.now(),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (
        Index("ix_articles_published_on", "published_on"),
    )

    def __repr__(self) -> str:
        return f"<Article(id={self.id}, slug='{self.slug}')>"
