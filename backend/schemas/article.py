from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field

from schemas.market_data import SessionRecordResponse


class ArticleCreate(BaseModel):
    slug: str = Field(..., description="Trading date, YYYY-MM-DD")
    title: str | None = None
    summary: str | None = None


class ArticleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    slug: str
    title: str
    summary: str | None
    published_on: date | None
    created_at: datetime
    updated_at: datetime | None = None


class ArticlePreview(BaseModel):
    slug: str
    title: str
    display_date: str
    index: str | None = None
    change: str | None = None
    summary: str
    short_summary: str
    url: str


class ArticleListResponse(BaseModel):
    articles: list[ArticlePreview]
    total: int


class ArticleDetailResponse(BaseModel):
    article: ArticleResponse
    record: SessionRecordResponse
    markdown: str | None = None
