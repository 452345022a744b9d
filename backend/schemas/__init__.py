from schemas.article import (
    ArticleCreate,
    ArticleDetailResponse,
    ArticleListResponse,
    ArticlePreview,
    ArticleResponse,
)
from schemas.health import HealthResponse
from schemas.market_data import (
    MarketDataAnalysisRequest,
    MarketDataCloseRequest,
    MarketDataResponse,
    SessionData,
    SessionRecordResponse,
    SlotResponse,
    SlotUpdateRequest,
)

__all__ = [
    "ArticleCreate",
    "ArticleDetailResponse",
    "ArticleListResponse",
    "ArticlePreview",
    "ArticleResponse",
    "HealthResponse",
    "MarketDataAnalysisRequest",
    "MarketDataCloseRequest",
    "MarketDataResponse",
    "SessionData",
    "SessionRecordResponse",
    "SlotResponse",
    "SlotUpdateRequest",
]
