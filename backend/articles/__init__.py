"""Daily session articles: record model, markdown codec, caches and storage."""

from .cache import DocumentCache, TemplateCache
from .codec import (
    Dialect,
    merge_slot,
    merge_takeaways,
    parse_document,
    parse_index_line,
    render_document,
)
from .errors import ArticleError, ArticleIOError, ParseError, SlotValidationError
from .narrative import NarrativeGenerator, load_phrase_table
from .record import (
    Phase,
    Session,
    SessionRecord,
    SessionSlot,
    SlotName,
    SlotUpdate,
    display_date,
    parse_article_date,
)
from .store import ArticleStore, UpdateResult

__all__ = [
    "ArticleError",
    "ArticleIOError",
    "ArticleStore",
    "Dialect",
    "DocumentCache",
    "NarrativeGenerator",
    "ParseError",
    "Phase",
    "Session",
    "SessionRecord",
    "SessionSlot",
    "SlotName",
    "SlotUpdate",
    "SlotValidationError",
    "TemplateCache",
    "UpdateResult",
    "display_date",
    "load_phrase_table",
    "merge_slot",
    "merge_takeaways",
    "parse_article_date",
    "parse_document",
    "parse_index_line",
    "render_document",
]
