"""Error types raised by the article core."""


class ArticleError(Exception):
    """Base class for article core errors."""


class ParseError(ArticleError):
    """Raised when a document has no recognizable session structure."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source
        detail = message
        if source:
            detail = f"{source}: {message}"
        super().__init__(detail)


class ArticleIOError(ArticleError):
    """Raised when an article file cannot be read or written."""

    def __init__(self, path: str, message: str | None = None):
        self.path = path
        detail = f"Article file '{path}' is not accessible"
        if message:
            detail = f"{detail}: {message}"
        super().__init__(detail)


class SlotValidationError(ArticleError):
    """Raised when a slot update is missing required fields."""

    def __init__(self, message: str, field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(message)
