"""Tests for application configuration and custom exception classes.

Config and exception tests are synchronous.
Exception handler tests are async since the handlers are async functions.
"""

from __future__ import annotations

from unittest.mock import MagicMock

from config import Settings, get_settings, mask_secret
from api.exceptions import (
    NotFoundError,
    ValidationError,
    article_io_error_handler,
    not_found_handler,
    validation_error_handler,
)
from articles.errors import ArticleIOError, SlotValidationError


# ---------------------------------------------------------------------------
# Settings defaults
# ---------------------------------------------------------------------------


class TestSettingsDefaults:
    """Verify Settings loads correct default values."""

    def test_database_url_default(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        settings = Settings(
            _env_file=None,  # type: ignore[call-arg]
        )
        assert settings.DATABASE_URL == "sqlite+aiosqlite:///./data/admin.db"

    def test_debug_default_false(self):
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.DEBUG is False

    def test_server_defaults(self):
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.API_PREFIX == "/api"
        assert settings.PORT == 7777

    def test_cache_disabled_by_default(self):
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.CACHE_EXPIRY_MINUTES == 0
        assert settings.cache_ttl_seconds == 0

    def test_external_services_unconfigured(self):
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.GEMINI_API_KEY is None
        assert settings.TELEGRAM_BOT_TOKEN is None
        assert settings.TELEGRAM_CHANNEL is None


# ---------------------------------------------------------------------------
# Settings with environment variable overrides
# ---------------------------------------------------------------------------


class TestSettingsOverrides:
    """Verify Settings picks up environment variable overrides."""

    def test_override_articles_dir(self, monkeypatch):
        monkeypatch.setenv("ARTICLES_DIR", "/srv/articles")
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.ARTICLES_DIR == "/srv/articles"

    def test_override_cache_expiry(self, monkeypatch):
        monkeypatch.setenv("CACHE_EXPIRY_MINUTES", "1.5")
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.cache_ttl_seconds == 90

    def test_override_retry_delays(self, monkeypatch):
        monkeypatch.setenv("GEMINI_RETRY_DELAYS", "[1, 2]")
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.GEMINI_RETRY_DELAYS == [1.0, 2.0]

    def test_case_insensitive_env_vars(self, monkeypatch):
        """Settings model_config has case_sensitive=False."""
        monkeypatch.setenv("debug", "true")
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.DEBUG is True


class TestRetrySchedule:

    def test_default_schedule(self):
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        assert settings.retry_schedule() == [15.0, 25.0]

    def test_last_delay_repeats(self):
        settings = Settings(_env_file=None, GEMINI_MAX_RETRIES=4)  # type: ignore[call-arg]
        assert settings.retry_schedule() == [15.0, 25.0, 25.0, 25.0]

    def test_no_retries(self):
        settings = Settings(_env_file=None, GEMINI_MAX_RETRIES=0)  # type: ignore[call-arg]
        assert settings.retry_schedule() == []


class TestSecretMasking:

    def test_mask_secret(self):
        assert mask_secret(None) == "not set"
        assert mask_secret("abc") == "****"
        assert mask_secret("AIzaSyExample1234") == "****1234"

    def test_summary_masks_secrets(self):
        settings = Settings(  # type: ignore[call-arg]
            _env_file=None,
            GEMINI_API_KEY="AIzaSyExample1234",
            TELEGRAM_BOT_TOKEN="123456:telegram-token",
        )
        summary = settings.summary()
        assert summary["GEMINI_API_KEY"] == "****1234"
        assert summary["TELEGRAM_BOT_TOKEN"] == "****oken"
        assert "AIzaSyExample1234" not in str(summary)


# ---------------------------------------------------------------------------
# get_settings() factory
# ---------------------------------------------------------------------------


class TestGetSettings:
    """Verify the get_settings() cached factory function."""

    def test_returns_settings_instance(self):
        get_settings.cache_clear()
        result = get_settings()
        assert isinstance(result, Settings)

    def test_caching_returns_same_object(self):
        get_settings.cache_clear()
        first = get_settings()
        second = get_settings()
        assert first is second


# ---------------------------------------------------------------------------
# Exception classes
# ---------------------------------------------------------------------------


class TestNotFoundError:

    def test_without_identifier(self):
        exc = NotFoundError("Article")
        assert exc.resource == "Article"
        assert exc.identifier is None
        assert str(exc) == "Article not found"

    def test_with_identifier(self):
        exc = NotFoundError("Article", "2025-09-19")
        assert exc.identifier == "2025-09-19"
        assert str(exc) == "Article '2025-09-19' not found"


class TestCustomValidationError:

    def test_message_only(self):
        exc = ValidationError("No opening session data provided")
        assert exc.message == "No opening session data provided"
        assert exc.field is None

    def test_with_field(self):
        exc = ValidationError("Missing", field="morning_open")
        assert exc.field == "morning_open"


class TestArticleIOError:

    def test_message(self):
        exc = ArticleIOError("articles/2025-09-19.md", "Permission denied")
        assert exc.path == "articles/2025-09-19.md"
        assert str(exc) == "Article file 'articles/2025-09-19.md' is not accessible: Permission denied"


# ---------------------------------------------------------------------------
# Exception handlers (async)
# ---------------------------------------------------------------------------


def _make_mock_request() -> MagicMock:
    """Create a minimal mock Request object for handler tests."""
    mock_req = MagicMock()
    mock_req.url.path = "/api/market-data"
    mock_req.method = "POST"
    return mock_req


class TestNotFoundHandler:

    async def test_returns_404(self):
        resp = await not_found_handler(_make_mock_request(), NotFoundError("Article", "2025-09-19"))
        assert resp.status_code == 404
        body = resp.body.decode()
        assert '"success":false' in body.lower().replace(" ", "")
        assert "2025-09-19" in body


class TestValidationErrorHandler:

    async def test_returns_422(self):
        resp = await validation_error_handler(_make_mock_request(), ValidationError("Invalid format"))
        assert resp.status_code == 422
        assert '"field"' not in resp.body.decode()

    async def test_slot_validation_error(self):
        exc = SlotValidationError("morning_open: index is required", field="index")
        resp = await validation_error_handler(_make_mock_request(), exc)
        body = resp.body.decode()
        assert resp.status_code == 422
        assert "index is required" in body
        assert '"field":"index"' in body.replace(" ", "")


class TestArticleIOErrorHandler:

    async def test_returns_500(self):
        exc = ArticleIOError("articles/2025-09-19.md", "disk full")
        resp = await article_io_error_handler(_make_mock_request(), exc)
        assert resp.status_code == 500
        assert "disk full" in resp.body.decode()


class TestExceptionHandlerRegistration:
    """Verify that custom exception handlers are registered on the app."""

    def test_handlers_registered(self):
        from main import app

        for exc_class in (NotFoundError, ValidationError, SlotValidationError, ArticleIOError):
            assert exc_class in app.exception_handlers
