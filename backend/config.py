"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Any, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

_SECRET_FIELDS = ("GEMINI_API_KEY", "TELEGRAM_BOT_TOKEN")


def mask_secret(value: Optional[str]) -> str:
    """Show only the last four characters of a secret."""
    if not value:
        return "not set"
    if len(value) <= 4:
        return "****"
    return f"****{value[-4:]}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database (article index)
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/admin.db"

    # Article documents
    ARTICLES_DIR: str = "articles"
    PROMPTS_DIR: Optional[str] = None  # overrides the packaged prompt templates
    PHRASE_TABLE_PATH: Optional[str] = None  # overrides the packaged phrase table
    CACHE_EXPIRY_MINUTES: float = 0  # 0 disables the document cache

    # Gemini
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"
    GEMINI_TIMEOUT_SECONDS: float = 60.0
    GEMINI_MAX_RETRIES: int = 2
    GEMINI_RETRY_DELAYS: list[float] = [15.0, 25.0]

    # Telegram
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    TELEGRAM_CHANNEL: Optional[str] = None
    SITE_URL: str = "https://thaistockanalysis.com"

    # Application
    DEBUG: bool = False
    API_PREFIX: str = "/api"
    HOST: str = "0.0.0.0"
    PORT: int = 7777

    @property
    def cache_ttl_seconds(self) -> float:
        return max(self.CACHE_EXPIRY_MINUTES, 0) * 60

    def retry_schedule(self) -> list[float]:
        """Delays before each Gemini retry, one per allowed retry.

        The last configured delay is repeated when ``GEMINI_MAX_RETRIES``
        exceeds the number of delays.
        """
        retries = max(self.GEMINI_MAX_RETRIES, 0)
        if retries == 0:
            return []
        delays = list(self.GEMINI_RETRY_DELAYS) or [0.0]
        return [delays[min(i, len(delays) - 1)] for i in range(retries)]

    def summary(self) -> dict[str, Any]:
        """Configuration values safe to log."""
        values = self.model_dump()
        for name in _SECRET_FIELDS:
            values[name] = mask_secret(values.get(name))
        return values


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
