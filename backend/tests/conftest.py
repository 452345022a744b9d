"""Pytest fixtures for the market journal backend test suite.

Provides:
- Async in-memory SQLite test database with the article index schema
- Temporary articles directory and an ArticleStore over it
- Fake Gemini client that records prompts and returns canned text
- FastAPI async test client (httpx.AsyncClient + ASGITransport) with the
  service graph installed on ``app.state``
"""

from __future__ import annotations

import os
import random
from collections.abc import AsyncGenerator
from datetime import date
from pathlib import Path

# The app module builds its engine at import; keep it off the filesystem.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from articles.cache import DocumentCache  # noqa: E402
from articles.store import ArticleStore  # noqa: E402
from llm.gemini import GeminiError, GenerationResult  # noqa: E402
from services.notifier import TelegramNotifier  # noqa: E402

# ---------------------------------------------------------------------------
# Test database engine & session factory (in-memory SQLite)
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
)

TestSessionFactory = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

TRADING_DAY = date(2025, 9, 19)


# ---------------------------------------------------------------------------
# Fakes for external services
# ---------------------------------------------------------------------------


class FakeGeminiClient:
    """Stands in for ``GeminiClient``; returns queued replies in order.

    When the queue is empty it returns ``default_text``. Set ``fail`` to make
    every call raise ``GeminiError``.
    """

    def __init__(self, default_text: str = "AI commentary.", fail: bool = False):
        self.default_text = default_text
        self.fail = fail
        self.replies: list[str] = []
        self.prompts: list[str] = []

    @property
    def is_configured(self) -> bool:
        return True

    async def generate(self, prompt: str) -> GenerationResult:
        self.prompts.append(prompt)
        if self.fail:
            raise GeminiError("service unavailable", status_code=503)
        text = self.replies.pop(0) if self.replies else self.default_text
        return GenerationResult(text=text, model="fake")

    async def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an isolated async database session backed by in-memory SQLite.

    Creates all tables before the test and drops them afterwards so every test
    starts with a clean schema.
    """
    from database import Base  # noqa: E402  -- deferred to avoid circular imports

    import models  # noqa: F401

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionFactory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ---------------------------------------------------------------------------
# Article storage fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def articles_dir(tmp_path: Path) -> Path:
    path = tmp_path / "articles"
    path.mkdir()
    return path


@pytest.fixture()
def store(articles_dir: Path) -> ArticleStore:
    return ArticleStore(articles_dir, DocumentCache.disabled())


@pytest.fixture()
def fake_gemini() -> FakeGeminiClient:
    return FakeGeminiClient()


@pytest.fixture()
def app_settings(articles_dir: Path):
    from config import Settings

    return Settings(  # type: ignore[call-arg]
        _env_file=None,
        DATABASE_URL=TEST_DATABASE_URL,
        ARTICLES_DIR=str(articles_dir),
        CACHE_EXPIRY_MINUTES=0,
        GEMINI_API_KEY=None,
        TELEGRAM_BOT_TOKEN=None,
        TELEGRAM_CHANNEL=None,
    )


@pytest.fixture()
def services(app_settings, fake_gemini: FakeGeminiClient):
    from services.container import AppServices

    return AppServices.from_settings(
        app_settings,
        gemini=fake_gemini,  # type: ignore[arg-type]
        notifier=TelegramNotifier(None, None),
        rng=random.Random(7),
    )


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture()
async def client(db_session: AsyncSession, services) -> AsyncGenerator[AsyncClient, None]:
    """Provide an ``httpx.AsyncClient`` wired to the FastAPI app.

    The ``get_db`` dependency (from both ``database`` and ``api.deps``) is
    overridden so every request handler receives the test session, and the
    service graph is placed on ``app.state`` since ASGITransport does not run
    the lifespan.
    """
    from main import app  # noqa: E402
    from database import get_db as database_get_db  # noqa: E402
    from api.deps import get_db as deps_get_db  # noqa: E402

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[database_get_db] = _override_get_db
    app.dependency_overrides[deps_get_db] = _override_get_db
    app.state.services = services

    transport = ASGITransport(app=app)  # type: ignore[arg-type]
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    del app.state.services
