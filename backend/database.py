"""Async SQLAlchemy database configuration for the article index."""

import logging
from collections.abc import AsyncGenerator
from pathlib import Path

from sqlalchemy import inspect as sa_inspect, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()


def _ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


_ensure_sqlite_directory(settings.DATABASE_URL)

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with async_session_factory() as session:
        yield session


# Alias for FastAPI dependency injection
get_db = get_session


def _sync_migrate_missing_columns(connection) -> None:
    """Add model columns that an existing table does not have yet.

    ``create_all`` never alters existing tables, so databases created before
    a column was introduced (the article ``content`` column, for one) get an
    ``ALTER TABLE ... ADD COLUMN`` per missing column. Added columns are
    always nullable.
    """
    inspector = sa_inspect(connection)
    existing_tables = set(inspector.get_table_names())

    for table_name, table in Base.metadata.tables.items():
        if table_name not in existing_tables:
            continue
        present = {col["name"] for col in inspector.get_columns(table_name)}
        for column in table.columns:
            if column.name in present:
                continue
            col_type = column.type.compile(dialect=connection.dialect)
            ddl = f"ALTER TABLE {table_name} ADD COLUMN {column.name} {col_type}"
            logger.info("Migrating: %s", ddl)
            connection.execute(text(ddl))


async def init_db() -> None:
    """Initialize database tables and migrate missing columns."""
    async with engine.begin() as conn:
        await conn.run_sync(_sync_migrate_missing_columns)
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
