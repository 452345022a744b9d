"""File-system storage for daily article documents.

Every trading day lives in ``<articles_dir>/YYYY-MM-DD.md``. Reads go through
the :class:`~articles.cache.DocumentCache`; writes happen inside a per-date
critical section that re-reads the file, merges the change and replaces the
file atomically.
"""

import asyncio
import logging
import os
import re
import tempfile
import weakref
from dataclasses import dataclass
from datetime import date
from functools import partial
from pathlib import Path
from typing import Callable, Optional, Union

from .cache import DocumentCache
from .codec import merge_slot, merge_takeaways, parse_document, render_document
from .errors import ArticleIOError, ParseError, SlotValidationError
from .record import SessionRecord, SlotName, SlotUpdate, parse_article_date

logger = logging.getLogger(__name__)

ARTICLE_FILE_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})\.md$")


@dataclass(frozen=True)
class UpdateResult:
    """Outcome of a write: the record as now stored on disk."""
    record: SessionRecord
    created: bool
    path: Path


class ArticleStore:
    """Read, parse and update article documents in one directory."""

    def __init__(self, articles_dir: Union[str, Path], cache: DocumentCache):
        self.articles_dir = Path(articles_dir)
        self.cache = cache
        # A date's lock lives only while an update holds or awaits it.
        self._locks: "weakref.WeakValueDictionary[date, asyncio.Lock]" = weakref.WeakValueDictionary()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def path_for(self, record_date: date) -> Path:
        return self.articles_dir / f"{record_date.isoformat()}.md"

    def exists(self, record_date: date) -> bool:
        return self.path_for(record_date).is_file()

    def list_dates(self) -> list[date]:
        """Dates of all article files, newest first."""
        if not self.articles_dir.is_dir():
            return []
        dates = []
        for path in self.articles_dir.iterdir():
            match = ARTICLE_FILE_RE.match(path.name)
            if not match or not path.is_file():
                continue
            try:
                dates.append(parse_article_date(match.group(1)))
            except SlotValidationError:
                logger.warning("Skipping article with invalid date in name: %s", path.name)
        return sorted(dates, reverse=True)

    def read_text(self, record_date: date) -> Optional[str]:
        """Raw document text, or None when the file does not exist.

        Raises:
            ArticleIOError: If the file exists but cannot be read.
        """
        path = self.path_for(record_date)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise ArticleIOError(str(path), str(exc)) from exc

    def load(self, record_date: date) -> SessionRecord:
        """Parsed record for ``record_date``.

        A missing or unparseable file yields an empty record. Loads take no
        lock; a result read before a concurrent write is returned but not
        cached.
        """
        path = self.path_for(record_date)
        cached = self.cache.get(str(path))
        if cached is not None:
            return cached

        generation = self.cache.generation
        text = self.read_text(record_date)
        if text is None:
            return SessionRecord.empty(record_date)
        record = self._parse(text, record_date, path)
        self.cache.put_if_unchanged(str(path), record, generation)
        return record

    async def get(self, record_date: date) -> SessionRecord:
        """Async wrapper around :meth:`load`."""
        return await self._run(self.load, record_date)

    async def get_text(self, record_date: date) -> Optional[str]:
        return await self._run(self.read_text, record_date)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def update_slot(self, record_date: date, slot_name: SlotName, update: SlotUpdate) -> UpdateResult:
        """Merge ``update`` into one slot of the article for ``record_date``.

        The update is validated before any file is touched. Concurrent
        updates for the same date are serialized; each one re-reads the
        current document so no update is lost.

        Raises:
            SlotValidationError: If the update is incomplete.
            ArticleIOError: If the document cannot be read or written.
        """
        update.validate(slot_name)
        transform = partial(merge_slot, record_date=record_date, slot_name=slot_name, update=update)
        async with self._lock_for(record_date):
            result = await self._run(self._rewrite, record_date, transform)
        logger.info("Updated %s for %s (created=%s)", slot_name.value, record_date, result.created)
        return result

    async def update_takeaways(self, record_date: date, items: list[str]) -> UpdateResult:
        """Replace the key takeaways list of the article for ``record_date``."""
        transform = partial(merge_takeaways, record_date=record_date, items=items)
        async with self._lock_for(record_date):
            result = await self._run(self._rewrite, record_date, transform)
        logger.info("Updated key takeaways for %s (%d items)", record_date, len(items))
        return result

    async def ensure_document(self, record_date: date) -> bool:
        """Create a title-only document when none exists.

        Returns:
            True if a file was created.
        """
        async with self._lock_for(record_date):
            return await self._run(self._create_if_missing, record_date)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_for(self, record_date: date) -> asyncio.Lock:
        lock = self._locks.get(record_date)
        if lock is None:
            lock = self._locks[record_date] = asyncio.Lock()
        return lock

    @staticmethod
    async def _run(func: Callable, *args):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    def _parse(self, text: str, record_date: date, path: Path) -> SessionRecord:
        try:
            return parse_document(text, record_date, source=str(path))
        except ParseError as exc:
            logger.warning("Could not parse %s, treating as empty: %s", path, exc)
            return SessionRecord.empty(record_date)

    def _rewrite(self, record_date: date, transform: Callable[[str], str]) -> UpdateResult:
        path = self.path_for(record_date)
        current = self.read_text(record_date)
        new_text = transform(current or "")
        self._write_atomic(path, new_text)
        record = self._parse(new_text, record_date, path)
        self.cache.put(str(path), record)
        return UpdateResult(record=record, created=current is None, path=path)

    def _create_if_missing(self, record_date: date) -> bool:
        if self.exists(record_date):
            return False
        self._write_atomic(self.path_for(record_date), render_document(SessionRecord.empty(record_date)))
        self.cache.invalidate(str(self.path_for(record_date)))
        logger.info("Created article document for %s", record_date)
        return True

    def _write_atomic(self, path: Path, text: str) -> None:
        """Write via a temporary file in the same directory, then rename."""
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=path.parent, prefix=f".{path.stem}-", suffix=".tmp", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(text)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise ArticleIOError(str(path), str(exc)) from exc
