"""In-process caches for parsed articles and prompt templates."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .record import SessionRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    record: SessionRecord
    loaded_at: float


class DocumentCache:
    """Parsed articles keyed by file path, with a time-to-live.

    A TTL of zero is the disabled mode: every ``get`` misses and ``put``
    stores nothing. Expiry is checked lazily on ``get``.

    Every ``put``, ``invalidate`` and ``clear`` advances :attr:`generation`.
    Readers that parse a file outside the store's write lock take the
    generation before reading and store their result with
    :meth:`put_if_unchanged`, so a record read before a write can never
    replace the record that write stored.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must not be negative")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._generation = 0

    @classmethod
    def disabled(cls) -> "DocumentCache":
        return cls(0)

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def get(self, path: str) -> Optional[SessionRecord]:
        """Return the cached record for ``path`` or None on a miss."""
        if not self.enabled:
            return None
        with self._lock:
            entry = self._entries.get(path)
            if entry is None:
                return None
            if self._clock() - entry.loaded_at > self.ttl_seconds:
                del self._entries[path]
                logger.debug("Cache entry expired: %s", path)
                return None
            return entry.record

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    def put(self, path: str, record: SessionRecord) -> None:
        """Store a freshly written record, superseding in-flight reads."""
        with self._lock:
            self._generation += 1
            if self.enabled:
                self._entries[path] = CacheEntry(record=record, loaded_at=self._clock())

    def put_if_unchanged(self, path: str, record: SessionRecord, generation: int) -> bool:
        """Store ``record`` only if nothing was written since ``generation``.

        Returns:
            True if the record was stored.
        """
        if not self.enabled:
            return False
        with self._lock:
            if self._generation != generation:
                logger.debug("Discarding stale read of %s", path)
                return False
            self._entries[path] = CacheEntry(record=record, loaded_at=self._clock())
            return True

    def invalidate(self, path: str) -> None:
        with self._lock:
            self._generation += 1
            self._entries.pop(path, None)

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class TemplateCache:
    """Prompt template text keyed by name, kept until cleared."""

    def __init__(self):
        self._templates: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> Optional[str]:
        with self._lock:
            return self._templates.get(name)

    def get_or_load(self, name: str, loader: Callable[[], str]) -> str:
        """Return the cached template, calling ``loader`` on first use.

        Exceptions from ``loader`` propagate and nothing is cached.
        """
        with self._lock:
            cached = self._templates.get(name)
        if cached is not None:
            return cached
        text = loader()
        with self._lock:
            return self._templates.setdefault(name, text)

    def clear(self) -> None:
        with self._lock:
            self._templates.clear()
