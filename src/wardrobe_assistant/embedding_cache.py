from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
import threading
import time
from typing import Callable

import numpy as np

from wardrobe_assistant.wardrobe import WardrobeItem

EMBEDDING_CACHE_TTL_SECONDS = 60.0 * 60.0
CACHE_KEY_DESCRIPTION_CHARS = 50


@dataclass(frozen=True)
class CacheEntry:
    embedding: np.ndarray
    timestamp: float


def item_cache_key(item: WardrobeItem) -> str:
    """Cache key for an item: its id plus the first 50 characters of its description.

    Edits that leave the description prefix untouched (colors, fit, occasions)
    keep hitting the old entry until it expires.
    """
    return f"{item.id}-{item.description[:CACHE_KEY_DESCRIPTION_CHARS]}"


class EmbeddingCache:
    """In-memory embedding store with a time-to-live per entry.

    ``max_entries=None`` keeps the cache unbounded; otherwise the least
    recently used entries are evicted once the bound is exceeded.
    """

    def __init__(
        self,
        ttl_seconds: float = EMBEDDING_CACHE_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int | None = None,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive when set")
        self.ttl_seconds = float(ttl_seconds)
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str) -> np.ndarray | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() - entry.timestamp >= self.ttl_seconds:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return entry.embedding

    def put(self, key: str, embedding: np.ndarray) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(embedding=embedding, timestamp=self._clock())
            self._entries.move_to_end(key)
            if self.max_entries is not None:
                while len(self._entries) > self.max_entries:
                    self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
