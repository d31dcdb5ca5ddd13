from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
from typing import Any, Sequence

import numpy as np

from wardrobe_assistant.embedding_cache import EmbeddingCache, item_cache_key
from wardrobe_assistant.errors import EmbeddingGenerationFailed
from wardrobe_assistant.openai_utils import text_embedding
from wardrobe_assistant.wardrobe import WardrobeItem

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmbeddingResult:
    embedding: np.ndarray
    tokens: int
    from_cache: bool = False


@dataclass(frozen=True)
class ItemEmbedding:
    item: WardrobeItem
    embedding: np.ndarray
    tokens: int
    from_cache: bool


def item_embedding_text(item: WardrobeItem) -> str:
    """Canonical text block for an item, one attribute per line, empty fields omitted."""
    lines = [
        ("Category", item.category),
        ("Type", item.subcategory),
        ("Description", item.description),
        ("Colors", ", ".join(item.colors)),
        ("Suitable for", ", ".join(item.occasions)),
        ("Fit style", item.fit or ""),
        ("Brand", item.brand or ""),
    ]
    return "\n".join(f"{label}: {value.strip()}" for label, value in lines if value and value.strip()).strip()


def query_embedding_text(occasion: str, note: str | None = None) -> str:
    return f"{occasion} outfit {note or ''}".strip()


def _as_vector(values: Any) -> np.ndarray:
    vector = np.asarray(values, dtype=np.float32)
    if vector.ndim != 1 or vector.size == 0:
        raise ValueError(f"expected a non-empty 1D vector, got shape {vector.shape}")
    if not np.all(np.isfinite(vector)):
        raise ValueError("embedding contains non-finite values")
    return vector


class EmbeddingGenerator:
    def __init__(
        self,
        client,
        model: str,
        cache: EmbeddingCache,
        *,
        max_workers: int = 8,
    ) -> None:
        self.client = client
        self.model = model
        self.cache = cache
        self.max_workers = max(1, int(max_workers))

    def _embed_text(self, text: str, context: str) -> EmbeddingResult:
        try:
            values, tokens = text_embedding(self.client, text, self.model)
            vector = _as_vector(values)
        except Exception as exc:
            raise EmbeddingGenerationFailed(context, f"{type(exc).__name__}: {exc}") from exc
        return EmbeddingResult(embedding=vector, tokens=int(tokens or 0), from_cache=False)

    def embed_item(self, item: WardrobeItem) -> EmbeddingResult:
        return self._embed_text(item_embedding_text(item), f"item {item.id!r}")

    def embed_query(self, occasion: str, note: str | None = None) -> EmbeddingResult:
        text = query_embedding_text(occasion, note)
        return self._embed_text(text, f"query {text!r}")

    def get_cached_embedding(self, item: WardrobeItem) -> EmbeddingResult:
        key = item_cache_key(item)
        cached = self.cache.get(key)
        if cached is not None:
            return EmbeddingResult(embedding=cached, tokens=0, from_cache=True)

        result = self.embed_item(item)
        self.cache.put(key, result.embedding)
        return result

    def embed_all_items(self, items: Sequence[WardrobeItem]) -> tuple[list[ItemEmbedding], int]:
        """Embed every item concurrently; output order follows input order."""
        if not items:
            return [], 0

        workers = min(self.max_workers, len(items))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="embed-item") as pool:
            results = list(pool.map(self.get_cached_embedding, items))

        embedded = [
            ItemEmbedding(item=item, embedding=result.embedding, tokens=result.tokens, from_cache=result.from_cache)
            for item, result in zip(items, results)
        ]
        total_tokens = sum(result.tokens for result in results)
        _LOGGER.debug(
            "Embedded %d wardrobe items (%d from cache, %d tokens).",
            len(embedded),
            sum(1 for entry in embedded if entry.from_cache),
            total_tokens,
        )
        return embedded, total_tokens
