from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
from typing import Sequence

import numpy as np

from wardrobe_assistant.balancing import CategoryBalancedItems, balance_by_category, flatten_balanced
from wardrobe_assistant.embeddings import EmbeddingGenerator, ItemEmbedding
from wardrobe_assistant.retrieval import RankedItem, rank_by_similarity
from wardrobe_assistant.wardrobe import WardrobeItem

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SemanticSearchResult:
    selected_items: list[RankedItem]
    balanced_categories: CategoryBalancedItems


@dataclass(frozen=True)
class RetrievalResult:
    selected_items: list[RankedItem]
    balanced_categories: CategoryBalancedItems
    total_items: int
    cached_items: int
    item_tokens: int
    query_tokens: int

    @property
    def embedding_tokens(self) -> int:
        return self.item_tokens + self.query_tokens


def semantic_search(
    items: Sequence[ItemEmbedding],
    query_embedding: Sequence[float] | np.ndarray,
) -> SemanticSearchResult:
    ranked = rank_by_similarity(items, query_embedding)
    balanced = balance_by_category(ranked)
    return SemanticSearchResult(selected_items=flatten_balanced(balanced), balanced_categories=balanced)


class RetrievalPipeline:
    """Embeds the query and the wardrobe side by side, then ranks and balances."""

    def __init__(self, generator: EmbeddingGenerator) -> None:
        self.generator = generator

    def retrieve(
        self,
        items: Sequence[WardrobeItem],
        occasion: str,
        note: str | None = None,
    ) -> RetrievalResult:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="retrieval") as pool:
            query_future = pool.submit(self.generator.embed_query, occasion, note)
            items_future = pool.submit(self.generator.embed_all_items, items)
            embedded, item_tokens = items_future.result()
            query = query_future.result()

        search = semantic_search(embedded, query.embedding)
        cached = sum(1 for entry in embedded if entry.from_cache)
        _LOGGER.info(
            "Retrieved %d of %d wardrobe items for %r (%d cached embeddings).",
            len(search.selected_items),
            len(items),
            occasion,
            cached,
        )
        return RetrievalResult(
            selected_items=search.selected_items,
            balanced_categories=search.balanced_categories,
            total_items=len(items),
            cached_items=cached,
            item_tokens=item_tokens,
            query_tokens=query.tokens,
        )
