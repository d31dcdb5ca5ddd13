"""Per-category selection of ranked wardrobe items.

Buckets are filled from the already ranked sequence, so each bucket keeps the
global similarity order of the items it retains. An item joins every bucket
whose keyword occurs in its lowercased category, which means a category label
containing two keywords lands in both buckets and one matching none is dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Sequence

from wardrobe_assistant.retrieval import RankedItem


@dataclass(frozen=True)
class BucketSpec:
    name: str
    keyword: str
    cap: int


# Flatten order: full-body pieces are presented to the outfit prompt first.
BUCKETS: tuple[BucketSpec, ...] = (
    BucketSpec("full_body", "full body", 5),
    BucketSpec("tops", "top", 15),
    BucketSpec("bottoms", "bottom", 15),
    BucketSpec("outerwear", "outerwear", 8),
    BucketSpec("footwear", "footwear", 8),
    BucketSpec("accessories", "accessory", 5),
)


@dataclass(frozen=True)
class CategoryBalancedItems:
    full_body: list[RankedItem] = field(default_factory=list)
    tops: list[RankedItem] = field(default_factory=list)
    bottoms: list[RankedItem] = field(default_factory=list)
    outerwear: list[RankedItem] = field(default_factory=list)
    footwear: list[RankedItem] = field(default_factory=list)
    accessories: list[RankedItem] = field(default_factory=list)

    def buckets(self) -> Iterator[tuple[str, list[RankedItem]]]:
        for spec in BUCKETS:
            yield spec.name, getattr(self, spec.name)

    def counts(self) -> dict[str, int]:
        return {name: len(items) for name, items in self.buckets()}


def matches_bucket(category: str, keyword: str) -> bool:
    return keyword.lower() in (category or "").lower()


def balance_by_category(ranked_items: Sequence[RankedItem]) -> CategoryBalancedItems:
    selected: dict[str, list[RankedItem]] = {}
    for spec in BUCKETS:
        matching = [entry for entry in ranked_items if matches_bucket(entry.item.category, spec.keyword)]
        selected[spec.name] = matching[: spec.cap]
    return CategoryBalancedItems(**selected)


def flatten_balanced(balanced: CategoryBalancedItems) -> list[RankedItem]:
    flattened: list[RankedItem] = []
    for _, items in balanced.buckets():
        flattened.extend(items)
    return flattened
