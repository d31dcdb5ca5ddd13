from __future__ import annotations

import math

import numpy as np
import pytest

from conftest import embedded, make_item
from wardrobe_assistant.embeddings import ItemEmbedding
from wardrobe_assistant.errors import DimensionMismatch
from wardrobe_assistant.retrieval import cosine_similarity, rank_by_similarity

QUERY = np.array([1.0, 0.0])


def test_cosine_similarity_reference_values():
    assert cosine_similarity([1, 0, 0], [0, 1, 0]) == pytest.approx(0.0, abs=1e-9)
    assert cosine_similarity([0.3, -1.2, 4.0], [0.3, -1.2, 4.0]) == pytest.approx(1.0, abs=1e-9)
    assert cosine_similarity([2, 1], [-2, -1]) == pytest.approx(-1.0, abs=1e-9)


def test_cosine_similarity_ignores_magnitude():
    assert cosine_similarity([1, 1], [10, 10]) == pytest.approx(1.0, abs=1e-9)


def test_cosine_similarity_dimension_mismatch():
    with pytest.raises(DimensionMismatch) as excinfo:
        cosine_similarity([1, 2, 3], [1, 2])
    assert (excinfo.value.left, excinfo.value.right) == (3, 2)


def test_zero_vector_gives_nan():
    assert math.isnan(cosine_similarity([0, 0], [1, 0]))
    assert math.isnan(cosine_similarity([1, 0], [0, 0]))


def test_rank_orders_by_similarity_descending():
    sims = [0.9, 0.1, 0.5, -0.2, 0.7]
    items = [embedded(make_item(f"i{n}"), s) for n, s in enumerate(sims)]

    ranked = rank_by_similarity(items, QUERY)

    assert [entry.item.id for entry in ranked] == ["i0", "i4", "i2", "i1", "i3"]
    assert [entry.similarity for entry in ranked] == pytest.approx([0.9, 0.7, 0.5, 0.1, -0.2])


def test_rank_is_stable_for_ties():
    items = [embedded(make_item(name), 0.5) for name in ("a", "b", "c")]
    items.insert(1, embedded(make_item("top"), 0.8))

    ranked = rank_by_similarity(items, QUERY)

    assert [entry.item.id for entry in ranked] == ["top", "a", "b", "c"]


def test_nan_scores_sort_last():
    zero = ItemEmbedding(item=make_item("zero"), embedding=np.zeros(2), tokens=0, from_cache=False)
    items = [zero, embedded(make_item("low"), -0.9), embedded(make_item("high"), 0.4)]

    ranked = rank_by_similarity(items, QUERY)

    assert [entry.item.id for entry in ranked] == ["high", "low", "zero"]
    assert math.isnan(ranked[-1].similarity)


def test_zero_query_ranks_everything_as_nan_in_input_order():
    items = [embedded(make_item(name), 0.5) for name in ("a", "b")]
    ranked = rank_by_similarity(items, np.zeros(2))
    assert [entry.item.id for entry in ranked] == ["a", "b"]
    assert all(math.isnan(entry.similarity) for entry in ranked)


def test_rank_dimension_mismatch():
    items = [embedded(make_item("a"), 0.5)]
    with pytest.raises(DimensionMismatch):
        rank_by_similarity(items, np.array([1.0, 0.0, 0.0]))


def test_rank_matches_pairwise_cosine():
    rng = np.random.default_rng(7)
    query = rng.normal(size=16)
    items = [
        ItemEmbedding(item=make_item(f"r{i}"), embedding=rng.normal(size=16), tokens=0, from_cache=False)
        for i in range(10)
    ]
    ranked = rank_by_similarity(items, query)
    for entry in ranked:
        assert entry.similarity == pytest.approx(cosine_similarity(query, entry.embedding), abs=1e-9)
    scores = [entry.similarity for entry in ranked]
    assert scores == sorted(scores, reverse=True)


def test_rank_empty():
    assert rank_by_similarity([], QUERY) == []


def test_rank_accepts_plain_list_embeddings():
    items = [
        ItemEmbedding(item=make_item("side"), embedding=[0.0, 1.0], tokens=0, from_cache=False),
        ItemEmbedding(item=make_item("along"), embedding=[3.0, 0.0], tokens=0, from_cache=False),
    ]

    ranked = rank_by_similarity(items, [1.0, 0.0])

    assert [entry.item.id for entry in ranked] == ["along", "side"]
    assert ranked[0].similarity == pytest.approx(1.0)
    with pytest.raises(DimensionMismatch):
        rank_by_similarity(items, [1.0, 0.0, 0.0])
