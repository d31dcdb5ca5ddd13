from __future__ import annotations

from types import SimpleNamespace

import numpy as np
import pytest

from conftest import make_fake_client, make_item
from wardrobe_assistant.embedding_cache import EmbeddingCache
from wardrobe_assistant.embeddings import EmbeddingGenerator, item_embedding_text, query_embedding_text
from wardrobe_assistant.errors import EmbeddingGenerationFailed


def _generator(client, clock=None) -> EmbeddingGenerator:
    cache = EmbeddingCache(clock=clock) if clock else EmbeddingCache()
    return EmbeddingGenerator(client, "text-embedding-3-small", cache, max_workers=4)


def test_item_text_lists_fields_in_order():
    item = make_item(
        "t1",
        category="Top",
        subcategory="Polo",
        description="Pique polo with contrast collar",
        colors=("white", "navy"),
        occasions=("casual", "work/office"),
        fit="slim",
        brand="Lacoste",
    )
    assert item_embedding_text(item) == (
        "Category: Top\n"
        "Type: Polo\n"
        "Description: Pique polo with contrast collar\n"
        "Colors: white, navy\n"
        "Suitable for: casual, work/office\n"
        "Fit style: slim\n"
        "Brand: Lacoste"
    )


def test_item_text_omits_empty_fields():
    item = make_item("t1", occasions=(), fit=None, brand="  ")
    text = item_embedding_text(item)
    assert "Suitable for" not in text
    assert "Fit style" not in text
    assert "Brand" not in text
    assert text.endswith("Colors: navy")


def test_query_text():
    assert query_embedding_text("formal", "black tie wedding") == "formal outfit black tie wedding"
    assert query_embedding_text("casual") == "casual outfit"
    assert query_embedding_text("casual", "") == "casual outfit"


def test_cache_hit_reports_zero_tokens(fake_client):
    generator = _generator(fake_client)
    item = make_item("t1")

    first = generator.get_cached_embedding(item)
    second = generator.get_cached_embedding(item)

    assert first.from_cache is False
    assert first.tokens > 0
    assert second.from_cache is True
    assert second.tokens == 0
    assert np.array_equal(first.embedding, second.embedding)
    assert len(fake_client.embeddings.inputs) == 1


def test_expired_entry_is_regenerated(fake_client, clock):
    generator = _generator(fake_client, clock)
    item = make_item("t1")
    generator.get_cached_embedding(item)

    clock.advance(3600.5)
    again = generator.get_cached_embedding(item)

    assert again.from_cache is False
    assert again.tokens > 0
    assert len(fake_client.embeddings.inputs) == 2


def test_queries_are_never_cached(fake_client):
    generator = _generator(fake_client)
    generator.embed_query("formal", "office party")
    generator.embed_query("formal", "office party")
    assert fake_client.embeddings.inputs == ["formal outfit office party", "formal outfit office party"]
    assert len(generator.cache) == 0


def test_embed_all_items_sums_tokens_and_keeps_order(fake_client):
    generator = _generator(fake_client)
    items = [make_item(f"t{i}", description=f"Item number {i} " * (i + 1)) for i in range(6)]

    generator.get_cached_embedding(items[0])
    expected_tokens = sum(len(item_embedding_text(item).split()) for item in items[1:])

    embedded, total = generator.embed_all_items(items)

    assert [entry.item.id for entry in embedded] == [item.id for item in items]
    assert total == expected_tokens
    assert embedded[0].from_cache is True
    assert all(not entry.from_cache for entry in embedded[1:])


def test_embed_all_items_empty(fake_client):
    assert _generator(fake_client).embed_all_items([]) == ([], 0)


def test_failure_carries_item_context():
    def boom(text: str):
        if "t2" in text:
            raise ConnectionError("upstream reset")
        return [1.0, 0.0]

    generator = _generator(make_fake_client(boom))
    items = [make_item("t1"), make_item("t2"), make_item("t3")]

    with pytest.raises(EmbeddingGenerationFailed) as excinfo:
        generator.embed_all_items(items)
    assert excinfo.value.context == "item 't2'"
    assert "upstream reset" in str(excinfo.value)


def test_malformed_embedding_is_a_failure():
    generator = _generator(make_fake_client(lambda text: []))
    with pytest.raises(EmbeddingGenerationFailed):
        generator.embed_query("casual")


def test_missing_data_is_a_failure():
    client = SimpleNamespace(
        embeddings=SimpleNamespace(create=lambda **kwargs: SimpleNamespace(data=[], usage=None))
    )
    generator = _generator(client)
    with pytest.raises(EmbeddingGenerationFailed) as excinfo:
        generator.embed_item(make_item("t9"))
    assert excinfo.value.context == "item 't9'"


@pytest.mark.parametrize("vector", [[float("nan"), 1.0], [float("inf"), 0.0]])
def test_non_finite_embedding_is_a_failure(vector):
    generator = _generator(make_fake_client(lambda text: vector))
    with pytest.raises(EmbeddingGenerationFailed) as excinfo:
        generator.embed_query("casual")
    assert excinfo.value.context == "query 'casual outfit'"
    assert "non-finite" in excinfo.value.reason
