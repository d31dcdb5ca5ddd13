"""Shared fixtures: wardrobe items and a fake OpenAI client."""

from __future__ import annotations

import json
import math
import threading
from types import SimpleNamespace
from typing import Callable

import numpy as np
import pytest

from wardrobe_assistant.embeddings import ItemEmbedding
from wardrobe_assistant.wardrobe import WardrobeItem


def make_item(item_id: str, category: str = "Top", **overrides) -> WardrobeItem:
    base = dict(
        id=item_id,
        description=f"Cotton piece {item_id}",
        category=category,
        subcategory="Shirt",
        colors=("navy",),
        fit="regular",
        brand=None,
        occasions=("casual",),
    )
    base.update(overrides)
    return WardrobeItem(**base)


def unit_vector(similarity: float) -> np.ndarray:
    """2D vector whose cosine against [1, 0] equals ``similarity``."""
    return np.array([similarity, math.sqrt(max(0.0, 1.0 - similarity**2))], dtype=np.float64)


def embedded(item: WardrobeItem, similarity: float) -> ItemEmbedding:
    return ItemEmbedding(item=item, embedding=unit_vector(similarity), tokens=0, from_cache=False)


def default_vector(text: str) -> list[float]:
    return [1.0, float(len(text) % 7) + 1.0, float(text.count("\n")) + 0.5]


class FakeEmbeddings:
    def __init__(self, vector_for: Callable[[str], list[float]] = default_vector) -> None:
        self.vector_for = vector_for
        self.inputs: list[str] = []
        self._lock = threading.Lock()

    def create(self, model: str, input: str):
        with self._lock:
            self.inputs.append(input)
        vector = self.vector_for(input)
        return SimpleNamespace(
            data=[SimpleNamespace(embedding=vector)],
            usage=SimpleNamespace(total_tokens=len(input.split())),
        )


class FakeCompletions:
    def __init__(self, content: str) -> None:
        self.content = content
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=self.content))],
            usage=SimpleNamespace(prompt_tokens=120, completion_tokens=40),
        )


def make_fake_client(
    vector_for: Callable[[str], list[float]] = default_vector,
    chat_content: str | None = None,
):
    if chat_content is None:
        chat_content = json.dumps(
            {
                "combinations": [
                    {
                        "id": 1,
                        "items": [
                            {"id": "t1", "category": "Top", "subcategory": "Shirt", "color": "navy", "reason": "base"}
                        ],
                        "reasoning": "- Color harmony: navy works",
                        "style_notes": "Keep it simple.",
                        "confidence": "high",
                        "background_colors": [{"hex": "#F5F5DC", "name": "Beige"}],
                    }
                ]
            }
        )
    return SimpleNamespace(
        embeddings=FakeEmbeddings(vector_for),
        chat=SimpleNamespace(completions=FakeCompletions(chat_content)),
    )


@pytest.fixture
def fake_client():
    return make_fake_client()


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
