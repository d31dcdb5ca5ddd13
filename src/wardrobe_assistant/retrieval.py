from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Sequence

import numpy as np

from wardrobe_assistant.embeddings import ItemEmbedding
from wardrobe_assistant.errors import DimensionMismatch
from wardrobe_assistant.wardrobe import WardrobeItem


@dataclass(frozen=True)
class RankedItem:
    item: WardrobeItem
    embedding: np.ndarray
    similarity: float


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine of the angle between ``a`` and ``b``; ``nan`` if either has zero magnitude."""
    va = np.asarray(a, dtype=np.float64).ravel()
    vb = np.asarray(b, dtype=np.float64).ravel()
    if va.shape[0] != vb.shape[0]:
        raise DimensionMismatch(va.shape[0], vb.shape[0])

    na = float(np.linalg.norm(va))
    nb = float(np.linalg.norm(vb))
    if na == 0.0 or nb == 0.0:
        return math.nan
    return float(np.dot(va, vb) / (na * nb))


def rank_by_similarity(
    items: Sequence[ItemEmbedding],
    query_embedding: Sequence[float] | np.ndarray,
) -> list[RankedItem]:
    """Score every item against the query and order by similarity, highest first.

    Equal scores keep their input order; ``nan`` scores go last.
    """
    query = np.asarray(query_embedding, dtype=np.float64).ravel()
    if not items:
        return []

    vectors = [np.asarray(entry.embedding, dtype=np.float64).ravel() for entry in items]
    for vector in vectors:
        if vector.shape[0] != query.shape[0]:
            raise DimensionMismatch(query.shape[0], vector.shape[0])

    matrix = np.stack(vectors, axis=0)
    norms = np.linalg.norm(matrix, axis=1)
    qn = np.linalg.norm(query)
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = (matrix @ query) / (norms * qn)
    scores = np.where((norms == 0) | (qn == 0), np.nan, scores)

    sort_keys = np.where(np.isnan(scores), np.inf, -scores)
    order = np.argsort(sort_keys, kind="stable")
    return [
        RankedItem(item=items[i].item, embedding=items[i].embedding, similarity=float(scores[i]))
        for i in order.tolist()
    ]
