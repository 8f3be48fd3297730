"""Cosine similarity ranking of stored chunks against a query vector."""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple, TypeVar

import numpy as np

from docrag.errors import VectorDimensionError

T = TypeVar("T")


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    """Return ``dot(a, b) / (|a| * |b|)``, or 0.0 when either vector is zero."""

    if len(vec_a) != len(vec_b):
        raise VectorDimensionError(
            f"Cannot compare vectors of dimension {len(vec_a)} and {len(vec_b)}"
        )
    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)
    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    score = float(np.dot(a, b)) / (norm_a * norm_b)
    return max(-1.0, min(1.0, score))


def rank(
    query_vector: Sequence[float],
    candidates: Iterable[Tuple[Optional[Sequence[float]], T]],
    limit: int,
) -> List[Tuple[float, T]]:
    """Score candidates against *query_vector* and return the best *limit*.

    Candidates without a vector are skipped rather than scored. The sort is
    stable, so equal scores keep their input order.
    """

    if limit <= 0:
        return []
    scored = [
        (cosine_similarity(query_vector, vector), payload)
        for vector, payload in candidates
        if vector is not None
    ]
    scored.sort(key=lambda item: item[0], reverse=True)
    return scored[:limit]
