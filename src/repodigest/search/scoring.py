"""Cosine scoring and threshold ranking over in-memory vectors."""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Sequence

T = TypeVar("T")

# Scores this close below the threshold still clear it (float round-off).
SCORE_TOLERANCE = 1e-9


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return ``1 - cosine_distance`` between *a* and *b* (0.0 for zero vectors)."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / denom, -1.0, 1.0))


def rank_by_similarity(
    query: Sequence[float],
    candidates: Sequence[tuple[T, Sequence[float]]],
    *,
    k: int,
    threshold: float,
) -> list[tuple[T, float]]:
    """Score *candidates* against *query*; keep those clearing *threshold*.

    Candidates whose vector length differs from the query are ignored.
    Returns at most *k* ``(item, similarity)`` pairs, best first.
    """
    if k <= 0 or not query:
        return []
    usable = [(item, vec) for item, vec in candidates if vec is not None and len(vec) == len(query)]
    if not usable:
        return []

    q = np.asarray(query, dtype=np.float64)
    matrix = np.asarray([vec for _, vec in usable], dtype=np.float64)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(norms > 0, matrix @ q / norms, 0.0)
    scores = np.clip(scores, -1.0, 1.0)

    order = np.argsort(-scores, kind="stable")
    ranked: list[tuple[T, float]] = []
    for idx in order:
        score = float(scores[idx])
        if score + SCORE_TOLERANCE < threshold:
            break
        ranked.append((usable[idx][0], score))
        if len(ranked) >= k:
            break
    return ranked
