"""Tests for cosine scoring and SimilaritySearch."""

from __future__ import annotations

import math

import pytest
from conftest import DIMS

from repodigest.config import SearchConfig
from repodigest.embeddings import EmbeddingGenerator
from repodigest.search import SimilaritySearch, cosine_similarity, rank_by_similarity

# =========================================================================
# Helpers
# =========================================================================


def _unit(i: int) -> list[float]:
    v = [0.0] * DIMS
    v[i] = 1.0
    return v


def _with_similarity(sim: float) -> list[float]:
    """A unit vector whose cosine similarity to ``_unit(0)`` is *sim*."""
    v = [0.0] * DIMS
    v[0] = sim
    v[1] = math.sqrt(1.0 - sim * sim)
    return v


async def _store_file(store, project_id, path, vector):
    row = await store.upsert_source_file(project_id, path, f"# {path}\n", f"Summary of {path}")
    await store.set_file_embedding(row.id, vector, "test")
    return row


# =========================================================================
# Scoring
# =========================================================================


class TestCosine:
    def test_identical(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)

    def test_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite(self):
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)

    def test_zero_vector(self):
        assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0


class TestRank:
    def test_threshold_inclusive_and_ordered(self):
        query = _unit(0)
        items = [
            ("low", _with_similarity(0.24)),
            ("high", _with_similarity(0.9)),
            ("edge", _with_similarity(0.25)),
        ]
        ranked = rank_by_similarity(query, items, k=10, threshold=0.25)
        assert [name for name, _ in ranked] == ["high", "edge"]
        assert ranked[0][1] == pytest.approx(0.9)

    def test_k_limits_results(self):
        items = [(str(i), _with_similarity(0.5 + i * 0.01)) for i in range(10)]
        ranked = rank_by_similarity(_unit(0), items, k=3, threshold=0.0)
        assert [name for name, _ in ranked] == ["9", "8", "7"]

    def test_mismatched_lengths_ignored(self):
        ranked = rank_by_similarity([1.0, 0.0], [("a", [1.0, 0.0, 0.0]), ("b", [1.0, 0.0])], k=5, threshold=0.0)
        assert [name for name, _ in ranked] == ["b"]

    def test_empty_candidates(self):
        assert rank_by_similarity([1.0], [], k=5, threshold=0.0) == []

    def test_identical_vector_clears_threshold_one(self):
        v = [0.3, 0.4, 0.5]
        ranked = rank_by_similarity(v, [("same", list(v))], k=1, threshold=1.0)
        assert [name for name, _ in ranked] == ["same"]


# =========================================================================
# SimilaritySearch
# =========================================================================


class TestSimilaritySearch:
    @pytest.mark.asyncio
    async def test_three_vectors_two_results(self, store, project, provider):
        await _store_file(store, project.id, "a.py", _with_similarity(0.9))
        await _store_file(store, project.id, "b.py", _with_similarity(0.3))
        await _store_file(store, project.id, "c.py", _with_similarity(0.1))
        query = "What does file a.py do?"
        provider.overrides[query] = _unit(0)
        search = SimilaritySearch(store, EmbeddingGenerator(provider), SearchConfig(threshold=0.25))

        matches = await search.search_text(project.id, query)

        assert [m.file_path for m in matches] == ["a.py", "b.py"]
        assert [m.similarity for m in matches] == pytest.approx([0.9, 0.3])
        assert matches[0].summary == "Summary of a.py"
        assert matches[0].source_code == "# a.py\n"

    @pytest.mark.asyncio
    async def test_below_threshold_excluded(self, store, project, provider):
        await _store_file(store, project.id, "a.py", _with_similarity(0.24))
        search = SimilaritySearch(store, EmbeddingGenerator(provider))
        assert await search.search_vector(project.id, _unit(0), threshold=0.25) == []

    @pytest.mark.asyncio
    async def test_identical_vector_scores_one(self, store, project, provider):
        await _store_file(store, project.id, "a.py", _unit(5))
        search = SimilaritySearch(store, EmbeddingGenerator(provider))
        matches = await search.search_vector(project.id, _unit(5), threshold=1.0)
        assert len(matches) == 1
        assert matches[0].similarity == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_scoped_to_project(self, store, project, provider):
        other = await store.create_project("other", "https://github.com/acme/other")
        await _store_file(store, other.id, "a.py", _unit(0))
        search = SimilaritySearch(store, EmbeddingGenerator(provider))
        assert await search.search_vector(project.id, _unit(0)) == []

    @pytest.mark.asyncio
    async def test_unembeddable_query_returns_nothing(self, store, project, provider):
        await _store_file(store, project.id, "a.py", _unit(0))
        search = SimilaritySearch(store, EmbeddingGenerator(provider))
        assert await search.search_text(project.id, "hi") == []

    @pytest.mark.asyncio
    async def test_rows_without_vectors_ignored(self, store, project, provider):
        await store.upsert_source_file(project.id, "novec.py", "x = 1\n", "Summary of novec")
        search = SimilaritySearch(store, EmbeddingGenerator(provider))
        assert await search.search_vector(project.id, _unit(0), threshold=-1.0) == []
