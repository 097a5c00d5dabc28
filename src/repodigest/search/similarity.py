"""SimilaritySearch — rank stored file embeddings against a query."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from repodigest.config import SearchConfig

if TYPE_CHECKING:
    from repodigest.embeddings.generator import EmbeddingGenerator
    from repodigest.search.types import FileMatch
    from repodigest.storage.protocol import PipelineStore

logger = logging.getLogger(__name__)


class SimilaritySearch:
    """Top-k cosine search over a project's file embeddings.

    An empty result means nothing cleared the threshold; callers report
    "not found in codebase" rather than treating it as a failure.
    """

    def __init__(
        self,
        store: PipelineStore,
        embeddings: EmbeddingGenerator,
        config: SearchConfig | None = None,
    ) -> None:
        self._store = store
        self._embeddings = embeddings
        self._config = config or SearchConfig()

    async def search_vector(
        self,
        project_id: str,
        vector: list[float],
        *,
        k: int | None = None,
        threshold: float | None = None,
    ) -> list[FileMatch]:
        """Files whose similarity to *vector* clears *threshold*, best first."""
        if not vector:
            return []
        return await self._store.search_source_files(
            project_id,
            vector,
            k=self._config.top_k if k is None else k,
            threshold=self._config.threshold if threshold is None else threshold,
        )

    async def search_text(
        self,
        project_id: str,
        query: str,
        *,
        k: int | None = None,
        threshold: float | None = None,
    ) -> list[FileMatch]:
        """Embed *query* and search; ``[]`` if the query cannot be embedded."""
        vector = await self._embeddings.embed(query)
        if not vector:
            logger.warning("Could not embed query for project %s", project_id)
            return []
        return await self.search_vector(project_id, vector, k=k, threshold=threshold)
