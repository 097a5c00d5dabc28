"""FileIndexer — summarize and embed repository files, skipping unchanged ones."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from repodigest.config import FileIndexerConfig
from repodigest.events import PipelineEvent, PipelineEventType
from repodigest.ingest.types import IndexResult
from repodigest.llm.summaries import SUMMARY_UNAVAILABLE

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from repodigest.embeddings.generator import EmbeddingGenerator
    from repodigest.events import EventBus
    from repodigest.ingest.snapshot import RepositorySnapshotLoader
    from repodigest.llm.summaries import SummaryGenerator
    from repodigest.storage.protocol import PipelineStore
    from repodigest.vcs.types import RepoFile

logger = logging.getLogger(__name__)


class _Tally:
    """Mutable accumulator behind an :class:`IndexResult`."""

    def __init__(self) -> None:
        self.indexed: list[str] = []
        self.cached: list[str] = []
        self.dropped: list[str] = []
        self.vector_failures: list[str] = []

    def freeze(self) -> IndexResult:
        return IndexResult(
            indexed=self.indexed,
            cached=self.cached,
            dropped=self.dropped,
            vector_failures=self.vector_failures,
        )


class FileIndexer:
    """Produces persisted (summary, embedding) pairs for source files.

    Files are processed in fixed-size batches in input order with a pause
    between batches.  The dedup key is (project, path, exact content): a file
    whose content and non-empty summary are already stored is not summarized
    or embedded again.  Each file's outcome is isolated; nothing one file
    does can abort the rest of the run.
    """

    def __init__(
        self,
        store: PipelineStore,
        summaries: SummaryGenerator,
        embeddings: EmbeddingGenerator,
        config: FileIndexerConfig | None = None,
        *,
        loader: RepositorySnapshotLoader | None = None,
        events: EventBus | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._summaries = summaries
        self._embeddings = embeddings
        self._config = config or FileIndexerConfig()
        self._loader = loader
        self._events = events
        self._sleep = sleep

    async def index_repository(self, project_id: str) -> IndexResult:
        """Load the project's repository snapshot and index it.

        Never raises: an unexpected failure is logged and yields an empty result.
        """
        try:
            if self._loader is None:
                msg = "FileIndexer has no snapshot loader configured"
                raise RuntimeError(msg)
            project = await self._store.get_project(project_id)
            if project is None or not project.is_active:
                logger.info("Skipping indexing for inactive project %s", project_id)
                return IndexResult()
            files = await self._loader.load(project.vcs_url)
            return await self._index(project_id, files)
        except Exception:
            logger.exception("Indexing failed for project %s", project_id)
            return IndexResult()

    async def index_files(self, project_id: str, files: Sequence[RepoFile]) -> IndexResult:
        """Index *files* for *project_id*.  Never raises."""
        try:
            return await self._index(project_id, files)
        except Exception:
            logger.exception("Indexing failed for project %s", project_id)
            return IndexResult()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _index(self, project_id: str, files: Sequence[RepoFile]) -> IndexResult:
        tally = _Tally()
        size = max(1, self._config.batch_size)
        batch_count = (len(files) + size - 1) // size
        for number, start in enumerate(range(0, len(files), size), start=1):
            batch = files[start : start + size]
            logger.debug("Indexing batch %d/%d (%d files)", number, batch_count, len(batch))
            await self._index_batch(project_id, batch, tally)
            if number < batch_count and self._config.batch_delay > 0:
                await self._sleep(self._config.batch_delay)

        result = tally.freeze()
        logger.info(
            "Indexed project %s: %d indexed, %d cached, %d dropped, %d vector failures",
            project_id,
            len(result.indexed),
            len(result.cached),
            len(result.dropped),
            len(result.vector_failures),
        )
        return result

    async def _index_batch(
        self, project_id: str, batch: Sequence[RepoFile], tally: _Tally
    ) -> None:
        uncached: list[RepoFile] = []
        for f in batch:
            try:
                cached = await self._store.find_cached_source_file(project_id, f.path, f.content)
            except Exception:
                logger.warning("Cache lookup failed for %s", f.path, exc_info=True)
                await self._drop(project_id, f.path, "cache lookup failed", tally)
                continue
            if cached is not None:
                logger.debug("Unchanged, skipping %s", f.path)
                tally.cached.append(f.path)
            else:
                uncached.append(f)

        if not uncached:
            return

        summaries = await asyncio.gather(
            *(self._summaries.summarize_file(f.path, f.content) for f in uncached)
        )
        usable: list[tuple[RepoFile, str]] = []
        for f, summary in zip(uncached, summaries, strict=True):
            if not summary or summary == SUMMARY_UNAVAILABLE:
                await self._drop(project_id, f.path, "no summary", tally)
            else:
                usable.append((f, summary))

        if not usable:
            return

        vectors = await self._embeddings.embed_texts([s for _, s in usable])
        for (f, summary), vector in zip(usable, vectors, strict=True):
            if not self._embeddings.accepts(vector):
                await self._drop(
                    project_id, f.path, f"invalid embedding ({len(vector)} dims)", tally
                )
                continue
            await self._persist(project_id, f, summary, vector, tally)

    async def _persist(
        self,
        project_id: str,
        f: RepoFile,
        summary: str,
        vector: list[float],
        tally: _Tally,
    ) -> None:
        try:
            row = await self._store.upsert_source_file(project_id, f.path, f.content, summary)
        except Exception:
            logger.warning("Save failed for %s", f.path, exc_info=True)
            await self._drop(project_id, f.path, "save failed", tally)
            return

        try:
            await self._store.set_file_embedding(row.id, vector, self._embeddings.model_name)
        except Exception as exc:
            logger.warning("Vector write failed for %s", f.path, exc_info=True)
            tally.vector_failures.append(f.path)
            await self._emit(PipelineEventType.VECTOR_WRITE_FAILED, project_id, f.path, str(exc))
            return

        tally.indexed.append(f.path)
        await self._emit(PipelineEventType.FILE_INDEXED, project_id, f.path)

    async def _drop(self, project_id: str, path: str, reason: str, tally: _Tally) -> None:
        logger.warning("Dropping %s: %s", path, reason)
        tally.dropped.append(path)
        await self._emit(PipelineEventType.FILE_DROPPED, project_id, path, reason)

    async def _emit(
        self, event_type: PipelineEventType, project_id: str, key: str, detail: str = ""
    ) -> None:
        if self._events is not None:
            await self._events.emit(PipelineEvent(event_type, project_id, key, detail))
