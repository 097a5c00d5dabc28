"""RepoDigest — async facade wiring storage, VCS, LLM, indexing and search."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import create_async_engine

from repodigest.config import PipelineConfig
from repodigest.credits import CreditAction
from repodigest.embeddings.generator import EmbeddingGenerator
from repodigest.events import EventBus
from repodigest.exceptions import ProjectNotFoundError
from repodigest.ingest.commit_poller import CommitPoller
from repodigest.ingest.file_indexer import FileIndexer
from repodigest.ingest.snapshot import RepositorySnapshotLoader
from repodigest.ingest.types import IndexResult, PollResult, SyncResult
from repodigest.llm.summaries import SummaryGenerator
from repodigest.llm.throttle import Throttle
from repodigest.search.qa import QuestionAnswerer
from repodigest.search.similarity import SimilaritySearch
from repodigest.storage.database import SQLStore
from repodigest.vcs.types import parse_repo_url

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine

    from repodigest.credits import CreditLedger
    from repodigest.embeddings.protocol import EmbeddingProvider
    from repodigest.llm.completion import CompletionService
    from repodigest.models import Commit, Project
    from repodigest.search.types import Answer, FileMatch
    from repodigest.storage.protocol import PipelineStore
    from repodigest.vcs.protocol import VcsHost
    from repodigest.vcs.types import SnapshotFilter

logger = logging.getLogger(__name__)


class RepoDigest:
    """Async facade over the commit-summary and file-embedding pipeline.

    Build from explicit components (tests, custom backends)::

        digest = RepoDigest(store, vcs, completion, provider)

    or from configuration, which creates the engine and clients::

        digest = await RepoDigest.from_config(PipelineConfig.from_env())
        project = await digest.create_project("demo", "https://github.com/o/r")
        await digest.sync_project(project.id)
        answer = await digest.ask(project.id, "Where is auth handled?")
        await digest.close()

    ``sync_project``, ``poll_commits`` and ``index_project`` are single-flight
    per project: a second request while one is running awaits the running
    task instead of starting another.  The running task is shielded, so a
    caller that stops awaiting does not cancel it for the others.
    """

    def __init__(
        self,
        store: PipelineStore,
        vcs: VcsHost,
        completion: CompletionService,
        embedding_provider: EmbeddingProvider,
        config: PipelineConfig | None = None,
        *,
        ledger: CreditLedger | None = None,
        events: EventBus | None = None,
        filters: SnapshotFilter | None = None,
        commit_throttle: Throttle | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config or PipelineConfig()
        self._store = store
        self._vcs = vcs
        self._completion = completion
        self._ledger = ledger
        self._event_bus = events or EventBus()
        self._closed = False
        self._owned: list[Any] = []

        self._summaries = SummaryGenerator(completion, self._config.summaries, sleep=sleep)
        self._embeddings = EmbeddingGenerator(
            embedding_provider, self._config.embeddings, sleep=sleep
        )
        self._indexer = FileIndexer(
            store,
            self._summaries,
            self._embeddings,
            self._config.files,
            loader=RepositorySnapshotLoader(vcs, filters),
            events=self._event_bus,
            sleep=sleep,
        )
        self._poller = CommitPoller(
            store,
            vcs,
            self._summaries,
            self._config.commits,
            throttle=commit_throttle
            or Throttle(self._config.commits.min_interval, name="commit-summaries", sleep=sleep),
            events=self._event_bus,
            sleep=sleep,
        )
        self._search = SimilaritySearch(store, self._embeddings, self._config.search)
        self._qa = QuestionAnswerer(
            store, self._search, completion, self._config.search, ledger=ledger
        )

        self._inflight: dict[tuple[str, str], asyncio.Task[Any]] = {}
        self._background: set[asyncio.Task[Any]] = set()

    @classmethod
    async def from_config(
        cls,
        config: PipelineConfig | None = None,
        *,
        embedding_provider: EmbeddingProvider | None = None,
        ledger: CreditLedger | None = None,
    ) -> RepoDigest:
        """Create the engine, tables and clients described by *config*.

        Without an explicit *embedding_provider* the local sentence-transformers
        model is used when installed, else OpenAI embeddings.
        """
        from repodigest.llm.completion import OpenAICompletion
        from repodigest.vcs.github import GitHubClient

        config = config or PipelineConfig.from_env()
        engine = create_async_engine(config.database_url)
        store = SQLStore(engine)
        await store.create_tables()

        vcs = GitHubClient(token=config.github_token)
        completion = OpenAICompletion(
            api_key=config.openai_api_key, base_url=config.openai_base_url
        )
        if embedding_provider is None:
            embedding_provider = _default_embedding_provider(config)

        digest = cls(store, vcs, completion, embedding_provider, config, ledger=ledger)
        digest._owned = [vcs, completion, embedding_provider, engine]
        return digest

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def create_project(
        self,
        name: str,
        vcs_url: str,
        *,
        user_id: str | None = None,
        sync: bool = True,
    ) -> Project:
        """Register a repository and schedule its initial sync in the background.

        ``PROJECT_CREATED`` is charged first when a ledger and *user_id* are
        given; :class:`~repodigest.exceptions.InsufficientCreditsError`
        propagates and nothing is created.
        """
        parse_repo_url(vcs_url)
        if self._ledger is not None and user_id is not None:
            await self._ledger.consume(
                user_id, CreditAction.PROJECT_CREATED, description=f"Created project: {name}"
            )
        project = await self._store.create_project(name, vcs_url)
        logger.info("Created project %s for %s", project.id, vcs_url)
        if sync:
            self._spawn(self.sync_project(project.id))
        return project

    async def get_project(self, project_id: str) -> Project:
        project = await self._store.get_project(project_id)
        if project is None:
            msg = f"Project {project_id} not found"
            raise ProjectNotFoundError(msg)
        return project

    async def archive_project(self, project_id: str) -> bool:
        """Soft-delete a project; later pipeline runs skip it."""
        archived = await self._store.archive_project(project_id)
        if archived:
            logger.info("Archived project %s", project_id)
        return archived

    # ------------------------------------------------------------------
    # Pipeline runs
    # ------------------------------------------------------------------

    async def sync_project(self, project_id: str) -> SyncResult:
        """Index the repository snapshot, then run one commit poll cycle."""
        return await self._single_flight("sync", project_id, lambda: self._sync(project_id))

    async def index_project(self, project_id: str) -> IndexResult:
        return await self._single_flight(
            "index", project_id, lambda: self._indexer.index_repository(project_id)
        )

    async def poll_commits(self, project_id: str) -> PollResult:
        return await self._single_flight(
            "poll", project_id, lambda: self._poller.poll(project_id)
        )

    async def reset_stuck_commits(self, project_id: str) -> int:
        return await self._poller.reset_stuck(project_id)

    async def get_commits(
        self, project_id: str, *, limit: int | None = None, refresh: bool = True
    ) -> list[Commit]:
        """Stored commits, newest first.

        With *refresh*, a background poll is scheduled so later reads pick up
        new commits and finished summaries.
        """
        project = await self.get_project(project_id)
        commits = await self._store.list_commits(project_id, limit=limit)
        if refresh and project.is_active:
            self._spawn(self.poll_commits(project_id))
        return commits

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(
        self,
        project_id: str,
        query: str,
        *,
        k: int | None = None,
        threshold: float | None = None,
    ) -> list[FileMatch]:
        return await self._search.search_text(project_id, query, k=k, threshold=threshold)

    async def search_vector(
        self,
        project_id: str,
        vector: list[float],
        *,
        k: int | None = None,
        threshold: float | None = None,
    ) -> list[FileMatch]:
        return await self._search.search_vector(project_id, vector, k=k, threshold=threshold)

    async def ask(self, project_id: str, question: str, *, user_id: str | None = None) -> Answer:
        await self.get_project(project_id)
        return await self._qa.answer(project_id, question, user_id=user_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def wait_idle(self) -> None:
        """Wait for every background and in-flight task to finish."""
        while self._background or self._inflight:
            pending = [*self._background, *self._inflight.values()]
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        tasks = [*self._background, *self._inflight.values()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        for resource in self._owned:
            if hasattr(resource, "dispose"):
                await resource.dispose()
            elif hasattr(resource, "close"):
                await resource.close()

    async def __aenter__(self) -> RepoDigest:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def store(self) -> PipelineStore:
        return self._store

    @property
    def events(self) -> EventBus:
        return self._event_bus

    @property
    def config(self) -> PipelineConfig:
        return self._config

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _sync(self, project_id: str) -> SyncResult:
        files = await self.index_project(project_id)
        commits = await self.poll_commits(project_id)
        logger.info(
            "Synced project %s: %d files indexed, %d commits processed",
            project_id,
            len(files.indexed),
            len(commits.processed),
        )
        return SyncResult(files=files, commits=commits)

    async def _single_flight(
        self,
        operation: str,
        project_id: str,
        factory: Callable[[], Coroutine[Any, Any, Any]],
    ) -> Any:
        key = (operation, project_id)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._inflight[key] = task
            task.add_done_callback(lambda t: self._forget(key, t))
        else:
            logger.debug("Joining in-flight %s for project %s", operation, project_id)
        return await asyncio.shield(task)

    def _forget(self, key: tuple[str, str], task: asyncio.Task[Any]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task failed", exc_info=task.exception())


def _default_embedding_provider(config: PipelineConfig) -> EmbeddingProvider:
    try:
        from repodigest.embeddings.providers.sentence_transformers import (
            SentenceTransformerEmbedding,
        )

        return SentenceTransformerEmbedding()
    except ImportError:
        logger.debug("sentence-transformers not installed; using OpenAI embeddings")

    from repodigest.embeddings.providers.openai import OpenAIEmbedding

    return OpenAIEmbedding(
        dimensions=config.embeddings.dimensions,
        api_key=config.openai_api_key,
        base_url=config.openai_base_url,
    )
