"""PipelineStore protocol — the persistence contract consumed by the pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repodigest.models import Commit, CommitStatus, Project, SourceFileEmbedding
    from repodigest.search.types import FileMatch
    from repodigest.vcs.types import CommitInfo


@runtime_checkable
class PipelineStore(Protocol):
    """Async CRUD + upsert on commits and source files, plus a vector query.

    Writes are keyed per entity — (project, hash) for commits and
    (project, path) for files — so runs for different projects never contend.
    """

    # Projects --------------------------------------------------------

    async def create_project(self, name: str, vcs_url: str) -> Project: ...

    async def get_project(self, project_id: str) -> Project | None: ...

    async def archive_project(self, project_id: str) -> bool: ...

    # Commits ---------------------------------------------------------

    async def get_commits_by_hash(
        self, project_id: str, hashes: Sequence[str]
    ) -> dict[str, Commit]: ...

    async def create_commit(self, project_id: str, info: CommitInfo) -> Commit:
        """Insert a ``generating`` row; return the existing row if already present."""
        ...

    async def update_commit(
        self,
        commit_id: str,
        *,
        status: CommitStatus,
        summary: str,
        retry_count: int,
    ) -> None: ...

    async def list_commits(
        self,
        project_id: str,
        *,
        statuses: Sequence[CommitStatus] | None = None,
        limit: int | None = None,
    ) -> list[Commit]:
        """Return commits newest first, optionally filtered by status."""
        ...

    # Source files ----------------------------------------------------

    async def find_cached_source_file(
        self, project_id: str, file_path: str, content: str
    ) -> SourceFileEmbedding | None:
        """Return the row for (project, path) if it holds *content* and a summary."""
        ...

    async def upsert_source_file(
        self, project_id: str, file_path: str, content: str, summary: str
    ) -> SourceFileEmbedding: ...

    async def set_file_embedding(
        self, file_id: str, vector: list[float], model_name: str = ""
    ) -> None: ...

    async def count_source_files(self, project_id: str, *, embedded_only: bool = True) -> int: ...

    async def search_source_files(
        self,
        project_id: str,
        vector: list[float],
        *,
        k: int = 10,
        threshold: float = 0.25,
    ) -> list[FileMatch]:
        """Top-*k* files by cosine similarity at or above *threshold*, best first."""
        ...

    async def keyword_search_source_files(
        self, project_id: str, keywords: Sequence[str], *, limit: int = 8
    ) -> list[SourceFileEmbedding]: ...
