"""VcsHost protocol — the narrow read-only contract the pipeline needs from a VCS host."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from repodigest.vcs.types import CommitInfo, RepoFile, RepoRef, SnapshotFilter


@runtime_checkable
class VcsHost(Protocol):
    """Async protocol for a version-control host API."""

    async def list_recent_commits(self, repo: RepoRef, *, limit: int = 20) -> list[CommitInfo]:
        """Return up to *limit* most recent commits, newest first."""
        ...

    async def get_commit_diff(self, repo: RepoRef, commit_hash: str) -> str:
        """Return the unified diff introduced by *commit_hash* (may be empty)."""
        ...

    async def list_repository_files(
        self,
        repo: RepoRef,
        filters: SnapshotFilter,
    ) -> list[RepoFile]:
        """Return the text files at the default branch head that match *filters*."""
        ...
