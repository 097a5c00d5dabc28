"""RepositorySnapshotLoader — current text/code files of a repository."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from repodigest.vcs.types import RepoFile, SnapshotFilter, parse_repo_url

if TYPE_CHECKING:
    from repodigest.vcs.protocol import VcsHost

logger = logging.getLogger(__name__)


class RepositorySnapshotLoader:
    """Fetches the files worth indexing from the VCS host.

    The host applies *filters* while listing; the loader re-checks every path
    and drops empty or oversized files so a permissive host cannot leak
    lockfiles or build output into the index.
    """

    def __init__(self, vcs: VcsHost, filters: SnapshotFilter | None = None) -> None:
        self._vcs = vcs
        self._filters = filters or SnapshotFilter()

    @property
    def filters(self) -> SnapshotFilter:
        return self._filters

    async def load(self, vcs_url: str) -> list[RepoFile]:
        """Return the filtered file snapshot for the repository at *vcs_url*."""
        repo = parse_repo_url(vcs_url)
        logger.info("Loading repository snapshot for %s", repo.full_name)
        files = await self._vcs.list_repository_files(repo, self._filters)

        kept: list[RepoFile] = []
        for f in files:
            if not self._filters.matches(f.path):
                continue
            if not f.content.strip():
                continue
            if len(f.content.encode()) > self._filters.max_file_size:
                logger.debug("Skipping oversized file %s", f.path)
                continue
            kept.append(f)

        if not kept:
            logger.warning("No code files found in %s", repo.full_name)
        else:
            logger.info("Loaded %d of %d files from %s", len(kept), len(files), repo.full_name)
        return kept
