"""GitHubClient — VcsHost implementation over the GitHub REST API."""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from repodigest.config import RetryPolicy
from repodigest.exceptions import ConfigurationError, RateLimitError, RepoDigestError, VcsError
from repodigest.llm.retry import call_with_backoff
from repodigest.vcs.types import CommitInfo, RepoFile, RepoRef, SnapshotFilter

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

_API_URL = "https://api.github.com"
_DIFF_MEDIA_TYPE = "application/vnd.github.diff"
_RAW_MEDIA_TYPE = "application/vnd.github.raw"


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class GitHubClient:
    """Async GitHub client implementing :class:`~repodigest.vcs.protocol.VcsHost`.

    Content fetches for snapshots run at most *max_concurrency* at a time.
    A rate-limited content fetch is retried per *retry*; a file that still
    fails is logged and left out of the snapshot.
    HTTP 429 and secondary-rate-limit 403 responses raise
    :class:`RateLimitError`; other non-2xx responses raise :class:`VcsError`.

    Pass *transport* to route requests through a custom ``httpx`` transport
    (e.g. ``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        *,
        token: str | None = None,
        base_url: str = _API_URL,
        timeout: float = 30.0,
        max_concurrency: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        resolved = token or os.environ.get("GITHUB_TOKEN")
        if not resolved:
            msg = "No GitHub token provided. Pass token= or set the GITHUB_TOKEN environment variable."
            raise ConfigurationError(msg)
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {resolved}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )
        self._max_concurrency = max_concurrency
        self._retry = retry or RetryPolicy(max_retries=2, initial_delay=2.0)
        self._sleep = sleep

    # ------------------------------------------------------------------
    # VcsHost protocol
    # ------------------------------------------------------------------

    async def list_recent_commits(self, repo: RepoRef, *, limit: int = 20) -> list[CommitInfo]:
        """Return up to *limit* commits from the default branch, newest first."""
        response = await self._get(
            f"/repos/{repo.full_name}/commits", params={"per_page": limit}
        )
        commits = [self._to_commit(item) for item in response.json()]
        commits.sort(
            key=lambda c: c.date.timestamp() if c.date is not None else float("-inf"),
            reverse=True,
        )
        return commits[:limit]

    async def get_commit_diff(self, repo: RepoRef, commit_hash: str) -> str:
        """Return the unified diff for *commit_hash*."""
        response = await self._get(
            f"/repos/{repo.full_name}/commits/{commit_hash}",
            headers={"Accept": _DIFF_MEDIA_TYPE},
        )
        return response.text

    async def list_repository_files(
        self,
        repo: RepoRef,
        filters: SnapshotFilter,
    ) -> list[RepoFile]:
        """Walk the default branch tree and fetch every matching blob."""
        info = (await self._get(f"/repos/{repo.full_name}")).json()
        branch = info.get("default_branch") or "main"
        tree = (
            await self._get(
                f"/repos/{repo.full_name}/git/trees/{quote(branch, safe='')}",
                params={"recursive": "1"},
            )
        ).json()
        if tree.get("truncated"):
            logger.warning("Tree listing for %s was truncated by GitHub", repo.full_name)

        paths = [
            entry["path"]
            for entry in tree.get("tree", [])
            if entry.get("type") == "blob"
            and entry.get("size", 0) <= filters.max_file_size
            and filters.matches(entry["path"])
        ]

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def fetch(path: str) -> RepoFile | None:
            async with semaphore:
                try:
                    response = await call_with_backoff(
                        lambda: self._get(
                            f"/repos/{repo.full_name}/contents/{quote(path)}",
                            params={"ref": branch},
                            headers={"Accept": _RAW_MEDIA_TYPE},
                        ),
                        self._retry,
                        sleep=self._sleep,
                        label=f"fetch {path}",
                    )
                except RepoDigestError:
                    logger.warning("Could not fetch %s from %s", path, repo.full_name, exc_info=True)
                    return None
            try:
                return RepoFile(path=path, content=response.content.decode("utf-8"))
            except UnicodeDecodeError:
                logger.debug("Skipping non-UTF-8 file %s", path)
                return None

        fetched = await asyncio.gather(*(fetch(p) for p in paths))
        return [f for f in fetched if f is not None]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying httpx client."""
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _get(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            response = await self._client.get(url, params=params, headers=headers)
        except httpx.RequestError as exc:
            msg = f"GitHub request failed for {url}: {exc}"
            raise VcsError(msg) from exc

        if response.status_code == 429 or (
            response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0"
        ):
            msg = f"GitHub rate limit hit for {url}"
            raise RateLimitError(msg)
        if response.is_error:
            msg = f"GitHub returned {response.status_code} for {url}"
            raise VcsError(msg, status_code=response.status_code)
        return response

    @staticmethod
    def _to_commit(item: dict[str, Any]) -> CommitInfo:
        commit = item.get("commit") or {}
        author = commit.get("author") or {}
        account = item.get("author") or {}
        return CommitInfo(
            hash=item["sha"],
            message=commit.get("message") or "",
            author_name=author.get("name") or "",
            author_avatar=account.get("avatar_url") or "",
            date=_parse_date(author.get("date")),
        )
