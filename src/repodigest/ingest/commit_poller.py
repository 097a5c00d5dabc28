"""CommitPoller — discover new commits and drive each through the summary state machine.

Per commit, once per poll cycle::

    (unseen) ──create──▶ GENERATING ─┐
                                     ├─ diff < 50 chars ──▶ NO_SIGNIFICANT_CHANGE
    RETRY_PENDING(n) ────────────────┤─ summary ok ──────▶ COMPLETED
                                     ├─ quota exhausted ─▶ FAILED (retry = 3)
                                     └─ other failure ───▶ RETRY_PENDING(n+1) | FAILED at 3

FAILED, COMPLETED and NO_SIGNIFICANT_CHANGE are never touched again.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from repodigest.config import CommitPollerConfig
from repodigest.events import PipelineEvent, PipelineEventType
from repodigest.ingest.types import CommitOutcome, PollResult
from repodigest.llm.retry import is_quota_exhausted
from repodigest.llm.throttle import Throttle
from repodigest.models.commits import (
    FAILED_TEXT,
    NO_CHANGES_TEXT,
    CommitStatus,
    retry_pending_text,
)
from repodigest.vcs.types import parse_repo_url

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from repodigest.events import EventBus
    from repodigest.llm.summaries import SummaryGenerator
    from repodigest.models.commits import Commit
    from repodigest.storage.protocol import PipelineStore
    from repodigest.vcs.protocol import VcsHost
    from repodigest.vcs.types import RepoRef

logger = logging.getLogger(__name__)


class CommitPoller:
    """Polls the VCS host for recent commits and summarizes the pending ones.

    Only the most recent page of commits is ever considered; older history is
    not backfilled.  At most ``config.max_per_cycle`` commits are processed per
    cycle, spaced by *throttle* (one per completion quota) regardless of
    success.  Re-running a cycle with nothing pending makes no diff or
    summary calls.
    """

    def __init__(
        self,
        store: PipelineStore,
        vcs: VcsHost,
        summaries: SummaryGenerator,
        config: CommitPollerConfig | None = None,
        *,
        throttle: Throttle | None = None,
        events: EventBus | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._vcs = vcs
        self._summaries = summaries
        self._config = config or CommitPollerConfig()
        self._throttle = throttle or Throttle(
            self._config.min_interval, name="commit-summaries", sleep=sleep
        )
        self._events = events

    async def poll(self, project_id: str) -> PollResult:
        """Run one poll cycle for *project_id*.

        Never raises: an unexpected failure is logged and yields an empty result.
        """
        try:
            return await self._poll(project_id)
        except Exception:
            logger.exception("Commit polling failed for project %s", project_id)
            return PollResult()

    async def reset_stuck(self, project_id: str) -> int:
        """Re-queue commits stranded mid-generation; fail those out of retries.

        Returns the number of commits touched.
        """
        stuck = await self._store.list_commits(
            project_id,
            statuses=[CommitStatus.GENERATING, CommitStatus.RETRY_PENDING],
        )
        limit = self._config.max_retries
        for commit in stuck:
            if commit.retry_count >= limit:
                await self._store.update_commit(
                    commit.id, status=CommitStatus.FAILED, summary=FAILED_TEXT, retry_count=limit
                )
                logger.info("Marked %s as failed", commit.commit_hash[:7])
            else:
                await self._store.update_commit(
                    commit.id,
                    status=CommitStatus.RETRY_PENDING,
                    summary=retry_pending_text(0),
                    retry_count=0,
                )
                logger.info("Reset %s for retry", commit.commit_hash[:7])
        return len(stuck)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _poll(self, project_id: str) -> PollResult:
        project = await self._store.get_project(project_id)
        if project is None or not project.is_active:
            logger.info("Skipping commit poll for inactive project %s", project_id)
            return PollResult()

        repo = parse_repo_url(project.vcs_url)
        recent = await self._vcs.list_recent_commits(repo, limit=self._config.fetch_limit)
        considered = recent[: self._config.consider_limit]
        known = await self._store.get_commits_by_hash(project_id, [c.hash for c in considered])

        new_hashes: list[str] = []
        ordered: list[Commit] = []
        for info in considered:
            commit = known.get(info.hash)
            if commit is None:
                try:
                    commit = await self._store.create_commit(project_id, info)
                except Exception:
                    logger.warning(
                        "Could not record commit %s", info.hash[:7], exc_info=True
                    )
                    continue
                new_hashes.append(info.hash)
            ordered.append(commit)

        eligible = [c for c in ordered if self._is_eligible(c)]
        batch = eligible[: self._config.max_per_cycle]
        logger.info(
            "Project %s: %d recent, %d new, %d pending, processing %d",
            project_id,
            len(considered),
            len(new_hashes),
            len(eligible),
            len(batch),
        )

        outcomes: list[CommitOutcome] = []
        for commit in batch:
            await self._throttle.wait()
            outcomes.append(await self._process(project_id, repo, commit))

        pending = [c.commit_hash for c in eligible[len(batch) :]]
        pending.extend(o.commit_hash for o in outcomes if o.status is CommitStatus.RETRY_PENDING)
        return PollResult(new_commits=new_hashes, processed=outcomes, pending=pending)

    def _is_eligible(self, commit: Commit) -> bool:
        return commit.needs_processing(self._config.max_retries)

    async def _process(self, project_id: str, repo: RepoRef, commit: Commit) -> CommitOutcome:
        short = commit.commit_hash[:7]
        try:
            diff = await self._vcs.get_commit_diff(repo, commit.commit_hash)
        except Exception as exc:
            return await self._record_failure(project_id, commit, exc)

        if not diff or len(diff.strip()) < self._config.min_diff_length:
            logger.info("Commit %s has no significant diff", short)
            return await self._finish(
                project_id, commit, CommitStatus.NO_SIGNIFICANT_CHANGE, NO_CHANGES_TEXT
            )

        try:
            summary = await self._summaries.summarize_commit(diff)
        except Exception as exc:
            return await self._record_failure(project_id, commit, exc)

        status = (
            CommitStatus.NO_SIGNIFICANT_CHANGE
            if summary == NO_CHANGES_TEXT
            else CommitStatus.COMPLETED
        )
        logger.info("Summarized commit %s", short)
        return await self._finish(project_id, commit, status, summary)

    async def _finish(
        self, project_id: str, commit: Commit, status: CommitStatus, summary: str
    ) -> CommitOutcome:
        try:
            await self._store.update_commit(
                commit.id, status=status, summary=summary, retry_count=0
            )
        except Exception:
            logger.warning(
                "Could not save summary for commit %s", commit.commit_hash[:7], exc_info=True
            )
            return CommitOutcome(commit.commit_hash, commit.status, commit.retry_count)
        event = (
            PipelineEventType.COMMIT_COMPLETED
            if status is CommitStatus.COMPLETED
            else PipelineEventType.COMMIT_SKIPPED
        )
        await self._emit(event, project_id, commit.commit_hash, status.value)
        return CommitOutcome(commit.commit_hash, status, 0)

    async def _record_failure(
        self, project_id: str, commit: Commit, error: Exception
    ) -> CommitOutcome:
        limit = self._config.max_retries
        short = commit.commit_hash[:7]
        if is_quota_exhausted(error):
            retry = limit
        else:
            retry = min(commit.retry_count + 1, limit)

        if retry >= limit:
            status, text = CommitStatus.FAILED, FAILED_TEXT
            logger.warning("Commit %s failed permanently: %s", short, error)
            event = PipelineEventType.COMMIT_FAILED
        else:
            status, text = CommitStatus.RETRY_PENDING, retry_pending_text(retry)
            logger.warning("Commit %s failed (attempt %d/%d): %s", short, retry, limit, error)
            event = PipelineEventType.COMMIT_RETRY_SCHEDULED

        try:
            await self._store.update_commit(commit.id, status=status, summary=text, retry_count=retry)
        except Exception:
            logger.warning("Could not record failure for commit %s", short, exc_info=True)
        await self._emit(event, project_id, commit.commit_hash, str(error), retry_count=retry)
        return CommitOutcome(commit.commit_hash, status, retry)

    async def _emit(
        self,
        event_type: PipelineEventType,
        project_id: str,
        key: str,
        detail: str = "",
        **data: Any,
    ) -> None:
        if self._events is not None:
            await self._events.emit(PipelineEvent(event_type, project_id, key, detail, data))
