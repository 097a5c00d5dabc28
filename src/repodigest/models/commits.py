"""Commit model and the commit processing state machine's vocabulary.

The authoritative state is the ``status`` enum column.  ``summary`` holds
human-readable text: the generated summary once complete, otherwise one of
the placeholder strings below.  :func:`status_from_text` decodes rows that
were written with text and retry count only.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

MAX_COMMIT_RETRIES: int = 3

GENERATING_TEXT = "Generating summary..."
FAILED_TEXT = "Summary generation failed (max retries)"
NO_CHANGES_TEXT = "No significant changes."


def retry_pending_text(retry_count: int) -> str:
    """Display text for a queued commit that has failed *retry_count* times."""
    return f"Retry pending ({retry_count}/{MAX_COMMIT_RETRIES} failed attempts)"


class CommitStatus(str, Enum):
    """Processing state of a commit summary."""

    GENERATING = "generating"
    RETRY_PENDING = "retry_pending"
    FAILED = "failed"
    NO_SIGNIFICANT_CHANGE = "no_significant_change"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset(
    {CommitStatus.FAILED, CommitStatus.NO_SIGNIFICANT_CHANGE, CommitStatus.COMPLETED}
)

# Substrings that mark a legacy text-only row as not yet complete.
_INCOMPLETE_MARKERS = ("generating", "pending", "retry", "failed")


def status_from_text(text: str | None, retry_count: int) -> CommitStatus:
    """Infer a :class:`CommitStatus` from display text plus retry counter.

    A commit is complete when its text is non-empty and carries none of the
    pending/generating/failed markers, or when its retry count has reached
    the limit (in which case it is permanently failed).
    """
    if retry_count >= MAX_COMMIT_RETRIES:
        return CommitStatus.FAILED
    lowered = (text or "").strip().lower()
    if not lowered or any(marker in lowered for marker in _INCOMPLETE_MARKERS):
        return CommitStatus.RETRY_PENDING if retry_count > 0 else CommitStatus.GENERATING
    if lowered == NO_CHANGES_TEXT.lower():
        return CommitStatus.NO_SIGNIFICANT_CHANGE
    return CommitStatus.COMPLETED


class Commit(SQLModel, table=True):
    """One VCS commit known to the pipeline, unique per (project, hash)."""

    __tablename__ = "repodigest_commits"
    __table_args__ = (UniqueConstraint("project_id", "commit_hash", name="uq_commit_project_hash"),)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    project_id: str = Field(index=True)
    commit_hash: str = Field(index=True)
    message: str = Field(default="")
    author_name: str = Field(default="")
    author_avatar: str = Field(default="")
    commit_date: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    status: CommitStatus = Field(default=CommitStatus.GENERATING)
    summary: str = Field(default=GENERATING_TEXT)
    retry_count: int = Field(default=0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )

    def needs_processing(self, max_retries: int = MAX_COMMIT_RETRIES) -> bool:
        """True while the commit is eligible for another summarization attempt."""
        return not self.status.is_terminal and self.retry_count < max_retries
