"""Result types for ingestion runs."""

from __future__ import annotations

from dataclasses import dataclass, field

from repodigest.models.commits import CommitStatus


@dataclass(frozen=True, slots=True)
class CommitOutcome:
    """State a commit was left in by one poll cycle."""

    commit_hash: str
    status: CommitStatus
    retry_count: int


@dataclass(frozen=True, slots=True)
class PollResult:
    """Summary of one commit poll cycle.

    Attributes:
        new_commits: Hashes first observed (and stored) in this cycle.
        processed: Outcome of each commit the cycle attempted, in VCS order.
        pending: Hashes still eligible for a later cycle.
    """

    new_commits: list[str] = field(default_factory=list)
    processed: list[CommitOutcome] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.new_commits or self.processed or self.pending)


@dataclass(frozen=True, slots=True)
class IndexResult:
    """Summary of one file indexing run.

    Attributes:
        indexed: Paths whose summary and vector were persisted.
        cached: Paths skipped because the same content was already summarized.
        dropped: Paths summarized but not persisted (no usable summary or vector).
        vector_failures: Paths whose text was saved but whose vector write failed.
    """

    indexed: list[str] = field(default_factory=list)
    cached: list[str] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    vector_failures: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.indexed) + len(self.cached) + len(self.dropped)


@dataclass(frozen=True, slots=True)
class SyncResult:
    """A full project sync: file indexing followed by one commit poll."""

    files: IndexResult = field(default_factory=IndexResult)
    commits: PollResult = field(default_factory=PollResult)
