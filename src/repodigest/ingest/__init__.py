"""Ingestion pipeline — snapshot loading, file indexing, commit polling."""

from repodigest.ingest.commit_poller import CommitPoller
from repodigest.ingest.file_indexer import FileIndexer
from repodigest.ingest.snapshot import RepositorySnapshotLoader, SnapshotFilter
from repodigest.ingest.types import CommitOutcome, IndexResult, PollResult, SyncResult

__all__ = [
    "CommitOutcome",
    "CommitPoller",
    "FileIndexer",
    "IndexResult",
    "PollResult",
    "RepositorySnapshotLoader",
    "SnapshotFilter",
    "SyncResult",
]
