"""SQLModel database models for repodigest."""

from repodigest.models.commits import (
    FAILED_TEXT,
    GENERATING_TEXT,
    MAX_COMMIT_RETRIES,
    NO_CHANGES_TEXT,
    Commit,
    CommitStatus,
    retry_pending_text,
    status_from_text,
)
from repodigest.models.projects import Project
from repodigest.models.source_files import SourceFileEmbedding, content_hash

__all__ = [
    "FAILED_TEXT",
    "GENERATING_TEXT",
    "MAX_COMMIT_RETRIES",
    "NO_CHANGES_TEXT",
    "Commit",
    "CommitStatus",
    "Project",
    "SourceFileEmbedding",
    "content_hash",
    "retry_pending_text",
    "status_from_text",
]
