"""repodigest: commit summaries and semantic code search for Git repositories.

Polls a repository host for new commits, summarizes their diffs with an LLM,
and indexes source files as (summary, embedding) pairs for similarity search
and question answering.
"""

__version__ = "0.1.0"

from repodigest._digest import RepoDigest
from repodigest.config import (
    CommitPollerConfig,
    EmbeddingConfig,
    FileIndexerConfig,
    PipelineConfig,
    RetryPolicy,
    SearchConfig,
    SummaryConfig,
)
from repodigest.credits import CREDIT_COSTS, CreditAction, CreditLedger
from repodigest.embeddings import EmbeddingGenerator, EmbeddingProvider
from repodigest.events import EventBus, PipelineEvent, PipelineEventType
from repodigest.exceptions import (
    ConfigurationError,
    InsufficientCreditsError,
    ProjectNotFoundError,
    QuotaExhaustedError,
    RateLimitError,
    RepoDigestError,
    StorageError,
    VcsError,
)
from repodigest.ingest import (
    CommitOutcome,
    CommitPoller,
    FileIndexer,
    IndexResult,
    PollResult,
    RepositorySnapshotLoader,
    SyncResult,
)
from repodigest.llm import (
    CompletionService,
    OpenAICompletion,
    SummaryGenerator,
    SummaryKind,
    Throttle,
    call_with_backoff,
)
from repodigest.models import Commit, CommitStatus, Project, SourceFileEmbedding
from repodigest.search import Answer, FileMatch, QuestionAnswerer, SimilaritySearch
from repodigest.storage import PipelineStore, SQLStore
from repodigest.vcs import CommitInfo, GitHubClient, RepoFile, RepoRef, SnapshotFilter, VcsHost

__all__ = [
    "CREDIT_COSTS",
    "Answer",
    "Commit",
    "CommitInfo",
    "CommitOutcome",
    "CommitPoller",
    "CommitPollerConfig",
    "CommitStatus",
    "CompletionService",
    "ConfigurationError",
    "CreditAction",
    "CreditLedger",
    "EmbeddingConfig",
    "EmbeddingGenerator",
    "EmbeddingProvider",
    "EventBus",
    "FileIndexer",
    "FileIndexerConfig",
    "FileMatch",
    "GitHubClient",
    "IndexResult",
    "InsufficientCreditsError",
    "OpenAICompletion",
    "PipelineConfig",
    "PipelineEvent",
    "PipelineEventType",
    "PipelineStore",
    "PollResult",
    "Project",
    "ProjectNotFoundError",
    "QuestionAnswerer",
    "QuotaExhaustedError",
    "RateLimitError",
    "RepoDigest",
    "RepoDigestError",
    "RepoFile",
    "RepoRef",
    "RepositorySnapshotLoader",
    "RetryPolicy",
    "SQLStore",
    "SearchConfig",
    "SimilaritySearch",
    "SnapshotFilter",
    "SourceFileEmbedding",
    "StorageError",
    "SummaryConfig",
    "SummaryGenerator",
    "SummaryKind",
    "SyncResult",
    "Throttle",
    "VcsError",
    "VcsHost",
    "__version__",
    "call_with_backoff",
]
