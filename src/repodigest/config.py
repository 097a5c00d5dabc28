"""Pipeline configuration — frozen dataclasses with environment fallbacks."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_EMBEDDING_DIMENSIONS = 384
"""Dimensionality of ``all-MiniLM-L6-v2``, the default local embedding model."""


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Exponential-backoff parameters for one kind of external call.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1).
        initial_delay: Base delay in seconds; attempt *i* waits ``initial_delay * 2**i``
            plus up to one second of jitter.
    """

    max_retries: int = 2
    initial_delay: float = 5.0


@dataclass(frozen=True, slots=True)
class SummaryConfig:
    """Input budgets and retry policies for summary generation."""

    diff_char_budget: int = 3000
    file_char_budget: int = 2500
    commit_retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(2, 5.0))
    file_retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(2, 3.0))
    commit_max_tokens: int = 180
    file_max_tokens: int = 200


@dataclass(frozen=True, slots=True)
class EmbeddingConfig:
    """Expected vector shape and minimum input size for embeddings."""

    dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS
    min_text_length: int = 10
    retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(2, 2.0))


@dataclass(frozen=True, slots=True)
class CommitPollerConfig:
    """Scope and pacing limits for one commit poll cycle."""

    fetch_limit: int = 20
    consider_limit: int = 15
    max_per_cycle: int = 3
    min_interval: float = 6.0
    min_diff_length: int = 50
    max_retries: int = 3


@dataclass(frozen=True, slots=True)
class FileIndexerConfig:
    """Batch size and inter-batch pause for file indexing."""

    batch_size: int = 5
    batch_delay: float = 2.0


@dataclass(frozen=True, slots=True)
class SearchConfig:
    """Similarity search limits."""

    top_k: int = 10
    threshold: float = 0.25
    qa_top_k: int = 8
    qa_code_char_budget: int = 2800
    qa_commit_limit: int = 15


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Top-level configuration aggregating every component's settings."""

    summaries: SummaryConfig = field(default_factory=SummaryConfig)
    embeddings: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    commits: CommitPollerConfig = field(default_factory=CommitPollerConfig)
    files: FileIndexerConfig = field(default_factory=FileIndexerConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    database_url: str = "sqlite+aiosqlite:///repodigest.db"
    github_token: str | None = None
    openai_api_key: str | None = None
    openai_base_url: str | None = None

    @classmethod
    def from_env(cls, **overrides: object) -> PipelineConfig:
        """Build a config from ``REPODIGEST_*`` / provider environment variables.

        Explicit keyword *overrides* win over the environment.
        """
        values: dict[str, object] = {
            "database_url": os.environ.get(
                "REPODIGEST_DATABASE_URL", "sqlite+aiosqlite:///repodigest.db"
            ),
            "github_token": os.environ.get("GITHUB_TOKEN"),
            "openai_api_key": os.environ.get("OPENAI_API_KEY"),
            "openai_base_url": os.environ.get("OPENAI_BASE_URL"),
        }
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]
