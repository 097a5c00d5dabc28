"""Completion-service layer — retries, throttling, and summary generation."""

from repodigest.llm.completion import CompletionService, OpenAICompletion
from repodigest.llm.retry import (
    backoff_delay,
    call_with_backoff,
    is_quota_exhausted,
    is_rate_limit_error,
)
from repodigest.llm.summaries import SUMMARY_UNAVAILABLE, SummaryGenerator, SummaryKind
from repodigest.llm.throttle import Throttle

__all__ = [
    "SUMMARY_UNAVAILABLE",
    "CompletionService",
    "OpenAICompletion",
    "SummaryGenerator",
    "SummaryKind",
    "Throttle",
    "backoff_delay",
    "call_with_backoff",
    "is_quota_exhausted",
    "is_rate_limit_error",
]
