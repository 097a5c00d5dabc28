"""Custom exception hierarchy for repodigest."""

from __future__ import annotations


class RepoDigestError(Exception):
    """Base exception for all repodigest errors."""


class ConfigurationError(RepoDigestError):
    """Raised when a required setting or credential is missing."""


class ProjectNotFoundError(RepoDigestError):
    """Raised when a project id does not exist or has been archived."""


class StorageError(RepoDigestError):
    """Raised on persistence failures (DB connection, constraint violations, etc.)."""


class VcsError(RepoDigestError):
    """Raised when the version-control host rejects or fails a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(RepoDigestError):
    """Raised when an external service signals "too many requests".

    Transient: :func:`repodigest.llm.retry.call_with_backoff` retries it.
    """

    status_code = 429


class QuotaExhaustedError(RepoDigestError):
    """Raised when an external quota is used up for good (no point retrying)."""


class InsufficientCreditsError(RepoDigestError):
    """Raised by a credit ledger when the balance cannot cover an action."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(f"Insufficient credits. Required: {required}, Available: {available}")
        self.required = required
        self.available = available
