"""Rate-limit aware retry with exponential backoff."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, Any, TypeVar

from repodigest.config import RetryPolicy
from repodigest.exceptions import QuotaExhaustedError, RateLimitError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RATE_LIMIT_PHRASES = ("rate limit", "rate-limit", "too many requests")
_QUOTA_PHRASES = ("insufficient_quota", "exceeded your current quota", "quota exceeded")


def _status_of(error: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def is_quota_exhausted(error: BaseException) -> bool:
    """Return True if *error* says the external quota is used up for good."""
    if isinstance(error, QuotaExhaustedError):
        return True
    if getattr(error, "code", None) == "insufficient_quota":
        return True
    message = str(error).lower()
    return any(phrase in message for phrase in _QUOTA_PHRASES)


def is_rate_limit_error(error: BaseException) -> bool:
    """Return True if *error* is a transient "too many requests" failure.

    Quota exhaustion is reported with the same HTTP status but is permanent,
    so it is excluded here.
    """
    if is_quota_exhausted(error):
        return False
    if isinstance(error, RateLimitError):
        return True
    if _status_of(error) == 429:
        return True
    message = str(error).lower()
    return any(phrase in message for phrase in _RATE_LIMIT_PHRASES)


def backoff_delay(
    initial_delay: float,
    attempt: int,
    *,
    rng: Callable[[], float] = random.random,
) -> float:
    """Seconds to wait before retry *attempt* (0-based).

    ``initial_delay * 2**attempt`` plus jitter in ``[0, 1)`` seconds.
    """
    return initial_delay * (2**attempt) + rng()


async def call_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    rng: Callable[[], float] = random.random,
    label: str = "call",
) -> T:
    """Run *operation*, retrying rate-limit failures with exponential backoff.

    Any other failure propagates immediately.  After ``policy.max_retries``
    retries the last rate-limit error is raised.
    """
    last_error: BaseException | None = None
    for attempt in range(policy.max_retries + 1):
        try:
            return await operation()
        except Exception as exc:
            if not is_rate_limit_error(exc):
                raise
            last_error = exc
            if attempt == policy.max_retries:
                break
            delay = backoff_delay(policy.initial_delay, attempt, rng=rng)
            logger.info(
                "Rate limited on %s; retrying in %.1fs (%d/%d)",
                label,
                delay,
                attempt + 1,
                policy.max_retries,
            )
            await sleep(delay)

    assert last_error is not None
    raise last_error
