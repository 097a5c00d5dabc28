"""SummaryGenerator — short natural-language summaries of diffs and source files."""

from __future__ import annotations

import asyncio
import logging
import re
from enum import Enum
from typing import TYPE_CHECKING, Any

from repodigest.config import RetryPolicy, SummaryConfig
from repodigest.llm.retry import call_with_backoff
from repodigest.models.commits import NO_CHANGES_TEXT

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from repodigest.llm.completion import CompletionService
    from repodigest.llm.throttle import Throttle

logger = logging.getLogger(__name__)

SUMMARY_UNAVAILABLE = "Summary unavailable."

COMMIT_SYSTEM_PROMPT = """\
You are an expert programmer summarizing git diffs.

Reminders about the git diff format:
- Lines starting with "+" were added
- Lines starting with "-" were deleted
- Lines starting with neither are context

Rules:
- Output AT MOST 5 bullet points using "*"
- Focus only on WHAT changed (not why)
- Mention file paths in [brackets] when relevant
- No explanations, no introductions, no conclusions
- If changes are trivial, summarize in 1 bullet only
- If nothing meaningful changed, return an empty response"""

FILE_SYSTEM_PROMPT = """\
You are a senior engineer onboarding a new teammate.
Summarize the purpose of this source file in 2-3 technical sentences.
Name the main functions, classes, or components it defines.
No introductions and no markdown headings."""

_PREAMBLE_PATTERNS = [
    re.compile(r"^\s*here (?:are|is) (?:the |a )?(?:changes|summary|summaries)\b[^:\n]*:\s*", re.I),
    re.compile(r"^\s*(?:sure|certainly|of course)[,!.][^:\n]*:\s*", re.I),
    re.compile(r"^\s*(?:summary|changes)\s*:\s*", re.I),
]


class SummaryKind(str, Enum):
    """What is being summarized — selects budget, prompt, and error policy."""

    COMMIT_DIFF = "commit_diff"
    SOURCE_FILE = "source_file"


def truncate(text: str, budget: int) -> str:
    """Return at most *budget* characters of *text*."""
    return text if len(text) <= budget else text[:budget]


def strip_preamble(text: str) -> str:
    """Remove conversational lead-ins such as ``"Here are the changes:"``."""
    result = text.strip()
    changed = True
    while changed and result:
        changed = False
        for pattern in _PREAMBLE_PATTERNS:
            stripped = pattern.sub("", result, count=1)
            if stripped != result:
                result = stripped.strip()
                changed = True
    return result


class SummaryGenerator:
    """Produces summaries via a :class:`CompletionService`.

    Commit-diff summaries re-raise the underlying error after backoff so the
    commit poller can record a retry.  Source-file summaries swallow errors
    into :data:`SUMMARY_UNAVAILABLE`; one bad file must not abort a batch.
    """

    def __init__(
        self,
        completion: CompletionService,
        config: SummaryConfig | None = None,
        *,
        throttle: Throttle | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._completion = completion
        self._config = config or SummaryConfig()
        self._throttle = throttle
        self._sleep = sleep

    async def summarize(self, text: str, kind: SummaryKind, *, label: str = "") -> str:
        """Summarize *text* according to *kind*."""
        if kind is SummaryKind.COMMIT_DIFF:
            return await self.summarize_commit(text)
        return await self.summarize_file(label, text)

    async def summarize_commit(self, diff: str) -> str:
        """Summarize a commit diff.  Raises on completion failure."""
        user_text = "Summarize this git diff:\n\n" + truncate(diff, self._config.diff_char_budget)
        reply = await self._complete(
            COMMIT_SYSTEM_PROMPT,
            user_text,
            self._config.commit_max_tokens,
            retry=self._config.commit_retry,
            label="commit summary",
        )
        summary = strip_preamble(reply)
        return summary or NO_CHANGES_TEXT

    async def summarize_file(self, path: str, content: str) -> str:
        """Summarize a source file.  Never raises; failures yield a placeholder."""
        user_text = f"File: {path}\n\n" + truncate(content, self._config.file_char_budget)
        try:
            reply = await self._complete(
                FILE_SYSTEM_PROMPT,
                user_text,
                self._config.file_max_tokens,
                retry=self._config.file_retry,
                label=f"summary of {path}",
            )
        except Exception:
            logger.warning("Code summary failed for %s", path, exc_info=True)
            return SUMMARY_UNAVAILABLE
        return strip_preamble(reply) or SUMMARY_UNAVAILABLE

    async def _complete(
        self,
        system_prompt: str,
        user_text: str,
        max_tokens: int,
        *,
        retry: RetryPolicy,
        label: str,
    ) -> str:
        async def attempt() -> str:
            if self._throttle is not None:
                await self._throttle.wait()
            return await self._completion.complete(
                system_prompt, user_text, temperature=0.1, max_tokens=max_tokens
            )

        return await call_with_backoff(attempt, retry, sleep=self._sleep, label=label)
