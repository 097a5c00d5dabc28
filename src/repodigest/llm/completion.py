"""Completion service protocol and an OpenAI-compatible implementation."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from openai import AsyncOpenAI

from repodigest.llm.retry import is_rate_limit_error

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

DEFAULT_MODELS: tuple[str, ...] = ("gpt-4o-mini", "gpt-4o-mini-2024-07-18")


@runtime_checkable
class CompletionService(Protocol):
    """Async protocol for single-turn text completion."""

    async def complete(
        self,
        system_prompt: str,
        user_text: str,
        *,
        temperature: float = 0.1,
        max_tokens: int = 200,
    ) -> str:
        """Return the model's reply to *user_text* under *system_prompt*."""
        ...


class OpenAICompletion:
    """Completion service backed by an OpenAI-compatible chat endpoint.

    Tries *models* in order: a rate-limited model falls through to the next
    one, any other error propagates.  When every model is rate limited the
    last error is raised so callers can back off.  The SDK's own retries are
    disabled; backoff is the caller's job (see ``call_with_backoff``).
    """

    def __init__(
        self,
        *,
        models: Sequence[str] = DEFAULT_MODELS,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 60.0,
        default_headers: dict[str, str] | None = None,
    ) -> None:
        resolved_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not resolved_key:
            msg = (
                "No OpenAI API key provided. Pass api_key= or set the "
                "OPENAI_API_KEY environment variable."
            )
            raise ValueError(msg)
        if not models:
            msg = "At least one model is required"
            raise ValueError(msg)

        self._models = tuple(models)
        self._client = AsyncOpenAI(
            api_key=resolved_key,
            base_url=base_url or os.environ.get("OPENAI_BASE_URL") or None,
            max_retries=0,
            timeout=timeout,
            default_headers=default_headers,
        )

    async def complete(
        self,
        system_prompt: str,
        user_text: str,
        *,
        temperature: float = 0.1,
        max_tokens: int = 200,
    ) -> str:
        """Send one system + user message pair and return the stripped reply."""
        last_error: Exception | None = None
        for model in self._models:
            try:
                response = await self._client.chat.completions.create(
                    model=model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_text},
                    ],
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
            except Exception as exc:
                if not is_rate_limit_error(exc):
                    raise
                logger.warning("Model %s rate limited; trying next model", model)
                last_error = exc
                continue
            return _first_choice_text(response)

        assert last_error is not None
        raise last_error

    @property
    def models(self) -> tuple[str, ...]:
        return self._models

    async def close(self) -> None:
        """Close the underlying httpx client."""
        await self._client.close()


def _first_choice_text(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    content = choices[0].message.content
    return (content or "").strip()
