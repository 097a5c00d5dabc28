"""EmbeddingGenerator — validated, order-preserving text-to-vector conversion."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any

from repodigest.config import EmbeddingConfig
from repodigest.llm.retry import call_with_backoff

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from repodigest.embeddings.protocol import EmbeddingProvider

logger = logging.getLogger(__name__)


class EmbeddingGenerator:
    """Wraps an :class:`EmbeddingProvider` with shape checks and backoff.

    Every input yields exactly one output, in order.  An output is either a
    vector of exactly ``config.dimensions`` floats or ``[]`` meaning "no
    vector produced" (text too short, provider failure, wrong dimension).
    Callers treat ``[]`` as a data-quality outcome, not an error.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        config: EmbeddingConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self._config = config or EmbeddingConfig()
        self._sleep = sleep

    @property
    def dimensions(self) -> int:
        return self._config.dimensions

    @property
    def model_name(self) -> str:
        return self._provider.model_name

    def accepts(self, vector: list[float] | None) -> bool:
        """Return True if *vector* has the expected dimensionality."""
        return bool(vector) and len(vector) == self._config.dimensions  # type: ignore[arg-type]

    async def embed(self, text: str) -> list[float]:
        """Embed one text; ``[]`` when no valid vector could be produced."""
        vectors = await self.embed_texts([text])
        return vectors[0]

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in one provider call; one result per input, same order."""
        results: list[list[float]] = [[] for _ in texts]
        positions = [
            i for i, t in enumerate(texts) if len(t.strip()) >= self._config.min_text_length
        ]
        if not positions:
            return results

        batch = [texts[i] for i in positions]
        try:
            vectors = await call_with_backoff(
                lambda: self._embed_batch(batch),
                self._config.retry,
                sleep=self._sleep,
                label="embedding",
            )
        except Exception:
            logger.warning(
                "Embedding generation failed for %d text(s)", len(batch), exc_info=True
            )
            return results

        if len(vectors) != len(batch):
            logger.warning(
                "Embedding provider returned %d vectors for %d texts; discarding",
                len(vectors),
                len(batch),
            )
            return results

        for i, vector in zip(positions, vectors, strict=True):
            values = [float(x) for x in vector] if vector is not None else []
            if self.accepts(values):
                results[i] = values
            else:
                logger.warning(
                    "Unexpected embedding size: %d (expected %d)",
                    len(values),
                    self._config.dimensions,
                )
        return results

    async def _embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts, handling both sync and async providers."""
        result = self._provider.embed_batch(texts)
        if inspect.isawaitable(result):
            return await result
        return result
