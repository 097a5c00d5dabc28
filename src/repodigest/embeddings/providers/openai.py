"""OpenAIEmbedding — async embedding provider backed by an OpenAI-compatible API."""

from __future__ import annotations

import os
from typing import Any

from openai import AsyncOpenAI

from repodigest.config import DEFAULT_EMBEDDING_DIMENSIONS

# Native output size per model; requests ask for ``dimensions`` explicitly.
_MODEL_NATIVE_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
}

# Roughly 6K tokens at ~4 characters per token.
_MAX_INPUT_CHARS = 24_000


class OpenAIEmbedding:
    """Async embedding provider backed by the OpenAI Embeddings API.

    ``text-embedding-3-*`` models are asked for *dimensions*-sized vectors
    (384 by default) so their output matches the local MiniLM model and the
    stored vector width.  Large batches are chunked at *batch_size* texts per
    API call.  SDK retries are off by default; rate limits surface to the
    caller's backoff policy.
    """

    def __init__(
        self,
        *,
        model: str = "text-embedding-3-small",
        dimensions: int = DEFAULT_EMBEDDING_DIMENSIONS,
        api_key: str | None = None,
        base_url: str | None = None,
        max_retries: int = 0,
        timeout: float = 60.0,
        batch_size: int = 256,
    ) -> None:
        resolved_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not resolved_key:
            msg = (
                "No OpenAI API key provided. Pass api_key= or set the "
                "OPENAI_API_KEY environment variable."
            )
            raise ValueError(msg)

        native = _MODEL_NATIVE_DIMENSIONS.get(model)
        if native is not None and dimensions > native:
            msg = f"Model {model!r} produces at most {native} dimensions, got {dimensions}"
            raise ValueError(msg)

        self._model = model
        self._dimensions = dimensions
        self._batch_size = batch_size
        self._client = AsyncOpenAI(
            api_key=resolved_key,
            base_url=base_url or os.environ.get("OPENAI_BASE_URL") or None,
            max_retries=max_retries,
            timeout=timeout,
        )

    # ------------------------------------------------------------------
    # EmbeddingProvider protocol
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        """Embed a single text string via the API."""
        result = await self._call_api([text])
        return result[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed multiple texts, chunking at *batch_size* per API call."""
        if not texts:
            return []

        all_vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            chunk = texts[start : start + self._batch_size]
            vectors = await self._call_api(chunk)
            all_vectors.extend(vectors)
        return all_vectors

    @property
    def dimensions(self) -> int:
        """Return the requested embedding dimensionality."""
        return self._dimensions

    @property
    def model_name(self) -> str:
        """Return the model name."""
        return self._model

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying httpx client."""
        await self._client.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _call_api(self, texts: list[str]) -> list[list[float]]:
        """Call the embeddings endpoint and return vectors in input order."""
        kwargs: dict[str, Any] = {
            "input": [t[:_MAX_INPUT_CHARS] for t in texts],
            "model": self._model,
        }
        if self._model in _MODEL_NATIVE_DIMENSIONS:
            kwargs["dimensions"] = self._dimensions

        response = await self._client.embeddings.create(**kwargs)

        # Sort by index to ensure order matches input
        sorted_data = sorted(response.data, key=lambda e: e.index)
        return [list(item.embedding) for item in sorted_data]
