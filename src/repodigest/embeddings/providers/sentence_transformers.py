"""SentenceTransformerEmbedding — local 384-dim embedding provider (all-MiniLM-L6-v2)."""

from __future__ import annotations

import asyncio
from typing import Any

try:
    from sentence_transformers import SentenceTransformer

    _HAS_SENTENCE_TRANSFORMERS = True
except ImportError:  # pragma: no cover
    _HAS_SENTENCE_TRANSFORMERS = False


class SentenceTransformerEmbedding:
    """Local file-summary embeddings from ``sentence-transformers``, free and unmetered.

    all-MiniLM-L6-v2 produces 384-dimension vectors, the width every stored
    ``SourceFileEmbedding`` row and every query vector must share; the
    :class:`~repodigest.embeddings.generator.EmbeddingGenerator` rejects any
    other width.  Vectors are L2-normalized so rows stored from this provider
    and from :class:`~repodigest.embeddings.providers.openai.OpenAIEmbedding`
    rank on the same cosine scale.

    The model is loaded lazily on first use, once per instance.  Inference
    runs in a thread pool via :func:`asyncio.to_thread`.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", *, device: str | None = None) -> None:
        if not _HAS_SENTENCE_TRANSFORMERS:
            msg = (
                "sentence-transformers is required for SentenceTransformerEmbedding. "
                "Install it with: pip install repodigest[local]"
            )
            raise ImportError(msg)
        self._model_name = model_name
        self._device = device
        self._model: SentenceTransformer | None = None

    def _load_model(self) -> SentenceTransformer:
        if self._model is None:
            self._model = SentenceTransformer(self._model_name, device=self._device)
        return self._model

    def _encode(self, texts: list[str]) -> list[list[float]]:
        model = self._load_model()
        result: Any = model.encode(texts, normalize_embeddings=True)
        return [row.tolist() for row in result]

    async def embed(self, text: str) -> list[float]:
        """Embed a single text string in a thread pool."""
        vectors = await asyncio.to_thread(self._encode, [text])
        return vectors[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed multiple texts in a thread pool."""
        if not texts:
            return []
        return await asyncio.to_thread(self._encode, texts)

    @property
    def dimensions(self) -> int:
        """Return the embedding dimensionality reported by the model."""
        model = self._load_model()
        dim = model.get_sentence_embedding_dimension()
        if dim is None:
            msg = f"Model {self._model_name!r} did not report embedding dimensions"
            raise RuntimeError(msg)
        return dim

    @property
    def model_name(self) -> str:
        """Return the model name."""
        return self._model_name
