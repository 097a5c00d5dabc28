"""Embedding providers — protocol and implementations."""

from repodigest.embeddings.protocol import EmbeddingProvider
from repodigest.embeddings.providers.openai import OpenAIEmbedding

__all__ = [
    "EmbeddingProvider",
    "OpenAIEmbedding",
]

# Optional providers — import-guarded, available only when deps are installed.
try:
    from repodigest.embeddings.providers.sentence_transformers import (
        SentenceTransformerEmbedding,
    )

    __all__.append("SentenceTransformerEmbedding")
except ImportError:  # pragma: no cover
    pass
