"""Embedding layer — provider protocol, providers, and the validating generator."""

from repodigest.embeddings.generator import EmbeddingGenerator
from repodigest.embeddings.protocol import EmbeddingProvider

__all__ = [
    "EmbeddingGenerator",
    "EmbeddingProvider",
]
