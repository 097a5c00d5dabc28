"""Persistence layer — the PipelineStore contract and its SQL implementation."""

from repodigest.storage.database import SQLStore
from repodigest.storage.protocol import PipelineStore

__all__ = [
    "PipelineStore",
    "SQLStore",
]
