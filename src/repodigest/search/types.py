"""Search-side value objects returned to the application layer."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class FileMatch:
    """One stored file ranked against a query vector.

    Attributes:
        file_path: Path of the file within the repository.
        summary: Generated summary that was embedded.
        source_code: Raw file content at index time.
        similarity: ``1 - cosine_distance`` (1.0 means identical direction).
    """

    file_path: str
    summary: str
    source_code: str
    similarity: float


@dataclass(frozen=True, slots=True)
class Answer:
    """A question-answering response with the files it drew on."""

    answer: str
    references: list[FileMatch] = field(default_factory=list)
