"""SourceFileEmbedding model — latest indexed content of one file."""

from __future__ import annotations

import hashlib
import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, Column, DateTime, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode()).hexdigest()


class SourceFileEmbedding(SQLModel, table=True):
    """Summary and embedding vector for one file path within a project.

    The row is written in two steps: text first (``source_code``,
    ``summary``), then ``embedding`` keyed by ``id``.  A row may therefore
    exist without a vector; similarity search skips such rows.
    """

    __tablename__ = "repodigest_source_files"
    __table_args__ = (UniqueConstraint("project_id", "file_path", name="uq_source_project_path"),)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    project_id: str = Field(index=True)
    file_path: str = Field(index=True)
    source_code: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    content_hash: str = Field(default="", index=True)
    summary: str = Field(default="")
    embedding: list[float] | None = Field(
        default=None,
        sa_column=Column(JSON(none_as_null=True), nullable=True),
    )
    embedding_model: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
