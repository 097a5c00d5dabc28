"""Project model — one tracked repository."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class Project(SQLModel, table=True):
    """A repository tracked by the pipeline.

    Archiving sets ``deleted_at``; ingestion treats archived projects as inactive.
    """

    __tablename__ = "repodigest_projects"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(default="")
    vcs_url: str = Field(default="")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    deleted_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None
