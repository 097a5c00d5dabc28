"""SQLStore — PipelineStore over SQLModel tables on an async SQLAlchemy engine."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from repodigest.exceptions import StorageError
from repodigest.models import (
    GENERATING_TEXT,
    Commit,
    CommitStatus,
    Project,
    SourceFileEmbedding,
    content_hash,
)
from repodigest.search.scoring import rank_by_similarity
from repodigest.search.types import FileMatch

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncEngine

    from repodigest.vcs.types import CommitInfo

logger = logging.getLogger(__name__)


class SQLStore:
    """Database-backed :class:`~repodigest.storage.protocol.PipelineStore`.

    Every operation opens its own session and commits before returning, so
    an abandoned pipeline run never leaves a half-open transaction behind.
    Works with SQLite (``aiosqlite``), PostgreSQL (``asyncpg``), etc.

    Vectors are stored as JSON arrays and ranked in process with numpy.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def create_tables(self) -> None:
        """Create the repodigest tables if they do not exist."""
        tables = [
            Project.__table__,  # type: ignore[attr-defined]
            Commit.__table__,  # type: ignore[attr-defined]
            SourceFileEmbedding.__table__,  # type: ignore[attr-defined]
        ]
        async with self._engine.begin() as conn:
            await conn.run_sync(lambda c: SQLModel.metadata.create_all(c, tables=tables))

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def create_project(self, name: str, vcs_url: str) -> Project:
        project = Project(name=name, vcs_url=vcs_url)
        async with self._session_factory() as session:
            session.add(project)
            await self._commit(session, f"create project {name!r}")
        return project

    async def get_project(self, project_id: str) -> Project | None:
        async with self._session_factory() as session:
            return await session.get(Project, project_id)

    async def archive_project(self, project_id: str) -> bool:
        async with self._session_factory() as session:
            project = await session.get(Project, project_id)
            if project is None or project.deleted_at is not None:
                return False
            project.deleted_at = datetime.now(UTC)
            await self._commit(session, f"archive project {project_id}")
            return True

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    async def get_commits_by_hash(
        self, project_id: str, hashes: Sequence[str]
    ) -> dict[str, Commit]:
        if not hashes:
            return {}
        async with self._session_factory() as session:
            result = await session.execute(
                select(Commit).where(
                    Commit.project_id == project_id,
                    Commit.commit_hash.in_(list(hashes)),  # type: ignore[attr-defined]
                )
            )
            return {c.commit_hash: c for c in result.scalars().all()}

    async def create_commit(self, project_id: str, info: CommitInfo) -> Commit:
        commit = Commit(
            project_id=project_id,
            commit_hash=info.hash,
            message=info.message,
            author_name=info.author_name,
            author_avatar=info.author_avatar,
            commit_date=info.date,
            status=CommitStatus.GENERATING,
            summary=GENERATING_TEXT,
            retry_count=0,
        )
        async with self._session_factory() as session:
            session.add(commit)
            try:
                await session.commit()
            except IntegrityError:
                # Another run inserted the same (project, hash) first.
                await session.rollback()
                existing = await self.get_commits_by_hash(project_id, [info.hash])
                if info.hash in existing:
                    return existing[info.hash]
                raise
        return commit

    async def update_commit(
        self,
        commit_id: str,
        *,
        status: CommitStatus,
        summary: str,
        retry_count: int,
    ) -> None:
        async with self._session_factory() as session:
            commit = await session.get(Commit, commit_id)
            if commit is None:
                msg = f"Commit {commit_id} not found"
                raise StorageError(msg)
            commit.status = status
            commit.summary = summary
            commit.retry_count = retry_count
            commit.updated_at = datetime.now(UTC)
            await self._commit(session, f"update commit {commit.commit_hash[:7]}")

    async def list_commits(
        self,
        project_id: str,
        *,
        statuses: Sequence[CommitStatus] | None = None,
        limit: int | None = None,
    ) -> list[Commit]:
        stmt = select(Commit).where(Commit.project_id == project_id)
        if statuses is not None:
            stmt = stmt.where(Commit.status.in_(list(statuses)))  # type: ignore[attr-defined]
        stmt = stmt.order_by(Commit.commit_date.desc())  # type: ignore[union-attr]
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Source files
    # ------------------------------------------------------------------

    async def find_cached_source_file(
        self, project_id: str, file_path: str, content: str
    ) -> SourceFileEmbedding | None:
        row = await self._get_source_file(project_id, file_path)
        if row is None or not row.summary:
            return None
        if row.content_hash != content_hash(content) or row.source_code != content:
            return None
        return row

    async def upsert_source_file(
        self, project_id: str, file_path: str, content: str, summary: str
    ) -> SourceFileEmbedding:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SourceFileEmbedding).where(
                    SourceFileEmbedding.project_id == project_id,
                    SourceFileEmbedding.file_path == file_path,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = SourceFileEmbedding(project_id=project_id, file_path=file_path)
                session.add(row)
            row.source_code = content
            row.content_hash = content_hash(content)
            row.summary = summary
            row.updated_at = datetime.now(UTC)
            await self._commit(session, f"upsert {file_path}")
            return row

    async def set_file_embedding(
        self, file_id: str, vector: list[float], model_name: str = ""
    ) -> None:
        async with self._session_factory() as session:
            row = await session.get(SourceFileEmbedding, file_id)
            if row is None:
                msg = f"Source file {file_id} not found"
                raise StorageError(msg)
            row.embedding = list(vector)
            row.embedding_model = model_name
            await self._commit(session, f"attach vector to {row.file_path}")

    async def count_source_files(self, project_id: str, *, embedded_only: bool = True) -> int:
        stmt = select(func.count()).select_from(SourceFileEmbedding).where(
            SourceFileEmbedding.project_id == project_id
        )
        if embedded_only:
            stmt = stmt.where(SourceFileEmbedding.embedding.is_not(None))  # type: ignore[union-attr]
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def search_source_files(
        self,
        project_id: str,
        vector: list[float],
        *,
        k: int = 10,
        threshold: float = 0.25,
    ) -> list[FileMatch]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SourceFileEmbedding).where(
                    SourceFileEmbedding.project_id == project_id,
                    SourceFileEmbedding.embedding.is_not(None),  # type: ignore[union-attr]
                )
            )
            rows = result.scalars().all()

        ranked = rank_by_similarity(
            vector,
            [(row, row.embedding or []) for row in rows],
            k=k,
            threshold=threshold,
        )
        return [
            FileMatch(
                file_path=row.file_path,
                summary=row.summary,
                source_code=row.source_code,
                similarity=score,
            )
            for row, score in ranked
        ]

    async def keyword_search_source_files(
        self, project_id: str, keywords: Sequence[str], *, limit: int = 8
    ) -> list[SourceFileEmbedding]:
        if not keywords:
            return []
        clauses = []
        for kw in keywords:
            pattern = f"%{kw.lower()}%"
            clauses.append(func.lower(SourceFileEmbedding.file_path).like(pattern))
            clauses.append(func.lower(SourceFileEmbedding.summary).like(pattern))
        async with self._session_factory() as session:
            result = await session.execute(
                select(SourceFileEmbedding)
                .where(SourceFileEmbedding.project_id == project_id, or_(*clauses))
                .limit(limit)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _get_source_file(
        self, project_id: str, file_path: str
    ) -> SourceFileEmbedding | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SourceFileEmbedding).where(
                    SourceFileEmbedding.project_id == project_id,
                    SourceFileEmbedding.file_path == file_path,
                )
            )
            return result.scalar_one_or_none()

    @staticmethod
    async def _commit(session: AsyncSession, what: str) -> None:
        try:
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            msg = f"Failed to {what}: {exc}"
            raise StorageError(msg) from exc
