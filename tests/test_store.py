"""Tests for SQLStore."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from repodigest.exceptions import StorageError
from repodigest.models import CommitStatus, content_hash
from repodigest.storage import PipelineStore
from repodigest.vcs.types import CommitInfo


class TestProjects:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store):
        project = await store.create_project("widgets", "https://github.com/acme/widgets")
        loaded = await store.get_project(project.id)
        assert loaded.name == "widgets"
        assert loaded.is_active

    @pytest.mark.asyncio
    async def test_archive(self, store, project):
        assert await store.archive_project(project.id) is True
        assert await store.archive_project(project.id) is False
        loaded = await store.get_project(project.id)
        assert not loaded.is_active

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        assert await store.get_project("nope") is None
        assert await store.archive_project("nope") is False

    @pytest.mark.asyncio
    async def test_satisfies_protocol(self, store):
        assert isinstance(store, PipelineStore)


class TestCommits:
    @pytest.mark.asyncio
    async def test_create_starts_generating(self, store, project):
        commit = await store.create_commit(project.id, CommitInfo(hash="a" * 40, message="init"))
        assert commit.status is CommitStatus.GENERATING
        assert commit.retry_count == 0

    @pytest.mark.asyncio
    async def test_create_is_unique_per_project_hash(self, store, project):
        first = await store.create_commit(project.id, CommitInfo(hash="a" * 40))
        second = await store.create_commit(project.id, CommitInfo(hash="a" * 40))
        assert first.id == second.id
        assert len(await store.list_commits(project.id)) == 1

    @pytest.mark.asyncio
    async def test_same_hash_in_two_projects(self, store, project):
        other = await store.create_project("fork", "https://github.com/acme/fork")
        await store.create_commit(project.id, CommitInfo(hash="a" * 40))
        await store.create_commit(other.id, CommitInfo(hash="a" * 40))
        assert len(await store.list_commits(project.id)) == 1
        assert len(await store.list_commits(other.id)) == 1

    @pytest.mark.asyncio
    async def test_update_and_filter(self, store, project):
        commit = await store.create_commit(project.id, CommitInfo(hash="a" * 40))
        await store.create_commit(project.id, CommitInfo(hash="b" * 40))
        await store.update_commit(
            commit.id, status=CommitStatus.COMPLETED, summary="* Did it", retry_count=0
        )

        done = await store.list_commits(project.id, statuses=[CommitStatus.COMPLETED])

        assert [c.commit_hash for c in done] == ["a" * 40]
        assert done[0].summary == "* Did it"

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, store):
        with pytest.raises(StorageError, match="not found"):
            await store.update_commit(
                "missing", status=CommitStatus.FAILED, summary="x", retry_count=3
            )

    @pytest.mark.asyncio
    async def test_list_newest_first_with_limit(self, store, project):
        for day in (1, 3, 2):
            await store.create_commit(
                project.id,
                CommitInfo(hash=str(day) * 40, date=datetime(2024, 1, day, tzinfo=UTC)),
            )
        commits = await store.list_commits(project.id, limit=2)
        assert [c.commit_hash[0] for c in commits] == ["3", "2"]

    @pytest.mark.asyncio
    async def test_get_commits_by_hash(self, store, project):
        await store.create_commit(project.id, CommitInfo(hash="a" * 40))
        found = await store.get_commits_by_hash(project.id, ["a" * 40, "z" * 40])
        assert list(found) == ["a" * 40]
        assert await store.get_commits_by_hash(project.id, []) == {}


class TestSourceFiles:
    @pytest.mark.asyncio
    async def test_upsert_inserts_then_updates(self, store, project):
        first = await store.upsert_source_file(project.id, "a.py", "x = 1", "Sets x.")
        second = await store.upsert_source_file(project.id, "a.py", "x = 2", "Sets x to 2.")
        assert first.id == second.id
        assert second.content_hash == content_hash("x = 2")
        assert await store.count_source_files(project.id, embedded_only=False) == 1

    @pytest.mark.asyncio
    async def test_cache_lookup_requires_same_content_and_summary(self, store, project):
        await store.upsert_source_file(project.id, "a.py", "x = 1", "Sets x.")
        assert await store.find_cached_source_file(project.id, "a.py", "x = 1") is not None
        assert await store.find_cached_source_file(project.id, "a.py", "x = 2") is None
        assert await store.find_cached_source_file(project.id, "b.py", "x = 1") is None

        await store.upsert_source_file(project.id, "c.py", "y = 1", "")
        assert await store.find_cached_source_file(project.id, "c.py", "y = 1") is None

    @pytest.mark.asyncio
    async def test_embedding_counts(self, store, project):
        row = await store.upsert_source_file(project.id, "a.py", "x = 1", "Sets x.")
        await store.upsert_source_file(project.id, "b.py", "y = 1", "Sets y.")
        assert await store.count_source_files(project.id) == 0

        await store.set_file_embedding(row.id, [0.1, 0.2], "m")

        assert await store.count_source_files(project.id) == 1
        assert await store.count_source_files(project.id, embedded_only=False) == 2

    @pytest.mark.asyncio
    async def test_set_embedding_missing_row(self, store):
        with pytest.raises(StorageError):
            await store.set_file_embedding("missing", [0.1])

    @pytest.mark.asyncio
    async def test_keyword_search(self, store, project):
        await store.upsert_source_file(project.id, "src/Billing.py", "...", "Charges cards.")
        await store.upsert_source_file(project.id, "src/auth.py", "...", "Checks tokens.")
        rows = await store.keyword_search_source_files(project.id, ["billing"])
        assert [r.file_path for r in rows] == ["src/Billing.py"]
        rows = await store.keyword_search_source_files(project.id, ["tokens"])
        assert [r.file_path for r in rows] == ["src/auth.py"]
        assert await store.keyword_search_source_files(project.id, []) == []
