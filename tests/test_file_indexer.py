"""Tests for FileIndexer and RepositorySnapshotLoader."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from conftest import DIMS, REPO_URL, FakeCompletion, RecordingSleep

from repodigest.config import FileIndexerConfig, RetryPolicy, SummaryConfig
from repodigest.embeddings import EmbeddingGenerator
from repodigest.events import EventBus, PipelineEventType
from repodigest.exceptions import StorageError
from repodigest.ingest import FileIndexer, RepositorySnapshotLoader
from repodigest.llm.summaries import SummaryGenerator
from repodigest.vcs.types import RepoFile, SnapshotFilter

# =========================================================================
# Helpers
# =========================================================================


def _summary_for(user_text: str) -> str:
    path = user_text.splitlines()[0].removeprefix("File: ")
    return f"Summary of {path}: defines helpers."


def _indexer(store, vcs, provider, *, completion=None, sleep=None, events=None, **config):
    sleep = sleep or RecordingSleep()
    completion = completion or FakeCompletion(_summary_for)
    summaries = SummaryGenerator(
        completion, SummaryConfig(file_retry=RetryPolicy(0, 3.0)), sleep=sleep
    )
    embeddings = EmbeddingGenerator(provider, sleep=sleep)
    return FileIndexer(
        store,
        summaries,
        embeddings,
        FileIndexerConfig(**config),
        loader=RepositorySnapshotLoader(vcs),
        events=events,
        sleep=sleep,
    )


# =========================================================================
# FileIndexer
# =========================================================================


class TestFileIndexer:
    @pytest.mark.asyncio
    async def test_indexes_and_persists_vectors(self, store, project, vcs, provider):
        files = [RepoFile("src/a.py", "def a():\n    return 1\n")]
        indexer = _indexer(store, vcs, provider)

        result = await indexer.index_files(project.id, files)

        assert result.indexed == ["src/a.py"]
        assert await store.count_source_files(project.id) == 1
        row = await store.find_cached_source_file(project.id, "src/a.py", files[0].content)
        assert row.summary == "Summary of src/a.py: defines helpers."
        assert len(row.embedding) == DIMS
        assert row.embedding_model == "fake-embedding"

    @pytest.mark.asyncio
    async def test_identical_content_different_paths(self, store, project, vcs, provider):
        content = "export const answer = 42;\n"
        completion = FakeCompletion(_summary_for)
        indexer = _indexer(store, vcs, provider, completion=completion)

        result = await indexer.index_files(
            project.id, [RepoFile("a/x.ts", content), RepoFile("b/x.ts", content)]
        )

        assert sorted(result.indexed) == ["a/x.ts", "b/x.ts"]
        assert len(completion.calls) == 2
        assert sum(len(batch) for batch in provider.calls) == 2
        assert await store.count_source_files(project.id) == 2

    @pytest.mark.asyncio
    async def test_unchanged_file_not_resummarized(self, store, project, vcs, provider):
        files = [RepoFile("src/a.py", "print('hello world')\n")]
        completion = FakeCompletion(_summary_for)
        indexer = _indexer(store, vcs, provider, completion=completion)
        await indexer.index_files(project.id, files)

        result = await indexer.index_files(project.id, files)

        assert result.cached == ["src/a.py"]
        assert result.indexed == []
        assert len(completion.calls) == 1
        assert len(provider.calls) == 1

    @pytest.mark.asyncio
    async def test_changed_content_reindexed(self, store, project, vcs, provider):
        indexer = _indexer(store, vcs, provider)
        await indexer.index_files(project.id, [RepoFile("src/a.py", "x = 1\n")])

        result = await indexer.index_files(project.id, [RepoFile("src/a.py", "x = 2\n")])

        assert result.indexed == ["src/a.py"]
        assert await store.count_source_files(project.id, embedded_only=False) == 1

    @pytest.mark.asyncio
    async def test_batches_with_delay_between(self, store, project, vcs, provider):
        sleep = RecordingSleep()
        files = [RepoFile(f"f{i}.py", f"value_{i} = {i}\n") for i in range(12)]
        indexer = _indexer(store, vcs, provider, sleep=sleep, batch_size=5, batch_delay=2.0)

        result = await indexer.index_files(project.id, files)

        assert len(result.indexed) == 12
        assert sleep.delays == [2.0, 2.0]
        assert [len(batch) for batch in provider.calls] == [5, 5, 2]

    @pytest.mark.asyncio
    async def test_summary_failure_drops_file(self, store, project, vcs, provider):
        completion = FakeCompletion(_summary_for)
        completion.errors = [RuntimeError("model down")]
        bus = EventBus()
        dropped = []

        async def on_drop(event):
            dropped.append(event.key)

        bus.register(PipelineEventType.FILE_DROPPED, on_drop)
        indexer = _indexer(store, vcs, provider, completion=completion, events=bus)

        result = await indexer.index_files(
            project.id, [RepoFile("bad.py", "x = 1\n"), RepoFile("good.py", "y = 2\n")]
        )

        assert result.dropped == ["bad.py"]
        assert result.indexed == ["good.py"]
        assert dropped == ["bad.py"]

    @pytest.mark.asyncio
    async def test_wrong_size_vector_not_persisted(self, store, project, vcs, provider):
        provider.overrides["Summary of odd.py: defines helpers."] = [0.1] * 10
        indexer = _indexer(store, vcs, provider)

        result = await indexer.index_files(
            project.id, [RepoFile("odd.py", "x = 1\n"), RepoFile("ok.py", "y = 2\n")]
        )

        assert result.dropped == ["odd.py"]
        assert result.indexed == ["ok.py"]
        assert await store.count_source_files(project.id, embedded_only=False) == 1

    @pytest.mark.asyncio
    async def test_embedding_failure_drops_batch_only(self, store, project, vcs, provider):
        calls = 0
        original = provider.embed_batch

        async def flaky(texts):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("embedding service down")
            return await original(texts)

        provider.embed_batch = flaky
        files = [RepoFile(f"f{i}.py", f"v{i} = {i}\n") for i in range(4)]
        indexer = _indexer(store, vcs, provider, batch_size=2)

        result = await indexer.index_files(project.id, files)

        assert result.dropped == ["f0.py", "f1.py"]
        assert result.indexed == ["f2.py", "f3.py"]

    @pytest.mark.asyncio
    async def test_vector_write_failure_is_swallowed(self, store, project, vcs, provider):
        store.set_file_embedding = AsyncMock(side_effect=StorageError("disk full"))
        bus = EventBus()
        seen = []

        async def handler(event):
            seen.append(event.event_type)

        bus.register_all(handler)
        indexer = _indexer(store, vcs, provider, events=bus)

        result = await indexer.index_files(project.id, [RepoFile("a.py", "x = 1\n")])

        assert result.vector_failures == ["a.py"]
        assert result.indexed == []
        assert seen == [PipelineEventType.VECTOR_WRITE_FAILED]
        assert await store.count_source_files(project.id, embedded_only=False) == 1
        assert await store.count_source_files(project.id) == 0

    @pytest.mark.asyncio
    async def test_index_repository_uses_snapshot(self, store, project, vcs, provider):
        vcs.files = [
            RepoFile("src/app.py", "print('app')\n"),
            RepoFile("node_modules/lib/index.js", "module.exports = 1;\n"),
            RepoFile("package-lock.json", "{}"),
            RepoFile("README.md", "   "),
        ]
        indexer = _indexer(store, vcs, provider)

        result = await indexer.index_repository(project.id)

        assert result.indexed == ["src/app.py"]

    @pytest.mark.asyncio
    async def test_index_repository_skips_archived(self, store, project, vcs, provider):
        vcs.files = [RepoFile("src/app.py", "print('app')\n")]
        await store.archive_project(project.id)
        indexer = _indexer(store, vcs, provider)

        result = await indexer.index_repository(project.id)

        assert result.total == 0


# =========================================================================
# RepositorySnapshotLoader / SnapshotFilter
# =========================================================================


class TestSnapshot:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("src/main.py", True),
            ("web/app/page.tsx", True),
            ("docs/guide.mdx", True),
            ("node_modules/react/index.js", False),
            ("dist/bundle.js", False),
            ("static/app.min.js", False),
            ("yarn.lock", False),
            ("assets/logo.png", False),
            ("Makefile", False),
        ],
    )
    def test_filter(self, path, expected):
        assert SnapshotFilter().matches(path) is expected

    @pytest.mark.asyncio
    async def test_loader_drops_empty_and_oversized(self, vcs):
        vcs.files = [
            RepoFile("a.py", "x = 1\n"),
            RepoFile("empty.py", "\n\n"),
            RepoFile("big.py", "x" * 200),
        ]
        loader = RepositorySnapshotLoader(vcs, SnapshotFilter(max_file_size=100))

        files = await loader.load(REPO_URL)

        assert [f.path for f in files] == ["a.py"]
