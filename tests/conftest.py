"""Shared fixtures for repodigest tests."""

from __future__ import annotations

import hashlib
import math
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from repodigest.storage import SQLStore
from repodigest.vcs.types import CommitInfo, RepoFile

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from pathlib import Path

    from repodigest.models import Project
    from repodigest.vcs.types import RepoRef, SnapshotFilter

DIMS = 384
REPO_URL = "https://github.com/acme/widgets"


# =========================================================================
# Fakes
# =========================================================================


class FakeEmbeddingProvider:
    """Deterministic provider: each text hashes to a fixed unit vector."""

    def __init__(self, dimensions: int = DIMS) -> None:
        self._dimensions = dimensions
        self.calls: list[list[str]] = []
        self.error: Exception | None = None
        self.overrides: dict[str, list[float]] = {}

    async def embed(self, text: str) -> list[float]:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.error is not None:
            raise self.error
        return [self.overrides.get(t) or self.vector(t) for t in texts]

    def vector(self, text: str) -> list[float]:
        seed = hashlib.sha256(text.encode()).digest()
        raw = [float(seed[i % len(seed)] - 128) + i * 0.001 for i in range(self._dimensions)]
        norm = math.sqrt(sum(x * x for x in raw))
        return [x / norm for x in raw]

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def model_name(self) -> str:
        return "fake-embedding"


class FakeCompletion:
    """Records prompts; replies with *reply* or raises the queued errors in order."""

    def __init__(self, reply: str | Callable[[str], str] = "Adds retry handling to the poller.") -> None:
        self.reply = reply
        self.calls: list[tuple[str, str]] = []
        self.errors: list[Exception] = []
        self.always_raise: Exception | None = None

    async def complete(
        self,
        system_prompt: str,
        user_text: str,
        *,
        temperature: float = 0.1,
        max_tokens: int = 200,
    ) -> str:
        self.calls.append((system_prompt, user_text))
        if self.always_raise is not None:
            raise self.always_raise
        if self.errors:
            raise self.errors.pop(0)
        return self.reply(user_text) if callable(self.reply) else self.reply


class FakeVcs:
    """In-memory VCS host."""

    def __init__(self) -> None:
        self.commits: list[CommitInfo] = []
        self.diffs: dict[str, str | Exception] = {}
        self.files: list[RepoFile] = []
        self.diff_calls: list[str] = []
        self.list_calls = 0

    def add_commit(self, sha: str, diff: str | Exception, *, minutes_ago: int = 0) -> None:
        date = datetime(2024, 6, 1, 12, 0, tzinfo=UTC) - timedelta(minutes=minutes_ago)
        self.commits.append(
            CommitInfo(hash=sha, message=f"commit {sha}", author_name="dev", date=date)
        )
        self.diffs[sha] = diff

    async def list_recent_commits(self, repo: RepoRef, *, limit: int = 20) -> list[CommitInfo]:
        self.list_calls += 1
        return self.commits[:limit]

    async def get_commit_diff(self, repo: RepoRef, commit_hash: str) -> str:
        self.diff_calls.append(commit_hash)
        diff = self.diffs[commit_hash]
        if isinstance(diff, Exception):
            raise diff
        return diff

    async def list_repository_files(
        self, repo: RepoRef, filters: SnapshotFilter
    ) -> list[RepoFile]:
        return list(self.files)


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeClock:
    """Monotonic clock advanced by a paired :class:`RecordingSleep`-style sleep."""

    def __init__(self) -> None:
        self.now = 1000.0
        self.delays: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)
        self.now += delay


class FakeLedger:
    def __init__(self, balance: int = 100) -> None:
        from repodigest.credits import CREDIT_COSTS

        self.balance = balance
        self.costs = CREDIT_COSTS
        self.charges: list[Any] = []

    async def consume(self, user_id, action, *, project_id=None, description=""):
        from repodigest.exceptions import InsufficientCreditsError

        cost = self.costs[action]
        if self.balance < cost:
            raise InsufficientCreditsError(cost, self.balance)
        self.balance -= cost
        self.charges.append((user_id, action, project_id))
        return self.balance


def diff_of(length: int) -> str:
    """A unified-diff-looking string of exactly *length* characters."""
    line = "+    value = compute(value)\n"
    return (line * (length // len(line) + 1))[:length]


# =========================================================================
# Fixtures
# =========================================================================


@pytest.fixture
async def store(tmp_path: Path) -> AsyncIterator[SQLStore]:
    """SQLStore on a throwaway SQLite file with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    s = SQLStore(engine)
    await s.create_tables()
    yield s
    await engine.dispose()


@pytest.fixture
async def project(store: SQLStore) -> Project:
    return await store.create_project("widgets", REPO_URL)


@pytest.fixture
def provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture
def vcs() -> FakeVcs:
    return FakeVcs()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
