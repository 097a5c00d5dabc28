"""Sync one GitHub repository into a local SQLite database and ask a question.

Indexes the repository's current files (summary + embedding per file), runs
one commit poll cycle, then answers a question against the index.

Requires ``GITHUB_TOKEN`` and ``OPENAI_API_KEY`` in the environment.  Uses
the local sentence-transformers model for embeddings when installed.

Usage:
    uv run python scripts/sync_repo.py https://github.com/owner/repo "Where is auth handled?"
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

from repodigest import PipelineConfig, PipelineEvent, RepoDigest

REPO_ROOT = Path(__file__).resolve().parent.parent
SQLITE_PATH = REPO_ROOT / "repodigest_sync.db"


async def _print_event(event: PipelineEvent) -> None:
    print(f"  [{event.event_type.value}] {event.key} {event.detail}".rstrip())


async def run(repo_url: str, question: str | None) -> None:
    config = PipelineConfig.from_env(database_url=f"sqlite+aiosqlite:///{SQLITE_PATH}")
    digest = await RepoDigest.from_config(config)
    digest.events.register_all(_print_event)

    try:
        print("=" * 60)
        print(f"SYNC: {repo_url}")
        print("=" * 60)
        name = repo_url.rstrip("/").split("/")[-1]
        project = await digest.create_project(name, repo_url, sync=False)
        result = await digest.sync_project(project.id)

        print()
        print(f"  Files indexed:     {len(result.files.indexed)}")
        print(f"  Files cached:      {len(result.files.cached)}")
        print(f"  Files dropped:     {len(result.files.dropped)}")
        print(f"  Commits processed: {len(result.commits.processed)}")
        print(f"  Commits pending:   {len(result.commits.pending)}")

        print()
        print("=" * 60)
        print("COMMITS")
        print("=" * 60)
        for commit in await digest.get_commits(project.id, refresh=False):
            title = commit.message.splitlines()[0] if commit.message else ""
            print(f"  {commit.commit_hash[:7]}  {commit.status.value:<22} {title}")

        if question:
            print()
            print("=" * 60)
            print(f"Q: {question}")
            print("=" * 60)
            answer = await digest.ask(project.id, question)
            print(answer.answer)
            for ref in answer.references:
                print(f"  - {ref.file_path} ({ref.similarity:.3f})")
    finally:
        await digest.close()


def main() -> None:
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    asyncio.run(run(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None))


if __name__ == "__main__":
    main()
