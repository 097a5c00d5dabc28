"""Tests for model helpers and the commit status vocabulary."""

from __future__ import annotations

import pytest

from repodigest.models import (
    FAILED_TEXT,
    GENERATING_TEXT,
    NO_CHANGES_TEXT,
    Commit,
    CommitStatus,
    Project,
    content_hash,
    retry_pending_text,
    status_from_text,
)


class TestStatusFromText:
    @pytest.mark.parametrize(
        ("text", "retry", "expected"),
        [
            (GENERATING_TEXT, 0, CommitStatus.GENERATING),
            ("", 0, CommitStatus.GENERATING),
            (None, 0, CommitStatus.GENERATING),
            (retry_pending_text(1), 1, CommitStatus.RETRY_PENDING),
            ("Summary generation failed, will retry", 2, CommitStatus.RETRY_PENDING),
            (FAILED_TEXT, 3, CommitStatus.FAILED),
            ("* Added caching", 3, CommitStatus.FAILED),
            (NO_CHANGES_TEXT, 0, CommitStatus.NO_SIGNIFICANT_CHANGE),
            ("* Added caching to [api/client.py]", 0, CommitStatus.COMPLETED),
        ],
    )
    def test_decoding(self, text, retry, expected):
        assert status_from_text(text, retry) is expected

    def test_retry_text(self):
        assert retry_pending_text(2) == "Retry pending (2/3 failed attempts)"


class TestCommitStatus:
    def test_terminal_states(self):
        assert CommitStatus.COMPLETED.is_terminal
        assert CommitStatus.FAILED.is_terminal
        assert CommitStatus.NO_SIGNIFICANT_CHANGE.is_terminal
        assert not CommitStatus.GENERATING.is_terminal
        assert not CommitStatus.RETRY_PENDING.is_terminal

    def test_needs_processing(self):
        assert Commit(project_id="p", commit_hash="a").needs_processing()
        pending = Commit(
            project_id="p", commit_hash="a", status=CommitStatus.RETRY_PENDING, retry_count=3
        )
        assert not pending.needs_processing()
        assert pending.needs_processing(max_retries=5)
        assert not Commit(
            project_id="p", commit_hash="a", status=CommitStatus.COMPLETED
        ).needs_processing(max_retries=5)


class TestMisc:
    def test_content_hash_is_stable(self):
        assert content_hash("abc") == content_hash("abc")
        assert content_hash("abc") != content_hash("abd")
        assert len(content_hash("")) == 64

    def test_new_project_is_active(self):
        project = Project(name="x", vcs_url="https://github.com/a/b")
        assert project.is_active
        assert project.id
