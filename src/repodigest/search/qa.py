"""QuestionAnswerer — answer questions from commit summaries or indexed files."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from repodigest.config import SearchConfig
from repodigest.credits import CreditAction
from repodigest.exceptions import InsufficientCreditsError
from repodigest.models.commits import CommitStatus
from repodigest.search.types import Answer, FileMatch

if TYPE_CHECKING:
    from repodigest.credits import CreditLedger
    from repodigest.llm.completion import CompletionService
    from repodigest.search.similarity import SimilaritySearch
    from repodigest.storage.protocol import PipelineStore

logger = logging.getLogger(__name__)

NO_COMMITS_ANSWER = "No commit summaries available yet. Please check back in a few minutes."
INDEXING_ANSWER = "The codebase is still being indexed. Please wait a few minutes and try again."
NOT_FOUND_ANSWER = "Not found in the codebase. The repository may still be indexing."
ERROR_ANSWER = (
    "An error occurred while processing your question. The repository may still be indexing."
)
NO_CREDITS_ANSWER = "Insufficient credits. Please purchase more!"

KEYWORD_FALLBACK_SIMILARITY = 0.4

CODE_QA_PROMPT = """\
You are an AI code assistant answering questions about a codebase.
Answer using only the provided file summaries and code.
Reference file names when relevant. If the context does not contain the
answer, say that it was not found in the codebase."""

COMMIT_QA_PROMPT = """\
You are an AI assistant answering questions about a repository's commit history.
Answer using only the provided commit summaries. Cite commit hashes (first 7
characters) and dates when relevant."""

_FILE_SEPARATOR = "\n\n" + "=" * 40 + "\n\n"


def is_commit_question(question: str) -> bool:
    return "commit" in question.lower()


def _clip(code: str, budget: int) -> str:
    if len(code) <= budget:
        return code
    return code[:budget] + "\n/* truncated */"


def question_keywords(question: str) -> list[str]:
    """Words longer than three characters, used for the keyword fallback."""
    return [w for w in re.findall(r"[\w./-]+", question.lower()) if len(w) > 3]


class QuestionAnswerer:
    """Routes a question to commit history or code search and asks the model.

    When a ledger and user id are given, ``QUESTION_ASKED`` is charged before
    any paid call; a rejection answers with :data:`NO_CREDITS_ANSWER` and does
    nothing else.
    """

    def __init__(
        self,
        store: PipelineStore,
        search: SimilaritySearch,
        completion: CompletionService,
        config: SearchConfig | None = None,
        *,
        ledger: CreditLedger | None = None,
    ) -> None:
        self._store = store
        self._search = search
        self._completion = completion
        self._config = config or SearchConfig()
        self._ledger = ledger

    async def answer(self, project_id: str, question: str, *, user_id: str | None = None) -> Answer:
        if self._ledger is not None and user_id is not None:
            try:
                await self._ledger.consume(
                    user_id,
                    CreditAction.QUESTION_ASKED,
                    project_id=project_id,
                    description=question[:50],
                )
            except InsufficientCreditsError:
                return Answer(NO_CREDITS_ANSWER)

        try:
            if is_commit_question(question):
                return await self._answer_from_commits(project_id, question)
            return await self._answer_from_code(project_id, question)
        except Exception:
            logger.exception("Q&A failed for project %s", project_id)
            return Answer(ERROR_ANSWER)

    async def _answer_from_commits(self, project_id: str, question: str) -> Answer:
        commits = await self._store.list_commits(
            project_id,
            statuses=[CommitStatus.COMPLETED],
            limit=self._config.qa_commit_limit,
        )
        if not commits:
            return Answer(NO_COMMITS_ANSWER)

        context = "\n\n---\n\n".join(
            f"COMMIT: {c.commit_hash}\n"
            f"DATE: {c.commit_date.isoformat() if c.commit_date else 'unknown'}\n"
            f"AUTHOR: {c.author_name}\n"
            f"MESSAGE: {c.message}\n"
            f"CHANGES:\n{c.summary}"
            for c in commits
        )
        text = await self._completion.complete(
            COMMIT_QA_PROMPT, f"{context}\n\nQUESTION: {question}", max_tokens=600
        )
        return Answer(text)

    async def _answer_from_code(self, project_id: str, question: str) -> Answer:
        if await self._store.count_source_files(project_id) == 0:
            return Answer(INDEXING_ANSWER)

        try:
            matches = await self._search.search_text(
                project_id, question, k=self._config.qa_top_k
            )
        except Exception:
            logger.warning("Vector search failed; falling back to keywords", exc_info=True)
            matches = await self._keyword_matches(project_id, question)

        if not matches:
            return Answer(NOT_FOUND_ANSWER)

        budget = self._config.qa_code_char_budget
        context = _FILE_SEPARATOR.join(
            f"FILE: {m.file_path}\nSUMMARY: {m.summary}\n\nCODE:\n{_clip(m.source_code, budget)}"
            for m in matches
        )
        text = await self._completion.complete(
            CODE_QA_PROMPT, f"{context}\n\nQUESTION: {question}", max_tokens=800
        )
        return Answer(text, references=matches)

    async def _keyword_matches(self, project_id: str, question: str) -> list[FileMatch]:
        rows = await self._store.keyword_search_source_files(
            project_id, question_keywords(question), limit=self._config.qa_top_k
        )
        return [
            FileMatch(
                file_path=r.file_path,
                summary=r.summary,
                source_code=r.source_code,
                similarity=KEYWORD_FALLBACK_SIMILARITY,
            )
            for r in rows
        ]
