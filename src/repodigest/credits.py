"""Credit ledger contract — metering for paid pipeline steps."""

from __future__ import annotations

from enum import Enum
from typing import Protocol, runtime_checkable


class CreditAction(str, Enum):
    """Metered actions and their ledger keys."""

    PROJECT_CREATED = "PROJECT_CREATED"
    QUESTION_ASKED = "QUESTION_ASKED"
    COMMIT_ANALYSIS = "COMMIT_ANALYSIS"
    EMBEDDING_GENERATED = "EMBEDDING_GENERATED"


CREDIT_COSTS: dict[CreditAction, int] = {
    CreditAction.PROJECT_CREATED: 10,
    CreditAction.QUESTION_ASKED: 10,
    CreditAction.COMMIT_ANALYSIS: 2,
    CreditAction.EMBEDDING_GENERATED: 5,
}


@runtime_checkable
class CreditLedger(Protocol):
    """External metering service.

    ``consume`` debits the cost of *action* atomically or raises
    :class:`~repodigest.exceptions.InsufficientCreditsError` without
    debiting anything.
    """

    async def consume(
        self,
        user_id: str,
        action: CreditAction,
        *,
        project_id: str | None = None,
        description: str = "",
    ) -> int:
        """Debit *action*'s cost and return the remaining balance."""
        ...
