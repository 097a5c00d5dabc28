"""EventBus and event types — observability side-channel for the pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class PipelineEventType(Enum):
    """Per-item outcomes reported by the ingestion pipeline."""

    COMMIT_COMPLETED = "commit_completed"
    COMMIT_SKIPPED = "commit_skipped"
    COMMIT_RETRY_SCHEDULED = "commit_retry_scheduled"
    COMMIT_FAILED = "commit_failed"
    FILE_INDEXED = "file_indexed"
    FILE_DROPPED = "file_dropped"
    VECTOR_WRITE_FAILED = "vector_write_failed"


@dataclass(frozen=True, slots=True)
class PipelineEvent:
    """Immutable record of one item's outcome.

    Attributes:
        event_type: The kind of outcome.
        project_id: Project the item belongs to.
        key: Commit hash or file path.
        detail: Short human-readable reason (error text, drop reason).
        data: Extra structured fields (retry count, vector size, ...).
    """

    event_type: PipelineEventType
    project_id: str
    key: str
    detail: str = ""
    data: dict[str, Any] = field(default_factory=dict)


class EventBus:
    """Dispatches pipeline events to registered handlers.

    Handlers are called sequentially in registration order.
    Exceptions are logged but never propagated.
    """

    def __init__(self) -> None:
        self._handlers: dict[PipelineEventType, list[Callable[..., Any]]] = {
            et: [] for et in PipelineEventType
        }

    def register(self, event_type: PipelineEventType, handler: Callable[..., Any]) -> None:
        """Append *handler* to the list for *event_type*."""
        self._handlers[event_type].append(handler)

    def register_all(self, handler: Callable[..., Any]) -> None:
        """Register *handler* for every event type."""
        for event_type in PipelineEventType:
            self._handlers[event_type].append(handler)

    def unregister(self, event_type: PipelineEventType, handler: Callable[..., Any]) -> bool:
        """Remove first occurrence of *handler*. Return True if found."""
        handlers = self._handlers[event_type]
        try:
            handlers.remove(handler)
            return True
        except ValueError:
            return False

    async def emit(self, event: PipelineEvent) -> None:
        """Dispatch *event* to all registered handlers for its type."""
        for handler in self._handlers[event.event_type]:
            try:
                await handler(event)
            except Exception:
                logger.warning(
                    "Handler %r failed for %s on %s",
                    handler,
                    event.event_type.value,
                    event.key,
                    exc_info=True,
                )

    @property
    def handler_count(self) -> int:
        """Total number of registered handlers across all event types."""
        return sum(len(h) for h in self._handlers.values())

    def clear(self) -> None:
        """Remove all registered handlers."""
        for handlers in self._handlers.values():
            handlers.clear()
