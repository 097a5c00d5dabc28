"""Throttle — minimum spacing between calls that share one external quota."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


class Throttle:
    """Enforces at least *min_interval* seconds between successive acquisitions.

    One instance per logical quota (e.g. one per completion-service key).
    The first acquisition never waits.  Independent of retry backoff: a call
    that backs off internally still counts as a single acquisition.
    """

    def __init__(
        self,
        min_interval: float,
        *,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if min_interval < 0:
            msg = "min_interval must be >= 0"
            raise ValueError(msg)
        self._min_interval = min_interval
        self._name = name
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._lock = asyncio.Lock()

    async def wait(self) -> float:
        """Suspend until the quota allows another call; return seconds waited."""
        async with self._lock:
            waited = 0.0
            if self._last_call is not None:
                waited = max(0.0, self._min_interval - (self._clock() - self._last_call))
                if waited > 0:
                    await self._sleep(waited)
            self._last_call = self._clock()
            return waited

    def reset(self) -> None:
        """Forget the last call, so the next :meth:`wait` returns immediately."""
        self._last_call = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def min_interval(self) -> float:
        return self._min_interval
