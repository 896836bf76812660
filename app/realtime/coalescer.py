"""
Single-flight refresh runner.

Realtime notifications can arrive faster than a refresh completes. Instead of
starting one fetch per notification, a CoalescingRefresher keeps at most one
refresh in flight: triggers that arrive while it runs mark it dirty, and one
trailing refresh runs once the current one finishes. Whatever the burst size,
the last refresh always starts after the last trigger.
"""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class CoalescingRefresher:
    def __init__(self, refresh: Callable[[], Awaitable[None]], name: str = "refresh"):
        self._refresh = refresh
        self._name = name
        self._task: asyncio.Task | None = None
        self._dirty = False
        self._closed = False
        self.runs = 0

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self) -> None:
        """Request a refresh. Never blocks; collapses into the running refresh if any."""
        if self._closed:
            return
        if self.in_flight:
            self._dirty = True
            return
        self._task = asyncio.create_task(self._run(), name=f"coalesced-{self._name}")

    async def _run(self) -> None:
        while True:
            self._dirty = False
            self.runs += 1
            try:
                await self._refresh()
            except Exception as e:
                logger.error("Coalesced refresh failed", refresher=self._name, error=str(e))

            if not self._dirty or self._closed:
                return
            logger.debug("Running trailing refresh", refresher=self._name)

    async def wait_idle(self) -> None:
        """Wait until no refresh is running (including any trailing one)."""
        while self.in_flight:
            await asyncio.wait({self._task})

    async def close(self) -> None:
        self._closed = True
        if self.in_flight:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
