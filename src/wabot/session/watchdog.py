"""Single-shot, rearmable deadline for stalled session attempts.

At most one deadline is pending at any time: ``arm`` cancels the previous
one first. The fire callback receives the generation it was armed with so
the owner can tell a stale fire from a current one.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

from wabot.logger import logger


class Watchdog:
    def __init__(
        self,
        timeout: float,
        on_fire: Callable[[int], Awaitable[None]],
    ) -> None:
        self.timeout = timeout
        self._on_fire = on_fire
        self._handle: asyncio.TimerHandle | None = None
        self._armed_generation: int | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def armed_generation(self) -> int | None:
        return self._armed_generation

    def arm(self, generation: int) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._armed_generation = generation
        self._handle = loop.call_later(self.timeout, self._fire, generation)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._armed_generation = None

    async def shutdown(self) -> None:
        """Cancel the deadline and any fire callback still running."""
        self.cancel()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _fire(self, generation: int) -> None:
        self._handle = None
        self._armed_generation = None
        logger.debug("Watchdog deadline reached", generation=generation)
        # Keep a reference so the task is not garbage collected
        self._task = asyncio.ensure_future(self._on_fire(generation))
