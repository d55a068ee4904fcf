"""
Detached background work (moderation logging, origin panels).

Tasks are fire-and-forget from the request's point of view: their failures
are logged and never reach the caller. Outstanding tasks are awaited on
shutdown.
"""

import asyncio
import logging
from typing import Awaitable, Set

logger = logging.getLogger("orchestrator.background")


class BackgroundTaskRunner:
    """Registry of detached tasks."""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, name: str = "background") -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info(f"[_on_done] Task {task.get_name()} cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[_on_done] Task {task.get_name()} failed: {exc}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every outstanding task."""
        if self._tasks:
            logger.info(f"[drain] Waiting for {len(self._tasks)} background task(s)")
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
