"""Fire-and-forget background tasks."""

import asyncio
import logging
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class TaskQueue:
    """Runs side effects on the event loop without awaiting them.

    Failures go to the log only; they never reach the scheduling caller.
    """

    _tasks: set[asyncio.Task[Any]]

    def __init__(self) -> None:
        self._tasks = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(
        self, coro: Coroutine[Any, Any, Any], name: str
    ) -> asyncio.Task[Any] | None:
        """Schedule a coroutine on the running loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, dropping background task %s", name)
            coro.close()
            return None
        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._finish)
        return task

    async def drain(self) -> None:
        """Wait for every scheduled task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel outstanding tasks and wait for them to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _finish(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Background task %s failed: %s", task.get_name(), exc)
