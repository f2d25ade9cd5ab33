"""
Background Tasks - Tracked fire-and-forget coroutines

Callbacks that may be plain functions or coroutine functions are invoked
through ``call``; coroutines become tracked tasks so they can be awaited
with ``drain`` or cancelled with ``cancel_all`` during teardown.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Set of tasks owned by one component"""

    def __init__(self, name: str = "tasks"):
        self.name = name
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, awaitable: Awaitable[Any]) -> asyncio.Future:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._done)
        return task

    def call(self, callback: Optional[Callable[..., Any]], *args: Any) -> Optional[asyncio.Future]:
        """Invoke a sync or async callback; async results are tracked"""
        if callback is None:
            return None
        try:
            result = callback(*args)
        except Exception as e:
            logger.error(f"[{self.name}] callback {getattr(callback, '__name__', callback)} failed: {e}")
            return None
        if inspect.isawaitable(result):
            return self.spawn(result)
        return None

    def _done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[{self.name}] background task failed: {task.exception()!r}")

    async def drain(self) -> None:
        """Wait until no tracked task is left, including ones spawned meanwhile"""
        current = asyncio.current_task()
        while True:
            pending = [t for t in self._tasks if t is not current]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def cancel_all(self) -> None:
        current = asyncio.current_task()
        pending = [t for t in self._tasks if t is not current]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    def __len__(self) -> int:
        return len(self._tasks)
