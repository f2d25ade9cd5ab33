"""
Activity Timer - Inactivity countdown for conversation surfaces

A single asyncio task counts down from the last interaction. When it
expires while the surface is busy (recording, thinking, speaking, the user
typing) it re-arms instead of firing.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class ActivityTimer:
    """
    Re-armable inactivity timer.

    Features:
    - Reset on any interaction
    - Re-arms while the busy predicate holds
    - Cancellation-safe shutdown
    """

    def __init__(
        self,
        delay_seconds: float,
        on_expire: Callable[[], Awaitable[Any]],
        is_busy: Optional[Callable[[], bool]] = None,
        name: str = "activity"
    ):
        self.delay_seconds = delay_seconds
        self._on_expire = on_expire
        self._is_busy = is_busy or (lambda: False)
        self.name = name
        self._task: Optional[asyncio.Task] = None
        self.rearm_count = 0

    @property
    def is_armed(self) -> bool:
        return self._task is not None and not self._task.done()

    def reset(self) -> None:
        """Restart the countdown from now"""
        self.clear()
        self._task = asyncio.create_task(self._countdown())
        logger.debug(f"Timer '{self.name}' armed for {self.delay_seconds}s")

    def clear(self) -> None:
        """Cancel the countdown without firing"""
        if self._task is not None and not self._task.done():
            # Never cancel the task we are running in; it finishes on its own
            if self._task is not asyncio.current_task():
                self._task.cancel()
        self._task = None

    async def _countdown(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.delay_seconds)
                if self._is_busy():
                    self.rearm_count += 1
                    logger.debug(f"Timer '{self.name}' expired while busy, re-arming")
                    continue
                break
        except asyncio.CancelledError:
            return

        logger.info(f"Timer '{self.name}' expired after {self.delay_seconds}s of inactivity")
        try:
            await self._on_expire()
        except Exception as e:
            logger.error(f"Error in timer callback '{self.name}': {e}")

    async def stop(self) -> None:
        """Cancel and wait for the countdown task"""
        task = self._task
        self.clear()
        if task is not None and task is not asyncio.current_task():
            try:
                await task
            except asyncio.CancelledError:
                pass
