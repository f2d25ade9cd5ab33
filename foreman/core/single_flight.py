"""
Single-Flight Call Registry - Coalescing of identical in-flight calls

Concurrent requests that share a key share one underlying call. The slot
is released as soon as the call settles, successfully or not, so a later
request always performs fresh work.

A short-horizon duplicate suppressor lives next to the registry and drops
a transcript that repeats the immediately preceding one inside a small
window, even when the earlier call has already finished.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..utils.text import normalize_transcript

logger = logging.getLogger(__name__)

T = TypeVar("T")


def feedback_key(session_id: str, generation: int, step_number: int, polarity: Optional[str] = None) -> str:
    """
    Key for step feedback.

    The session generation keeps a restarted session that got the same id
    back from joining a call made for the old one. Polarity is part of the
    key for message feedback.
    """
    if polarity is None:
        return f"feedback:{session_id}:{generation}:{step_number}"
    return f"feedback:{session_id}:{generation}:{step_number}:{polarity}"


def work_order_key(work_order_id: str, user_id: Any, action: str) -> str:
    return f"workorder:{work_order_id}:{user_id}:{action}"


def query_key(text: str) -> str:
    return f"query:{normalize_transcript(text)}"


class DuplicateSuppressor:
    """
    Rejects a transcript identical to the previous accepted one within a window.

    Only the immediately preceding request is remembered; "A, B, A" inside
    the window processes all three.
    """

    def __init__(self, window_seconds: float = 2.0, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self._clock = clock
        self._last_text: Optional[str] = None
        self._last_at: float = 0.0

    def should_process(self, text: str) -> bool:
        """Record and accept the text, or return False for a duplicate"""
        normalized = normalize_transcript(text)
        now = self._clock()

        if normalized == self._last_text and (now - self._last_at) < self.window_seconds:
            logger.debug(f"Suppressed duplicate transcript: '{normalized}'")
            return False

        self._last_text = normalized
        self._last_at = now
        return True

    def reset(self) -> None:
        self._last_text = None
        self._last_at = 0.0


class SingleFlightRegistry:
    """
    Keyed registry of in-flight calls.

    ``acquire`` does not yield before the call is registered, so two callers
    in the same scheduling turn can never both start the call. Each caller
    gets a shielded view of the shared task: cancelling one waiter does not
    cancel the call the others are waiting on.
    """

    def __init__(self, suppressor: Optional[DuplicateSuppressor] = None):
        self._pending: dict[str, asyncio.Future] = {}
        self.suppressor = suppressor or DuplicateSuppressor()

    def acquire(self, key: str, factory: Callable[[], Awaitable[T]]) -> Awaitable[T]:
        """
        Join the call registered under key, or start it with factory.

        Args:
            key: Deterministic call signature
            factory: Zero-argument coroutine function performing the call

        Returns:
            Awaitable resolving to the shared result (or raising its error)
        """
        existing = self._pending.get(key)
        if existing is not None:
            logger.debug(f"Coalesced call onto in-flight '{key}'")
            return asyncio.shield(existing)

        task = asyncio.ensure_future(factory())
        self._pending[key] = task
        task.add_done_callback(lambda finished: self._release(key, finished))
        logger.debug(f"Started call '{key}'")
        return asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Future) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        # Mark the error retrieved; callers who still wait see it through the shield
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Call '{key}' failed: {task.exception()}")

    def in_flight(self, key: str) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every in-flight call to settle"""
        if self._pending:
            await asyncio.gather(*list(self._pending.values()), return_exceptions=True)


_registry: Optional[SingleFlightRegistry] = None


def get_call_registry(window_seconds: Optional[float] = None) -> SingleFlightRegistry:
    """Get the process-wide registry shared by every surface"""
    global _registry
    if _registry is None:
        suppressor = DuplicateSuppressor(window_seconds) if window_seconds is not None else None
        _registry = SingleFlightRegistry(suppressor)
    return _registry


def reset_call_registry() -> None:
    """Drop the process-wide registry (used between tests)"""
    global _registry
    _registry = None
