"""
Event Bus - Typed events between surfaces and workflows

Workflows publish what happened (session started, step advanced, work order
completed) and interested surfaces subscribe. Subscriptions are objects
owned by their subscriber and released when it is torn down, so a destroyed
surface never receives another callback.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Type, Union

from .tasks import BackgroundTasks

logger = logging.getLogger(__name__)


# ============================================================
# EVENTS
# ============================================================

@dataclass(frozen=True)
class Event:
    """Base class for bus events"""
    timestamp: float = field(default_factory=time.time, compare=False, kw_only=True)


@dataclass(frozen=True)
class SessionStarted(Event):
    """A work order session was created by start, resume or restart"""
    session_id: str
    work_order_id: str
    origin: str
    step_number: int


@dataclass(frozen=True)
class StepAdvanced(Event):
    session_id: str
    work_order_id: str
    completed_step: int
    step_number: int


@dataclass(frozen=True)
class WorkflowCompleted(Event):
    session_id: str
    work_order_id: str
    completed_step: int


@dataclass(frozen=True)
class SessionCleared(Event):
    session_id: str
    work_order_id: str


@dataclass(frozen=True)
class WorkflowFailed(Event):
    """A backend call for the workflow failed; local state was not changed"""
    work_order_id: Optional[str]
    action: str
    error: str


@dataclass(frozen=True)
class WorkOrderActionRequested(Event):
    """The chat widget recognized a work order command and handed it off"""
    work_order_id: str
    action: str
    is_voice: bool = False


@dataclass(frozen=True)
class SurfaceClosed(Event):
    surface: str


Handler = Callable[[Any], Union[None, Awaitable[None]]]


# ============================================================
# SUBSCRIPTIONS
# ============================================================

class Subscription:
    """Handle returned by EventBus.subscribe; close() detaches the handler"""

    def __init__(self, bus: "EventBus", handler: Handler, event_type: Optional[Type[Event]]):
        self._bus = bus
        self.handler = handler
        self.event_type = event_type
        self.closed = False

    def matches(self, event: Event) -> bool:
        return self.event_type is None or isinstance(event, self.event_type)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._bus._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class SubscriptionGroup:
    """Subscriptions scoped to one owner's lifetime"""

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def add(self, subscription: Subscription) -> Subscription:
        self._subscriptions.append(subscription)
        return subscription

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions.clear()

    def __len__(self) -> int:
        return len(self._subscriptions)


# ============================================================
# BUS
# ============================================================

class EventBus:
    """
    In-process publish/subscribe.

    Sync handlers run inline during publish. Async handlers are scheduled as
    tasks; ``drain()`` waits for the ones still running. A failing handler
    is logged and does not affect other subscribers.
    """

    def __init__(self, name: str = "events"):
        self.name = name
        self._subscriptions: List[Subscription] = []
        self._tasks = BackgroundTasks(name)

    def subscribe(self, handler: Handler, event_type: Optional[Type[Event]] = None) -> Subscription:
        """
        Register a handler.

        Args:
            handler: Callable receiving the event; may be a coroutine function
            event_type: Only deliver events of this type (all events if None)
        """
        subscription = Subscription(self, handler, event_type)
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, event: Event) -> None:
        for subscription in list(self._subscriptions):
            if subscription.closed or not subscription.matches(event):
                continue
            self._tasks.call(subscription.handler, event)

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    async def drain(self) -> None:
        """Wait until every scheduled async handler has finished"""
        await self._tasks.drain()

    async def close(self) -> None:
        await self._tasks.cancel_all()
        self._subscriptions.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)
