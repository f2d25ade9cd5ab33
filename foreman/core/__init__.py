"""Core infrastructure: call registry, events, timers and application wiring."""

from .single_flight import SingleFlightRegistry, DuplicateSuppressor, get_call_registry
from .events import EventBus, Subscription, SubscriptionGroup
from .timers import ActivityTimer

__all__ = [
    "SingleFlightRegistry",
    "DuplicateSuppressor",
    "get_call_registry",
    "EventBus",
    "Subscription",
    "SubscriptionGroup",
    "ActivityTimer",
]
