"""
Tests for the event bus, owned subscriptions and background tasks
"""

import asyncio

import pytest

from foreman.core.events import (
    EventBus, SubscriptionGroup, SessionStarted, StepAdvanced, SurfaceClosed
)
from foreman.core.tasks import BackgroundTasks


def started(session_id="s1"):
    return SessionStarted(session_id=session_id, work_order_id="WO-1", origin="fresh", step_number=1)


class TestEventBus:
    """Publish/subscribe delivery"""

    def test_sync_handler_runs_inline(self):
        bus = EventBus()
        received = []
        bus.subscribe(received.append)

        bus.publish(started())
        assert len(received) == 1
        assert received[0].session_id == "s1"

    def test_type_filter(self):
        bus = EventBus()
        received = []
        bus.subscribe(received.append, StepAdvanced)

        bus.publish(started())
        bus.publish(StepAdvanced(session_id="s1", work_order_id="WO-1", completed_step=1, step_number=2))
        assert [type(e) for e in received] == [StepAdvanced]

    @pytest.mark.asyncio
    async def test_async_handler_is_drained(self):
        bus = EventBus()
        received = []

        async def handler(event):
            await asyncio.sleep(0)
            received.append(event)

        bus.subscribe(handler)
        bus.publish(SurfaceClosed(surface="modal"))
        assert received == []
        await bus.drain()
        assert [e.surface for e in received] == ["modal"]

    def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(received.append)
        bus.publish(started())
        assert len(received) == 1

    def test_closed_subscription_receives_nothing(self):
        bus = EventBus()
        received = []
        subscription = bus.subscribe(received.append)
        subscription.close()

        bus.publish(started())
        assert received == []
        assert bus.subscriber_count == 0

    def test_subscription_context_manager(self):
        bus = EventBus()
        received = []
        with bus.subscribe(received.append):
            bus.publish(started("inside"))
        bus.publish(started("outside"))
        assert [e.session_id for e in received] == ["inside"]

    def test_group_closes_all(self):
        bus = EventBus()
        received = []
        group = SubscriptionGroup()
        group.add(bus.subscribe(received.append))
        group.add(bus.subscribe(received.append, SessionStarted))
        assert len(group) == 2

        group.close()
        bus.publish(started())
        assert received == []
        assert len(group) == 0

    def test_events_compare_without_timestamp(self):
        assert started() == started()


class TestBackgroundTasks:
    """Tracked callbacks"""

    @pytest.mark.asyncio
    async def test_call_sync_and_async(self):
        tasks = BackgroundTasks("test")
        seen = []

        async def later(value):
            seen.append(value)

        assert tasks.call(seen.append, "sync") is None
        assert tasks.call(later, "async") is not None
        assert tasks.call(None) is None
        await tasks.drain()
        assert seen == ["sync", "async"]

    @pytest.mark.asyncio
    async def test_drain_includes_tasks_spawned_meanwhile(self):
        tasks = BackgroundTasks("test")
        seen = []

        async def second():
            seen.append("second")

        async def first():
            await asyncio.sleep(0)
            tasks.spawn(second())
            seen.append("first")

        tasks.spawn(first())
        await tasks.drain()
        assert seen == ["first", "second"]
        assert len(tasks) == 0

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        tasks = BackgroundTasks("test")
        task = tasks.spawn(asyncio.sleep(10))
        await tasks.cancel_all()
        assert task.cancelled()
