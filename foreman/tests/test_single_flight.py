"""
Tests for the single-flight call registry and duplicate suppression
"""

import asyncio

import pytest

from foreman.core.single_flight import (
    DuplicateSuppressor, SingleFlightRegistry, feedback_key, work_order_key, query_key,
    get_call_registry, reset_call_registry
)


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestSingleFlightRegistry:
    """Coalescing of identical in-flight calls"""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_call(self):
        registry = SingleFlightRegistry()
        calls = 0
        release = asyncio.Event()

        async def fetch():
            nonlocal calls
            calls += 1
            await release.wait()
            return "result"

        waiters = [registry.acquire("key", fetch) for _ in range(5)]
        assert registry.in_flight("key")
        release.set()
        results = await asyncio.gather(*waiters)

        assert calls == 1
        assert results == ["result"] * 5
        assert not registry.in_flight("key")
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_distinct_keys_run_separately(self):
        registry = SingleFlightRegistry()
        calls = []

        async def fetch(name):
            calls.append(name)
            return name

        results = await asyncio.gather(
            registry.acquire("a", lambda: fetch("a")),
            registry.acquire("b", lambda: fetch("b")),
        )
        assert sorted(calls) == ["a", "b"]
        assert results == ["a", "b"]

    @pytest.mark.asyncio
    async def test_slot_released_after_success(self):
        registry = SingleFlightRegistry()
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            return calls

        assert await registry.acquire("key", fetch) == 1
        assert await registry.acquire("key", fetch) == 2

    @pytest.mark.asyncio
    async def test_failure_is_shared_and_not_cached(self):
        registry = SingleFlightRegistry()
        calls = 0

        async def failing():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0)
            raise RuntimeError("backend down")

        first = registry.acquire("key", failing)
        second = registry.acquire("key", failing)
        results = await asyncio.gather(first, second, return_exceptions=True)

        assert calls == 1
        assert all(isinstance(r, RuntimeError) for r in results)
        assert not registry.in_flight("key")

        with pytest.raises(RuntimeError):
            await registry.acquire("key", failing)
        assert calls == 2

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_call(self):
        registry = SingleFlightRegistry()
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            return "done"

        async def wait_for_call():
            return await registry.acquire("key", fetch)

        impatient = asyncio.create_task(wait_for_call())
        patient = registry.acquire("key", fetch)
        await asyncio.sleep(0)

        impatient.cancel()
        await asyncio.gather(impatient, return_exceptions=True)
        release.set()

        assert await patient == "done"

    @pytest.mark.asyncio
    async def test_drain_waits_for_pending_calls(self):
        registry = SingleFlightRegistry()
        finished = []

        async def slow():
            await asyncio.sleep(0.01)
            finished.append(True)

        registry.acquire("key", slow)
        await registry.drain()
        assert finished == [True]

    def test_process_wide_registry(self):
        reset_call_registry()
        try:
            registry = get_call_registry(window_seconds=5.0)
            assert get_call_registry() is registry
            assert registry.suppressor.window_seconds == 5.0
        finally:
            reset_call_registry()


class TestKeys:
    """Deterministic call signatures"""

    def test_feedback_key_polarity(self):
        assert feedback_key("s1", 1, 2) == "feedback:s1:1:2"
        assert feedback_key("s1", 1, 2, "positive") != feedback_key("s1", 1, 2, "negative")

    def test_feedback_key_generation(self):
        assert feedback_key("s1", 1, 2) != feedback_key("s1", 2, 2)

    def test_work_order_key(self):
        assert work_order_key("WO-5", 1, "start") != work_order_key("WO-5", 1, "restart")

    def test_query_key_normalizes(self):
        assert query_key("  What  is   this ") == query_key("what is this")


class TestDuplicateSuppressor:
    """Short-horizon duplicate suppression"""

    def test_identical_text_inside_window_is_dropped(self):
        clock = FakeClock()
        suppressor = DuplicateSuppressor(window_seconds=2.0, clock=clock)
        assert suppressor.should_process("start work order 5")
        clock.now += 1.0
        assert not suppressor.should_process("Start  work order 5")

    def test_identical_text_after_window_is_processed(self):
        clock = FakeClock()
        suppressor = DuplicateSuppressor(window_seconds=2.0, clock=clock)
        assert suppressor.should_process("proceed")
        clock.now += 2.5
        assert suppressor.should_process("proceed")

    def test_only_the_previous_request_is_remembered(self):
        clock = FakeClock()
        suppressor = DuplicateSuppressor(window_seconds=2.0, clock=clock)
        assert suppressor.should_process("a")
        assert suppressor.should_process("b")
        assert suppressor.should_process("a")

    def test_reset(self):
        suppressor = DuplicateSuppressor(window_seconds=2.0, clock=FakeClock())
        assert suppressor.should_process("hello")
        suppressor.reset()
        assert suppressor.should_process("hello")
