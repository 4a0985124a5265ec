"""Tests for bulwark.execution.scheduler module."""

import asyncio

import pytest

from bulwark.execution.scheduler import (
    AsyncioScheduler,
    CancelHandle,
    ManualScheduler,
    Scheduler,
)


class TestCancelHandle:
    """Tests for CancelHandle."""

    def test_cancel_is_idempotent(self):
        calls = []
        handle = CancelHandle(lambda: calls.append(1))
        handle.cancel()
        handle.cancel()
        assert handle.cancelled is True
        assert calls == [1]


class TestManualScheduler:
    """Tests for the virtual-clock scheduler."""

    def test_implements_protocol(self):
        assert isinstance(ManualScheduler(), Scheduler)

    def test_call_later_fires_when_due(self, scheduler):
        fired = []
        scheduler.call_later(2.0, lambda: fired.append(scheduler.now()))

        scheduler.advance(1.9)
        assert fired == []
        scheduler.advance(0.1)
        assert fired == [2.0]

    def test_one_shot_handle_done_after_firing(self, scheduler):
        handle = scheduler.call_later(1.0, lambda: None)
        scheduler.advance(1.0)
        assert handle.cancelled is True
        assert scheduler.pending == 0

    def test_cancelled_callback_never_fires(self, scheduler):
        fired = []
        handle = scheduler.call_later(1.0, lambda: fired.append(1))
        handle.cancel()
        scheduler.advance(5.0)
        assert fired == []

    def test_callbacks_run_in_time_order(self, scheduler):
        order = []
        scheduler.call_later(3.0, lambda: order.append("c"))
        scheduler.call_later(1.0, lambda: order.append("a"))
        scheduler.call_later(2.0, lambda: order.append("b"))
        scheduler.advance(10.0)
        assert order == ["a", "b", "c"]

    def test_ties_run_in_scheduling_order(self, scheduler):
        order = []
        scheduler.call_later(1.0, lambda: order.append(1))
        scheduler.call_later(1.0, lambda: order.append(2))
        scheduler.advance(1.0)
        assert order == [1, 2]

    def test_call_every_repeats_until_cancelled(self, scheduler):
        ticks = []
        handle = scheduler.call_every(0.5, lambda: ticks.append(scheduler.now()))

        scheduler.advance(2.0)
        assert ticks == [0.5, 1.0, 1.5, 2.0]

        handle.cancel()
        scheduler.advance(2.0)
        assert len(ticks) == 4

    def test_callbacks_scheduled_while_advancing(self, scheduler):
        fired = []
        scheduler.call_later(1.0, lambda: scheduler.call_later(1.0, lambda: fired.append(scheduler.now())))
        scheduler.advance(3.0)
        assert fired == [2.0]
        assert scheduler.now() == 3.0

    def test_failing_callback_does_not_stop_others(self, scheduler):
        fired = []

        def broken() -> None:
            raise RuntimeError("boom")

        scheduler.call_later(1.0, broken)
        scheduler.call_later(1.0, lambda: fired.append(1))
        scheduler.advance(1.0)
        assert fired == [1]

    def test_rejects_negative_advance(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.advance(-1.0)

    def test_rejects_non_positive_interval(self, scheduler):
        with pytest.raises(ValueError):
            scheduler.call_every(0, lambda: None)


class TestAsyncioScheduler:
    """Tests for the event-loop scheduler."""

    @pytest.mark.asyncio
    async def test_call_later(self):
        scheduler = AsyncioScheduler()
        fired = asyncio.Event()
        handle = scheduler.call_later(0.01, fired.set)

        await asyncio.wait_for(fired.wait(), timeout=1.0)
        assert handle.cancelled is True

    @pytest.mark.asyncio
    async def test_cancel_prevents_callback(self):
        scheduler = AsyncioScheduler()
        fired = []
        handle = scheduler.call_later(0.01, lambda: fired.append(1))
        handle.cancel()
        await asyncio.sleep(0.05)
        assert fired == []

    @pytest.mark.asyncio
    async def test_call_every(self):
        scheduler = AsyncioScheduler()
        ticks = []
        done = asyncio.Event()

        def tick() -> None:
            ticks.append(1)
            if len(ticks) == 3:
                done.set()

        handle = scheduler.call_every(0.01, tick)
        await asyncio.wait_for(done.wait(), timeout=1.0)
        handle.cancel()
        count = len(ticks)
        await asyncio.sleep(0.05)
        assert len(ticks) == count

    @pytest.mark.asyncio
    async def test_now_follows_loop_time(self):
        scheduler = AsyncioScheduler()
        assert scheduler.now() == pytest.approx(asyncio.get_running_loop().time(), abs=0.1)
