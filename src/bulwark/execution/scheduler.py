"""Cancellable timers for progress sessions.

A Scheduler hands out CancelHandles for one-shot (``call_later``) and
repeating (``call_every``) callbacks. Sessions keep the handles they create
and cancel them all at once, so no callback fires after its owner stopped.

Two implementations:
- AsyncioScheduler: real timers on the running event loop
- ManualScheduler: a virtual clock advanced explicitly, for tests and
  simulations
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from bulwark.core.logging import get_logger

_logger = get_logger("scheduler")

Callback = Callable[[], None]


class CancelHandle:
    """Handle to a scheduled callback.

    Cancelling is idempotent. A one-shot handle also reports ``cancelled``
    once its callback has fired.
    """

    def __init__(self, on_cancel: Callable[[], None] | None = None) -> None:
        self._cancelled = False
        self._on_cancel = on_cancel

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()
            self._on_cancel = None

    def _mark_done(self) -> None:
        self._cancelled = True
        self._on_cancel = None


@runtime_checkable
class Scheduler(Protocol):
    """Timer source used by progress sessions."""

    def now(self) -> float:
        """Current time in seconds on this scheduler's clock."""
        ...

    def call_later(self, delay: float, callback: Callback) -> CancelHandle:
        """Run ``callback`` once after ``delay`` seconds."""
        ...

    def call_every(self, interval: float, callback: Callback) -> CancelHandle:
        """Run ``callback`` every ``interval`` seconds until cancelled."""
        ...


def _run_callback(callback: Callback) -> None:
    try:
        callback()
    except Exception:
        _logger.exception("scheduler.callback_failed")


class AsyncioScheduler:
    """Scheduler backed by the asyncio event loop's timers.

    Must be used from the thread running ``loop`` (the running loop when
    none is given).
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self.loop.time()

    def call_later(self, delay: float, callback: Callback) -> CancelHandle:
        handle: CancelHandle

        def fire() -> None:
            handle._mark_done()
            _run_callback(callback)

        timer = self.loop.call_later(max(0.0, delay), fire)
        handle = CancelHandle(timer.cancel)
        return handle

    def call_every(self, interval: float, callback: Callback) -> CancelHandle:
        if interval <= 0:
            raise ValueError("interval must be positive")

        timer: asyncio.TimerHandle | None = None

        def fire() -> None:
            nonlocal timer
            if handle.cancelled:
                return
            timer = self.loop.call_later(interval, fire)
            _run_callback(callback)

        def cancel() -> None:
            if timer is not None:
                timer.cancel()

        handle = CancelHandle(cancel)
        timer = self.loop.call_later(interval, fire)
        return handle


class ManualScheduler:
    """Scheduler on a virtual clock.

    Time only moves when ``advance()`` is called; due callbacks then run in
    time order (ties in scheduling order), each seeing ``now()`` equal to its
    due time. Callbacks scheduled while advancing are honored within the
    same advance.

    Example usage:
        scheduler = ManualScheduler()
        scheduler.call_later(2.0, on_stage)
        scheduler.advance(2.0)  # on_stage runs
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._counter = itertools.count()
        self._queue: list[tuple[float, int, CancelHandle, Callback]] = []

    def now(self) -> float:
        return self._now

    @property
    def pending(self) -> int:
        """Number of scheduled, not yet cancelled callbacks."""
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)

    def call_later(self, delay: float, callback: Callback) -> CancelHandle:
        handle = CancelHandle()

        def fire() -> None:
            handle._mark_done()
            callback()

        self._push(self._now + max(0.0, delay), handle, fire)
        return handle

    def call_every(self, interval: float, callback: Callback) -> CancelHandle:
        if interval <= 0:
            raise ValueError("interval must be positive")

        handle = CancelHandle()

        def fire() -> None:
            self._push(self._now + interval, handle, fire)
            callback()

        self._push(self._now + interval, handle, fire)
        return handle

    def advance(self, seconds: float) -> None:
        """Move the clock forward, running every callback that comes due."""
        if seconds < 0:
            raise ValueError("cannot move time backwards")
        target = self._now + seconds

        while self._queue and self._queue[0][0] <= target:
            due, _, handle, callback = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = due
            _run_callback(callback)

        self._now = target

    def _push(self, due: float, handle: CancelHandle, callback: Callback) -> None:
        heapq.heappush(self._queue, (due, next(self._counter), handle, callback))


__all__ = [
    "AsyncioScheduler",
    "CancelHandle",
    "ManualScheduler",
    "Scheduler",
]
