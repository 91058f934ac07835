"""
Scheduling
===========
Injectable timer and clock interface for the pipeline.

All pipeline state is mutated from a single event thread. Timers fire one at
a time and run to completion; blocking work (the AI request) is pushed to
``run_in_background`` whose completion callback is delivered back onto the
same event thread.

Two implementations:
- AsyncioScheduler: production, driven by the running asyncio event loop.
- ManualScheduler: virtual clock advanced explicitly (tests, offline replays).
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import time
from typing import Any, Callable, List, Optional, Protocol, Tuple

logger = logging.getLogger("Scheduler")

Callback = Callable[[], None]
Settled = Callable[[Any, Optional[BaseException]], None]


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def now_ms(self) -> int:
        ...

    def call_later(self, delay_sec: float, fn: Callback) -> TimerHandle:
        ...

    def call_every(self, interval_sec: float, fn: Callback) -> TimerHandle:
        ...

    def run_in_background(self, fn: Callable[[], Any], on_settled: Settled) -> None:
        ...


# ============================================
# ASYNCIO
# ============================================

class _RepeatingTimer:
    """
    Fixed-rate timer on an asyncio loop. Runs are anchored to the first one.

    Slots missed while the loop was stalled are skipped, not replayed, so a
    stall produces at most one late run.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, interval_sec: float, fn: Callback):
        self._loop = loop
        self._interval = interval_sec
        self._fn = fn
        self._start = loop.time()
        self._count = 0
        self._cancelled = False
        self._handle = None
        self._schedule_next()

    def _schedule_next(self):
        now = self._loop.time()
        self._count += 1
        due = self._start + self._count * self._interval
        if due <= now:
            self._count = int((now - self._start) // self._interval) + 1
            due = self._start + self._count * self._interval
        self._handle = self._loop.call_at(due, self._run)

    def _run(self):
        if self._cancelled:
            return
        try:
            self._fn()
        except Exception:
            logger.exception("Periodic callback failed")
        if not self._cancelled:
            self._schedule_next()

    def cancel(self):
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class AsyncioScheduler:
    """Scheduler bound to an asyncio event loop (the running loop by default)."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        # Epoch anchor read once; later readings follow the monotonic clock
        self._epoch_ms = time.time() * 1000
        self._mono_start = time.monotonic()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> int:
        return int(self._epoch_ms + (time.monotonic() - self._mono_start) * 1000)

    def call_later(self, delay_sec: float, fn: Callback) -> TimerHandle:
        return self.loop.call_later(delay_sec, fn)

    def call_every(self, interval_sec: float, fn: Callback) -> TimerHandle:
        return _RepeatingTimer(self.loop, interval_sec, fn)

    def run_in_background(self, fn: Callable[[], Any], on_settled: Settled) -> None:
        future = self.loop.run_in_executor(None, fn)

        # asyncio runs done-callbacks on the loop thread
        def _done(fut: asyncio.Future):
            if fut.cancelled():
                on_settled(None, asyncio.CancelledError())
                return
            exc = fut.exception()
            on_settled(None if exc else fut.result(), exc)

        future.add_done_callback(_done)


# ============================================
# MANUAL (virtual clock)
# ============================================

class _ManualTimer:
    def __init__(self, interval_ms: Optional[int], fn: Callback):
        self.interval_ms = interval_ms
        self.fn = fn
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """
    Deterministic scheduler: time only moves when ``advance`` is called.

    Background jobs are queued and only run when ``settle_background`` is
    called, so tests control exactly when an in-flight request completes.
    """

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self._now = int(start_ms)
        self._seq = itertools.count()
        self._timers: List[Tuple[int, int, _ManualTimer]] = []
        self._background: List[Tuple[Callable[[], Any], Settled]] = []

    def now_ms(self) -> int:
        return self._now

    def call_later(self, delay_sec: float, fn: Callback) -> TimerHandle:
        timer = _ManualTimer(None, fn)
        self._push(self._now + _to_ms(delay_sec), timer)
        return timer

    def call_every(self, interval_sec: float, fn: Callback) -> TimerHandle:
        interval_ms = max(1, _to_ms(interval_sec))
        timer = _ManualTimer(interval_ms, fn)
        self._push(self._now + interval_ms, timer)
        return timer

    def run_in_background(self, fn: Callable[[], Any], on_settled: Settled) -> None:
        self._background.append((fn, on_settled))

    @property
    def pending_background(self) -> int:
        return len(self._background)

    @property
    def active_timers(self) -> int:
        return sum(1 for _, _, t in self._timers if not t.cancelled)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing every timer that falls due on the way."""
        target = self._now + _to_ms(seconds)
        while self._timers and self._timers[0][0] <= target:
            due, _, timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self._now = due
            timer.fn()
            if timer.interval_ms is not None and not timer.cancelled:
                self._push(due + timer.interval_ms, timer)
        self._now = target

    def settle_background(self) -> int:
        """Run queued background jobs and deliver their results. Returns the count run."""
        jobs, self._background = self._background, []
        for fn, on_settled in jobs:
            try:
                result = fn()
            except Exception as exc:
                on_settled(None, exc)
            else:
                on_settled(result, None)
        return len(jobs)

    def _push(self, due: int, timer: _ManualTimer):
        heapq.heappush(self._timers, (due, next(self._seq), timer))


def _to_ms(seconds: float) -> int:
    return int(round(seconds * 1000))
