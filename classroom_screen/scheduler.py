"""
Cooperative timer queue
━━━━━━━━━━━━━━━━━━━━━━━
Everything in a classroom session runs on one logical thread: UI events,
timer ticks and deferred raster loads interleave through this queue.

Two clocks are supported:
  * virtual time (no clock given): time only moves through advance() /
    run_until(), which makes timers deterministic in tests.
  * wall clock (clock=time.monotonic): poll() runs whatever is due, called
    from the UI's refresh loop.
"""

import heapq
import itertools
import logging
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TimerHandle:
    """Handle returned by the scheduler; cancel() is idempotent."""

    def __init__(self, callback: Callable, args: tuple, due: float, interval: Optional[float] = None):
        self._callback = callback
        self._args = args
        self._first_due = due
        self._runs = 0
        self.due = due
        self.interval = interval
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not self.cancelled

    def _run(self):
        self._runs += 1
        self._callback(*self._args)

    def _next_due(self) -> float:
        # Anchored to the first due time so repeated ticks never drift
        return self._first_due + self._runs * self.interval


class Scheduler:
    """Single-threaded timer queue with cancellable handles."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock
        self._now = clock() if clock else 0.0
        self._queue: List[Tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def time(self) -> float:
        if self._clock is not None:
            self._now = max(self._now, self._clock())
        return self._now

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    def _push(self, handle: TimerHandle):
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))

    def call_soon(self, callback: Callable, *args) -> TimerHandle:
        return self.call_later(0.0, callback, *args)

    def call_later(self, delay: float, callback: Callable, *args) -> TimerHandle:
        handle = TimerHandle(callback, args, self.time() + max(0.0, delay))
        self._push(handle)
        return handle

    def call_every(self, interval: float, callback: Callable, *args) -> TimerHandle:
        """Run callback every `interval` seconds until the handle is cancelled."""
        if interval <= 0:
            raise ValueError("interval must be > 0")
        handle = TimerHandle(callback, args, self.time() + interval, interval=interval)
        self._push(handle)
        return handle

    def run_until(self, deadline: float) -> int:
        """Run every callback due at or before `deadline`, in due order."""
        ran = 0
        while self._queue and self._queue[0][0] <= deadline:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, due)
            try:
                handle._run()
            except Exception:
                logger.exception("Scheduled callback %r failed", handle._callback)
            ran += 1
            if handle.interval is not None and not handle.cancelled:
                handle.due = handle._next_due()
                self._push(handle)
        self._now = max(self._now, deadline)
        return ran

    def advance(self, seconds: float) -> int:
        """Move virtual time forward and run what became due."""
        return self.run_until(self._now + seconds)

    def poll(self) -> int:
        """Run callbacks that are due according to the wall clock."""
        if self._clock is None:
            return self.run_until(self._now)
        return self.run_until(self._clock())

    def cancel_all(self):
        for _, _, handle in self._queue:
            handle.cancel()
        self._queue.clear()
