"""
scheduler.py - One-shot timer abstraction for the scenario engine.

The engine never sleeps or starts threads itself. It asks a Scheduler to
call it back after a delay and keeps the returned handle so it can cancel
the callback later.

Implementations:
    ThreadingScheduler: Real wall-clock timers on daemon threads.
    ManualScheduler: Deterministic fake clock; time only moves when the
        caller advances it. Used by tests and the simulate CLI.

Usage:
    scheduler = ManualScheduler()
    handle = scheduler.schedule_once(500, lambda: print("fired"))
    scheduler.advance(499)   # nothing
    scheduler.advance(1)     # prints "fired"
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], None]


class TimerHandle(ABC):
    """Handle to a scheduled callback."""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the callback. Safe to call more than once or after it fired."""
        ...

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        ...


class Scheduler(ABC):
    """Abstract one-shot timer source."""

    @abstractmethod
    def schedule_once(self, delay_ms: int, callback: TimerCallback) -> TimerHandle:
        """Run callback once after delay_ms milliseconds.

        Args:
            delay_ms: Delay in milliseconds (0 means "as soon as possible",
                never synchronously inside this call).
            callback: Zero-argument callable.

        Returns:
            A TimerHandle that cancels the callback.
        """
        ...

    def shutdown(self) -> None:
        """Cancel every outstanding callback. Default is a no-op."""


# =============================================================================
# Real-time scheduler
# =============================================================================


class _ThreadingHandle(TimerHandle):
    def __init__(self, timer: threading.Timer, owner: "ThreadingScheduler"):
        self._timer = timer
        self._owner = owner
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.cancel()
        self._owner._forget(self)

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ThreadingScheduler(Scheduler):
    """Wall-clock scheduler backed by threading.Timer daemon threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._handles: Set[_ThreadingHandle] = set()

    def schedule_once(self, delay_ms: int, callback: TimerCallback) -> TimerHandle:
        holder: List[_ThreadingHandle] = []

        def _fire() -> None:
            if holder:
                self._forget(holder[0])
            try:
                callback()
            except Exception:
                logger.exception("Scheduled callback raised")

        timer = threading.Timer(max(delay_ms, 0) / 1000.0, _fire)
        timer.daemon = True
        handle = _ThreadingHandle(timer, self)
        holder.append(handle)
        with self._lock:
            self._handles.add(handle)
        timer.start()
        return handle

    def _forget(self, handle: _ThreadingHandle) -> None:
        with self._lock:
            self._handles.discard(handle)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._handles)

    def shutdown(self) -> None:
        with self._lock:
            handles = list(self._handles)
            self._handles.clear()
        for handle in handles:
            handle.cancel()


# =============================================================================
# Deterministic scheduler
# =============================================================================


class _ManualHandle(TimerHandle):
    def __init__(self, due_ms: int, seq: int, callback: TimerCallback):
        self.due_ms = due_ms
        self.seq = seq
        self.callback = callback
        self.fired = False
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        return not (self._cancelled or self.fired)


class ManualScheduler(Scheduler):
    """Fake clock scheduler driven explicitly by the caller.

    Callbacks fire in due-time order; callbacks due at the same instant
    fire in the order they were scheduled. A callback scheduled while
    advance() is running fires within the same advance() call if it
    falls due before the target time.
    """

    def __init__(self, start_ms: int = 0):
        self._now_ms = start_ms
        self._queue: List[Tuple[int, int, _ManualHandle]] = []
        self._counter = itertools.count()

    @property
    def now_ms(self) -> int:
        """Current fake time in milliseconds."""
        return self._now_ms

    @property
    def pending_count(self) -> int:
        """Number of callbacks scheduled and neither fired nor cancelled."""
        return sum(1 for _, _, h in self._queue if h.active)

    def next_due_ms(self) -> Optional[int]:
        """Due time of the earliest live callback, or None when idle."""
        self._drop_dead()
        return self._queue[0][0] if self._queue else None

    def schedule_once(self, delay_ms: int, callback: TimerCallback) -> TimerHandle:
        seq = next(self._counter)
        handle = _ManualHandle(self._now_ms + max(delay_ms, 0), seq, callback)
        heapq.heappush(self._queue, (handle.due_ms, seq, handle))
        return handle

    def advance(self, ms: int) -> int:
        """Move the clock forward by ms, firing every callback that falls due.

        Returns:
            Number of callbacks fired.
        """
        if ms < 0:
            raise ValueError("Cannot move the clock backwards")
        target = self._now_ms + ms
        fired = 0
        while True:
            self._drop_dead()
            if not self._queue or self._queue[0][0] > target:
                break
            due, _, handle = heapq.heappop(self._queue)
            self._now_ms = due
            handle.fired = True
            handle.callback()
            fired += 1
        self._now_ms = target
        return fired

    def run_until_idle(self, max_ms: int = 3_600_000) -> int:
        """Fire callbacks until none are pending or max_ms of fake time passes.

        Returns:
            Fake milliseconds elapsed.
        """
        start = self._now_ms
        limit = start + max_ms
        while True:
            due = self.next_due_ms()
            if due is None or due > limit:
                break
            self.advance(due - self._now_ms)
        return self._now_ms - start

    def shutdown(self) -> None:
        for _, _, handle in self._queue:
            handle.cancel()
        self._queue.clear()

    def _drop_dead(self) -> None:
        while self._queue and not self._queue[0][2].active:
            heapq.heappop(self._queue)
