"""Schedulers — explicit owners of every timer in the workbench.

Components never touch the event loop's timers directly.  They ask a
``Scheduler`` for a one-shot or repeating callback and keep the returned
handle, so deleting an object cancels exactly the timers it owns.

Two implementations:

- ``AsyncioScheduler`` runs callbacks on the running asyncio loop.
- ``ManualScheduler`` runs them on a virtual clock advanced explicitly,
  for headless stepping and deterministic tests.

Repeating callbacks are rescheduled only after the previous run returns, so
a timer never overlaps itself.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from patchbay._types import Callback


class Handle(Protocol):
    """Cancellation handle returned by a scheduler."""

    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Timer factory owned by the executor, sessions and autosave."""

    def call_later(self, delay_s: float, callback: Callback) -> Handle: ...

    def call_repeating(self, interval_s: float, callback: Callback) -> Handle: ...


# ---------------------------------------------------------------------------
# asyncio
# ---------------------------------------------------------------------------


class _RepeatingHandle:
    """Re-arms a loop timer after each run until cancelled."""

    __slots__ = ("_callback", "_cancelled", "_interval_s", "_loop", "_timer")

    def __init__(
        self, loop: asyncio.AbstractEventLoop, interval_s: float, callback: Callback,
    ) -> None:
        self._loop = loop
        self._interval_s = interval_s
        self._callback = callback
        self._cancelled = False
        self._timer: asyncio.TimerHandle = loop.call_later(interval_s, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        try:
            self._callback()
        finally:
            if not self._cancelled:
                self._timer = self._loop.call_later(self._interval_s, self._fire)

    def cancel(self) -> None:
        self._cancelled = True
        self._timer.cancel()


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop.

    Args:
        loop: Loop to schedule on.  Defaults to the running loop, resolved
            on first use so the scheduler can be built before the loop starts.

    """

    __slots__ = ("_loop",)

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay_s: float, callback: Callback) -> Handle:
        return self.loop.call_later(delay_s, callback)

    def call_repeating(self, interval_s: float, callback: Callback) -> Handle:
        return _RepeatingHandle(self.loop, interval_s, callback)


# ---------------------------------------------------------------------------
# Virtual clock
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _Entry:
    callback: Callback
    interval_s: float | None = None
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Deterministic scheduler on a virtual clock.

    Nothing runs until ``advance()`` is called.  Callbacks due at the same
    instant run in scheduling order; callbacks scheduled while advancing run
    in the same call if they fall due inside the advanced window.

    """

    __slots__ = ("_counter", "_queue", "now")

    def __init__(self) -> None:
        self.now = 0.0
        self._counter = itertools.count()
        self._queue: list[tuple[float, int, _Entry]] = []

    def call_later(self, delay_s: float, callback: Callback) -> Handle:
        entry = _Entry(callback)
        self._push(self.now + max(delay_s, 0.0), entry)
        return entry

    def call_repeating(self, interval_s: float, callback: Callback) -> Handle:
        if interval_s <= 0:
            msg = f"repeating interval must be positive, got {interval_s}"
            raise ValueError(msg)
        entry = _Entry(callback, interval_s=interval_s)
        self._push(self.now + interval_s, entry)
        return entry

    @property
    def pending(self) -> int:
        """Number of live scheduled callbacks."""
        return sum(1 for _, _, e in self._queue if not e.cancelled)

    def advance(self, seconds: float = 0.0) -> int:
        """Move the clock forward, running every callback that falls due.

        Returns:
            Number of callbacks run.

        """
        deadline = self.now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= deadline:
            due, _, entry = heapq.heappop(self._queue)
            if entry.cancelled:
                continue
            self.now = max(self.now, due)
            try:
                entry.callback()
            finally:
                ran += 1
                if entry.interval_s is not None and not entry.cancelled:
                    self._push(due + entry.interval_s, entry)
        self.now = deadline
        return ran

    def run_pending(self) -> int:
        """Run callbacks due now (zero-delay deferrals included)."""
        return self.advance(0.0)

    def _push(self, due: float, entry: _Entry) -> None:
        heapq.heappush(self._queue, (due, next(self._counter), entry))
