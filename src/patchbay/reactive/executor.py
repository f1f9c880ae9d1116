"""Sequence executor — steps sequence blocks through their instructions.

Each block has one integer cursor, the order of the last instruction it ran
(0 before the first step).  ``step`` advances it round-robin:

    next = (cursor mod N) + 1

so the first call runs order 1 and the call after order N wraps back to 1.
The instruction's write is handed to the engine on the next scheduler tick,
never inside the step itself, so a step can't re-enter a traversal that is
still running.  After every step the block ignores further steps for a short
cooldown, which debounces triggers that fire several times in one burst.

Auto-mode blocks with at least one instruction step on a repeating timer;
``sync`` keeps exactly one timer per such block, at its current interval.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from patchbay._errors import PropagationError
from patchbay.model.objects import SequenceBlock

if TYPE_CHECKING:
    from collections.abc import Callable

    from patchbay._types import ObjectID
    from patchbay.observability.collector import Collector
    from patchbay.reactive.engine import Propagation, PropagationEngine
    from patchbay.reactive.scheduler import Handle, Scheduler


@dataclass(frozen=True, slots=True)
class _Timer:
    interval_s: float
    handle: Handle


class SequenceExecutor:
    """Runs sequence blocks for one engine.

    Registers itself as the engine's trigger hook and as a listener so timers
    follow edits to the blocks.

    Args:
        engine: Engine whose store holds the blocks and receives the writes.
        scheduler: Owner of cooldown, deferral and auto-mode timers.
        cooldown_s: Debounce window after each step.
        collector: Optional event collector.

    Attributes:
        on_step: Called with (block_id, cursor) after every step that moved a
            cursor.

    """

    def __init__(
        self,
        engine: PropagationEngine,
        scheduler: Scheduler,
        *,
        cooldown_s: float = 0.1,
        collector: Collector | None = None,
    ) -> None:
        self._engine = engine
        self._scheduler = scheduler
        self._cooldown_s = cooldown_s
        self._collector = collector
        self._cursors: dict[ObjectID, int] = {}
        self._cooling: dict[ObjectID, Handle] = {}
        self._timers: dict[ObjectID, _Timer] = {}
        self.on_step: Callable[[ObjectID, int], Any] | None = None
        engine.on_trigger = self.step
        self._unsubscribe = engine.subscribe(self._on_settled)

    @property
    def cursors(self) -> dict[ObjectID, int]:
        """Current cursor per block (copy)."""
        return dict(self._cursors)

    def cursor(self, block_id: ObjectID) -> int:
        return self._cursors.get(block_id, 0)

    def is_cooling(self, block_id: ObjectID) -> bool:
        return block_id in self._cooling

    @property
    def timed_blocks(self) -> frozenset[ObjectID]:
        """Blocks with a live auto-mode timer."""
        return frozenset(self._timers)

    # ----- Stepping -----

    def step(self, block_id: ObjectID) -> int | None:
        """Advance *block_id* by one instruction.

        Returns:
            The new cursor, or None when the step was a no-op (cooling down,
            missing block, or no instructions).

        """
        if block_id in self._cooling:
            return None

        self._cooling[block_id] = self._scheduler.call_later(
            self._cooldown_s, lambda: self._cooling.pop(block_id, None),
        )

        block = self._engine.store.get(block_id)
        if not isinstance(block, SequenceBlock) or not block.instructions:
            return None

        next_order = (self._cursors.get(block_id, 0) % len(block.instructions)) + 1
        line = next((i for i in block.instructions if i.order == next_order), None)

        target_id = ""
        prop = ""
        if line is not None and line.target_object_id and line.property:
            target_id = line.target_object_id
            prop = line.property
            write = {prop: line.value}
            self._scheduler.call_later(0, lambda: self._deferred_apply(target_id, write))

        self._cursors[block_id] = next_order
        if self._collector is not None:
            self._collector.record_step(block_id, next_order, target_id=target_id, property=prop)
        if self.on_step is not None:
            self.on_step(block_id, next_order)
        return next_order

    def _deferred_apply(self, target_id: ObjectID, write: dict[str, float]) -> None:
        try:
            self._engine.apply(target_id, write)
        except PropagationError as exc:
            print(f"  Sequence write to {target_id!r} aborted: {exc}", file=sys.stderr)

    # ----- Timers -----

    def sync(self) -> None:
        """Reconcile auto-mode timers with the blocks currently in the store."""
        wanted: dict[ObjectID, float] = {}
        for block in self._engine.store.of_type(SequenceBlock):
            if block.execution_mode == "auto" and block.instructions:
                interval_ms = block.auto_interval_ms
                if interval_ms and interval_ms > 0:
                    wanted[block.id] = interval_ms / 1000

        for block_id in list(self._timers):
            timer = self._timers[block_id]
            if wanted.get(block_id) != timer.interval_s:
                timer.handle.cancel()
                del self._timers[block_id]

        for block_id, interval_s in wanted.items():
            if block_id not in self._timers:
                handle = self._scheduler.call_repeating(
                    interval_s, lambda b=block_id: self.step(b),
                )
                self._timers[block_id] = _Timer(interval_s, handle)

    def forget(self, block_id: ObjectID) -> None:
        """Drop every piece of state held for *block_id*."""
        timer = self._timers.pop(block_id, None)
        if timer is not None:
            timer.handle.cancel()
        cooling = self._cooling.pop(block_id, None)
        if cooling is not None:
            cooling.cancel()
        self._cursors.pop(block_id, None)

    def close(self) -> None:
        """Cancel all timers and detach from the engine.  Cursors stay readable."""
        for timer in self._timers.values():
            timer.handle.cancel()
        for handle in self._cooling.values():
            handle.cancel()
        self._timers.clear()
        self._cooling.clear()
        self._unsubscribe()
        if self._engine.on_trigger == self.step:
            self._engine.on_trigger = None

    def _on_settled(self, propagation: Propagation) -> None:
        for block_id in propagation.removed:
            self.forget(block_id)
        self.sync()
