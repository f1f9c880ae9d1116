"""Propagation engine — the only way the object store changes.

A write to one object can imply writes to others: a slider drives its target
property and every slider inheriting from it, a switch sends its on/off
literal, and any object can be the manual trigger of a sequence block.  The
engine resolves those cascades breadth-first from a single entry point,
``apply(object_id, partial)``.

Traversal rules:
    1. A FIFO worklist starts with the requested write.
    2. Each popped write is shallow-merged into a copy of its object and
       written back whole.  Writes to ids not in the store are dropped.
    3. An id already written in this traversal is skipped, unless the write
       carries ``value`` or ``current_state``.  Those two may re-fire so
       master/slave slider chains and switch echoes settle.
    4. After the worklist drains, manual sequence blocks triggered by any
       written object are handed to ``on_trigger``, then listeners receive
       the settled ``Propagation``.

A genuine cycle (A drives B drives A) would loop forever under rule 3, so each
traversal is capped at ``max_steps`` writes.  Hitting the cap restores the
store to its pre-traversal state and raises ``PropagationDepthError``.

Requests made while a traversal is running (from a listener or trigger hook)
are queued and run after it settles, so no caller ever sees a half-settled
store.
"""

from __future__ import annotations

import math
import sys
import time
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeAlias

from patchbay._errors import PropagationDepthError, PropagationError
from patchbay.model.objects import SequenceBlock, Slider, Switch
from patchbay.model.properties import is_number, merge

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from patchbay._types import ObjectID
    from patchbay.model.objects import BaseObject
    from patchbay.model.store import ObjectStore
    from patchbay.observability.collector import Collector

# Keys allowed to re-fire through an id already written in this traversal
_REFIRE_KEYS: frozenset[str] = frozenset({"value", "current_state"})


@dataclass(frozen=True, slots=True)
class Write:
    """One applied write: which object, which keys."""

    object_id: ObjectID
    keys: frozenset[str]


@dataclass(frozen=True, slots=True)
class Propagation:
    """The settled result of one engine request.

    Attributes:
        root_id: Object the request targeted.
        writes: Applied writes in BFS order.
        triggered: Manual sequence blocks handed to ``on_trigger``.
        removed: Objects deleted by the request.
        duration_ms: Time spent in the traversal.

    """

    root_id: ObjectID
    writes: tuple[Write, ...] = ()
    triggered: tuple[ObjectID, ...] = ()
    removed: tuple[ObjectID, ...] = ()
    duration_ms: float = 0.0

    @property
    def changed_ids(self) -> frozenset[ObjectID]:
        """Ids written or removed by this request."""
        return frozenset(w.object_id for w in self.writes) | frozenset(self.removed)


Listener: TypeAlias = "Callable[[Propagation], Any]"


def rescale_slave(master: Slider, slave: Slider) -> float:
    """Map the master's position in its range onto the slave's range.

    A zero-width master range pins the slave to its minimum.
    """
    master_range = master.max - master.min
    if master_range == 0:
        return slave.min
    return slave.min + ((master.value - master.min) / master_range) * (slave.max - slave.min)


def parse_literal(literal: object) -> float | None:
    """Parse a switch literal as a number; None when it is not numeric."""
    if is_number(literal):
        return literal  # type: ignore[return-value]
    try:
        number = float(str(literal).strip())
    except ValueError:
        return None
    if math.isnan(number):
        return None
    return int(number) if number.is_integer() else number


class PropagationEngine:
    """Serializing owner of an ObjectStore.

    Args:
        store: The store this engine owns.  Nothing else should write to it.
        max_steps: Write cap per traversal.
        collector: Optional event collector.

    Attributes:
        on_trigger: Called with each manual sequence block id a traversal
            triggers.  Set by the sequence executor.

    """

    def __init__(
        self,
        store: ObjectStore,
        *,
        max_steps: int = 10_000,
        collector: Collector | None = None,
    ) -> None:
        self._store = store
        self._max_steps = max_steps
        self._collector = collector
        self._listeners: list[Listener] = []
        self._pending: deque[Callable[[], Propagation]] = deque()
        self._running = False
        # Raw value history per smoothed slider; tuples so checkpoints are cheap
        self._history: dict[ObjectID, tuple[float, ...]] = {}
        self.on_trigger: Callable[[ObjectID], Any] | None = None

    @property
    def store(self) -> ObjectStore:
        """The owned store.  Read freely; write only through the engine."""
        return self._store

    @property
    def busy(self) -> bool:
        """True while a request is being processed."""
        return self._running

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a settled-state listener.  Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ----- Requests -----

    def apply(self, object_id: ObjectID, partial: Mapping[str, Any]) -> Propagation | None:
        """Merge *partial* into *object_id* and settle every implied write.

        Returns:
            The settled Propagation, or None when the request was queued
            behind a running traversal.

        Raises:
            PropagationDepthError: If the traversal exceeded the write cap.
                The store is left exactly as it was before the call.

        """
        props = dict(partial)
        return self._submit(object_id, lambda: self._traverse(object_id, props))

    def insert(self, obj: BaseObject) -> Propagation | None:
        """Add a new object.

        Raises:
            ValueError: If an object with the same id exists.

        """
        if obj.id in self._store:
            msg = f"object id {obj.id!r} already exists"
            raise ValueError(msg)

        def run() -> Propagation:
            self._store.put(obj)
            return Propagation(root_id=obj.id, writes=(Write(obj.id, frozenset()),))

        return self._submit(obj.id, run)

    def remove(self, object_id: ObjectID) -> Propagation | None:
        """Delete an object.  Bindings that named it become inert."""

        def run() -> Propagation:
            removed = self._store.remove(object_id)
            self._history.pop(object_id, None)
            return Propagation(
                root_id=object_id,
                removed=(object_id,) if removed is not None else (),
            )

        return self._submit(object_id, run)

    def replace_all(self, objects: Iterable[BaseObject]) -> Propagation | None:
        """Swap the whole store contents (snapshot load / reload)."""
        objects = tuple(objects)

        def run() -> Propagation:
            before = {o.id for o in self._store}
            self._store.clear()
            for obj in objects:
                self._store.put(obj)
            self._history.clear()
            after = {o.id for o in objects}
            return Propagation(
                root_id="*",
                writes=tuple(Write(o.id, frozenset()) for o in objects),
                removed=tuple(sorted(before - after)),
            )

        return self._submit("*", run)

    # ----- Processing -----

    def _submit(
        self, object_id: ObjectID, run: Callable[[], Propagation],
    ) -> Propagation | None:
        self._pending.append(run)
        if self._running:
            return None

        self._running = True
        own: Propagation | None = None
        own_error: PropagationError | None = None
        first = True
        try:
            while self._pending:
                task = self._pending.popleft()
                try:
                    propagation = task()
                except PropagationError as exc:
                    if first:
                        own_error = exc
                    else:
                        print(f"  Propagation error: {exc}", file=sys.stderr)
                    first = False
                    continue
                if first:
                    own = propagation
                    first = False
                self._settle(propagation)
        finally:
            self._running = False

        if own_error is not None:
            raise own_error
        return own

    def _settle(self, propagation: Propagation) -> None:
        if self.on_trigger is not None:
            for block_id in propagation.triggered:
                self.on_trigger(block_id)
        for listener in list(self._listeners):
            try:
                listener(propagation)
            except Exception as exc:
                print(
                    f"  Listener error after {propagation.root_id!r}: {exc}",
                    file=sys.stderr,
                )

    def _traverse(self, root_id: ObjectID, partial: dict[str, Any]) -> Propagation:
        t0 = time.perf_counter()
        checkpoint = self._store.checkpoint()
        history = dict(self._history)

        worklist: deque[tuple[ObjectID, dict[str, Any]]] = deque([(root_id, partial)])
        visited: set[ObjectID] = set()
        writes: list[Write] = []
        triggered: list[ObjectID] = []

        while worklist:
            object_id, props = worklist.popleft()
            if object_id in visited and not (_REFIRE_KEYS & props.keys()):
                continue

            current = self._store.get(object_id)
            if current is None:
                continue

            if len(writes) >= self._max_steps:
                self._store.restore(checkpoint)
                self._history = history
                if self._collector is not None:
                    self._collector.record_abort(
                        root_id, steps=len(writes), last_id=object_id,
                    )
                raise PropagationDepthError(root_id, len(writes))

            props = self._smooth(current, props)
            updated = merge(current, props)
            self._store.put(updated)
            visited.add(object_id)
            writes.append(Write(object_id, frozenset(props)))

            worklist.extend(self._discover(updated, props, triggered))

        duration_ms = (time.perf_counter() - t0) * 1000
        if self._collector is not None:
            self._collector.record_propagation(
                root_id,
                writes=len(writes),
                triggered=len(triggered),
                duration_ms=duration_ms,
            )
        return Propagation(
            root_id=root_id,
            writes=tuple(writes),
            triggered=tuple(triggered),
            duration_ms=duration_ms,
        )

    def _discover(
        self,
        obj: BaseObject,
        props: Mapping[str, Any],
        triggered: list[ObjectID],
    ) -> list[tuple[ObjectID, dict[str, Any]]]:
        """Writes implied by *props* having just been applied to *obj*."""
        implied: list[tuple[ObjectID, dict[str, Any]]] = []

        if isinstance(obj, Slider) and "value" in props:
            if obj.target_id and obj.target_property:
                implied.append((obj.target_id, {obj.target_property: obj.value}))
            if is_number(obj.value):
                for slave in self._store.of_type(Slider):
                    if slave.inherited_slider_id != obj.id or slave.id == obj.id:
                        continue
                    slave_value = rescale_slave(obj, slave)
                    if slave.value != slave_value:
                        implied.append((slave.id, {"value": slave_value}))

        if isinstance(obj, Switch) and "current_state" in props:
            if obj.target_id and obj.target_property:
                literal = obj.value_on if obj.current_state == 1 else obj.value_off
                number = parse_literal(literal)
                if number is not None:
                    implied.append((obj.target_id, {obj.target_property: number}))

        for block in self._store.of_type(SequenceBlock):
            if (
                block.execution_mode == "manual"
                and block.manual_trigger_id == obj.id
                and block.id not in triggered
            ):
                triggered.append(block.id)

        return implied

    def _smooth(self, current: BaseObject, props: dict[str, Any]) -> dict[str, Any]:
        """Replace a smoothed slider's incoming value with its moving average."""
        if not isinstance(current, Slider) or not current.use_moving_average:
            return props
        raw = props.get("value")
        if not is_number(raw):
            return props
        window = max(1, int(current.moving_average_window))
        samples = (*self._history.get(current.id, ()), raw)[-window:]
        self._history[current.id] = samples
        return {**props, "value": sum(samples) / len(samples)}
