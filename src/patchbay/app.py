"""Patchbay application — the workbench that ties the runtime together.

A Workbench owns one object store and everything that acts on it: the
propagation engine, the sequence executor, one Firmata session per bridge,
the frame broadcaster for rendering surfaces, and snapshot persistence.
``run()`` is the primary entry point; the CLI calls it.
"""

from __future__ import annotations

import asyncio
import dataclasses
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from patchbay._errors import BindingError, SnapshotError
from patchbay.config_loader import load_config
from patchbay.firmata.session import BridgeSession
from patchbay.firmata.transport import serial_transport_factory
from patchbay.model.factory import create_object
from patchbay.model.instructions import (
    add_instruction,
    delete_instruction,
    update_instruction,
)
from patchbay.model.objects import Bridge, SequenceBlock, Slider, Switch
from patchbay.model.properties import merge, numeric_properties, validate_binding
from patchbay.model.store import ObjectStore
from patchbay.observability.collector import Collector
from patchbay.persist.snapshot import (
    Snapshot,
    Theme,
    load_snapshot,
    loads_snapshot,
    save_snapshot,
)
from patchbay.persist.watcher import SnapshotWatcher
from patchbay.reactive.broadcaster import Broadcaster
from patchbay.reactive.engine import PropagationEngine
from patchbay.reactive.executor import SequenceExecutor
from patchbay.reactive.scheduler import AsyncioScheduler

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from patchbay._types import ObjectID, ObjectKind
    from patchbay.config import PatchbayConfig
    from patchbay.firmata.transport import TransportFactory
    from patchbay.model.objects import BaseObject
    from patchbay.reactive.engine import Propagation
    from patchbay.reactive.scheduler import Handle, Scheduler


class Workbench:
    """One live patch: objects, propagation, sequencing, bridges, persistence.

    Args:
        config: Resolved configuration.
        scheduler: Timer owner.  Defaults to the running asyncio loop.
        transport_factory: Builds bridge transports.  Defaults to pyserial on
            ``config.serial_port``.
        collector: Event collector shared by every component.

    """

    def __init__(
        self,
        config: PatchbayConfig,
        *,
        scheduler: Scheduler | None = None,
        transport_factory: TransportFactory | None = None,
        collector: Collector | None = None,
    ) -> None:
        self.config = config
        self.collector = collector or Collector()
        self.scheduler = scheduler or AsyncioScheduler()
        self.store = ObjectStore()
        self.engine = PropagationEngine(
            self.store,
            max_steps=config.max_propagation_steps,
            collector=self.collector,
        )
        self.executor = SequenceExecutor(
            self.engine,
            self.scheduler,
            cooldown_s=config.cooldown_s,
            collector=self.collector,
        )
        self.broadcaster = Broadcaster()
        self.theme = Theme()
        self._transport_factory = transport_factory or serial_transport_factory(
            config.serial_port,
        )
        self._sessions: dict[ObjectID, BridgeSession] = {}
        self._releasing: set[asyncio.Task[None]] = set()
        self._autosave: Handle | None = None
        self._autosave_enabled = False
        self._dirty = False
        self._last_saved_text: str | None = None

        self.engine.subscribe(self._on_settled)
        self.executor.on_step = self._on_step

    # ----- Persistence -----

    def load(self) -> int:
        """Replace the store with the snapshot on disk.

        Returns:
            Number of objects loaded.

        Raises:
            SnapshotError: If the snapshot file is malformed.

        """
        snapshot = load_snapshot(self.config.snapshot_path)
        self._install(snapshot)
        self._dirty = False
        return len(self.store)

    def snapshot(self) -> Snapshot:
        return Snapshot(theme=self.theme, objects=self.store.objects())

    def save(self) -> Path:
        """Write the current store to the snapshot path."""
        self._cancel_autosave()
        path = self.config.snapshot_path
        self._last_saved_text = save_snapshot(path, self.snapshot())
        self._dirty = False
        return path

    def reload(self) -> bool:
        """Re-read the snapshot after an external edit.

        Returns:
            True when the store was replaced.  The workbench's own writes and
            unreadable files are ignored.

        """
        path = self.config.snapshot_path
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            print(f"  Snapshot reload skipped: {exc}", file=sys.stderr)
            return False
        if text == self._last_saved_text:
            return False
        try:
            snapshot = loads_snapshot(text)
        except SnapshotError as exc:
            print(f"  Snapshot reload skipped: {exc}", file=sys.stderr)
            return False

        self._last_saved_text = text
        self._install(snapshot)
        self._dirty = False
        return True

    def _install(self, snapshot: Snapshot) -> None:
        self.theme = snapshot.theme
        self.engine.replace_all(self._live_statuses(snapshot.objects))

    def _live_statuses(self, objects: Iterable[BaseObject]) -> list[BaseObject]:
        """Bridge statuses reflect this process's connections, not the file."""
        result: list[BaseObject] = []
        for obj in objects:
            if isinstance(obj, Bridge):
                current = self.store.get(obj.id)
                status = (
                    current.connection_status
                    if isinstance(current, Bridge) and obj.id in self._sessions
                    else "disconnected"
                )
                if obj.connection_status != status:
                    obj = dataclasses.replace(obj, connection_status=status)
            result.append(obj)
        return result

    def _schedule_autosave(self) -> None:
        self._cancel_autosave()
        self._autosave = self.scheduler.call_later(
            self.config.autosave_delay_s, self._run_autosave,
        )

    def _cancel_autosave(self) -> None:
        if self._autosave is not None:
            self._autosave.cancel()
            self._autosave = None

    def _run_autosave(self) -> None:
        self._autosave = None
        try:
            self.save()
        except SnapshotError as exc:
            print(f"  Autosave failed: {exc}", file=sys.stderr)

    # ----- Inspector surface -----

    def add(self, kind: ObjectKind, **props: Any) -> BaseObject:
        """Create an object with the variant defaults plus *props*."""
        obj = create_object(kind, self.store)
        if props:
            obj = merge(obj, props)
        self.engine.insert(obj)
        return obj

    def apply(self, object_id: ObjectID, partial: Mapping[str, Any]) -> Propagation | None:
        return self.engine.apply(object_id, partial)

    def get(self, object_id: ObjectID) -> BaseObject | None:
        return self.store.get(object_id)

    def bindable(self, object_id: ObjectID) -> tuple[str, ...]:
        """Property names *object_id* can be bound on (empty if missing)."""
        obj = self.store.get(object_id)
        return numeric_properties(obj) if obj is not None else ()

    def bind(
        self,
        source_id: ObjectID,
        target_id: ObjectID,
        prop: str,
        *,
        index: int | None = None,
    ) -> Propagation | None:
        """Point a slider, switch, instruction or input mapping at a property.

        Sliders and switches bind directly.  Sequence blocks and bridges bind
        the instruction or input mapping at *index*.

        Raises:
            BindingError: If *prop* is not a numeric property of the target,
                or *source_id* cannot bind.

        """
        source = self.store.get(source_id)
        if source is None:
            msg = f"no object {source_id!r}"
            raise BindingError(msg)
        validate_binding(self.store.get(target_id), prop)

        if isinstance(source, (Slider, Switch)):
            return self.engine.apply(
                source_id, {"target_id": target_id, "target_property": prop},
            )
        if index is None:
            msg = f"{source.kind} {source_id!r} binds by index"
            raise BindingError(msg)
        if isinstance(source, SequenceBlock):
            lines = self._line(source.instructions, index)
            return self.engine.apply(source_id, {
                "instructions": update_instruction(
                    lines, index, target_object_id=target_id, property=prop,
                ),
            })
        if isinstance(source, Bridge):
            mappings = self._line(source.input_mappings, index)
            mapping = dataclasses.replace(mappings[index], target_id=target_id, property=prop)
            return self.engine.apply(source_id, {
                "input_mappings": (*mappings[:index], mapping, *mappings[index + 1:]),
            })
        msg = f"{source.kind} objects do not bind"
        raise BindingError(msg)

    @staticmethod
    def _line(lines: tuple[Any, ...], index: int) -> tuple[Any, ...]:
        if not 0 <= index < len(lines):
            msg = f"index {index} out of range for {len(lines)} entries"
            raise BindingError(msg)
        return lines

    def add_instruction(self, block_id: ObjectID, **fields: Any) -> Propagation | None:
        block = self._block(block_id)
        return self.engine.apply(
            block_id, {"instructions": add_instruction(block.instructions, **fields)},
        )

    def delete_instruction(self, block_id: ObjectID, index: int) -> Propagation | None:
        block = self._block(block_id)
        return self.engine.apply(
            block_id, {"instructions": delete_instruction(block.instructions, index)},
        )

    def _block(self, block_id: ObjectID) -> SequenceBlock:
        block = self.store.get(block_id)
        if not isinstance(block, SequenceBlock):
            msg = f"no sequence block {block_id!r}"
            raise KeyError(msg)
        return block

    async def delete(self, object_id: ObjectID) -> None:
        """Remove an object and release every resource held for it."""
        session = self._sessions.pop(object_id, None)
        if session is not None:
            await session.forget()
        self.engine.remove(object_id)

    async def clear(self) -> None:
        for obj in self.store.objects():
            await self.delete(obj.id)

    # ----- Bridges -----

    def session(self, bridge_id: ObjectID) -> BridgeSession:
        """The session for *bridge_id*, created on first use.

        Raises:
            KeyError: If *bridge_id* is not a bridge.

        """
        session = self._sessions.get(bridge_id)
        if session is not None:
            return session
        if not isinstance(self.store.get(bridge_id), Bridge):
            msg = f"no bridge {bridge_id!r}"
            raise KeyError(msg)
        session = BridgeSession(
            bridge_id,
            self.engine,
            self._transport_factory,
            self.scheduler,
            baud_rate=self.config.baud_rate,
            analog_pin_offset=self.config.analog_pin_offset,
            error_reset_s=self.config.error_reset_s,
            output_interval_s=self.config.output_interval_s,
            collector=self.collector,
        )
        self._sessions[bridge_id] = session
        return session

    async def connect(self, bridge_id: ObjectID) -> bool:
        return await self.session(bridge_id).connect()

    async def disconnect(self, bridge_id: ObjectID) -> None:
        session = self._sessions.get(bridge_id)
        if session is not None:
            await session.disconnect()

    async def connect_all(self) -> int:
        """Connect every bridge in the store.  Returns how many connected."""
        connected = 0
        for bridge in self.store.of_type(Bridge):
            if await self.connect(bridge.id):
                connected += 1
        return connected

    # ----- Lifecycle -----

    def start(self) -> None:
        """Start sequence timers, autosave, and publish the first frame."""
        self.executor.sync()
        self._autosave_enabled = True
        self._publish()

    def halt(self) -> None:
        """Cancel sequence and autosave timers.  Bridges stay as they are."""
        self._autosave_enabled = False
        self._cancel_autosave()
        self.executor.close()

    async def close(self) -> None:
        """Stop timers, disconnect bridges, and flush unsaved changes."""
        self.halt()
        for session in list(self._sessions.values()):
            await session.disconnect()
        if self._releasing:
            await asyncio.gather(*self._releasing)
        if self._dirty:
            try:
                self.save()
            except SnapshotError as exc:
                print(f"  Final save failed: {exc}", file=sys.stderr)

    async def run(self, stop: asyncio.Event | None = None) -> None:
        """Run until *stop* is set (or the task is cancelled)."""
        stop = stop or asyncio.Event()
        self.start()
        await self.connect_all()

        watcher: SnapshotWatcher | None = None
        watch_task: asyncio.Task[None] | None = None
        if self.config.watch:
            watcher = SnapshotWatcher(self.config.snapshot_path)
            watcher.start()
            watch_task = asyncio.create_task(self._watch(watcher), name="patchbay-watch")

        try:
            await stop.wait()
        finally:
            if watcher is not None:
                watcher.stop()
            if watch_task is not None:
                watch_task.cancel()
                try:
                    await watch_task
                except asyncio.CancelledError:
                    pass
            await self.close()

    async def _watch(self, watcher: SnapshotWatcher) -> None:
        async for change in watcher.changes():
            if change.kind == "deleted":
                continue
            if self.reload():
                print(f"  Reloaded {change.path.name}", file=sys.stderr)

    # ----- Listeners -----

    def _on_settled(self, propagation: Propagation) -> None:
        for object_id in propagation.removed:
            self._release_session(object_id)
        if not propagation.changed_ids:
            return
        self._dirty = True
        self._publish()
        if self._autosave_enabled:
            self._schedule_autosave()

    def _release_session(self, object_id: ObjectID) -> None:
        """Close the session of a bridge that left the store (e.g. on reload)."""
        session = self._sessions.pop(object_id, None)
        if session is None:
            return
        task = session.release()
        if task is not None:
            self._releasing.add(task)
            task.add_done_callback(self._releasing.discard)

    def _on_step(self, block_id: ObjectID, cursor: int) -> None:
        self._publish()

    def _publish(self) -> None:
        self.broadcaster.publish(self.store.objects(), self.executor.cursors)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def run(root: str | Path = ".", **overrides: Any) -> None:
    """Load the patch under *root* and run it until Ctrl-C.

    Args:
        root: Project directory holding the snapshot and optional config.
        **overrides: Config overrides (``serial_port``, ``snapshot``, ``watch``...).

    """
    from patchbay.banner import print_banner

    config = load_config(Path(root), **overrides)
    workbench = Workbench(config)

    t0 = time.perf_counter()
    count = workbench.load()
    load_ms = (time.perf_counter() - t0) * 1000

    warnings: list[str] = []
    if config.serial_port is None and workbench.store.of_type(Bridge):
        warnings.append("No serial port configured; bridges will report an error")
    print_banner(
        config,
        count,
        "run",
        bridge_count=len(workbench.store.of_type(Bridge)),
        load_ms=load_ms,
        warnings=warnings,
    )

    try:
        asyncio.run(workbench.run())
    except KeyboardInterrupt:
        print("\n  Stopped.", file=sys.stderr)


def step(
    root: str | Path = ".",
    seconds: float = 1.0,
    *,
    save: bool = True,
    **overrides: Any,
) -> Workbench:
    """Advance the patch headlessly on a virtual clock.

    Auto-mode sequence blocks fire as they would in real time; bridges are
    never opened.  The resulting state is saved unless *save* is False.

    Returns:
        The halted workbench, for inspection.

    """
    from patchbay.reactive.scheduler import ManualScheduler

    config = load_config(Path(root), **{"watch": False, **overrides})
    scheduler = ManualScheduler()
    workbench = Workbench(config, scheduler=scheduler)
    workbench.load()
    workbench.start()
    scheduler.advance(seconds)
    workbench.halt()
    if save:
        workbench.save()
    return workbench
