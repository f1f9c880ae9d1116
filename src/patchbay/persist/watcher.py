"""Snapshot watcher — notices when another program edits the snapshot file.

Runs watchfiles in a background thread and bridges events to an asyncio
queue for the workbench, which reloads the file unless the change is its own
autosave.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from watchfiles import Change

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


@dataclass(frozen=True, slots=True)
class SnapshotChanged:
    """The snapshot file changed on disk.

    Attributes:
        path: Absolute path to the snapshot file.
        kind: Type of filesystem change.

    """

    path: Path
    kind: Literal["created", "modified", "deleted"]


_CHANGE_KIND_MAP: dict[Change, Literal["created", "modified", "deleted"]] = {
    Change.added: "created",
    Change.modified: "modified",
    Change.deleted: "deleted",
}


class SnapshotWatcher:
    """Watches one snapshot file.

    The parent directory is watched (editors often replace files by rename)
    and events are filtered down to the snapshot path.

    """

    def __init__(self, path: Path) -> None:
        self._path = path.resolve()
        self._queue: asyncio.Queue[SnapshotChanged] = asyncio.Queue()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_running(self) -> bool:
        """Whether the watcher background thread is active."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start watching in a background thread.  Must be called from the loop."""
        if self.is_running:
            return

        self._loop = asyncio.get_running_loop()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch_loop,
            name="patchbay-watcher",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal the watcher to stop and wait for the thread to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None

    async def changes(self) -> AsyncIterator[SnapshotChanged]:
        """Async iterator that yields SnapshotChanged events as they occur."""
        while self.is_running or not self._queue.empty():
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=0.5)
                yield event
            except TimeoutError:
                if not self.is_running:
                    break

    def matches(self, path_str: str) -> bool:
        return Path(path_str).resolve() == self._path

    def _watch_loop(self) -> None:
        """Background thread: run watchfiles and push events to the queue."""
        from watchfiles import watch

        self._path.parent.mkdir(parents=True, exist_ok=True)
        for raw_changes in watch(
            self._path.parent,
            stop_event=self._stop_event,
            debounce=300,
            step=100,
            recursive=False,
        ):
            for change_type, path_str in raw_changes:
                if not self.matches(path_str):
                    continue
                kind = _CHANGE_KIND_MAP.get(change_type, "modified")
                event = SnapshotChanged(path=self._path, kind=kind)
                if self._loop is not None:
                    self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
