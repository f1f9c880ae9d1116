"""Persistence — snapshot documents and the file watcher."""

from patchbay.persist.snapshot import (
    Snapshot,
    Theme,
    from_document,
    load_snapshot,
    save_snapshot,
    to_document,
)
from patchbay.persist.watcher import SnapshotChanged, SnapshotWatcher

__all__ = [
    "Snapshot",
    "SnapshotChanged",
    "SnapshotWatcher",
    "Theme",
    "from_document",
    "load_snapshot",
    "save_snapshot",
    "to_document",
]
