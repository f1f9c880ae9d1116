"""Event log — a bounded ring of workbench events.

The engine, the sequence executor and every bridge session append here, and
the watcher thread can trigger a reload that appends too, so every access
takes the lock.  Once ``max_events`` is reached the oldest events fall off.
"""

import threading
from collections import Counter, deque
from typing import Any

from patchbay.observability.events import WorkbenchEvent

# Fields naming the object an event is about
_SUBJECT_FIELDS = ("root_id", "block_id", "bridge_id")


def _is_about(event: WorkbenchEvent, object_id: str) -> bool:
    return any(getattr(event, name, None) == object_id for name in _SUBJECT_FIELDS)


class EventLog:
    """Ring buffer of events with filtered, newest-first reads.

    Args:
        max_events: Events retained before the oldest are dropped.

    """

    __slots__ = ("_events", "_lock")

    def __init__(self, max_events: int = 10_000) -> None:
        self._events: deque[WorkbenchEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    @property
    def max_events(self) -> int:
        return self._events.maxlen or 0

    def append(self, event: WorkbenchEvent) -> None:
        with self._lock:
            self._events.append(event)

    def query(
        self,
        *,
        event_type: type | None = None,
        since_ns: int = 0,
        object_id: str | None = None,
        limit: int = 100,
    ) -> list[WorkbenchEvent]:
        """Events matching every given filter, most recent first.

        Args:
            event_type: Only events of this class.
            since_ns: Only events stamped at or after this time.
            object_id: Only events about this engine root, block or bridge.
            limit: Maximum number of events returned.

        """
        with self._lock:
            events = tuple(self._events)

        results: list[WorkbenchEvent] = []
        for event in reversed(events):
            if len(results) >= limit:
                break
            if event_type is not None and not isinstance(event, event_type):
                continue
            if event.timestamp_ns < since_ns:
                continue
            if object_id is not None and not _is_about(event, object_id):
                continue
            results.append(event)
        return results

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def stats(self) -> dict[str, Any]:
        """Totals by event class name."""
        with self._lock:
            total = len(self._events)
            by_type = Counter(type(event).__name__ for event in self._events)
        return {
            "total": total,
            "max_events": self.max_events,
            "by_type": dict(by_type),
        }
