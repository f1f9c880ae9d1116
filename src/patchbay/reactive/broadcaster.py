"""Frame broadcaster — pushes settled state to rendering surfaces.

A rendering surface subscribes once and then receives a ``Frame`` (every
object plus every sequence block cursor) after each settled change.  Frames
are whole snapshots, so a slow subscriber that misses one loses nothing but
latency.
"""

from __future__ import annotations

import asyncio
import itertools
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

    from patchbay.model.objects import BaseObject

_client_ids = itertools.count(1)


@dataclass(frozen=True, slots=True)
class Frame:
    """One settled view of the workbench.

    Attributes:
        objects: All objects in draw order.
        cursors: Current instruction order per sequence block.

    """

    objects: tuple[BaseObject, ...]
    cursors: Mapping[str, int]


@dataclass(frozen=True, slots=True)
class Subscription:
    """A connected rendering surface.

    Attributes:
        client_id: Unique identifier for this subscription.
        queue: asyncio.Queue receiving frames.

    """

    client_id: str
    queue: asyncio.Queue[Frame] = field(
        default_factory=lambda: asyncio.Queue(maxsize=64), compare=False, hash=False,
    )

    async def frames(self) -> AsyncIterator[Frame]:
        """Yield frames as they arrive until the consumer is cancelled."""
        try:
            while True:
                yield await self.queue.get()
        except (asyncio.CancelledError, GeneratorExit):
            return


class Broadcaster:
    """Fans settled frames out to every subscriber.

    Thread-safe: subscriber set protected by a lock.
    """

    def __init__(self) -> None:
        self._subscribers: set[Subscription] = set()
        self._lock = threading.Lock()
        self._last: Frame | None = None

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    @property
    def last_frame(self) -> Frame | None:
        """Most recently published frame."""
        return self._last

    def subscribe(self) -> Subscription:
        """Register a new surface; it immediately receives the last frame."""
        sub = Subscription(client_id=f"surface-{next(_client_ids)}")
        with self._lock:
            self._subscribers.add(sub)
        if self._last is not None:
            sub.queue.put_nowait(self._last)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(sub)

    def publish(self, objects: tuple[BaseObject, ...], cursors: Mapping[str, Any]) -> int:
        """Push a frame to every subscriber.

        Returns:
            Number of subscribers the frame was queued for.

        """
        frame = Frame(objects=objects, cursors=dict(cursors))
        self._last = frame
        with self._lock:
            subscribers = tuple(self._subscribers)

        count = 0
        for sub in subscribers:
            if sub.queue.full():
                # Frames are whole snapshots; the oldest one is redundant.
                sub.queue.get_nowait()
            sub.queue.put_nowait(frame)
            count += 1
        return count
