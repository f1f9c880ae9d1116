"""Object store — current state of every object, keyed by id.

Pure data.  Insertion order is preserved and doubles as the draw order a
rendering surface sees.  Only the propagation engine writes to a live store;
everything else reads.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from patchbay._types import ObjectID
    from patchbay.model.objects import BaseObject

_T = TypeVar("_T")


class ObjectStore:
    """Ordered id -> object map.

    Args:
        objects: Initial objects, in draw order.

    """

    __slots__ = ("_objects",)

    def __init__(self, objects: Iterable[BaseObject] = ()) -> None:
        self._objects: dict[ObjectID, BaseObject] = {}
        for obj in objects:
            self.put(obj)

    def get(self, object_id: ObjectID | None) -> BaseObject | None:
        """Return the object with *object_id*, or None."""
        if not object_id:
            return None
        return self._objects.get(object_id)

    def put(self, obj: BaseObject) -> None:
        """Insert or replace an object, keeping its existing position."""
        self._objects[obj.id] = obj

    def remove(self, object_id: ObjectID) -> BaseObject | None:
        """Remove and return an object; None if it was not present."""
        return self._objects.pop(object_id, None)

    def clear(self) -> None:
        self._objects.clear()

    def of_type(self, cls: type[_T]) -> list[_T]:
        """All objects that are instances of *cls*, in draw order."""
        return [o for o in self._objects.values() if isinstance(o, cls)]

    def objects(self) -> tuple[BaseObject, ...]:
        """Snapshot of all objects in draw order."""
        return tuple(self._objects.values())

    def checkpoint(self) -> dict[ObjectID, BaseObject]:
        """Shallow copy of the store contents (objects are immutable)."""
        return dict(self._objects)

    def restore(self, checkpoint: dict[ObjectID, BaseObject]) -> None:
        """Replace the contents with a previous ``checkpoint()``."""
        self._objects = dict(checkpoint)

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._objects

    def __iter__(self) -> Iterator[BaseObject]:
        return iter(list(self._objects.values()))

    def __len__(self) -> int:
        return len(self._objects)
