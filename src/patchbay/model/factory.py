"""Default objects for each variant, as the toolbar creates them."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from patchbay.model.objects import OBJECT_TYPES

if TYPE_CHECKING:
    from patchbay._types import ObjectKind
    from patchbay.model.objects import BaseObject
    from patchbay.model.store import ObjectStore

_DEFAULT_NAMES: dict[str, str] = {
    "circle": "New Circle",
    "rect": "New Rectangle",
    "slider": "New Slider",
    "switch": "New Switch",
    "sequence": "Sequence",
    "bridge": "Bridge",
}


def new_object_id(kind: str, store: ObjectStore | None = None) -> str:
    """Return ``<kind>_<ms timestamp>``, suffixed when already taken."""
    base = f"{kind}_{time.time_ns() // 1_000_000}"
    if store is None or base not in store:
        return base
    n = 2
    while f"{base}_{n}" in store:
        n += 1
    return f"{base}_{n}"


def create_object(
    kind: ObjectKind,
    store: ObjectStore | None = None,
    *,
    object_id: str | None = None,
) -> BaseObject:
    """Build an object of *kind* with variant defaults.

    ``view`` is the draw position: the number of objects already in *store*.

    Raises:
        ValueError: If *kind* is not a known variant.

    """
    cls = OBJECT_TYPES.get(kind)
    if cls is None:
        msg = f"unknown object kind {kind!r} (expected one of {sorted(OBJECT_TYPES)})"
        raise ValueError(msg)
    return cls(
        id=object_id or new_object_id(kind, store),
        name=_DEFAULT_NAMES[kind],
        view=len(store) if store is not None else 0,
    )
