"""Property addressing — which fields of an object a binding may name.

Bindings refer to properties by name.  The legal names for a target are the
fields *currently holding a number*, so the set is enumerated per object at
runtime rather than fixed per class.  ``property_accessors`` turns that set
into an explicit name -> (getter, setter) map so a collaborator can validate
a binding when it is made instead of trusting the name later.

``merge`` is the single place a partial write becomes a new object.  It also
keeps the binding invariants: retargeting a slider or switch clears its
property name, and a slider cannot inherit from itself.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from functools import cache
from typing import TYPE_CHECKING, Any

from patchbay._errors import BindingError
from patchbay.model.objects import Slider, Switch

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from patchbay.model.objects import BaseObject

# Layout bookkeeping, never a meaningful binding target
_EXCLUDED: frozenset[str] = frozenset({"view", "moving_average_window"})

# Identity keys; a partial write never changes them
_IDENTITY: frozenset[str] = frozenset({"id", "type"})


@dataclass(frozen=True, slots=True)
class PropertyAccessor:
    """Typed read/write pair for one numeric property of one object."""

    name: str
    get: Callable[[BaseObject], Any]
    set: Callable[[BaseObject, float], BaseObject]


def is_number(value: object) -> bool:
    """True for int/float values; bools are flags, not numbers."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@cache
def declared_fields(cls: type) -> tuple[str, ...]:
    """Names of the dataclass fields a variant declares (``extra`` excluded)."""
    return tuple(f.name for f in dataclasses.fields(cls) if f.name != "extra")


def get_property(obj: BaseObject, name: str, default: Any = None) -> Any:
    """Read a declared field or an extra, returning *default* when absent."""
    if name in declared_fields(type(obj)):
        return getattr(obj, name)
    return obj.extra.get(name, default)


def numeric_properties(obj: BaseObject) -> tuple[str, ...]:
    """Sorted names of the properties on *obj* that currently hold a number."""
    names = [n for n in declared_fields(type(obj)) if is_number(getattr(obj, n))]
    names.extend(k for k, v in obj.extra.items() if is_number(v))
    return tuple(sorted(n for n in set(names) if n not in _EXCLUDED))


def property_accessors(obj: BaseObject) -> dict[str, PropertyAccessor]:
    """Enumerable name -> accessor map over ``numeric_properties(obj)``."""
    accessors: dict[str, PropertyAccessor] = {}
    for name in numeric_properties(obj):
        accessors[name] = PropertyAccessor(
            name=name,
            get=lambda o, n=name: get_property(o, n),
            set=lambda o, v, n=name: merge(o, {n: v}),
        )
    return accessors


def validate_binding(target: BaseObject | None, name: str) -> None:
    """Raise BindingError unless *name* is a numeric property of *target*.

    A missing target is allowed: dangling bindings are inert, not invalid.
    """
    if target is None or not name:
        return
    if name not in property_accessors(target):
        legal = ", ".join(numeric_properties(target)) or "none"
        msg = f"{target.id!r} has no numeric property {name!r} (legal: {legal})"
        raise BindingError(msg)


def merge(obj: BaseObject, partial: Mapping[str, Any]) -> BaseObject:
    """Shallow-merge *partial* into a copy of *obj*.

    Unknown keys are kept in ``extra``; ``id`` and the ``type`` tag are
    ignored.  Never raises for unknown names.
    """
    declared = declared_fields(type(obj))
    known: dict[str, Any] = {}
    unknown: dict[str, Any] = {}
    for key, value in partial.items():
        if key in _IDENTITY:
            continue
        if key in declared:
            known[key] = value
        else:
            unknown[key] = value

    if isinstance(obj, (Slider, Switch)):
        retargeted = "target_id" in known and known["target_id"] != obj.target_id
        if retargeted and "target_property" not in known:
            known["target_property"] = ""
    if isinstance(obj, Slider) and known.get("inherited_slider_id") == obj.id:
        known["inherited_slider_id"] = None

    if unknown:
        known["extra"] = {**obj.extra, **unknown}
    return dataclasses.replace(obj, **known)
