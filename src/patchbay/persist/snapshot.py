"""Snapshot persistence — the workbench as a JSON document.

Document shape::

    {
      "theme": {"name": "default", "backgroundColor": "#273322"},
      "objects": [
        {"type": "slider", "id": "slider_1", "targetId": "circle_1", ...},
        ...
      ]
    }

Object keys are the camelCase forms of the variant's fields; nested
instructions and pin mappings are lists of camelCase records.  Keys a variant
does not declare are kept in ``extra`` and written back unchanged, and values
are never coerced, so loading and saving a document reproduces it modulo key
order.
"""

from __future__ import annotations

import dataclasses
import json
import os
from dataclasses import dataclass, field
from functools import cache
from typing import TYPE_CHECKING, Any

from patchbay._errors import SnapshotError
from patchbay.model.objects import (
    OBJECT_TYPES,
    InputMapping,
    Instruction,
    OutputMapping,
)
from patchbay.model.properties import declared_fields

if TYPE_CHECKING:
    from pathlib import Path

    from patchbay.model.objects import BaseObject

# Tuple-valued fields and the record type of their items
_NESTED: dict[str, type] = {
    "instructions": Instruction,
    "input_mappings": InputMapping,
    "output_mappings": OutputMapping,
}


@dataclass(frozen=True, slots=True)
class Theme:
    name: str = "default"
    background_color: str = "#273322"


@dataclass(frozen=True, slots=True)
class Snapshot:
    """A persisted workbench: theme plus objects in draw order."""

    theme: Theme = field(default_factory=Theme)
    objects: tuple[BaseObject, ...] = ()


# ---------------------------------------------------------------------------
# Key naming
# ---------------------------------------------------------------------------


def camel(name: str) -> str:
    """``target_property`` -> ``targetProperty``."""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


@cache
def _field_names(cls: type) -> dict[str, str]:
    """camelCase document key -> field name for a dataclass."""
    return {camel(f.name): f.name for f in dataclasses.fields(cls) if f.name != "extra"}


# ---------------------------------------------------------------------------
# Document <-> objects
# ---------------------------------------------------------------------------


def _record_from_dict(cls: type, data: object, where: str) -> Any:
    if not isinstance(data, dict):
        msg = f"{where}: expected an object, got {type(data).__name__}"
        raise SnapshotError(msg)
    names = _field_names(cls)
    kwargs = {names[k]: v for k, v in data.items() if k in names}
    try:
        return cls(**kwargs)
    except TypeError as exc:
        raise SnapshotError(f"{where}: {exc}") from exc


def _record_to_dict(record: Any) -> dict[str, Any]:
    return {camel(f.name): getattr(record, f.name) for f in dataclasses.fields(record)}


def object_from_dict(data: object, index: int = 0) -> BaseObject:
    """Build a variant from one document object.

    Raises:
        SnapshotError: If the type tag or id is missing or invalid.

    """
    where = f"objects[{index}]"
    if not isinstance(data, dict):
        msg = f"{where}: expected an object, got {type(data).__name__}"
        raise SnapshotError(msg)
    kind = data.get("type")
    cls = OBJECT_TYPES.get(kind) if isinstance(kind, str) else None
    if cls is None:
        msg = f"{where}: unknown object type {kind!r}"
        raise SnapshotError(msg)
    object_id = data.get("id")
    if not isinstance(object_id, str) or not object_id:
        msg = f"{where}: missing or invalid id"
        raise SnapshotError(msg)

    names = _field_names(cls)
    kwargs: dict[str, Any] = {}
    extra: dict[str, Any] = {}
    for key, value in data.items():
        if key == "type":
            continue
        name = names.get(key)
        if name is None:
            extra[key] = value
        elif name in _NESTED:
            if not isinstance(value, list):
                msg = f"{where}.{key}: expected a list"
                raise SnapshotError(msg)
            kwargs[name] = tuple(
                _record_from_dict(_NESTED[name], item, f"{where}.{key}[{i}]")
                for i, item in enumerate(value)
            )
        else:
            kwargs[name] = value
    try:
        return cls(**kwargs, extra=extra)
    except TypeError as exc:
        raise SnapshotError(f"{where}: {exc}") from exc


def object_to_dict(obj: BaseObject) -> dict[str, Any]:
    """Serialize one variant to its document form."""
    doc: dict[str, Any] = {"type": obj.kind}
    for name in declared_fields(type(obj)):
        value = getattr(obj, name)
        if name in _NESTED:
            value = [_record_to_dict(item) for item in value]
        doc[camel(name)] = value
    # extras never shadow the type tag or a declared field
    for key, value in obj.extra.items():
        doc.setdefault(key, value)
    return doc


def from_document(doc: object) -> Snapshot:
    """Parse a decoded JSON document.

    Raises:
        SnapshotError: If the document shape is invalid or ids repeat.

    """
    if not isinstance(doc, dict):
        msg = f"snapshot must be an object, got {type(doc).__name__}"
        raise SnapshotError(msg)

    theme_doc = doc.get("theme")
    if theme_doc is None:
        theme_doc = {}
    if not isinstance(theme_doc, dict):
        msg = "theme must be an object"
        raise SnapshotError(msg)
    defaults = Theme()
    theme = Theme(
        name=theme_doc.get("name", defaults.name),
        background_color=theme_doc.get("backgroundColor", defaults.background_color),
    )

    raw_objects = doc.get("objects")
    if raw_objects is None:
        raw_objects = []
    if not isinstance(raw_objects, list):
        msg = "objects must be a list"
        raise SnapshotError(msg)
    objects = tuple(object_from_dict(item, i) for i, item in enumerate(raw_objects))

    seen: set[str] = set()
    for obj in objects:
        if obj.id in seen:
            msg = f"duplicate object id {obj.id!r}"
            raise SnapshotError(msg)
        seen.add(obj.id)

    return Snapshot(theme=theme, objects=objects)


def to_document(snapshot: Snapshot) -> dict[str, Any]:
    return {
        "theme": {
            "name": snapshot.theme.name,
            "backgroundColor": snapshot.theme.background_color,
        },
        "objects": [object_to_dict(obj) for obj in snapshot.objects],
    }


# ---------------------------------------------------------------------------
# Text and files
# ---------------------------------------------------------------------------


def dumps_snapshot(snapshot: Snapshot) -> str:
    return json.dumps(to_document(snapshot), indent=2, ensure_ascii=False) + "\n"


def loads_snapshot(text: str) -> Snapshot:
    """Parse snapshot JSON text.

    Raises:
        SnapshotError: If the text is not valid JSON or not a valid snapshot.

    """
    try:
        doc = json.loads(text)
    except json.JSONDecodeError as exc:
        msg = f"invalid snapshot JSON: {exc}"
        raise SnapshotError(msg) from exc
    return from_document(doc)


def load_snapshot(path: Path) -> Snapshot:
    """Read a snapshot file; a missing file is an empty workbench."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Snapshot()
    except OSError as exc:
        msg = f"cannot read snapshot {path}: {exc}"
        raise SnapshotError(msg) from exc
    return loads_snapshot(text)


def save_snapshot(path: Path, snapshot: Snapshot) -> str:
    """Write a snapshot atomically (temp file + rename).

    Returns:
        The text written.

    """
    text = dumps_snapshot(snapshot)
    tmp = path.with_name(f".{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
    except OSError as exc:
        msg = f"cannot write snapshot {path}: {exc}"
        raise SnapshotError(msg) from exc
    return text
