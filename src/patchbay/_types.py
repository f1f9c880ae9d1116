"""Shared type definitions for patchbay."""

from collections.abc import Callable, Mapping
from typing import Any, Literal, TypeAlias

# Unique identifier of an object in the store
ObjectID: TypeAlias = str

# Name of a field on an object (e.g. "value", "diameter")
PropertyName: TypeAlias = str

# A partial write: property name -> new value
PartialProps: TypeAlias = Mapping[str, Any]

# Variant tag as persisted in the snapshot
ObjectKind: TypeAlias = Literal["circle", "rect", "slider", "switch", "sequence", "bridge"]

ExecutionMode: TypeAlias = Literal["auto", "manual"]

ConnectionStatus: TypeAlias = Literal["disconnected", "connecting", "connected", "error"]

InputMode: TypeAlias = Literal["Analog", "Digital"]

OutputMode: TypeAlias = Literal["Digital", "PWM"]

# Zero-argument scheduler callback
Callback: TypeAlias = Callable[[], Any]
