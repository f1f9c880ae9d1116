"""Object variants — the nodes of a patch graph.

Every object is a frozen, slotted dataclass.  The store replaces whole objects
on each write, so a reference held by a listener always describes one settled
state.  Fields a variant does not declare (written by a collaborator or
found in a snapshot) live in ``extra`` and survive round-trips unchanged.

Thread Safety:
    All objects are frozen.  ``extra`` is copied on every merge and never
    mutated in place.

"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, TypeAlias

if TYPE_CHECKING:
    from patchbay._types import (
        ConnectionStatus,
        ExecutionMode,
        InputMode,
        ObjectID,
        ObjectKind,
        OutputMode,
    )


# ---------------------------------------------------------------------------
# Nested records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Instruction:
    """One single-assignment line of a sequence block.

    Attributes:
        target_object_id: Object written when this line executes.
        property: Property name on the target.
        value: Value assigned.
        order: 1-based position; dense across the block.

    """

    target_object_id: str = ""
    property: str = ""
    value: float = 0
    order: int = 1


@dataclass(frozen=True, slots=True)
class InputMapping:
    """Board pin -> object property.

    Analog pins use absolute numbering (channel 0 is ``analog_pin_offset``).
    Raw readings in ``[0, 2**adc_bits - 1]`` scale linearly into
    ``[min, max]``; digital readings map 0/1 onto ``min``/``max``.
    """

    pin: int = 0
    mode: InputMode = "Analog"
    target_id: str = ""
    property: str = ""
    min: float = 0
    max: float = 1023
    adc_bits: int = 10


@dataclass(frozen=True, slots=True)
class OutputMapping:
    """Object property -> board pin."""

    source_id: str = ""
    property: str = ""
    pin: int = 0
    mode: OutputMode = "Digital"


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True, kw_only=True)
class BaseObject:
    """Fields shared by every variant."""

    kind: ClassVar[ObjectKind]

    id: ObjectID
    name: str = ""
    view: int = 0
    x: float = 250
    y: float = 150
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True, kw_only=True)
class Shape(BaseObject):
    """A drawable sink with no outbound bindings."""

    fill_color: str = "rgba(59, 130, 246, 1)"
    stroke_color: str = "rgba(255, 255, 255, 0.1)"
    stroke_width: float = 1


@dataclass(frozen=True, slots=True, kw_only=True)
class Circle(Shape):
    kind: ClassVar[ObjectKind] = "circle"

    diameter: float = 100


@dataclass(frozen=True, slots=True, kw_only=True)
class Rectangle(Shape):
    kind: ClassVar[ObjectKind] = "rect"

    width: float = 150
    height: float = 80
    rotation: float = 0


@dataclass(frozen=True, slots=True, kw_only=True)
class Slider(BaseObject):
    """A source: every write to ``value`` propagates to its target and slaves."""

    kind: ClassVar[ObjectKind] = "slider"

    value: float = 0
    min: float = 0
    max: float = 500
    target_id: str = ""
    target_property: str = ""
    inherited_slider_id: str | None = None
    use_moving_average: bool = False
    moving_average_window: int = 10
    show_label: bool = True


@dataclass(frozen=True, slots=True, kw_only=True)
class Switch(BaseObject):
    """A source: writes to ``current_state`` send the matching literal."""

    kind: ClassVar[ObjectKind] = "switch"

    target_id: str = ""
    target_property: str = ""
    value_on: str = "1"
    value_off: str = "0"
    current_state: int = 0


@dataclass(frozen=True, slots=True, kw_only=True)
class SequenceBlock(BaseObject):
    """Round-robin list of instructions, stepped by a timer or a trigger object."""

    kind: ClassVar[ObjectKind] = "sequence"

    width: float = 250
    height: float = 200
    execution_mode: ExecutionMode = "auto"
    auto_interval_ms: float = 1000
    manual_trigger_id: str | None = None
    instructions: tuple[Instruction, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class Bridge(BaseObject):
    """One serial microcontroller connection and its pin mappings."""

    kind: ClassVar[ObjectKind] = "bridge"

    connection_status: ConnectionStatus = "disconnected"
    input_mappings: tuple[InputMapping, ...] = ()
    output_mappings: tuple[OutputMapping, ...] = ()


PatchObject: TypeAlias = Circle | Rectangle | Slider | Switch | SequenceBlock | Bridge

OBJECT_TYPES: dict[str, type[BaseObject]] = {
    cls.kind: cls
    for cls in (Circle, Rectangle, Slider, Switch, SequenceBlock, Bridge)
}
