"""Object model — variants, store, and property addressing."""

from patchbay.model.factory import create_object
from patchbay.model.objects import (
    OBJECT_TYPES,
    BaseObject,
    Bridge,
    Circle,
    InputMapping,
    Instruction,
    OutputMapping,
    PatchObject,
    Rectangle,
    SequenceBlock,
    Shape,
    Slider,
    Switch,
)
from patchbay.model.properties import (
    get_property,
    merge,
    numeric_properties,
    property_accessors,
    validate_binding,
)
from patchbay.model.store import ObjectStore

__all__ = [
    "OBJECT_TYPES",
    "BaseObject",
    "Bridge",
    "Circle",
    "InputMapping",
    "Instruction",
    "ObjectStore",
    "OutputMapping",
    "PatchObject",
    "Rectangle",
    "SequenceBlock",
    "Shape",
    "Slider",
    "Switch",
    "create_object",
    "get_property",
    "merge",
    "numeric_properties",
    "property_accessors",
    "validate_binding",
]
