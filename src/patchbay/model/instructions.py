"""Instruction list edits for sequence blocks.

Each helper returns a new tuple; the caller writes it back through the
engine, e.g. ``engine.apply(block.id, {"instructions": add_instruction(block.instructions)})``.
Orders stay dense ``1..N`` after every edit.
"""

from __future__ import annotations

import dataclasses
from typing import Any

from patchbay.model.objects import Instruction


def renumber(instructions: tuple[Instruction, ...]) -> tuple[Instruction, ...]:
    """Reassign ``order`` as ``1..N`` keeping relative order."""
    return tuple(
        line if line.order == i else dataclasses.replace(line, order=i)
        for i, line in enumerate(instructions, start=1)
    )


def add_instruction(
    instructions: tuple[Instruction, ...],
    *,
    target_object_id: str = "",
    property: str = "",  # noqa: A002
    value: float = 0,
) -> tuple[Instruction, ...]:
    """Append a line with the next order."""
    line = Instruction(
        target_object_id=target_object_id,
        property=property,
        value=value,
        order=len(instructions) + 1,
    )
    return (*instructions, line)


def delete_instruction(
    instructions: tuple[Instruction, ...], index: int,
) -> tuple[Instruction, ...]:
    """Remove the line at *index* (0-based) and renumber the rest.

    Raises:
        IndexError: If *index* is out of range.

    """
    if not 0 <= index < len(instructions):
        msg = f"instruction index {index} out of range for {len(instructions)} lines"
        raise IndexError(msg)
    return renumber(instructions[:index] + instructions[index + 1:])


def update_instruction(
    instructions: tuple[Instruction, ...], index: int, **changes: Any,
) -> tuple[Instruction, ...]:
    """Replace fields of the line at *index*.

    Retargeting a line clears its property unless the same edit sets one.
    ``order`` cannot be changed here.
    """
    line = instructions[index]
    changes.pop("order", None)
    if (
        "target_object_id" in changes
        and changes["target_object_id"] != line.target_object_id
        and "property" not in changes
    ):
        changes["property"] = ""
    updated = dataclasses.replace(line, **changes)
    return instructions[:index] + (updated,) + instructions[index + 1:]
