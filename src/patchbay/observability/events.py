"""Unified event model for workbench observability.

Defines event types for the propagation engine, the sequence executor and
bridge connections.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal, TypeAlias


# ---------------------------------------------------------------------------
# Propagation events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PropagationSettled:
    """A traversal ran to completion.

    Attributes:
        root_id: Object the traversal started from.
        writes: Number of writes applied (root included).
        triggered: Number of manual sequence blocks fired afterwards.
        duration_ms: Time from first write to settle.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    root_id: str
    writes: int
    triggered: int
    duration_ms: float
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class PropagationAborted:
    """A traversal hit the write cap and was rolled back.

    Attributes:
        root_id: Object the traversal started from.
        steps: Writes applied before the abort.
        last_id: Object being written when the cap was reached.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    root_id: str
    steps: int
    last_id: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Executor events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BlockStepped:
    """A sequence block advanced its cursor.

    Attributes:
        block_id: The sequence block.
        order: New cursor (1-based instruction order).
        target_id: Object written by the instruction ("" when unbound).
        property: Property written ("" when unbound).
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    block_id: str
    order: int
    target_id: str
    property: str
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Bridge events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class BridgeStatusChanged:
    """A bridge moved to a new connection status."""

    bridge_id: str
    status: Literal["disconnected", "connecting", "connected", "error"]
    detail: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class WireTraffic:
    """Bytes crossed a bridge connection.

    Attributes:
        bridge_id: The bridge whose connection carried the bytes.
        direction: ``"in"`` for decoded reports, ``"out"`` for commands.
        command: Command name (e.g. ``"analog"``, ``"digital"``, ``"pin_mode"``).
        size: Message length in bytes.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    bridge_id: str
    direction: Literal["in", "out"]
    command: str
    size: int
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

WorkbenchEvent: TypeAlias = (
    PropagationSettled
    | PropagationAborted
    | BlockStepped
    | BridgeStatusChanged
    | WireTraffic
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
