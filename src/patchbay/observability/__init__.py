"""Workbench observability — one event model for engine, executor and bridges.

All events are frozen dataclasses with nanosecond timestamps, stored in a
bounded, lock-protected log.

Quick Start:
    >>> from patchbay.observability import Collector, EventLog
    >>> log = EventLog()
    >>> collector = Collector(log)
    >>> # Pass collector to PropagationEngine / SequenceExecutor / BridgeSession

"""

from patchbay.observability.collector import Collector
from patchbay.observability.events import (
    BlockStepped,
    BridgeStatusChanged,
    PropagationAborted,
    PropagationSettled,
    WireTraffic,
    WorkbenchEvent,
    now_ns,
)
from patchbay.observability.log import EventLog

__all__ = [
    "BlockStepped",
    "BridgeStatusChanged",
    "Collector",
    "EventLog",
    "PropagationAborted",
    "PropagationSettled",
    "WireTraffic",
    "WorkbenchEvent",
    "now_ns",
]
