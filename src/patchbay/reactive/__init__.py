"""Reactive layer — propagation, sequencing, and frame broadcasting.

Connects every write (UI edit, timer, wire report) to the settled state the
rendering surface and the bridges observe.
"""

from patchbay.reactive.broadcaster import Broadcaster, Frame, Subscription
from patchbay.reactive.engine import Propagation, PropagationEngine, Write
from patchbay.reactive.executor import SequenceExecutor
from patchbay.reactive.scheduler import AsyncioScheduler, ManualScheduler, Scheduler

__all__ = [
    "AsyncioScheduler",
    "Broadcaster",
    "Frame",
    "ManualScheduler",
    "Propagation",
    "PropagationEngine",
    "Scheduler",
    "SequenceExecutor",
    "Subscription",
    "Write",
]
