"""Collector — the recording facade every subsystem writes through.

Provides one method per event type so call sites stay short and never build
event objects themselves.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.

"""

from __future__ import annotations

from typing import Any

from patchbay.observability.events import (
    BlockStepped,
    BridgeStatusChanged,
    PropagationAborted,
    PropagationSettled,
    WireTraffic,
    now_ns,
)
from patchbay.observability.log import EventLog


class Collector:
    """Unified event collector for the workbench.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log",)

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    # ----- Propagation -----

    def record_propagation(
        self,
        root_id: str,
        *,
        writes: int = 0,
        triggered: int = 0,
        duration_ms: float = 0.0,
    ) -> None:
        """Record a settled traversal."""
        self._log.append(
            PropagationSettled(
                root_id=root_id,
                writes=writes,
                triggered=triggered,
                duration_ms=duration_ms,
                timestamp_ns=now_ns(),
            )
        )

    def record_abort(self, root_id: str, *, steps: int, last_id: str) -> None:
        """Record a traversal rolled back at the write cap."""
        self._log.append(
            PropagationAborted(
                root_id=root_id,
                steps=steps,
                last_id=last_id,
                timestamp_ns=now_ns(),
            )
        )

    # ----- Executor -----

    def record_step(
        self,
        block_id: str,
        order: int,
        *,
        target_id: str = "",
        property: str = "",  # noqa: A002
    ) -> None:
        """Record a sequence block step."""
        self._log.append(
            BlockStepped(
                block_id=block_id,
                order=order,
                target_id=target_id,
                property=property,
                timestamp_ns=now_ns(),
            )
        )

    # ----- Bridges -----

    def record_status(self, bridge_id: str, status: str, *, detail: str = "") -> None:
        """Record a bridge connection status change."""
        self._log.append(
            BridgeStatusChanged(
                bridge_id=bridge_id,
                status=status,  # type: ignore[arg-type]
                detail=detail,
                timestamp_ns=now_ns(),
            )
        )

    def record_wire(
        self, bridge_id: str, direction: str, command: str, *, size: int = 0,
    ) -> None:
        """Record one message crossing a bridge connection."""
        self._log.append(
            WireTraffic(
                bridge_id=bridge_id,
                direction=direction,  # type: ignore[arg-type]
                command=command,
                size=size,
                timestamp_ns=now_ns(),
            )
        )

    def summary(self) -> dict[str, Any]:
        """Event counts by type, for the CLI."""
        return self._log.stats()
