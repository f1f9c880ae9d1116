"""Bridge session — one serial connection mirrored into the object graph.

Inbound, the read loop decodes analog and digital reports and applies the
scaled values to the mapped object properties through the engine.  Outbound,
a tick re-encodes every output mapping whose source property changed since it
was last sent.

Status transitions, all written through the engine so the bridge object
always shows them:

    disconnected -> connecting -> connected
    disconnected -> connecting -> error -> (after error_reset_s) disconnected

Per-connection state (parser cursor, port shadow registers, last-sent cache,
write lock, tasks) lives in one ``_Connection`` and is discarded as a unit on
disconnect, so nothing from a dead connection leaks into the next one.

Writes on a connection go out one at a time under its lock; interleaving
halves of two multi-byte commands would desynchronise the board's parser.
"""

from __future__ import annotations

import asyncio
import contextlib
import sys
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any

from patchbay._errors import (
    CodecError,
    PropagationError,
    TransportError,
    TransportUnavailableError,
)
from patchbay.firmata.codec import (
    ANALOG_PIN_OFFSET,
    BAUD_RATE,
    AnalogReport,
    FirmataParser,
    PinMode,
    PortRegisters,
    analog_channel_of,
    encode_analog_message,
    encode_digital_message,
    encode_report_analog,
    encode_report_digital,
    encode_set_pin_mode,
    port_of,
    scale_analog_input,
    scale_digital_input,
    scale_pwm_output,
)
from patchbay.model.objects import Bridge
from patchbay.model.properties import get_property, is_number

if TYPE_CHECKING:
    from collections.abc import Callable

    from patchbay._types import ConnectionStatus, ObjectID
    from patchbay.firmata.codec import Report
    from patchbay.firmata.transport import Transport, TransportFactory
    from patchbay.observability.collector import Collector
    from patchbay.reactive.engine import PropagationEngine
    from patchbay.reactive.scheduler import Handle, Scheduler


@dataclass(slots=True)
class _Connection:
    """Everything scoped to one open transport."""

    transport: Transport
    parser: FirmataParser = field(default_factory=FirmataParser)
    registers: PortRegisters = field(default_factory=PortRegisters)
    write_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    last_sent: dict[int, float] = field(default_factory=dict)
    tasks: list[asyncio.Task[Any]] = field(default_factory=list)
    closed: bool = False


class BridgeSession:
    """Owns the serial connection of one bridge object.

    Args:
        bridge_id: The bridge object this session serves.
        engine: Engine through which every decoded value and status is applied.
        transport_factory: Builds the transport when connecting.
        scheduler: Owner of the error-reset timer.
        baud_rate: Serial speed passed to ``Transport.open``.
        analog_pin_offset: Board pin of analog channel 0.
        error_reset_s: Delay before ``error`` reverts to ``disconnected``.
        output_interval_s: Period of the output re-encode tick.
        collector: Optional event collector.

    """

    def __init__(
        self,
        bridge_id: ObjectID,
        engine: PropagationEngine,
        transport_factory: TransportFactory,
        scheduler: Scheduler,
        *,
        baud_rate: int = BAUD_RATE,
        analog_pin_offset: int = ANALOG_PIN_OFFSET,
        error_reset_s: float = 3.0,
        output_interval_s: float = 0.05,
        collector: Collector | None = None,
    ) -> None:
        self.bridge_id = bridge_id
        self._engine = engine
        self._factory = transport_factory
        self._scheduler = scheduler
        self._baud_rate = baud_rate
        self._offset = analog_pin_offset
        self._error_reset_s = error_reset_s
        self._output_interval_s = output_interval_s
        self._collector = collector
        self._connection: _Connection | None = None
        self._connecting = False
        self._forgotten = False
        self._reset_handle: Handle | None = None

    @property
    def connected(self) -> bool:
        return self._connection is not None

    @property
    def status(self) -> ConnectionStatus | None:
        bridge = self._bridge()
        return bridge.connection_status if bridge is not None else None

    def _bridge(self) -> Bridge | None:
        obj = self._engine.store.get(self.bridge_id)
        return obj if isinstance(obj, Bridge) else None

    # ----- Lifecycle -----

    async def connect(self) -> bool:
        """Open the transport, configure the board and start the loops.

        Returns:
            True when the bridge ended up ``connected``.

        """
        if self._forgotten:
            return False
        if self._connection is not None or self._connecting:
            print(f"  Bridge {self.bridge_id!r} already connected or connecting", file=sys.stderr)
            return False
        if self._bridge() is None:
            return False

        self._cancel_reset()
        self._connecting = True
        try:
            self._set_status("connecting")
            try:
                transport = self._factory(self.bridge_id)
            except TransportUnavailableError as exc:
                print(f"  Bridge {self.bridge_id!r}: {exc}", file=sys.stderr)
                self._set_status("error", detail=str(exc))
                return False

            try:
                await transport.open(self._baud_rate)
            except TransportError as exc:
                print(f"  Bridge {self.bridge_id!r} failed to connect: {exc}", file=sys.stderr)
                self._set_status("error", detail=str(exc))
                self._schedule_reset()
                return False

            if self._forgotten or self._bridge() is None:
                # Deleted while the port was opening
                with contextlib.suppress(TransportError):
                    await transport.close()
                return False

            conn = _Connection(transport=transport)
            self._connection = conn
            self._set_status("connected")
        finally:
            self._connecting = False

        try:
            await self._configure(conn)
        except TransportError as exc:
            await self._fail(conn, exc)
            return False
        if conn.closed:
            return False

        conn.tasks.append(asyncio.create_task(self._read_loop(conn), name=f"{self.bridge_id}-read"))
        conn.tasks.append(asyncio.create_task(self._tick_loop(conn), name=f"{self.bridge_id}-tick"))
        return True

    async def disconnect(self) -> None:
        """Close the connection (if any) and mark the bridge disconnected."""
        self._cancel_reset()
        conn, self._connection = self._connection, None
        if conn is None:
            return
        await self._close(conn)
        self._set_status("disconnected")

    def release(self) -> asyncio.Task[None] | None:
        """Forget without awaiting, for callers outside a coroutine.

        The session refuses further connects at once.  An open connection is
        closed on a task of the running loop; a connect still waiting on the
        port closes its own transport when the open returns.

        Returns:
            The closing task, or None when nothing was open.

        """
        self._forgotten = True
        self._cancel_reset()
        conn, self._connection = self._connection, None
        if conn is None:
            return None
        conn.closed = True
        return asyncio.get_running_loop().create_task(
            self._close(conn), name=f"{self.bridge_id}-release",
        )

    async def forget(self) -> None:
        """Release everything for a deleted bridge."""
        task = self.release()
        if task is not None:
            await task

    async def _fail(self, conn: _Connection, exc: BaseException) -> None:
        if self._connection is not conn:
            return
        print(f"  Bridge {self.bridge_id!r} connection lost: {exc}", file=sys.stderr)
        self._connection = None
        await self._close(conn)
        self._set_status("error", detail=str(exc))
        self._schedule_reset()

    async def _close(self, conn: _Connection) -> None:
        conn.closed = True
        current = asyncio.current_task()
        pending = [t for t in conn.tasks if t is not current and not t.done()]
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        conn.last_sent.clear()
        conn.registers.ports.clear()
        conn.parser.reset()
        try:
            await conn.transport.close()
        except TransportError as exc:
            print(f"  Bridge {self.bridge_id!r}: {exc}", file=sys.stderr)

    # ----- Status -----

    def _set_status(self, status: ConnectionStatus, *, detail: str = "") -> None:
        try:
            self._engine.apply(self.bridge_id, {"connection_status": status})
        except PropagationError as exc:
            print(f"  Bridge {self.bridge_id!r} status write aborted: {exc}", file=sys.stderr)
        if self._collector is not None:
            self._collector.record_status(self.bridge_id, status, detail=detail)

    def _schedule_reset(self) -> None:
        self._cancel_reset()
        self._reset_handle = self._scheduler.call_later(self._error_reset_s, self._reset_if_error)

    def _cancel_reset(self) -> None:
        if self._reset_handle is not None:
            self._reset_handle.cancel()
            self._reset_handle = None

    def _reset_if_error(self) -> None:
        self._reset_handle = None
        if self._connection is None and self.status == "error":
            self._set_status("disconnected")

    # ----- Outbound -----

    async def _send(self, conn: _Connection, data: bytes, command: str) -> None:
        if conn.closed:
            msg = "connection closed"
            raise TransportError(msg)
        async with conn.write_lock:
            await conn.transport.write(data)
        if self._collector is not None:
            self._collector.record_wire(self.bridge_id, "out", command, size=len(data))

    async def _configure(self, conn: _Connection) -> None:
        """Send pin modes and enable reporting for every mapping."""
        bridge = self._bridge()
        if bridge is None:
            return

        steps: list[tuple[str, Callable[[], bytes]]] = []
        for out in bridge.output_mappings:
            mode = PinMode.PWM if out.mode == "PWM" else PinMode.OUTPUT
            steps.append(("pin_mode", partial(encode_set_pin_mode, out.pin, mode)))
        for inp in bridge.input_mappings:
            if inp.mode == "Analog":
                channel = analog_channel_of(inp.pin, self._offset)
                steps.append(("pin_mode", partial(encode_set_pin_mode, inp.pin, PinMode.ANALOG)))
                steps.append(("report_analog", partial(encode_report_analog, channel)))
            else:
                steps.append(("pin_mode", partial(encode_set_pin_mode, inp.pin, PinMode.INPUT)))
                steps.append(("report_digital", partial(encode_report_digital, port_of(inp.pin))))

        for command, encode in steps:
            try:
                data = encode()
            except CodecError as exc:
                # Mapping the protocol can't express; skip it, keep the rest.
                print(f"  Bridge {self.bridge_id!r}: skipping {command}: {exc}", file=sys.stderr)
                continue
            await self._send(conn, data, command)

    async def tick(self) -> int:
        """Send every output mapping whose source value changed.

        Returns:
            Number of messages written.

        Raises:
            TransportError: If a write fails.

        """
        conn = self._connection
        bridge = self._bridge()
        if conn is None or bridge is None:
            return 0

        sent = 0
        for index, mapping in enumerate(bridge.output_mappings):
            if conn.closed:
                break
            source = self._engine.store.get(mapping.source_id)
            if source is None or not mapping.property:
                continue
            value = get_property(source, mapping.property)
            if not is_number(value) or conn.last_sent.get(index) == value:
                continue

            try:
                if mapping.mode == "PWM":
                    low = get_property(source, "min", 0)
                    high = get_property(source, "max", 1023)
                    if not (is_number(low) and is_number(high)):
                        low, high = 0, 1023
                    data = encode_analog_message(mapping.pin, scale_pwm_output(value, low, high))
                    command = "analog"
                else:
                    port, bits = conn.registers.set_pin(mapping.pin, value > 0)
                    data = encode_digital_message(port, bits)
                    command = "digital"
            except CodecError as exc:
                print(f"  Bridge {self.bridge_id!r} output {index}: {exc}", file=sys.stderr)
                conn.last_sent[index] = value
                continue

            await self._send(conn, data, command)
            conn.last_sent[index] = value
            sent += 1
        return sent

    async def _tick_loop(self, conn: _Connection) -> None:
        try:
            while not conn.closed:
                await asyncio.sleep(self._output_interval_s)
                await self.tick()
        except TransportError as exc:
            await self._fail(conn, exc)

    # ----- Inbound -----

    async def _read_loop(self, conn: _Connection) -> None:
        try:
            while not conn.closed:
                chunk = await conn.transport.read()
                if not chunk:
                    msg = "stream ended"
                    raise TransportError(msg)
                self.handle_reports(conn.parser.feed(chunk))
        except TransportError as exc:
            await self._fail(conn, exc)

    def handle_reports(self, reports: list[Report]) -> int:
        """Apply decoded reports to their mapped properties.

        Returns:
            Number of property writes requested.

        """
        bridge = self._bridge()
        if bridge is None:
            return 0

        applied = 0
        for report in reports:
            if self._collector is not None:
                command = "analog" if isinstance(report, AnalogReport) else "digital"
                self._collector.record_wire(self.bridge_id, "in", command, size=3)

            if isinstance(report, AnalogReport):
                pin = report.channel + self._offset
                mapping = next(
                    (m for m in bridge.input_mappings if m.mode == "Analog" and m.pin == pin),
                    None,
                )
                if mapping is not None:
                    applied += self._write(mapping.target_id, mapping.property,
                                           scale_analog_input(report.value, mapping))
                continue

            for pin, bit in report.pins():
                for mapping in bridge.input_mappings:
                    if mapping.mode == "Digital" and mapping.pin == pin:
                        applied += self._write(mapping.target_id, mapping.property,
                                               scale_digital_input(bit, mapping))
        return applied

    def _write(self, target_id: str, prop: str, value: float) -> int:
        if not target_id or not prop:
            return 0
        try:
            self._engine.apply(target_id, {prop: value})
        except PropagationError as exc:
            print(f"  Bridge {self.bridge_id!r} input to {target_id!r} aborted: {exc}", file=sys.stderr)
        return 1
