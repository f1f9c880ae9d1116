"""Byte-stream transports for bridge connections.

A transport is the only thing a session knows about the physical link:
open, close, read the next chunk, write a chunk.  ``SerialTransport`` wraps a
pyserial port and pushes its blocking calls onto worker threads so the event
loop keeps running while a read waits for bytes.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol, TypeAlias

import serial

from patchbay._errors import TransportError, TransportUnavailableError

if TYPE_CHECKING:
    from collections.abc import Callable


class Transport(Protocol):
    """Async byte-stream collaborator consumed by ``BridgeSession``."""

    async def open(self, baud_rate: int) -> None: ...

    async def close(self) -> None: ...

    async def read(self) -> bytes:
        """Wait for the next chunk.  ``b""`` means the stream ended."""
        ...

    async def write(self, data: bytes) -> None: ...


# Builds the transport for a bridge id, or raises TransportUnavailableError.
TransportFactory: TypeAlias = "Callable[[str], Transport]"


class SerialTransport:
    """Transport over a pyserial port.

    Args:
        port: Device name (``/dev/ttyACM0``, ``COM3``, ...).
        read_timeout_s: Poll period of the blocking read; bounds how long a
            closed port keeps a worker thread busy.

    """

    __slots__ = ("_port", "_read_timeout_s", "_serial")

    def __init__(self, port: str, *, read_timeout_s: float = 0.05) -> None:
        self._port = port
        self._read_timeout_s = read_timeout_s
        self._serial: serial.Serial | None = None

    @property
    def port(self) -> str:
        return self._port

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    async def open(self, baud_rate: int) -> None:
        try:
            self._serial = await asyncio.to_thread(
                serial.Serial,
                port=self._port,
                baudrate=baud_rate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self._read_timeout_s,
            )
        except (serial.SerialException, OSError, ValueError) as exc:
            msg = f"cannot open {self._port}: {exc}"
            raise TransportError(msg) from exc

    async def close(self) -> None:
        ser, self._serial = self._serial, None
        if ser is None:
            return
        try:
            await asyncio.to_thread(ser.close)
        except (serial.SerialException, OSError) as exc:
            msg = f"error closing {self._port}: {exc}"
            raise TransportError(msg) from exc

    async def read(self) -> bytes:
        while True:
            ser = self._serial
            if ser is None:
                msg = f"{self._port} is closed"
                raise TransportError(msg)
            try:
                data = await asyncio.to_thread(ser.read, max(1, ser.in_waiting))
            except (serial.SerialException, OSError, TypeError) as exc:
                msg = f"read from {self._port} failed: {exc}"
                raise TransportError(msg) from exc
            if data:
                return data

    async def write(self, data: bytes) -> None:
        ser = self._serial
        if ser is None:
            msg = f"{self._port} is closed"
            raise TransportError(msg)
        try:
            await asyncio.to_thread(ser.write, data)
        except (serial.SerialException, OSError) as exc:
            msg = f"write to {self._port} failed: {exc}"
            raise TransportError(msg) from exc


def serial_transport_factory(port: str | None) -> TransportFactory:
    """Factory giving every bridge a SerialTransport on *port*.

    With no port configured the environment has no transport capability and
    each connect attempt is refused with ``TransportUnavailableError``.
    """

    def factory(bridge_id: str) -> Transport:
        if not port:
            msg = (
                f"no serial port configured for bridge {bridge_id!r} "
                "(set serial_port in patchbay.yaml or pass --serial-port)"
            )
            raise TransportUnavailableError(msg)
        return SerialTransport(port)

    return factory
