"""Tests for patchbay.firmata.transport — pyserial wrapper and factory."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import serial

from patchbay._errors import TransportError, TransportUnavailableError
from patchbay.firmata.transport import SerialTransport, serial_transport_factory


def _port(**attrs: object) -> MagicMock:
    port = MagicMock()
    port.in_waiting = 0
    port.is_open = True
    for name, value in attrs.items():
        setattr(port, name, value)
    return port


class TestFactory:
    def test_no_port_is_unavailable(self) -> None:
        factory = serial_transport_factory(None)
        with pytest.raises(TransportUnavailableError, match="no serial port"):
            factory("bridge_1")

    def test_builds_serial_transport(self) -> None:
        transport = serial_transport_factory("/dev/ttyACM0")("bridge_1")
        assert isinstance(transport, SerialTransport)
        assert transport.port == "/dev/ttyACM0"
        assert not transport.is_open


class TestSerialTransport:
    @pytest.mark.asyncio
    async def test_open_uses_8n1(self) -> None:
        with patch("patchbay.firmata.transport.serial.Serial", return_value=_port()) as ctor:
            transport = SerialTransport("/dev/ttyACM0")
            await transport.open(57600)

        kwargs = ctor.call_args.kwargs
        assert kwargs["port"] == "/dev/ttyACM0"
        assert kwargs["baudrate"] == 57600
        assert kwargs["bytesize"] == serial.EIGHTBITS
        assert kwargs["parity"] == serial.PARITY_NONE
        assert kwargs["stopbits"] == serial.STOPBITS_ONE
        assert transport.is_open

    @pytest.mark.asyncio
    async def test_open_failure_wrapped(self) -> None:
        with patch(
            "patchbay.firmata.transport.serial.Serial",
            side_effect=serial.SerialException("busy"),
        ):
            transport = SerialTransport("/dev/ttyACM0")
            with pytest.raises(TransportError, match="cannot open /dev/ttyACM0"):
                await transport.open(57600)

    @pytest.mark.asyncio
    async def test_read_waits_for_data(self) -> None:
        port = _port(in_waiting=2)
        port.read.side_effect = [b"", b"\xe0\x01"]
        with patch("patchbay.firmata.transport.serial.Serial", return_value=port):
            transport = SerialTransport("/dev/ttyACM0")
            await transport.open(57600)
            assert await transport.read() == b"\xe0\x01"
        assert port.read.call_count == 2

    @pytest.mark.asyncio
    async def test_write_and_close(self) -> None:
        port = _port()
        with patch("patchbay.firmata.transport.serial.Serial", return_value=port):
            transport = SerialTransport("/dev/ttyACM0")
            await transport.open(57600)
            await transport.write(b"\xf4\x0d\x01")
            await transport.close()

        port.write.assert_called_once_with(b"\xf4\x0d\x01")
        port.close.assert_called_once()
        assert not transport.is_open

    @pytest.mark.asyncio
    async def test_io_on_closed_port_raises(self) -> None:
        transport = SerialTransport("/dev/ttyACM0")
        with pytest.raises(TransportError, match="closed"):
            await transport.read()
        with pytest.raises(TransportError, match="closed"):
            await transport.write(b"\x00")

    @pytest.mark.asyncio
    async def test_read_failure_wrapped(self) -> None:
        port = _port()
        port.read.side_effect = serial.SerialException("device reports readiness")
        with patch("patchbay.firmata.transport.serial.Serial", return_value=port):
            transport = SerialTransport("/dev/ttyACM0")
            await transport.open(57600)
            with pytest.raises(TransportError, match="read from"):
                await transport.read()
