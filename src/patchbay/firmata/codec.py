"""Firmata codec — pure translation between pin values and wire bytes.

Wire alphabet (one command byte, optionally carrying a 4-bit channel in its
low nibble, followed by 7-bit data bytes):

    0xF4                 set pin mode        pin, mode
    0xC0 | channel       report analog       1 = enable
    0xD0 | port          report digital port 1 = enable
    0xE0 | pin           analog message      lsb, msb   (14-bit value)
    0x90 | port          digital message     lsb, msb   (8 pin bits)

Values travel as ``lsb | (msb << 7)``, 7 bits per byte.  A digital port is
8 consecutive pins; port K covers pins ``8K .. 8K+7``.  Analog channel 0 is
the board pin ``ANALOG_PIN_OFFSET``.

Only the decoder keeps state: ``FirmataParser`` holds a cursor per connection.
Everything else in this module is a pure function.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Literal, TypeAlias

from patchbay._errors import CodecError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from patchbay.model.objects import InputMapping

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SET_PIN_MODE = 0xF4
REPORT_ANALOG = 0xC0
REPORT_DIGITAL = 0xD0
ANALOG_MESSAGE = 0xE0
DIGITAL_MESSAGE = 0x90

BAUD_RATE = 57600
ANALOG_PIN_OFFSET = 14
PINS_PER_PORT = 8

_MAX_14BIT = 0x3FFF
_MAX_NIBBLE = 0x0F
_MAX_7BIT = 0x7F
PWM_MAX = 255


class PinMode(IntEnum):
    """Pin modes understood by the set-pin-mode command."""

    INPUT = 0
    OUTPUT = 1
    ANALOG = 2
    PWM = 3


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


def _check(name: str, value: int, maximum: int) -> int:
    if not 0 <= value <= maximum:
        msg = f"{name} {value} out of range 0..{maximum}"
        raise CodecError(msg)
    return value


def _split14(value: int) -> tuple[int, int]:
    value = _check("value", value, _MAX_14BIT)
    return value & _MAX_7BIT, (value >> 7) & _MAX_7BIT


def encode_set_pin_mode(pin: int, mode: PinMode) -> bytes:
    """Set *pin* to *mode*."""
    return bytes((SET_PIN_MODE, _check("pin", pin, _MAX_7BIT), int(mode)))


def encode_report_analog(channel: int, *, enable: bool = True) -> bytes:
    """Enable (or disable) value reports for an analog channel."""
    return bytes((REPORT_ANALOG | _check("analog channel", channel, _MAX_NIBBLE), int(enable)))


def encode_report_digital(port: int, *, enable: bool = True) -> bytes:
    """Enable (or disable) value reports for a digital port."""
    return bytes((REPORT_DIGITAL | _check("port", port, _MAX_NIBBLE), int(enable)))


def encode_analog_message(pin: int, value: int) -> bytes:
    """Analog write (PWM duty) of *value* to *pin*."""
    lsb, msb = _split14(value)
    return bytes((ANALOG_MESSAGE | _check("analog pin", pin, _MAX_NIBBLE), lsb, msb))


def encode_digital_message(port: int, bits: int) -> bytes:
    """Write all 8 pins of *port* at once."""
    lsb, msb = _split14(_check("port bits", bits, 0xFF))
    return bytes((DIGITAL_MESSAGE | _check("port", port, _MAX_NIBBLE), lsb, msb))


def port_of(pin: int) -> int:
    return pin // PINS_PER_PORT


def analog_channel_of(pin: int, offset: int = ANALOG_PIN_OFFSET) -> int:
    """Analog channel for an absolute board pin."""
    return pin - offset


# ---------------------------------------------------------------------------
# Scaling
# ---------------------------------------------------------------------------


def scale_analog_input(raw: int, mapping: InputMapping) -> float:
    """Rescale a raw ADC reading from ``[0, 2**adc_bits - 1]`` to ``[min, max]``."""
    full_scale = (1 << mapping.adc_bits) - 1
    if full_scale <= 0:
        return mapping.min
    return mapping.min + (raw / full_scale) * (mapping.max - mapping.min)


def scale_digital_input(bit: int, mapping: InputMapping) -> float:
    """Map a pin bit onto ``min`` (low) or ``max`` (high)."""
    return mapping.max if bit else mapping.min


def scale_pwm_output(value: float, source_min: float = 0, source_max: float = 1023) -> int:
    """Rescale *value* from the source range to a PWM duty in ``0..255``, clamped."""
    span = source_max - source_min
    if span == 0:
        return 0
    duty = round((value - source_min) / span * PWM_MAX)
    return max(0, min(PWM_MAX, duty))


@dataclass(slots=True)
class PortRegisters:
    """Shadow copy of the bits last written to each digital output port.

    The digital message carries a whole port, so setting one pin means
    resending its neighbours' last values too.
    """

    ports: dict[int, int] = field(default_factory=dict)

    def set_pin(self, pin: int, high: bool) -> tuple[int, int]:
        """Set or clear *pin*'s bit.  Returns ``(port, port_bits)`` to send."""
        port = port_of(pin)
        mask = 1 << (pin % PINS_PER_PORT)
        bits = self.ports.get(port, 0)
        bits = bits | mask if high else bits & ~mask
        self.ports[port] = bits
        return port, bits


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AnalogReport:
    """Decoded analog value report for a channel."""

    channel: int
    value: int


@dataclass(frozen=True, slots=True)
class DigitalReport:
    """Decoded digital port report.  Bit i is pin ``8*port + i``."""

    port: int
    bits: int

    def pins(self) -> Iterable[tuple[int, int]]:
        """``(absolute_pin, bit)`` for each of the port's 8 pins."""
        for i in range(PINS_PER_PORT):
            yield self.port * PINS_PER_PORT + i, (self.bits >> i) & 1


Report: TypeAlias = AnalogReport | DigitalReport


class FirmataParser:
    """Two-state decoder for analog and digital value reports.

    ``idle`` waits for a command byte; ``collecting`` accumulates the two
    data bytes of an analog or digital message.  The stream is unreliable, so
    a command byte arriving mid-message restarts collection, and data bytes
    seen while idle or unknown commands are skipped.
    """

    __slots__ = ("_buffer", "_command", "_state")

    def __init__(self) -> None:
        self._state: Literal["idle", "collecting"] = "idle"
        self._command = 0
        self._buffer: list[int] = []

    @property
    def state(self) -> Literal["idle", "collecting"]:
        return self._state

    def reset(self) -> None:
        self._state = "idle"
        self._command = 0
        self._buffer.clear()

    def feed(self, chunk: bytes) -> list[Report]:
        """Consume *chunk* and return every report it completes."""
        reports: list[Report] = []
        for byte in chunk:
            if byte & 0x80:
                self.reset()
                if (byte & 0xF0) in (ANALOG_MESSAGE, DIGITAL_MESSAGE):
                    self._state = "collecting"
                    self._command = byte
                continue

            if self._state == "idle":
                continue

            self._buffer.append(byte)
            if len(self._buffer) == 2:
                value = self._buffer[0] | (self._buffer[1] << 7)
                selector = self._command & 0x0F
                if (self._command & 0xF0) == ANALOG_MESSAGE:
                    reports.append(AnalogReport(channel=selector, value=value))
                else:
                    reports.append(DigitalReport(port=selector, bits=value & 0xFF))
                self.reset()
        return reports
