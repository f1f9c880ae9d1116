"""Firmata bridge — wire codec, transports, and per-bridge sessions."""

from patchbay.firmata.codec import (
    ANALOG_PIN_OFFSET,
    BAUD_RATE,
    AnalogReport,
    DigitalReport,
    FirmataParser,
    PinMode,
    PortRegisters,
)
from patchbay.firmata.session import BridgeSession
from patchbay.firmata.transport import (
    SerialTransport,
    Transport,
    TransportFactory,
    serial_transport_factory,
)

__all__ = [
    "ANALOG_PIN_OFFSET",
    "BAUD_RATE",
    "AnalogReport",
    "BridgeSession",
    "DigitalReport",
    "FirmataParser",
    "PinMode",
    "PortRegisters",
    "SerialTransport",
    "Transport",
    "TransportFactory",
    "serial_transport_factory",
]
