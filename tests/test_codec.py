"""Tests for patchbay.firmata.codec — Firmata encoding, decoding and scaling."""

from __future__ import annotations

import pytest

from patchbay._errors import CodecError
from patchbay.firmata.codec import (
    AnalogReport,
    DigitalReport,
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
from patchbay.model.objects import InputMapping

# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


class TestEncoders:
    def test_set_pin_mode(self) -> None:
        assert encode_set_pin_mode(13, PinMode.OUTPUT) == bytes([0xF4, 13, 1])
        assert encode_set_pin_mode(14, PinMode.ANALOG) == bytes([0xF4, 14, 2])

    def test_report_analog(self) -> None:
        assert encode_report_analog(3) == bytes([0xC3, 1])
        assert encode_report_analog(3, enable=False) == bytes([0xC3, 0])

    def test_report_digital(self) -> None:
        assert encode_report_digital(1) == bytes([0xD1, 1])

    def test_analog_message_splits_seven_bit_halves(self) -> None:
        assert encode_analog_message(9, 200) == bytes([0xE9, 200 & 0x7F, 200 >> 7])
        assert encode_analog_message(9, 0x3FFF) == bytes([0xE9, 0x7F, 0x7F])

    def test_digital_message(self) -> None:
        assert encode_digital_message(1, 0b1010_0001) == bytes([0x91, 0x21, 0x01])

    @pytest.mark.parametrize(
        ("encode", "args"),
        [
            (encode_set_pin_mode, (128, PinMode.INPUT)),
            (encode_report_analog, (16,)),
            (encode_report_digital, (16,)),
            (encode_analog_message, (16, 0)),
            (encode_analog_message, (3, 0x4000)),
            (encode_analog_message, (3, -1)),
            (encode_digital_message, (0, 0x100)),
        ],
    )
    def test_out_of_range_raises(self, encode: object, args: tuple[int, ...]) -> None:
        with pytest.raises(CodecError, match="out of range"):
            encode(*args)  # type: ignore[operator]


class TestPinHelpers:
    def test_port_of(self) -> None:
        assert port_of(0) == 0
        assert port_of(7) == 0
        assert port_of(8) == 1
        assert port_of(13) == 1

    def test_analog_channel_of(self) -> None:
        assert analog_channel_of(14) == 0
        assert analog_channel_of(19) == 5
        assert analog_channel_of(54, offset=54) == 0


class TestPortRegisters:
    def test_set_and_clear_keep_neighbours(self) -> None:
        regs = PortRegisters()
        assert regs.set_pin(13, True) == (1, 0b0010_0000)
        assert regs.set_pin(8, True) == (1, 0b0010_0001)
        assert regs.set_pin(13, False) == (1, 0b0000_0001)

    def test_ports_are_independent(self) -> None:
        regs = PortRegisters()
        regs.set_pin(2, True)
        assert regs.set_pin(9, True) == (1, 0b0000_0010)


# ---------------------------------------------------------------------------
# Scaling
# ---------------------------------------------------------------------------


class TestScaling:
    def test_analog_input_full_range(self) -> None:
        mapping = InputMapping(min=0, max=500)
        assert scale_analog_input(0, mapping) == 0
        assert scale_analog_input(1023, mapping) == 500

    def test_analog_input_midpoint(self) -> None:
        mapping = InputMapping(min=100, max=200, adc_bits=8)
        assert scale_analog_input(255, mapping) == 200
        assert scale_analog_input(0, mapping) == 100

    def test_digital_input(self) -> None:
        mapping = InputMapping(mode="Digital", min=10, max=90)
        assert scale_digital_input(0, mapping) == 10
        assert scale_digital_input(1, mapping) == 90

    def test_pwm_output(self) -> None:
        assert scale_pwm_output(0) == 0
        assert scale_pwm_output(1023) == 255
        assert scale_pwm_output(250, 0, 500) == 128

    def test_pwm_output_clamped(self) -> None:
        assert scale_pwm_output(900, 0, 500) == 255
        assert scale_pwm_output(-5, 0, 500) == 0

    def test_pwm_zero_span(self) -> None:
        assert scale_pwm_output(5, 5, 5) == 0

    @pytest.mark.parametrize("value", [0, 1, 37.5, 100, 249.9, 250, 333, 499, 500])
    def test_pwm_wire_round_trip(self, value: float) -> None:
        low, high = 0, 500
        duty = scale_pwm_output(value, low, high)
        (report,) = FirmataParser().feed(encode_analog_message(9, duty))
        assert report == AnalogReport(channel=9, value=duty)

        back = scale_analog_input(report.value, InputMapping(min=low, max=high, adc_bits=8))
        assert abs(back - value) <= (high - low) / 255


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class TestFirmataParser:
    def test_analog_report(self) -> None:
        parser = FirmataParser()
        assert parser.feed(bytes([0xE2, 0x7F, 0x07])) == [AnalogReport(channel=2, value=1023)]
        assert parser.state == "idle"

    def test_digital_report(self) -> None:
        parser = FirmataParser()
        assert parser.feed(bytes([0x91, 0x21, 0x01])) == [DigitalReport(port=1, bits=0xA1)]

    def test_split_across_chunks(self) -> None:
        parser = FirmataParser()
        assert parser.feed(bytes([0xE0, 0x10])) == []
        assert parser.state == "collecting"
        assert parser.feed(bytes([0x01])) == [AnalogReport(channel=0, value=0x90)]

    def test_many_reports_in_one_chunk(self) -> None:
        parser = FirmataParser()
        reports = parser.feed(bytes([0xE0, 1, 0, 0xE1, 2, 0, 0x90, 1, 0]))
        assert reports == [
            AnalogReport(0, 1),
            AnalogReport(1, 2),
            DigitalReport(0, 1),
        ]

    def test_command_byte_restarts_collection(self) -> None:
        parser = FirmataParser()
        reports = parser.feed(bytes([0xE0, 0x05, 0xE3, 0x01, 0x00]))
        assert reports == [AnalogReport(channel=3, value=1)]

    def test_stray_data_bytes_skipped(self) -> None:
        parser = FirmataParser()
        assert parser.feed(bytes([0x01, 0x02, 0xE0, 0x03, 0x00])) == [AnalogReport(0, 3)]

    def test_unknown_command_skipped(self) -> None:
        parser = FirmataParser()
        assert parser.feed(bytes([0xF9, 0x02, 0x05])) == []
        assert parser.state == "idle"

    def test_unknown_command_aborts_message(self) -> None:
        parser = FirmataParser()
        assert parser.feed(bytes([0xE0, 0x05, 0xF0, 0x01])) == []

    def test_reset(self) -> None:
        parser = FirmataParser()
        parser.feed(bytes([0xE0, 0x05]))
        parser.reset()
        assert parser.feed(bytes([0x06])) == []

    def test_digital_report_pins(self) -> None:
        report = DigitalReport(port=1, bits=0b0000_0101)
        pins = dict(report.pins())
        assert pins[8] == 1
        assert pins[9] == 0
        assert pins[10] == 1
        assert len(pins) == 8
