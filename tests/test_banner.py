"""Tests for patchbay.banner — startup banner output."""

from __future__ import annotations

import io
import sys
from pathlib import Path
from unittest.mock import patch

from patchbay.banner import print_banner, status_label
from patchbay.config import PatchbayConfig


class TestPrintBanner:
    """Tests for the startup banner."""

    def _capture_banner(self, object_count: int = 5, **kwargs: object) -> str:
        """Call print_banner and capture stderr output."""
        buf = io.StringIO()
        with patch.object(sys, "stderr", buf):
            config = PatchbayConfig(root=Path("/tmp/test-patch"), serial_port="/dev/ttyACM0")
            print_banner(config, object_count, **kwargs)  # type: ignore[arg-type]
        return buf.getvalue()

    def test_run_mode_banner(self) -> None:
        output = self._capture_banner(mode="run", load_ms=42.5)

        assert "Patchbay" in output
        assert "5 objects loaded" in output
        assert "42ms" in output
        assert "patchbay.json" in output
        assert "autosave 0.5s" in output
        assert "watching" in output
        assert "Ctrl-C" in output

    def test_step_mode_banner(self) -> None:
        output = self._capture_banner(mode="step")

        assert "5 objects loaded" in output
        assert "Ctrl-C" not in output
        assert "autosave" not in output

    def test_bridges_shown(self) -> None:
        output = self._capture_banner(mode="run", bridge_count=2)

        assert "2 bridges" in output
        assert "/dev/ttyACM0 @ 57600" in output

    def test_no_bridges_no_bridge_line(self) -> None:
        output = self._capture_banner(mode="run")

        assert "bridge" not in output

    def test_single_object_singular(self) -> None:
        output = self._capture_banner(object_count=1, mode="run")

        assert "1 object loaded" in output

    def test_warnings_displayed(self) -> None:
        output = self._capture_banner(mode="run", warnings=["No serial port configured"])

        assert "No serial port configured" in output

    def test_version_shown(self) -> None:
        from patchbay import __version__

        output = self._capture_banner(mode="show")
        assert __version__ in output


class TestStatusLabel:
    def test_contains_status(self) -> None:
        for status in ("connected", "connecting", "error", "disconnected"):
            assert status in status_label(status)
