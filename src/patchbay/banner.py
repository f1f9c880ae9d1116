"""Startup banner — mode-aware status output.

Prints a short startup banner with timing and status indicators.  Detects
``NO_COLOR`` / ``TERM`` for safe fallback.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from patchbay.config import PatchbayConfig


# ---------------------------------------------------------------------------
# ANSI helpers, respecting NO_COLOR (https://no-color.org)
# ---------------------------------------------------------------------------

def _supports_color() -> bool:
    """Return True if the terminal supports ANSI colors."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("TERM") == "dumb":
        return False
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


_COLOR = _supports_color()

_RESET = "\033[0m" if _COLOR else ""
_BOLD = "\033[1m" if _COLOR else ""
_DIM = "\033[2m" if _COLOR else ""
_CYAN = "\033[36m" if _COLOR else ""
_GREEN = "\033[32m" if _COLOR else ""
_YELLOW = "\033[33m" if _COLOR else ""
_RED = "\033[31m" if _COLOR else ""


_MODE_STYLES: dict[str, tuple[str, str]] = {
    "run": (_GREEN, "run"),
    "step": (_YELLOW, "step"),
    "show": (_CYAN, "show"),
}

_STATUS_STYLES: dict[str, str] = {
    "connected": _GREEN,
    "connecting": _YELLOW,
    "error": _RED,
    "disconnected": _DIM,
}


def _mode_badge(mode: str) -> str:
    """Return a styled [mode] badge."""
    color, label = _MODE_STYLES.get(mode, (_DIM, mode))
    return f"{color}[{label}]{_RESET}"


def status_label(status: str) -> str:
    """Colour a bridge connection status."""
    return f"{_STATUS_STYLES.get(status, '')}{status}{_RESET}"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def print_banner(
    config: PatchbayConfig,
    object_count: int,
    mode: str,
    *,
    bridge_count: int = 0,
    load_ms: float = 0.0,
    warnings: list[str] | None = None,
) -> None:
    """Print the Patchbay startup banner to stderr.

    Args:
        config: Resolved PatchbayConfig.
        object_count: Number of objects loaded from the snapshot.
        mode: One of ``"run"``, ``"step"``, ``"show"``.
        bridge_count: Number of bridge objects in the patch.
        load_ms: Time spent loading the snapshot in milliseconds.
        warnings: Optional list of warning messages to display.

    """
    from patchbay import __version__

    badge = _mode_badge(mode)
    header = f"  {_BOLD}Patchbay{_RESET} {_DIM}v{__version__}{_RESET}  {badge}"

    lines: list[str] = [
        "",
        header,
        f"  {_DIM}{'─' * 43}{_RESET}",
    ]

    objects_label = "object" if object_count == 1 else "objects"
    timing = f" {_DIM}in {load_ms:.0f}ms{_RESET}" if load_ms > 0 else ""
    lines.append(f"  {_DIM}├─{_RESET} {object_count} {objects_label} loaded{timing}")
    lines.append(f"  {_DIM}├─{_RESET} snapshot: {_DIM}{config.snapshot_path}{_RESET}")

    if bridge_count > 0:
        bridges_label = "bridge" if bridge_count == 1 else "bridges"
        port = config.serial_port or "no serial port"
        lines.append(
            f"  {_DIM}├─{_RESET} {bridge_count} {bridges_label} "
            f"on {_DIM}{port} @ {config.baud_rate}{_RESET}"
        )

    if mode == "run":
        watching = f"{_GREEN}watching{_RESET}" if config.watch else f"{_DIM}not watching{_RESET}"
        lines.append(f"  {_DIM}└─{_RESET} autosave {config.autosave_delay_s:g}s, {watching}")
        lines.append("")
        lines.append(f"  {_DIM}Press Ctrl-C to stop.{_RESET}")

    if warnings:
        lines.append("")
        lines.extend(f"  {_YELLOW}!{_RESET} {w}" for w in warnings)

    lines.append("")

    print("\n".join(lines), file=sys.stderr)
