"""Patchbay configuration.

PatchbayConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass, field
from pathlib import Path

from patchbay._errors import ConfigError


@dataclass(frozen=True, slots=True)
class PatchbayConfig:
    """Configuration for a patchbay workbench.

    Attributes:
        root: Working directory holding the snapshot and config file.
              Always resolved to an absolute path on construction.
        snapshot: Snapshot file name or path (relative paths resolve from root).
        serial_port: Serial device for bridges (``None`` = no transport available).
        baud_rate: Serial baud rate.
        analog_pin_offset: Pin number of analog channel 0 on the board.
        cooldown_s: Debounce window after each sequence block step.
        error_reset_s: Delay before an ``error`` bridge reverts to ``disconnected``.
        output_interval_s: Period of the output re-encode tick per connection.
        autosave_delay_s: Debounce before writing the snapshot after a change.
        max_propagation_steps: Write cap per traversal before it is aborted.
        watch: Reload the snapshot when another program edits it.

    """

    root: Path = field(default_factory=Path.cwd)
    snapshot: Path = field(default_factory=lambda: Path("patchbay.json"))
    serial_port: str | None = None
    baud_rate: int = 57600
    analog_pin_offset: int = 14
    cooldown_s: float = 0.1
    error_reset_s: float = 3.0
    output_interval_s: float = 0.05
    autosave_delay_s: float = 0.5
    max_propagation_steps: int = 10_000
    watch: bool = True

    def __post_init__(self) -> None:
        if not self.root.is_absolute():
            object.__setattr__(self, "root", self.root.resolve())
        if self.max_propagation_steps < 1:
            msg = f"max_propagation_steps must be positive, got {self.max_propagation_steps}"
            raise ConfigError(msg)
        if self.output_interval_s <= 0:
            msg = f"output_interval_s must be positive, got {self.output_interval_s}"
            raise ConfigError(msg)

    @property
    def snapshot_path(self) -> Path:
        """Absolute path to the snapshot file."""
        if self.snapshot.is_absolute():
            return self.snapshot
        return self.root / self.snapshot
