"""Load PatchbayConfig from patchbay.yaml if present.

Merges file config with CLI kwargs. CLI overrides file.
"""

from __future__ import annotations

from pathlib import Path

from patchbay.config import PatchbayConfig

_KNOWN_KEYS = frozenset({
    "snapshot", "serial_port", "baud_rate", "analog_pin_offset",
    "cooldown_s", "error_reset_s", "output_interval_s", "autosave_delay_s",
    "max_propagation_steps", "watch",
})


def load_config(root: Path, **overrides: object) -> PatchbayConfig:
    """Load PatchbayConfig from root, optionally merging patchbay.yaml.

    Looks for patchbay.yaml, patchbay.yml, or patchbay.toml in root. If found,
    loads and merges with overrides. Overrides take precedence; ``None``
    overrides are ignored so unset CLI flags don't mask file values.
    """
    file_config = _read_patchbay_config(root)
    merged = {**file_config, **{k: v for k, v in overrides.items() if v is not None}}
    if "snapshot" in merged and not isinstance(merged["snapshot"], Path):
        merged["snapshot"] = Path(str(merged["snapshot"]))
    return PatchbayConfig(root=root, **merged)


def _read_patchbay_config(root: Path) -> dict[str, object]:
    """Read patchbay config from yaml/toml if present. Returns empty dict otherwise."""
    for name in ("patchbay.yaml", "patchbay.yml"):
        path = root / name
        if path.is_file():
            return _parse_yaml(path)
    toml_path = root / "patchbay.toml"
    if toml_path.is_file():
        return _parse_toml(toml_path)
    return {}


def _parse_yaml(path: Path) -> dict[str, object]:
    """Parse YAML config. Returns empty dict on error."""
    import yaml

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError):
        return {}
    if not isinstance(data, dict):
        return {}
    return _flatten_patchbay_section(data)


def _parse_toml(path: Path) -> dict[str, object]:
    """Parse TOML config. Returns empty dict on error."""
    import tomllib

    try:
        data = tomllib.loads(path.read_text())
    except (OSError, tomllib.TOMLDecodeError):
        return {}
    return _flatten_patchbay_section(data)


def _flatten_patchbay_section(data: dict[str, object]) -> dict[str, object]:
    """Extract patchbay.* keys into top-level config."""
    result: dict[str, object] = {}
    for k, v in data.items():
        if k in _KNOWN_KEYS:
            result[k] = v
    section = data.get("patchbay")
    if isinstance(section, dict):
        for k, v in section.items():
            if k in _KNOWN_KEYS:
                result[k] = v
    return result
