"""Patchbay CLI — patchbay run / patchbay show / patchbay step.

Entry point for the ``patchbay`` command-line interface.
"""

from __future__ import annotations

import argparse
import dataclasses
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from patchbay.model.objects import BaseObject
    from patchbay.observability.events import WorkbenchEvent


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the patchbay CLI."""
    parser = argparse.ArgumentParser(
        prog="patchbay",
        description="Reactive patching workbench for Firmata boards.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # patchbay run
    run_parser = subparsers.add_parser(
        "run",
        help="Load the patch, connect bridges, and run until Ctrl-C",
    )
    run_parser.add_argument("root", nargs="?", default=".", help="Patch directory")
    run_parser.add_argument("--snapshot", default=None, help="Snapshot file (relative to root)")
    run_parser.add_argument("--serial-port", default=None, help="Serial device for bridges")
    run_parser.add_argument("--baud-rate", type=int, default=None, help="Serial speed")
    run_parser.add_argument(
        "--no-watch", action="store_true", help="Do not reload the snapshot on external edits",
    )

    # patchbay show
    show_parser = subparsers.add_parser(
        "show",
        help="List objects, their bindings and bindable properties",
    )
    show_parser.add_argument("root", nargs="?", default=".", help="Patch directory")
    show_parser.add_argument("--snapshot", default=None, help="Snapshot file (relative to root)")

    # patchbay step
    step_parser = subparsers.add_parser(
        "step",
        help="Advance sequence timers headlessly, then save",
    )
    step_parser.add_argument("root", nargs="?", default=".", help="Patch directory")
    step_parser.add_argument("--snapshot", default=None, help="Snapshot file (relative to root)")
    step_parser.add_argument(
        "--seconds", type=float, default=1.0, help="Virtual time to advance",
    )
    step_parser.add_argument(
        "--dry-run", action="store_true", help="Do not write the snapshot back",
    )
    step_parser.add_argument(
        "--events", type=int, default=0, metavar="N", help="Print the last N events",
    )
    step_parser.add_argument(
        "--object", default=None, metavar="ID", help="Only events about this object",
    )

    return parser


def _get_version() -> str:
    """Get the package version."""
    from patchbay import __version__

    return __version__


def _binding(obj: BaseObject) -> str:
    from patchbay.model.objects import Bridge, SequenceBlock, Slider, Switch

    if isinstance(obj, (Slider, Switch)):
        if obj.target_id and obj.target_property:
            return f"-> {obj.target_id}.{obj.target_property}"
        return "-> (unbound)"
    if isinstance(obj, SequenceBlock):
        trigger = obj.manual_trigger_id or "-"
        mode = (
            f"auto every {obj.auto_interval_ms}ms"
            if obj.execution_mode == "auto"
            else f"manual, trigger {trigger}"
        )
        return f"{len(obj.instructions)} instructions, {mode}"
    if isinstance(obj, Bridge):
        return (
            f"{obj.connection_status}, {len(obj.input_mappings)} in / "
            f"{len(obj.output_mappings)} out"
        )
    return ""


def _format_event(event: WorkbenchEvent) -> str:
    fields = ", ".join(
        f"{field.name}={getattr(event, field.name)!r}"
        for field in dataclasses.fields(event)
        if field.name != "timestamp_ns"
    )
    return f"{type(event).__name__}({fields})"


def _show(root: str, snapshot: str | None) -> int:
    from patchbay._errors import SnapshotError
    from patchbay.config_loader import load_config
    from patchbay.model.properties import get_property, numeric_properties
    from patchbay.persist.snapshot import load_snapshot

    config = load_config(Path(root), snapshot=snapshot)
    try:
        loaded = load_snapshot(config.snapshot_path)
    except SnapshotError as exc:
        print(f"  {exc}", file=sys.stderr)
        return 1

    if not loaded.objects:
        print(f"No objects in {config.snapshot_path}")
        return 0

    for obj in loaded.objects:
        header = f"{obj.id}  [{obj.kind}]  {obj.name}"
        binding = _binding(obj)
        print(f"{header}  {binding}" if binding else header)
        props = ", ".join(
            f"{name}={get_property(obj, name)!r}" for name in numeric_properties(obj)
        )
        print(f"  {props or '(no numeric properties)'}")
    return 0


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from patchbay._errors import PatchbayError
    from patchbay.app import run, step

    try:
        if args.command == "run":
            run(
                root=args.root,
                snapshot=args.snapshot,
                serial_port=args.serial_port,
                baud_rate=args.baud_rate,
                watch=False if args.no_watch else None,
            )
        elif args.command == "show":
            sys.exit(_show(args.root, args.snapshot))
        elif args.command == "step":
            bench = step(
                args.root,
                args.seconds,
                save=not args.dry_run,
                snapshot=args.snapshot,
            )
            for block_id, cursor in sorted(bench.executor.cursors.items()):
                print(f"{block_id}: instruction {cursor}")
            if args.events > 0:
                events = bench.collector.log.query(limit=args.events, object_id=args.object)
                for event in reversed(events):
                    print(_format_event(event))
            summary = bench.collector.summary()
            print(f"  {summary.get('total', 0)} events recorded", file=sys.stderr)
    except PatchbayError as exc:
        print(f"  Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
