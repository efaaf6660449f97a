"""Command-line interface for magsim-toolkit."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .catalog import DEFAULT_CATALOG
from .config import SimulationSettings
from .errors import MagsimError
from .log_config import setup_logging
from .simulator import CircuitSimulator


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="magsim",
        description="Circuit, thermal and geographic magnetic field simulation toolkit",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # --- simulate ---
    sim_parser = sub.add_parser("simulate", help="Run a transient circuit simulation")
    sim_parser.add_argument("circuit", type=Path, help="Path to circuit YAML file")
    sim_parser.add_argument(
        "--config", type=Path, default=None, help="Simulation settings YAML"
    )
    sim_parser.add_argument("--steps", type=int, default=100, help="Number of steps")
    sim_parser.add_argument(
        "--dt", type=float, default=None, help="Step size in seconds (default: settings)"
    )
    sim_parser.add_argument(
        "-o", "--output", type=Path, default=Path("./sim_output"), help="Output dir"
    )

    # --- field ---
    field_parser = sub.add_parser("field", help="Sample the field of loop sources")
    field_parser.add_argument("sources", type=Path, help="Path to field sources YAML")
    field_parser.add_argument(
        "--lat-range", type=float, nargs=2, required=True, metavar=("MIN", "MAX")
    )
    field_parser.add_argument(
        "--lon-range", type=float, nargs=2, required=True, metavar=("MIN", "MAX")
    )
    field_parser.add_argument("--alt", type=float, default=0.0, help="Altitude (m)")
    field_parser.add_argument("--resolution", type=int, default=20)
    field_parser.add_argument("--buffer-scale", type=float, default=1.0)
    field_parser.add_argument(
        "-o", "--output", type=Path, default=Path("./field_output"), help="Output dir"
    )
    field_parser.add_argument("--plots", action="store_true", help="Render PNG plots")

    # --- catalog ---
    sub.add_parser("catalog", help="List available component types")

    # --- validate ---
    val_parser = sub.add_parser("validate", help="Validate a circuit file")
    val_parser.add_argument("circuit", type=Path, help="Path to circuit YAML file")

    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    try:
        if args.command == "simulate":
            return _cmd_simulate(args)
        elif args.command == "field":
            return _cmd_field(args)
        elif args.command == "catalog":
            return _cmd_catalog()
        elif args.command == "validate":
            return _cmd_validate(args)
        else:
            parser.print_help()
            return 0
    except MagsimError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 2


def _cmd_simulate(args: argparse.Namespace) -> int:
    from ..exporters.report import ReportExporter
    from ..parsers.yaml_loader import load_project

    project = load_project(args.circuit)
    if args.config:
        project.settings = SimulationSettings.from_yaml(args.config)

    sim = CircuitSimulator(project)
    if not sim.start_simulation():
        for err in sim.state.errors:
            print(f"[ERROR] {err}", file=sys.stderr)
        return 1
    for w in sim.state.warnings:
        print(f"[magsim] Warning: {w}")

    print(f"[magsim] Running {args.steps} steps...")
    for _ in range(args.steps):
        sim.step_simulation(args.dt)

    failed = [c for c in project.components if c.is_failed]
    for c in failed:
        print(f"[magsim] {c.name} failed ({c.failure_type.value})")

    exporter = ReportExporter(args.output)
    exporter.export(sim.snapshot())
    print(
        f"[magsim] Simulated {sim.state.time:.6g} s. Results in {args.output}"
    )
    return 0


def _cmd_field(args: argparse.Namespace) -> int:
    from ..analysis.magnetics import MagneticsAnalyzer
    from ..parsers.yaml_loader import load_sources

    sources = load_sources(args.sources)
    settings = SimulationSettings(buffer_scale=args.buffer_scale)

    print(f"[magsim] Computing field grid for {len(sources)} source(s)...")
    result = MagneticsAnalyzer().run(
        sources, settings,
        tuple(args.lat_range), tuple(args.lon_range),
        altitude=args.alt, resolution=args.resolution,
    )
    for w in result.warnings:
        print(f"[magsim] Warning: {w}")
    if not result.success:
        for err in result.errors:
            print(f"[ERROR] field: {err}", file=sys.stderr)
        return 1

    result.to_json(args.output / "field.json")
    if args.plots:
        from ..exporters.field_plots import generate_field_plots

        plots = generate_field_plots(result.data, args.output)
        print(f"[magsim] Generated {len(plots)} images")

    grid = result.data["field_grid"]
    print(
        f"[magsim] B-field range: {grid['min_b_tesla'] * 1e6:.4f} - "
        f"{grid['max_b_tesla'] * 1e6:.4f} uT. Results in {args.output}"
    )
    return 0


def _cmd_catalog() -> int:
    for category, label in DEFAULT_CATALOG.categories().items():
        print(f"{label}:")
        for type_, definition in DEFAULT_CATALOG.by_category(category).items():
            print(f"  {type_:16s} {definition.label:18s} ports={definition.port_count}")
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    from ..parsers.yaml_loader import load_project

    project = load_project(args.circuit)
    result = CircuitSimulator(project).validate_circuit()
    for w in result.warnings:
        print(f"[magsim] Warning: {w}")
    for e in result.errors:
        print(f"[ERROR] {e}", file=sys.stderr)
    if result.is_valid:
        print(f"[magsim] {project.name}: circuit is valid")
        return 0
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
