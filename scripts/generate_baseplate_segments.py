#!/usr/bin/env python3
"""Generate a grid baseplate, split into interlocking bed-sized segments."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from baseplate_split import OpenSCADRenderer, run_split_pipeline
from baseplate_split.audit import AuditTrail
from baseplate_split.config import config_from_dict, config_to_dict, load_config
from baseplate_split.contracts import ToothPattern
from baseplate_split.errors import BaseplateError
from baseplate_split.run_protocol import (
    prepare_run_dir,
    update_latest_pointer,
    write_json,
    write_text,
)

# CLI flag -> config field, applied over the --config file when given.
FLAG_FIELDS = {
    "width": "width",
    "depth": "depth",
    "grid_size": "grid_size",
    "bed_width": "printer_bed_width",
    "bed_depth": "printer_bed_depth",
    "pattern": "edge_pattern",
    "tooth_depth": "tooth_depth",
    "tooth_width": "tooth_width",
    "tolerance": "connector_tolerance",
    "style": "style",
    "magnet_z_offset": "magnet_z_offset",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Split a grid baseplate into printer-bed-sized interlocking segments"
    )
    parser.add_argument("--config", default=None, help="JSON config (snake_case or camelCase)")
    parser.add_argument("--name", default="baseplate", help="Design/run name")
    parser.add_argument("--runs-dir", default="runs", help="Runs output root")

    sizing = parser.add_argument_group("sizing")
    sizing.add_argument("--width", type=float, default=None, help="Width in grid units")
    sizing.add_argument("--depth", type=float, default=None, help="Depth in grid units")
    sizing.add_argument(
        "--fill-mm",
        type=float,
        nargs=2,
        metavar=("WIDTH", "DEPTH"),
        default=None,
        help="Fill a target footprint in mm instead of using grid units",
    )
    sizing.add_argument("--grid-size", type=float, default=None, help="Grid unit in mm")
    sizing.add_argument(
        "--style", choices=["default", "magnet", "screw", "weighted"], default=None
    )
    sizing.add_argument(
        "--magnet-z-offset", type=float, default=None,
        help="Embed magnets this far above the plate bottom (mm)",
    )
    sizing.add_argument(
        "--center-screw", action="store_true", help="Countersunk screw hole in each full cell"
    )
    sizing.add_argument(
        "--weight-cavity", action="store_true", help="Weight pocket under each full cell"
    )

    split = parser.add_argument_group("splitting")
    split.add_argument("--split", action="store_true", help="Split for the printer bed")
    split.add_argument("--bed-width", type=float, default=None, help="Bed width in mm")
    split.add_argument("--bed-depth", type=float, default=None, help="Bed depth in mm")
    split.add_argument(
        "--no-connectors", action="store_true", help="Plain butt joints between segments"
    )
    split.add_argument(
        "--pattern", choices=[p.value for p in ToothPattern], default=None,
        help="Interlocking tooth pattern",
    )
    split.add_argument("--tooth-depth", type=float, default=None, help="Tooth depth in mm")
    split.add_argument("--tooth-width", type=float, default=None, help="Tooth width in mm")
    split.add_argument("--tolerance", type=float, default=None, help="Fit clearance in mm")

    render = parser.add_argument_group("rendering")
    render.add_argument("--render", action="store_true", help="Render STL via OpenSCAD")
    render.add_argument(
        "--openscad", default=None, help="OpenSCAD executable (default: $OPENSCAD_PATH or openscad)"
    )
    render.add_argument(
        "--timeout-s", type=float, default=120.0, help="Per-segment render timeout"
    )
    render.add_argument(
        "--fail-fast", action="store_true", help="Stop at the first render failure"
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logs")
    return parser


def build_config(args: argparse.Namespace):
    if args.config:
        payload = config_to_dict(load_config(args.config))
    else:
        payload = {}

    for flag, field_name in FLAG_FIELDS.items():
        value = getattr(args, flag)
        if value is not None:
            payload[field_name] = value
    if args.fill_mm is not None:
        payload["sizing_mode"] = "fill_area_mm"
        payload["target_width_mm"], payload["target_depth_mm"] = args.fill_mm
    if args.split:
        payload["split_enabled"] = True
    if args.no_connectors:
        payload["connector_enabled"] = False
    if args.center_screw:
        payload["center_screw"] = True
    if args.weight_cavity:
        payload["weight_cavity"] = True
    return config_from_dict(payload)


def _build_summary(*, run_id: str, elapsed_s: float, result) -> str:
    split = result.split
    lines = [
        f"# Run {run_id}",
        "",
        f"- Status: **{result.status.upper()}**",
        f"- Duration: {elapsed_s:.2f}s",
    ]
    if split is not None:
        lines.append(
            f"- Segments: {split.total_segments} ({split.segments_x} x {split.segments_y}), "
            f"max {split.max_segment_units_x} x {split.max_segment_units_y} units per bed"
        )
    else:
        lines.append("- Segments: 1 (split disabled)")
    lines.append(f"- Edge pattern: {result.config.edge_pattern}")
    lines.append(f"- Edge issues: {len(result.violations)}")
    lines.append(f"- Stale overrides: {len(result.stale_overrides)}")
    lines.extend(["", "## Plates"])
    for artifact in result.segment_artifacts:
        line = f"- `{artifact.name}`: {artifact.status}"
        if artifact.error:
            line += f" ({artifact.error})"
        lines.append(line)
    if result.violations:
        lines.extend(["", "## Edge issues"])
        lines.extend(f"- [{v.severity}] {v.message}" for v in result.violations)
    lines.append("")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
    except BaseplateError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    started = time.perf_counter()
    run_paths = prepare_run_dir(args.runs_dir, args.name)
    config_snapshot = run_paths.input_dir / "config.json"
    write_json(config_snapshot, config_to_dict(config))

    renderer = None
    if args.render:
        renderer = OpenSCADRenderer(executable=args.openscad, timeout_s=args.timeout_s)

    audit = AuditTrail(run_id=run_paths.run_id, artifacts_dir=run_paths.artifacts_dir)
    try:
        result = run_split_pipeline(
            config=config,
            run_id=run_paths.run_id,
            artifacts_dir=run_paths.artifacts_dir,
            audit=audit,
            renderer=renderer,
            fail_fast=args.fail_fast,
            design_name=args.name,
        )
    except BaseplateError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    elapsed = time.perf_counter() - started

    errors = sum(1 for v in result.violations if v.severity == "error")
    warnings = sum(1 for v in result.violations if v.severity == "warning")
    write_json(run_paths.metrics_path, {
        "run_id": result.run_id,
        "status": result.status,
        "elapsed_s": round(elapsed, 3),
        "counts": {
            "segments": len(result.segment_artifacts),
            "rendered": sum(1 for a in result.segment_artifacts if a.status == "rendered"),
            "failed": len(result.failed_segments),
            "violations_error": errors,
            "violations_warning": warnings,
            "stale_overrides": len(result.stale_overrides),
        },
        "debug": result.debug,
    })
    write_text(
        run_paths.summary_path,
        _build_summary(run_id=result.run_id, elapsed_s=elapsed, result=result),
    )
    write_json(run_paths.manifest_path, {
        "run_id": result.run_id,
        "design_name": args.name,
        "created_utc": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "status": result.status,
        "input_config": str(config_snapshot),
        "artifacts": {
            "design_json": str(run_paths.artifacts_dir / "design.json"),
            "segments": [str(a.scad_path) for a in result.segment_artifacts],
            "stl": [str(a.stl_path) for a in result.segment_artifacts if a.stl_path],
            "preview_scad": str(result.preview_scad_path) if result.preview_scad_path else None,
            "layout_svg": str(result.layout_svg_path) if result.layout_svg_path else None,
            "metrics": str(run_paths.metrics_path),
            "summary": str(run_paths.summary_path),
            "checkpoints": [str(path) for path in result.checkpoints],
            "decision_log": str(result.decision_log_path),
            "decision_hash_chain": str(result.decision_hash_chain_path),
        },
    })
    update_latest_pointer(args.runs_dir, run_paths.run_dir)

    print(f"Run ID: {result.run_id}")
    print(f"Run dir: {run_paths.run_dir}")
    print(f"Status: {result.status.upper()}")
    print(f"Plates: {len(result.segment_artifacts)}")
    print(f"Edge issues: {errors} errors, {warnings} warnings")
    if result.preview_scad_path:
        print(f"Preview: {result.preview_scad_path}")
    print(f"Metrics: {run_paths.metrics_path}")
    return 1 if result.failed_segments else 0


if __name__ == "__main__":
    raise SystemExit(main())
