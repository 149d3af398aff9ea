"""Split pipeline: config -> grid -> segments -> edges -> OpenSCAD (-> STL)."""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Optional

from baseplate_split.assembly import (
    SegmentGeometry,
    assemble_baseplate,
    assemble_segment,
    layout_preview,
    tooth_profile_for,
)
from baseplate_split.audit import AuditTrail
from baseplate_split.config import config_to_dict, validate_config
from baseplate_split.contracts import (
    BaseplateConfig,
    EdgeViolation,
    GridCalculation,
    SegmentArtifact,
    SegmentEdgeOverride,
    SplitResult,
    SplitRunResult,
)
from baseplate_split.edges import (
    check_edge_complementarity,
    find_stale_overrides,
    prune_stale_overrides,
)
from baseplate_split.errors import GenerationFailed, InvalidConfiguration
from baseplate_split.grid import calculate_grid, total_grid_units
from baseplate_split.partition import split_baseplate_for_printer
from baseplate_split.renderer import OpenSCADRenderer
from baseplate_split.run_protocol import write_json, write_text
from baseplate_split.scad_writer import (
    render_baseplate_scad,
    render_preview_scad,
    render_segment_scad,
)
from baseplate_split.svg_export import split_layout_to_svg, tooth_profile_to_svg
from baseplate_split.teeth import ToothProfile

logger = logging.getLogger(__name__)


def run_split_pipeline(
    *,
    config: BaseplateConfig,
    run_id: str,
    artifacts_dir: Path,
    audit: Optional[AuditTrail] = None,
    renderer: Optional[OpenSCADRenderer] = None,
    fail_fast: bool = False,
    design_name: str = "baseplate",
) -> SplitRunResult:
    """Generate every printable piece for *config* into *artifacts_dir*.

    Render failures are recorded per segment and the run continues, unless
    *fail_fast* is set, in which case the first GenerationFailed propagates.
    """
    artifacts_dir = Path(artifacts_dir)
    if audit is None:
        audit = AuditTrail(run_id=run_id, artifacts_dir=artifacts_dir)

    # ── Phase 0: preflight ──
    validate_config(config)
    profile: Optional[ToothProfile] = None
    if config.split_enabled and (config.connector_enabled or config.edge_overrides):
        profile = tooth_profile_for(config)

    audit.write_checkpoint(
        phase_index=0,
        phase_name="preflight",
        counts={"edge_overrides": len(config.edge_overrides)},
        metrics={
            "grid_size_mm": float(config.grid_size),
            "plate_height_mm": float(config.plate_height),
            "printer_bed_width_mm": float(config.printer_bed_width),
            "printer_bed_depth_mm": float(config.printer_bed_depth),
            "male_tooth_area_mm2": float(profile.male.area) if profile else 0.0,
            "female_cavity_area_mm2": float(profile.female.area) if profile else 0.0,
        },
        invariants={
            "units": "mm",
            "sizing_mode": config.sizing_mode,
            "style": config.style,
            "edge_pattern": config.edge_pattern,
            "split_enabled": config.split_enabled,
        },
    )

    # ── Phase 1: grid sizing ──
    grid: Optional[GridCalculation] = None
    if config.sizing_mode == "fill_area_mm":
        grid = calculate_grid(config.fill_spec())
        if grid.grid_units_x <= 0 or grid.grid_units_y <= 0:
            raise InvalidConfiguration(
                f"Target {config.target_width_mm} x {config.target_depth_mm} mm "
                f"holds no {config.grid_size} mm grid cell"
            )
    total_x, total_y = total_grid_units(config)
    logger.info("Grid: %d x %d whole units", total_x, total_y)

    audit.write_checkpoint(
        phase_index=1,
        phase_name="grid_sizing",
        counts={"total_units_x": total_x, "total_units_y": total_y},
        metrics=_grid_metrics(grid),
        invariants={"padding_alignment": config.padding_alignment},
    )

    # ── Phase 2: partition ──
    split: Optional[SplitResult] = None
    if config.split_enabled:
        split = split_baseplate_for_printer(
            total_x,
            total_y,
            config.printer_bed_width,
            config.printer_bed_depth,
            config.grid_size,
            config.connector_enabled,
        )
    segmented = split is not None and split.needs_split

    audit.append_decision(
        phase_index=2,
        decision_type="partition",
        entity_ids=["baseplate"],
        alternatives=[{"name": "split"}, {"name": "single_plate"}],
        selected="split" if segmented else "single_plate",
        reason_codes=[
            "split_disabled" if split is None
            else ("exceeds_bed" if segmented else "fits_bed")
        ],
        numeric_evidence={
            "total_units_x": float(total_x),
            "total_units_y": float(total_y),
        },
    )
    audit.write_checkpoint(
        phase_index=2,
        phase_name="partition",
        counts={
            "segments_x": split.segments_x if split else 1,
            "segments_y": split.segments_y if split else 1,
            "total_segments": split.total_segments if split else 1,
        },
        metrics={
            "max_segment_units_x": float(split.max_segment_units_x) if split else 0.0,
            "max_segment_units_y": float(split.max_segment_units_y) if split else 0.0,
        },
        invariants={"needs_split": bool(segmented)},
    )

    # ── Phase 3: edge resolution ──
    stale: List[SegmentEdgeOverride] = []
    violations: List[EdgeViolation] = []
    if split is not None:
        stale = find_stale_overrides(config.edge_overrides, split)
        for override in stale:
            logger.warning(
                "Edge override for segment [%d, %d] is outside the %dx%d split",
                override.segment_x, override.segment_y, split.segments_x, split.segments_y,
            )
            audit.append_decision(
                phase_index=3,
                decision_type="stale_override",
                entity_ids=[_segment_id(override.key)],
                alternatives=[{"name": "retain"}, {"name": "prune"}],
                selected="prune" if config.prune_stale_overrides else "retain",
                reason_codes=["segment_out_of_range"],
            )
        if stale and config.prune_stale_overrides:
            config = config.with_overrides(
                prune_stale_overrides(config.edge_overrides, split)
            )
        for override in config.edge_overrides:
            if split.contains(override.segment_x, override.segment_y):
                audit.append_decision(
                    phase_index=3,
                    decision_type="edge_override",
                    entity_ids=[_segment_id(override.key)],
                    selected="override",
                    reason_codes=["user_override"],
                    metadata={
                        "left": override.left_edge.value,
                        "right": override.right_edge.value,
                        "front": override.front_edge.value,
                        "back": override.back_edge.value,
                    },
                )
        if segmented:
            violations = check_edge_complementarity(split, config.edge_overrides)

    audit.write_checkpoint(
        phase_index=3,
        phase_name="edge_resolution",
        counts={
            "edge_overrides": len(config.edge_overrides),
            "stale_overrides": len(stale),
            "violations": len(violations),
            "violations_error": sum(1 for v in violations if v.severity == "error"),
        },
        metrics={},
        invariants={"prune_stale_overrides": config.prune_stale_overrides},
        notes=[v.message for v in violations],
    )

    # ── Phase 4: assembly and OpenSCAD emission ──
    segments_dir = artifacts_dir / "segments"
    geometries: List[SegmentGeometry] = []
    artifacts: List[SegmentArtifact] = []
    scad_sources: Dict[str, str] = {}
    preview_path: Optional[Path] = None
    layout_path: Optional[Path] = None

    if segmented:
        for segment in split.iter_segments():
            geometry = assemble_segment(segment, config, profile)
            geometries.append(geometry)
            name = _segment_name(geometry)
            scad = render_segment_scad(geometry, config, design_name=design_name)
            scad_path = segments_dir / f"{name}.scad"
            write_text(scad_path, scad)
            scad_sources[name] = scad
            artifacts.append(SegmentArtifact(key=geometry.key, name=name, scad_path=scad_path))

        offsets = layout_preview(split, config.grid_size)
        preview_path = artifacts_dir / "preview.scad"
        write_text(
            preview_path,
            render_preview_scad(geometries, offsets, split, config, design_name=design_name),
        )
        layout_path = artifacts_dir / "layout.svg"
        split_layout_to_svg(geometries, offsets, str(layout_path))
        if profile is not None:
            tooth_profile_to_svg(profile, str(artifacts_dir / "tooth_profile.svg"))
    else:
        geometry = assemble_baseplate(config, grid)
        geometries.append(geometry)
        scad = render_baseplate_scad(geometry, config, design_name=design_name)
        scad_path = artifacts_dir / "baseplate.scad"
        write_text(scad_path, scad)
        scad_sources["baseplate"] = scad
        artifacts.append(SegmentArtifact(key=None, name="baseplate", scad_path=scad_path))

    audit.write_checkpoint(
        phase_index=4,
        phase_name="assembly",
        counts={
            "plates": len(geometries),
            "socket_cells": sum(len(g.cells) for g in geometries),
            "male_teeth": sum(len(g.males) for g in geometries),
            "female_cavities": sum(len(g.females) for g in geometries),
        },
        metrics={
            "openscad_lines": float(sum(len(s.splitlines()) for s in scad_sources.values())),
        },
        invariants={"segment_files": [str(a.scad_path.name) for a in artifacts]},
        outputs={
            "preview_scad": str(preview_path) if preview_path else None,
            "layout_svg": str(layout_path) if layout_path else None,
        },
    )

    # ── Phase 5: render (optional) ──
    if renderer is not None:
        for artifact in artifacts:
            stl_path = artifact.scad_path.with_suffix(".stl")
            try:
                result = renderer.render(scad_sources[artifact.name], stl_path)
            except GenerationFailed as exc:
                artifact.status = "failed"
                artifact.error = str(exc)
                logger.error("Render failed for %s: %s", artifact.name, exc)
                audit.append_decision(
                    phase_index=5,
                    decision_type="render_failure",
                    entity_ids=[artifact.name],
                    alternatives=[{"name": "continue"}, {"name": "abort"}],
                    selected="abort" if fail_fast else "continue",
                    reason_codes=["generation_failed"],
                    metadata={"returncode": exc.returncode, "stderr": exc.stderr[-2000:]},
                )
                if fail_fast:
                    audit.finalize()
                    raise
                continue
            artifact.status = "rendered"
            artifact.stl_path = result.artifact_path
            artifact.render_seconds = result.elapsed_s

        audit.write_checkpoint(
            phase_index=5,
            phase_name="render",
            counts={
                "rendered": sum(1 for a in artifacts if a.status == "rendered"),
                "failed": sum(1 for a in artifacts if a.status == "failed"),
            },
            metrics={
                "render_seconds_total": float(
                    sum(a.render_seconds or 0.0 for a in artifacts)
                ),
            },
            invariants={"timeout_s": renderer.timeout_s},
        )

    status = _status(violations, stale, artifacts)
    design_payload = _build_design_payload(
        run_id=run_id,
        status=status,
        config=config,
        grid=grid,
        split=split,
        geometries=geometries,
        violations=violations,
        stale=stale,
        artifacts=artifacts,
    )
    design_path = artifacts_dir / "design.json"
    write_json(design_path, design_payload)

    outputs: List[Path] = [design_path]
    for artifact in artifacts:
        outputs.append(artifact.scad_path)
        if artifact.stl_path is not None:
            outputs.append(artifact.stl_path)
    outputs.extend(p for p in (preview_path, layout_path) if p is not None)
    audit.finalize(outputs)
    logger.info("Run %s finished with status %s", run_id, status)

    return SplitRunResult(
        run_id=run_id,
        status=status,
        config=config,
        grid=grid,
        split=split,
        segment_artifacts=artifacts,
        violations=violations,
        stale_overrides=stale,
        checkpoints=[c.path for c in audit.checkpoints],
        design_payload=design_payload,
        decision_log_path=audit.decision_log_path,
        decision_hash_chain_path=audit.hash_chain_path,
        preview_scad_path=preview_path,
        layout_svg_path=layout_path,
        debug={
            "total_units": [total_x, total_y],
            "tooth_pattern": profile.spec.pattern.value if profile else None,
        },
    )


# ─── Internal ────────────────────────────────────────────────────────────────

def _segment_id(key) -> str:
    return f"segment_x{key[0]}_y{key[1]}"


def _segment_name(geometry: SegmentGeometry) -> str:
    return _segment_id(geometry.key)


def _grid_metrics(grid: Optional[GridCalculation]) -> Dict[str, float]:
    if grid is None:
        return {}
    return {
        "grid_units_x": float(grid.grid_units_x),
        "grid_units_y": float(grid.grid_units_y),
        "total_padding_x_mm": float(grid.total_padding_x),
        "total_padding_y_mm": float(grid.total_padding_y),
    }


def _status(
    violations: List[EdgeViolation],
    stale: List[SegmentEdgeOverride],
    artifacts: List[SegmentArtifact],
) -> str:
    if any(a.status == "failed" for a in artifacts):
        return "failed"
    if any(v.severity == "error" for v in violations):
        return "error"
    if violations or stale:
        return "warning"
    return "ok"


def _build_design_payload(
    *,
    run_id: str,
    status: str,
    config: BaseplateConfig,
    grid: Optional[GridCalculation],
    split: Optional[SplitResult],
    geometries: List[SegmentGeometry],
    violations: List[EdgeViolation],
    stale: List[SegmentEdgeOverride],
    artifacts: List[SegmentArtifact],
) -> Dict[str, object]:
    split_payload = None
    if split is not None:
        split_payload = {
            "segments_x": split.segments_x,
            "segments_y": split.segments_y,
            "total_segments": split.total_segments,
            "max_segment_units_x": split.max_segment_units_x,
            "max_segment_units_y": split.max_segment_units_y,
            "needs_split": split.needs_split,
        }
    return {
        "schema_version": "baseplate_split.design.v1",
        "run_id": run_id,
        "status": status,
        "config": config_to_dict(config),
        "grid": asdict(grid) if grid is not None else None,
        "split": split_payload,
        "plates": [
            {
                "key": list(g.key) if g.key is not None else None,
                "grid_units": [g.grid_units_x, g.grid_units_y],
                "plate_origin_mm": list(g.plate_origin),
                "plate_size_mm": list(g.plate_size),
                "edges": {edge.value: kind.value for edge, kind in g.edges.items()},
                "male_teeth": len(g.males),
                "female_cavities": len(g.females),
            }
            for g in geometries
        ],
        "violations": [
            {
                "code": v.code,
                "severity": v.severity,
                "message": v.message,
                "segment": list(v.segment),
                "edge": v.edge.value,
                "neighbor": list(v.neighbor) if v.neighbor is not None else None,
            }
            for v in violations
        ],
        "stale_overrides": [list(o.key) for o in stale],
        "artifacts": [
            {
                "name": a.name,
                "key": list(a.key) if a.key is not None else None,
                "status": a.status,
                "scad_path": str(a.scad_path),
                "stl_path": str(a.stl_path) if a.stl_path else None,
                "error": a.error,
            }
            for a in artifacts
        ],
    }
