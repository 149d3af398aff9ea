"""OpenSCAD source emission for baseplates, segments and the combined preview."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from baseplate_split.assembly import SegmentGeometry, ToothPlacement
from baseplate_split.contracts import BaseplateConfig, Edge, SplitResult, Vec2
from baseplate_split.teeth import CAVITY_Z_MARGIN_MM, ToothProfile, outline_points

SOCKET_CLEARANCE_MM = 0.25
SOCKET_CORNER_RADIUS_MM = 3.75
HOLE_INSET_MM = 4.8
WEIGHT_CAVITY_SIZE_MM = 21.4
WEIGHT_CAVITY_DEPTH_MM = 4.0


def render_segment_scad(
    geometry: SegmentGeometry,
    config: BaseplateConfig,
    *,
    design_name: str = "baseplate",
) -> str:
    """OpenSCAD source for one printable segment (or unsplit plate)."""
    if geometry.key is None:
        title = f"// {design_name}: grid baseplate"
    else:
        sx, sy = geometry.key
        title = f"// {design_name}: baseplate segment [{sx}, {sy}]"

    lines: List[str] = [
        title,
        f"// Units: mm. Grid {_fmt(geometry.grid_units_x)} x {_fmt(geometry.grid_units_y)} "
        f"cells of {_fmt(geometry.grid_size)} mm.",
    ]
    if geometry.profile is not None:
        lines.append(f"// Edge pattern: {geometry.profile.spec.pattern.value}")
        lines.append("// Edges: " + ", ".join(
            f"{edge.value}={geometry.edges[edge].value}" for edge in Edge
        ))
    lines.append("")
    lines.extend(_parameter_block(config, fn=32))
    lines.append("")
    lines.append("segment();")
    lines.append("")
    lines.extend(_segment_module("segment", geometry))
    lines.append("")
    lines.extend(_library_modules(geometry.profile))
    return "\n".join(lines) + "\n"


def render_baseplate_scad(
    geometry: SegmentGeometry,
    config: BaseplateConfig,
    *,
    design_name: str = "baseplate",
) -> str:
    """OpenSCAD source for the whole unsplit baseplate."""
    return render_segment_scad(geometry, config, design_name=design_name)


def render_preview_scad(
    geometries: Sequence[SegmentGeometry],
    offsets: Dict[Tuple[int, int], Vec2],
    split: SplitResult,
    config: BaseplateConfig,
    *,
    design_name: str = "baseplate",
) -> str:
    """Combined exploded preview: every segment translated by its offset."""
    profile = next((g.profile for g in geometries if g.profile is not None), None)
    lines: List[str] = [
        f"// {design_name}: combined preview",
        f"// {split.total_segments} segments ({split.segments_x} x {split.segments_y}) "
        f"laid out with gaps",
        "",
    ]
    lines.extend(_parameter_block(config, fn=24))
    lines.append("")

    for geometry in geometries:
        sx, sy = geometry.key
        dx, dy = offsets[(sx, sy)]
        lines.append(f"// Segment [{sx}, {sy}]")
        lines.append(f"translate([{_fmt(dx)}, {_fmt(dy)}, 0]) {_module_name(geometry)}();")
    lines.append("")

    for geometry in geometries:
        lines.extend(_segment_module(_module_name(geometry), geometry))
        lines.append("")
    lines.extend(_library_modules(profile))
    return "\n".join(lines) + "\n"


# ─── Blocks ──────────────────────────────────────────────────────────────────

def _parameter_block(config: BaseplateConfig, *, fn: int) -> List[str]:
    return [
        "/* [Configuration] */",
        f"grid_unit = {_fmt(config.grid_size)};",
        f'style = "{config.style}";',
        f"magnet_diameter = {_fmt(config.magnet_diameter)};",
        f"magnet_depth = {_fmt(config.magnet_depth)};",
        f"magnet_z_offset = {_fmt(config.magnet_z_offset)};",
        f"magnet_top_cover = {_fmt(config.magnet_top_cover)};",
        f"screw_diameter = {_fmt(config.screw_diameter)};",
        f"center_screw = {_bool(config.center_screw)};",
        f"weight_cavity = {_bool(config.weight_cavity)};",
        f"corner_radius = {_fmt(config.corner_radius)};",
        f"socket_chamfer_angle = {_fmt(config.socket_chamfer_angle)};",
        f"socket_chamfer_height = {_fmt(config.socket_chamfer_height)};",
        f"remove_bottom_taper = {_bool(config.remove_bottom_taper)};",
        "",
        "/* [Constants] */",
        f"clearance = {_fmt(SOCKET_CLEARANCE_MM)};",
        "socket_bottom_inset = socket_chamfer_height / tan(socket_chamfer_angle);",
        "plate_height = socket_chamfer_height;",
        f"cavity_margin = {_fmt(CAVITY_Z_MARGIN_MM)};",
        "",
        f"$fn = {fn};",
    ]


def _segment_module(name: str, geometry: SegmentGeometry) -> List[str]:
    x0, y0 = geometry.plate_origin
    w, d = geometry.plate_size
    lines = [
        f"module {name}() {{",
        "    difference() {",
        "        union() {",
        f"            translate([{_fmt(x0)}, {_fmt(y0)}, 0])",
        f"            rounded_rect_plate({_fmt(w)}, {_fmt(d)}, plate_height, corner_radius);",
    ]
    lines.extend(_placement_lines(geometry.males, "male_tooth", indent=12))
    lines.append("        }")
    for cell in geometry.cells:
        features = "" if cell.is_full(geometry.grid_size) else ", features = false"
        lines.append(
            f"        translate([{_fmt(cell.x)}, {_fmt(cell.y)}, 0]) "
            f"grid_socket({_fmt(cell.width)}, {_fmt(cell.depth)}{features});"
        )
    lines.extend(_placement_lines(geometry.females, "female_cavity", indent=8))
    lines.append("    }")
    lines.append("}")
    return lines


def _placement_lines(
    placements: Iterable[ToothPlacement],
    module: str,
    *,
    indent: int,
) -> List[str]:
    pad = " " * indent
    return [
        f"{pad}translate([{_fmt(p.x)}, {_fmt(p.y)}, 0]) "
        f"rotate([0, 0, {_fmt(p.rotation_deg)}]) {module}();  // {p.edge.value}"
        for p in placements
    ]


def _library_modules(profile: Optional[ToothProfile]) -> List[str]:
    lines: List[str] = []
    if profile is not None:
        lines.extend([
            "module male_tooth_2d() {",
            f"    polygon(points = {_points(outline_points(profile.male))});",
            "}",
            "",
            "module female_cavity_2d() {",
            f"    polygon(points = {_points(outline_points(profile.female))});",
            "}",
            "",
            "module male_tooth() {",
            "    linear_extrude(height = plate_height) male_tooth_2d();",
            "}",
            "",
            "module female_cavity() {",
            "    translate([0, 0, -cavity_margin])",
            "    linear_extrude(height = plate_height + 2 * cavity_margin) female_cavity_2d();",
            "}",
            "",
        ])

    lines.extend([
        "module rounded_rect_plate(width, depth, height, radius) {",
        "    if (radius <= 0) {",
        "        cube([width, depth, height]);",
        "    } else {",
        "        r = min(radius, min(width, depth) / 2 - 0.01);",
        "        hull() {",
        "            translate([r, r, 0]) cylinder(r = r, h = height);",
        "            translate([width - r, r, 0]) cylinder(r = r, h = height);",
        "            translate([r, depth - r, 0]) cylinder(r = r, h = height);",
        "            translate([width - r, depth - r, 0]) cylinder(r = r, h = height);",
        "        }",
        "    }",
        "}",
        "",
        "module grid_socket(cell_width, cell_depth, features = true) {",
        "    socket_width = cell_width - clearance * 2;",
        "    socket_depth = cell_depth - clearance * 2;",
        f"    socket_radius = {_fmt(SOCKET_CORNER_RADIUS_MM)};",
        "    bottom_width = socket_width - socket_bottom_inset * 2;",
        "    bottom_depth = socket_depth - socket_bottom_inset * 2;",
        "    bottom_radius = max(0.5, socket_radius - socket_bottom_inset);",
        "",
        "    translate([clearance, clearance, -cavity_margin]) hull() {",
        "        translate([0, 0, plate_height])",
        "        rounded_rect_plate(socket_width, socket_depth, 0.2, socket_radius);",
        "        if (!remove_bottom_taper) {",
        "            translate([socket_bottom_inset, socket_bottom_inset, 0])",
        "            rounded_rect_plate(bottom_width, bottom_depth, 0.2, bottom_radius);",
        "        } else {",
        "            rounded_rect_plate(socket_width, socket_depth, 0.2, socket_radius);",
        "        }",
        "    }",
        "",
        "    if (features) {",
        '        if (style == "magnet") corner_holes(cell_width, cell_depth) magnet_hole();',
        '        if (style == "screw") corner_holes(cell_width, cell_depth) screw_hole();',
        "        if (center_screw) translate([cell_width / 2, cell_depth / 2, 0]) screw_hole();",
        '        if (weight_cavity || style == "weighted") weight_cavity_cutout(cell_width, cell_depth);',
        "    }",
        "}",
        "",
        "module corner_holes(cell_width, cell_depth) {",
        f"    inset = {_fmt(HOLE_INSET_MM)};",
        "    for (pos = [[inset, inset], [inset, cell_depth - inset],",
        "                [cell_width - inset, inset], [cell_width - inset, cell_depth - inset]])",
        "        translate([pos[0], pos[1], 0]) children();",
        "}",
        "",
        "module magnet_hole() {",
        "    magnet_z = magnet_z_offset > 0",
        "        ? magnet_z_offset",
        "        : plate_height - magnet_depth - magnet_top_cover;",
        "    translate([0, 0, magnet_z])",
        "    cylinder(d = magnet_diameter, h = magnet_depth + cavity_margin);",
        "    // Embedded magnets are pushed out through a narrower hole from below.",
        "    if (magnet_z_offset > 0)",
        "        translate([0, 0, -cavity_margin])",
        "        cylinder(d = magnet_diameter * 0.6, h = magnet_z_offset + cavity_margin);",
        "}",
        "",
        "module screw_hole() {",
        "    translate([0, 0, -cavity_margin]) union() {",
        "        cylinder(d = screw_diameter, h = plate_height + 2 * cavity_margin);",
        "        translate([0, 0, plate_height - 2.4])",
        "        cylinder(d1 = screw_diameter, d2 = screw_diameter * 2.5, h = 2.5);",
        "    }",
        "}",
        "",
        "module weight_cavity_cutout(cell_width, cell_depth) {",
        f"    size = {_fmt(WEIGHT_CAVITY_SIZE_MM)};",
        f"    depth = {_fmt(WEIGHT_CAVITY_DEPTH_MM)};",
        "    translate([(cell_width - size) / 2, (cell_depth - size) / 2, -cavity_margin])",
        "    cube([size, size, depth + cavity_margin]);",
        "}",
    ])
    return lines


# ─── Formatting ──────────────────────────────────────────────────────────────

def _module_name(geometry: SegmentGeometry) -> str:
    sx, sy = geometry.key
    return f"segment_{sx}_{sy}"


def _fmt(value: float) -> str:
    text = f"{float(value):.4f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def _bool(value: bool) -> str:
    return "true" if value else "false"


def _points(points: Sequence[Tuple[float, float]]) -> str:
    return "[" + ", ".join(f"[{_fmt(x)}, {_fmt(y)}]" for x, y in points) + "]"
