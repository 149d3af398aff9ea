"""
SVG export for split baseplates.

Draws the exploded segment layout (top view, with edge-type markers and
labels) and single tooth profiles for fit inspection.
"""

from typing import Dict, Iterable, List, Sequence, Tuple

import svgwrite
from shapely.geometry import MultiPolygon, Polygon

from baseplate_split.assembly import SegmentGeometry
from baseplate_split.contracts import Edge, EdgeType, Vec2
from baseplate_split.teeth import ToothProfile

STYLESHEET = """
    .cut { stroke: #ff0000; stroke-width: 0.5; fill: none; }
    .male { stroke: #1a7f37; stroke-width: 1.5; fill: none; }
    .female { stroke: #0000ff; stroke-width: 1.5; fill: none; stroke-dasharray: 3,2; }
    .label { font-size: 12px; font-family: Arial, sans-serif; fill: #333; }
    .dim { font-size: 8px; font-family: Arial, sans-serif; fill: #666; }
"""

MARKER_INSET_MM = 3.0


def split_layout_to_svg(
    geometries: Sequence[SegmentGeometry],
    offsets: Dict[Tuple[int, int], Vec2],
    filepath: str,
    add_labels: bool = True,
    margin: float = 20.0,
) -> str:
    """
    Export the exploded layout of all segments to one SVG.

    Args:
        geometries: Assembled segments (key must be set).
        offsets: Preview offset per segment key, from layout_preview().
        filepath: Output SVG file path.
        add_labels: Add segment coordinate and size labels.
        margin: Margin around the layout (mm).

    Returns:
        Path to created SVG file
    """
    placed = []
    for geometry in geometries:
        dx, dy = offsets[geometry.key]
        placed.append((geometry, dx, dy, geometry.footprint()))

    min_x = min(fp.bounds[0] + dx for _, dx, _, fp in placed)
    min_y = min(fp.bounds[1] + dy for _, _, dy, fp in placed)
    max_x = max(fp.bounds[2] + dx for _, dx, _, fp in placed)
    max_y = max(fp.bounds[3] + dy for _, _, dy, fp in placed)

    canvas_width = (max_x - min_x) + 2 * margin
    canvas_height = (max_y - min_y) + 2 * margin

    def to_svg(x: float, y: float) -> Tuple[float, float]:
        # SVG y grows downward; keep the front edge at the bottom.
        return (margin + x - min_x, margin + max_y - y)

    dwg = svgwrite.Drawing(
        filepath,
        size=(f"{canvas_width}mm", f"{canvas_height}mm"),
        viewBox=f"0 0 {canvas_width} {canvas_height}",
    )
    dwg.defs.add(dwg.style(STYLESHEET))

    for geometry, dx, dy, footprint in placed:
        for ring in _rings(footprint):
            points = [to_svg(x + dx, y + dy) for x, y in ring]
            dwg.add(dwg.polygon(points, class_="cut"))

        for edge, edge_type in geometry.edges.items():
            if edge_type is EdgeType.NONE:
                continue
            start, end = _edge_marker(geometry, edge)
            dwg.add(dwg.line(
                start=to_svg(start[0] + dx, start[1] + dy),
                end=to_svg(end[0] + dx, end[1] + dy),
                class_=edge_type.value,
            ))

        if add_labels:
            w, d = geometry.plate_size
            cx, cy = to_svg(dx + w / 2, dy + d / 2)
            sx, sy = geometry.key
            dwg.add(dwg.text(
                f"[{sx}, {sy}]", insert=(cx, cy), class_="label", text_anchor="middle",
            ))
            dwg.add(dwg.text(
                f"{geometry.grid_units_x:g} x {geometry.grid_units_y:g} units",
                insert=(cx, cy + 12),
                class_="dim",
                text_anchor="middle",
            ))

    dwg.save()
    return filepath


def tooth_profile_to_svg(
    profile: ToothProfile,
    filepath: str,
    scale: float = 10.0,
    margin: float = 10.0,
) -> str:
    """Male outline over the female cavity outline, magnified by *scale*."""
    min_x, min_y, max_x, max_y = profile.female.bounds
    width = (max_x - min_x) * scale
    height = (max_y - min_y) * scale
    canvas_width = width + 2 * margin
    canvas_height = height + 2 * margin + 14

    def to_svg(x: float, y: float) -> Tuple[float, float]:
        return (margin + (x - min_x) * scale, margin + (max_y - y) * scale)

    dwg = svgwrite.Drawing(
        filepath,
        size=(f"{canvas_width}mm", f"{canvas_height}mm"),
        viewBox=f"0 0 {canvas_width} {canvas_height}",
    )
    dwg.defs.add(dwg.style(STYLESHEET))

    dwg.add(dwg.polygon([to_svg(x, y) for x, y in profile.female_points], class_="female"))
    dwg.add(dwg.polygon([to_svg(x, y) for x, y in profile.male_points], class_="male"))

    spec = profile.spec
    dwg.add(dwg.text(
        f"{spec.pattern.value} {spec.tooth_width:g} x {spec.tooth_depth:g} mm, "
        f"tol {spec.tolerance:g}",
        insert=(canvas_width / 2, canvas_height - 4),
        class_="dim",
        text_anchor="middle",
    ))
    dwg.save()
    return filepath


def _rings(shape) -> Iterable[List[Tuple[float, float]]]:
    polygons = shape.geoms if isinstance(shape, MultiPolygon) else [shape]
    for polygon in polygons:
        if not isinstance(polygon, Polygon) or polygon.is_empty:
            continue
        yield list(polygon.exterior.coords)[:-1]
        for interior in polygon.interiors:
            yield list(interior.coords)[:-1]


def _edge_marker(geometry: SegmentGeometry, edge: Edge) -> Tuple[Vec2, Vec2]:
    """Short line just inside *edge*, in plate coordinates."""
    w, d = geometry.plate_size
    inset = MARKER_INSET_MM
    if edge is Edge.LEFT:
        return (inset, inset), (inset, d - inset)
    if edge is Edge.RIGHT:
        return (w - inset, inset), (w - inset, d - inset)
    if edge is Edge.FRONT:
        return (inset, inset), (w - inset, inset)
    return (inset, d - inset), (w - inset, d - inset)
