"""
Segment geometry assembly.

Places socket cells and interlocking teeth for a segment (or for the whole
unsplit baseplate) in plate-local millimetres. The result is a plain
description that the OpenSCAD writer serializes and that footprint() turns
into a top-view Shapely silhouette.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import shapely
from shapely import affinity
from shapely.geometry import Polygon, box
from shapely.ops import unary_union

from baseplate_split.contracts import (
    BaseplateConfig,
    Edge,
    EdgeType,
    GridCalculation,
    Segment,
    SplitResult,
    Vec2,
)
from baseplate_split.edges import resolve_segment_edges
from baseplate_split.errors import MalformedProfile
from baseplate_split.teeth import QUAD_SEGS, ToothProfile, build_tooth_profile

logger = logging.getLogger(__name__)

PREVIEW_GAP_MM = 5.0
SNAP_GRID_MM = 1e-6
FULL_CELL_SLACK_MM = 0.1

# Tooth-local +y rotated onto the edge's outward normal.
MALE_ROTATION = {
    Edge.BACK: 0.0,
    Edge.FRONT: 180.0,
    Edge.RIGHT: -90.0,
    Edge.LEFT: 90.0,
}

# Female cavities open inward, so they face the opposite way.
FEMALE_ROTATION = {
    Edge.BACK: 180.0,
    Edge.FRONT: 0.0,
    Edge.RIGHT: 90.0,
    Edge.LEFT: -90.0,
}


@dataclass(frozen=True)
class SocketCell:
    """One bin socket, lower-left corner and size in plate mm."""
    x: float
    y: float
    width: float
    depth: float

    def is_full(self, grid_size: float) -> bool:
        """Only full cells get magnet, screw and weight features."""
        return (
            self.width >= grid_size - FULL_CELL_SLACK_MM
            and self.depth >= grid_size - FULL_CELL_SLACK_MM
        )


@dataclass(frozen=True)
class ToothPlacement:
    """A tooth root centred at (x, y) on a plate edge."""
    edge: Edge
    kind: EdgeType
    x: float
    y: float
    rotation_deg: float


@dataclass
class SegmentGeometry:
    """Everything needed to model one printable plate."""

    key: Optional[Tuple[int, int]]
    grid_units_x: float
    grid_units_y: float
    grid_size: float
    plate_origin: Vec2
    plate_size: Vec2
    plate_height: float
    corner_radius: float
    cells: List[SocketCell] = field(default_factory=list)
    males: List[ToothPlacement] = field(default_factory=list)
    females: List[ToothPlacement] = field(default_factory=list)
    edges: Dict[Edge, EdgeType] = field(default_factory=dict)
    profile: Optional[ToothProfile] = None

    @property
    def width_mm(self) -> float:
        return self.grid_units_x * self.grid_size

    @property
    def depth_mm(self) -> float:
        return self.grid_units_y * self.grid_size

    def plate_outline(self) -> Polygon:
        """Rounded plate rectangle in plate-local coordinates."""
        x0, y0 = self.plate_origin
        w, d = self.plate_size
        return rounded_rect(x0, y0, w, d, self.corner_radius)

    def footprint(self):
        """Top-view silhouette: plate plus male teeth minus female cavities."""
        shape = self.plate_outline()
        if self.profile is None:
            return shape
        if self.males:
            shape = unary_union(
                [shape] + [_place(self.profile.male, p) for p in self.males]
            )
        if self.females:
            shape = shape.difference(
                unary_union([_place(self.profile.female, p) for p in self.females])
            )
        return shape


def tooth_offsets(cells: int, grid_unit: float) -> List[float]:
    """Tooth positions along an edge spanning *cells* grid cells.

    One tooth per internal grid line; a single-cell edge gets one tooth at
    its midpoint.
    """
    if cells < 1:
        return []
    if cells == 1:
        return [0.5 * grid_unit]
    return [i * grid_unit for i in range(1, cells)]


def rounded_rect(x0: float, y0: float, width: float, depth: float, radius: float) -> Polygon:
    """Rectangle with corners rounded like the OpenSCAD hull of cylinders."""
    if radius <= 0:
        return box(x0, y0, x0 + width, y0 + depth)
    r = min(radius, min(width, depth) / 2 - 0.01)
    if r <= 0:
        return box(x0, y0, x0 + width, y0 + depth)
    inner = box(x0 + r, y0 + r, x0 + width - r, y0 + depth - r)
    return inner.buffer(r, quad_segs=QUAD_SEGS)


def assemble_segment(
    segment: Segment,
    config: BaseplateConfig,
    profile: Optional[ToothProfile] = None,
) -> SegmentGeometry:
    """Plate, sockets and tooth placements for one split segment."""
    g = float(config.grid_size)
    width = segment.grid_units_x * g
    depth = segment.grid_units_y * g

    edges = resolve_segment_edges(segment, config.edge_overrides)
    males: List[ToothPlacement] = []
    females: List[ToothPlacement] = []
    for edge, edge_type in edges.items():
        if edge_type is EdgeType.NONE:
            continue
        placements = _edge_placements(segment, edge, edge_type, width, depth, g)
        if edge_type is EdgeType.MALE:
            males.extend(placements)
        else:
            females.extend(placements)

    if (males or females) and profile is None:
        profile = tooth_profile_for(config)

    cells = [
        SocketCell(x=gx * g, y=gy * g, width=g, depth=g)
        for gy in range(segment.grid_units_y)
        for gx in range(segment.grid_units_x)
    ]

    logger.debug(
        "Segment [%d, %d]: %d cells, %d male teeth, %d female cavities",
        segment.segment_x, segment.segment_y, len(cells), len(males), len(females),
    )
    return SegmentGeometry(
        key=segment.key,
        grid_units_x=segment.grid_units_x,
        grid_units_y=segment.grid_units_y,
        grid_size=g,
        plate_origin=(0.0, 0.0),
        plate_size=(width, depth),
        plate_height=config.plate_height,
        corner_radius=config.corner_radius,
        cells=cells,
        males=males,
        females=females,
        edges=edges,
        profile=profile if (males or females) else None,
    )


def assemble_baseplate(
    config: BaseplateConfig,
    grid: Optional[GridCalculation] = None,
) -> SegmentGeometry:
    """Geometry for an unsplit baseplate.

    Keeps half cells. In fill_area_mm mode the plate covers the whole target
    footprint and the grid is shifted by the near-side padding.
    """
    g = float(config.grid_size)
    if config.sizing_mode == "fill_area_mm" and grid is not None:
        units_x, units_y = grid.grid_units_x, grid.grid_units_y
        origin = (-grid.padding_near_x, -grid.padding_near_y)
        size = (float(config.target_width_mm), float(config.target_depth_mm))
    else:
        units_x, units_y = float(config.width), float(config.depth)
        origin = (0.0, 0.0)
        size = (units_x * g, units_y * g)

    cells = [
        SocketCell(x=x, y=y, width=w, depth=d)
        for y, d in _axis_cells(units_y, g)
        for x, w in _axis_cells(units_x, g)
    ]
    logger.debug(
        "Baseplate %.1f x %.1f units: %d cells, plate %.1f x %.1f mm",
        units_x, units_y, len(cells), size[0], size[1],
    )
    return SegmentGeometry(
        key=None,
        grid_units_x=units_x,
        grid_units_y=units_y,
        grid_size=g,
        plate_origin=origin,
        plate_size=size,
        plate_height=config.plate_height,
        corner_radius=config.corner_radius,
        cells=cells,
        edges={edge: EdgeType.NONE for edge in Edge},
    )


def layout_preview(
    split: SplitResult,
    grid_unit: float,
    gap_mm: float = PREVIEW_GAP_MM,
) -> Dict[Tuple[int, int], Vec2]:
    """Exploded-view offsets for every segment.

    Presentation only: each segment is shifted by the widths (depths) of the
    segments before it in its row (column), plus one gap per predecessor.
    """
    offsets: Dict[Tuple[int, int], Vec2] = {}
    for segment in split.iter_segments():
        sx, sy = segment.segment_x, segment.segment_y
        pos_x = sum(
            split.segment_at(i, sy).grid_units_x * grid_unit + gap_mm for i in range(sx)
        )
        pos_y = sum(
            split.segment_at(sx, i).grid_units_y * grid_unit + gap_mm for i in range(sy)
        )
        offsets[(sx, sy)] = (float(pos_x), float(pos_y))
    return offsets


def tooth_profile_for(config: BaseplateConfig) -> ToothProfile:
    try:
        spec = config.tooth_spec()
    except ValueError as exc:
        raise MalformedProfile(f"Unknown tooth pattern: {config.edge_pattern!r}") from exc
    return build_tooth_profile(spec)


def placed_outline(outline: Polygon, placement: ToothPlacement) -> Polygon:
    """Tooth outline moved from the tooth-local frame onto its edge."""
    return _place(outline, placement)


# ─── Internal ────────────────────────────────────────────────────────────────

def _edge_placements(
    segment: Segment,
    edge: Edge,
    kind: EdgeType,
    width: float,
    depth: float,
    grid_unit: float,
) -> List[ToothPlacement]:
    rotation = MALE_ROTATION[edge] if kind is EdgeType.MALE else FEMALE_ROTATION[edge]
    placements = []
    for offset in tooth_offsets(segment.cells_along(edge), grid_unit):
        if edge is Edge.LEFT:
            x, y = 0.0, offset
        elif edge is Edge.RIGHT:
            x, y = width, offset
        elif edge is Edge.FRONT:
            x, y = offset, 0.0
        else:
            x, y = offset, depth
        placements.append(ToothPlacement(edge=edge, kind=kind, x=x, y=y, rotation_deg=rotation))
    return placements


def _axis_cells(units: float, grid_unit: float) -> Sequence[Tuple[float, float]]:
    full = int(math.floor(units))
    cells = [(i * grid_unit, grid_unit) for i in range(full)]
    if units - full >= 0.5:
        cells.append((full * grid_unit, grid_unit / 2))
    return cells


def _place(outline: Polygon, placement: ToothPlacement) -> Polygon:
    rotated = affinity.rotate(outline, placement.rotation_deg, origin=(0.0, 0.0))
    moved = affinity.translate(rotated, placement.x, placement.y)
    return shapely.set_precision(moved, SNAP_GRID_MM)
