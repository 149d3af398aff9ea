"""Contracts for grid sizing, bed partitioning and interlocking edges."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

Vec2 = Tuple[float, float]

SIZING_MODES = ("grid_units", "fill_area_mm")
PADDING_ALIGNMENTS = ("center", "near", "far")
PLATE_STYLES = ("default", "magnet", "screw", "weighted")


class EdgeType(Enum):
    """Connector type on one edge of a segment."""
    NONE = "none"
    MALE = "male"
    FEMALE = "female"


class Edge(Enum):
    """Edge of a rectangular segment (front is y=0, left is x=0)."""
    LEFT = "left"
    RIGHT = "right"
    FRONT = "front"
    BACK = "back"


class ToothPattern(Enum):
    """Interlocking tooth pattern families."""
    RECTANGULAR = "rectangular"
    TRIANGULAR = "triangular"
    DOVETAIL = "dovetail"
    PUZZLE = "puzzle"
    TSLOT = "tslot"
    PUZZLE_SMOOTH = "puzzle_smooth"
    TSLOT_SMOOTH = "tslot_smooth"
    WINEGLASS = "wineglass"


@dataclass(frozen=True)
class GridFillSpec:
    """Target footprint to fill with grid cells."""

    target_width_mm: float
    target_depth_mm: float
    grid_unit_mm: float = 42.0
    allow_half_cells_x: bool = True
    allow_half_cells_y: bool = True
    padding_alignment: str = "center"


@dataclass(frozen=True)
class GridCalculation:
    """Grid units and padding derived from a target footprint."""

    grid_units_x: float
    grid_units_y: float
    full_cells_x: int
    full_cells_y: int
    has_half_cell_x: bool
    has_half_cell_y: bool
    grid_coverage_mm_x: float
    grid_coverage_mm_y: float
    total_padding_x: float
    total_padding_y: float
    padding_near_x: float  # left
    padding_far_x: float   # right
    padding_near_y: float  # front
    padding_far_y: float   # back


@dataclass(frozen=True)
class Segment:
    """One printable piece of a split baseplate."""

    segment_x: int
    segment_y: int
    grid_units_x: int
    grid_units_y: int
    has_connector_left: bool = False
    has_connector_right: bool = False
    has_connector_front: bool = False
    has_connector_back: bool = False

    @property
    def key(self) -> Tuple[int, int]:
        return (self.segment_x, self.segment_y)

    def has_connector(self, edge: Edge) -> bool:
        if edge is Edge.LEFT:
            return self.has_connector_left
        if edge is Edge.RIGHT:
            return self.has_connector_right
        if edge is Edge.FRONT:
            return self.has_connector_front
        return self.has_connector_back

    def cells_along(self, edge: Edge) -> int:
        """Number of grid cells spanned by *edge*."""
        if edge in (Edge.LEFT, Edge.RIGHT):
            return self.grid_units_y
        return self.grid_units_x


@dataclass
class SplitResult:
    """Partition of a baseplate into bed-sized segments, indexed [y][x]."""

    segments: List[List[Segment]]
    segments_x: int
    segments_y: int
    total_segments: int
    max_segment_units_x: int
    max_segment_units_y: int
    needs_split: bool

    def iter_segments(self) -> Iterator[Segment]:
        for row in self.segments:
            for segment in row:
                yield segment

    def segment_at(self, segment_x: int, segment_y: int) -> Segment:
        return self.segments[segment_y][segment_x]

    def contains(self, segment_x: int, segment_y: int) -> bool:
        return 0 <= segment_x < self.segments_x and 0 <= segment_y < self.segments_y


@dataclass(frozen=True)
class SegmentEdgeOverride:
    """User-chosen edge types for one segment, replacing the defaults."""

    segment_x: int
    segment_y: int
    left_edge: EdgeType = EdgeType.NONE
    right_edge: EdgeType = EdgeType.NONE
    front_edge: EdgeType = EdgeType.NONE
    back_edge: EdgeType = EdgeType.NONE

    @property
    def key(self) -> Tuple[int, int]:
        return (self.segment_x, self.segment_y)

    def edge_type(self, edge: Edge) -> EdgeType:
        return getattr(self, f"{edge.value}_edge")

    def with_edge(self, edge: Edge, edge_type: EdgeType) -> "SegmentEdgeOverride":
        return replace(self, **{f"{edge.value}_edge": edge_type})


@dataclass(frozen=True)
class ToothPatternSpec:
    """Parameters for one interlocking tooth profile."""

    pattern: ToothPattern = ToothPattern.WINEGLASS
    tooth_depth: float = 6.0
    tooth_width: float = 6.0
    tolerance: float = 0.3
    concave_depth_pct: float = 50.0
    aspect_ratio: float = 1.0
    roof_intensity_pct: float = 0.0
    roof_depth_pct: float = 0.0


@dataclass(frozen=True)
class BaseplateConfig:
    """Configuration for a (possibly split) grid baseplate."""

    # Sizing
    sizing_mode: str = "grid_units"
    width: float = 3
    depth: float = 3
    target_width_mm: float = 200.0
    target_depth_mm: float = 200.0
    allow_half_cells_x: bool = True
    allow_half_cells_y: bool = True
    padding_alignment: str = "center"
    grid_size: float = 42.0

    # Plate and sockets
    style: str = "default"
    magnet_diameter: float = 6.5
    magnet_depth: float = 2.4
    magnet_z_offset: float = 0.0
    magnet_top_cover: float = 0.0
    screw_diameter: float = 3.0
    center_screw: bool = False
    weight_cavity: bool = False
    corner_radius: float = 3.75
    socket_chamfer_angle: float = 45.0
    socket_chamfer_height: float = 4.75
    remove_bottom_taper: bool = False

    # Printer bed splitting
    split_enabled: bool = False
    printer_bed_width: float = 220.0
    printer_bed_depth: float = 220.0
    connector_enabled: bool = True
    connector_tolerance: float = 0.3

    # Interlocking teeth
    edge_pattern: str = "wineglass"
    tooth_depth: float = 6.0
    tooth_width: float = 6.0
    concave_depth: float = 50.0
    wineglass_aspect_ratio: float = 1.0
    connector_roof_intensity: float = 0.0
    connector_roof_depth: float = 0.0

    edge_overrides: Tuple[SegmentEdgeOverride, ...] = field(default_factory=tuple)
    prune_stale_overrides: bool = False

    @property
    def plate_height(self) -> float:
        return self.socket_chamfer_height

    def tooth_spec(self) -> ToothPatternSpec:
        return ToothPatternSpec(
            pattern=ToothPattern(self.edge_pattern),
            tooth_depth=float(self.tooth_depth),
            tooth_width=float(self.tooth_width),
            tolerance=float(self.connector_tolerance),
            concave_depth_pct=float(self.concave_depth),
            aspect_ratio=float(self.wineglass_aspect_ratio),
            roof_intensity_pct=float(self.connector_roof_intensity),
            roof_depth_pct=float(self.connector_roof_depth),
        )

    def fill_spec(self) -> GridFillSpec:
        return GridFillSpec(
            target_width_mm=float(self.target_width_mm),
            target_depth_mm=float(self.target_depth_mm),
            grid_unit_mm=float(self.grid_size),
            allow_half_cells_x=self.allow_half_cells_x,
            allow_half_cells_y=self.allow_half_cells_y,
            padding_alignment=self.padding_alignment,
        )

    def with_overrides(self, overrides) -> "BaseplateConfig":
        return replace(self, edge_overrides=tuple(overrides))


@dataclass(frozen=True)
class EdgeViolation:
    """Edge-assignment issue found by the complementarity lint."""

    code: str
    severity: str  # "error" | "warning"
    message: str
    segment: Tuple[int, int]
    edge: Edge
    neighbor: Optional[Tuple[int, int]] = None


@dataclass
class SegmentArtifact:
    """Files produced for one segment (key None for an unsplit plate)."""

    key: Optional[Tuple[int, int]]
    name: str
    scad_path: Path
    status: str = "generated"  # "generated" | "rendered" | "failed"
    stl_path: Optional[Path] = None
    error: Optional[str] = None
    render_seconds: Optional[float] = None


@dataclass
class SplitRunResult:
    """In-memory result from a split run."""

    run_id: str
    status: str
    config: BaseplateConfig
    grid: Optional[GridCalculation]
    split: Optional[SplitResult]
    segment_artifacts: List[SegmentArtifact]
    violations: List[EdgeViolation]
    stale_overrides: List[SegmentEdgeOverride]
    checkpoints: List[Path]
    design_payload: Dict[str, object]
    decision_log_path: Path
    decision_hash_chain_path: Path
    preview_scad_path: Optional[Path] = None
    layout_svg_path: Optional[Path] = None
    debug: Dict[str, object] = field(default_factory=dict)

    @property
    def failed_segments(self) -> List[SegmentArtifact]:
        return [a for a in self.segment_artifacts if a.status == "failed"]
