"""Public API for splitting grid baseplates into interlocking, bed-sized segments."""

from baseplate_split.assembly import (
    assemble_baseplate,
    assemble_segment,
    layout_preview,
    tooth_offsets,
)
from baseplate_split.config import config_from_dict, config_to_dict, load_config
from baseplate_split.contracts import (
    BaseplateConfig,
    Edge,
    EdgeType,
    GridCalculation,
    Segment,
    SegmentEdgeOverride,
    SplitResult,
    SplitRunResult,
    ToothPattern,
    ToothPatternSpec,
)
from baseplate_split.edges import (
    check_edge_complementarity,
    cycle_edge,
    get_edge_type,
    reset_overrides,
)
from baseplate_split.errors import (
    BaseplateError,
    GenerationFailed,
    InvalidConfiguration,
    MalformedProfile,
)
from baseplate_split.grid import calculate_grid_from_mm
from baseplate_split.partition import split_baseplate_for_printer
from baseplate_split.pipeline import run_split_pipeline
from baseplate_split.renderer import OpenSCADRenderer
from baseplate_split.teeth import female_profile, male_profile

__all__ = [
    "BaseplateConfig",
    "BaseplateError",
    "Edge",
    "EdgeType",
    "GenerationFailed",
    "GridCalculation",
    "InvalidConfiguration",
    "MalformedProfile",
    "OpenSCADRenderer",
    "Segment",
    "SegmentEdgeOverride",
    "SplitResult",
    "SplitRunResult",
    "ToothPattern",
    "ToothPatternSpec",
    "assemble_baseplate",
    "assemble_segment",
    "calculate_grid_from_mm",
    "check_edge_complementarity",
    "config_from_dict",
    "config_to_dict",
    "cycle_edge",
    "female_profile",
    "get_edge_type",
    "layout_preview",
    "load_config",
    "male_profile",
    "reset_overrides",
    "run_split_pipeline",
    "split_baseplate_for_printer",
    "tooth_offsets",
]
