"""
Grid sizing: convert a target footprint in mm into grid cells plus padding.

Half cells fill a remainder of at least half a grid unit when allowed.
Whatever the grid does not cover is distributed as edge padding according
to the padding alignment.
"""
import logging
import math
from typing import Tuple

from baseplate_split.contracts import (
    PADDING_ALIGNMENTS,
    BaseplateConfig,
    GridCalculation,
    GridFillSpec,
)
from baseplate_split.errors import InvalidConfiguration

logger = logging.getLogger(__name__)


def calculate_grid_from_mm(
    target_width_mm: float,
    target_depth_mm: float,
    grid_unit_mm: float,
    allow_half_cells_x: bool,
    allow_half_cells_y: bool,
    padding_alignment: str = "center",
) -> GridCalculation:
    """Fit grid cells into a target footprint.

    Args:
        target_width_mm: Footprint extent along X.
        target_depth_mm: Footprint extent along Y.
        grid_unit_mm: Size of one square grid cell.
        allow_half_cells_x: Allow a trailing half cell along X.
        allow_half_cells_y: Allow a trailing half cell along Y.
        padding_alignment: "center", "near" or "far". "near" puts all the
            padding on the near (left/front) side, "far" on the far side.

    Returns:
        GridCalculation with per-axis units, coverage and padding.
    """
    if grid_unit_mm <= 0:
        raise InvalidConfiguration(f"Grid unit must be positive, got {grid_unit_mm}")
    if target_width_mm <= 0 or target_depth_mm <= 0:
        raise InvalidConfiguration(
            f"Target footprint must be positive, got "
            f"{target_width_mm} x {target_depth_mm} mm"
        )
    if padding_alignment not in PADDING_ALIGNMENTS:
        raise InvalidConfiguration(f"Unknown padding alignment: {padding_alignment!r}")

    full_x, half_x, units_x, coverage_x, padding_x = _fit_axis(
        target_width_mm, grid_unit_mm, allow_half_cells_x,
    )
    full_y, half_y, units_y, coverage_y, padding_y = _fit_axis(
        target_depth_mm, grid_unit_mm, allow_half_cells_y,
    )

    near_x, far_x = _split_padding(padding_x, padding_alignment)
    near_y, far_y = _split_padding(padding_y, padding_alignment)

    return GridCalculation(
        grid_units_x=units_x,
        grid_units_y=units_y,
        full_cells_x=full_x,
        full_cells_y=full_y,
        has_half_cell_x=half_x,
        has_half_cell_y=half_y,
        grid_coverage_mm_x=coverage_x,
        grid_coverage_mm_y=coverage_y,
        total_padding_x=padding_x,
        total_padding_y=padding_y,
        padding_near_x=near_x,
        padding_far_x=far_x,
        padding_near_y=near_y,
        padding_far_y=far_y,
    )


def calculate_grid(spec: GridFillSpec) -> GridCalculation:
    """calculate_grid_from_mm() for a GridFillSpec."""
    return calculate_grid_from_mm(
        spec.target_width_mm,
        spec.target_depth_mm,
        spec.grid_unit_mm,
        spec.allow_half_cells_x,
        spec.allow_half_cells_y,
        spec.padding_alignment,
    )


def total_grid_units(config: BaseplateConfig) -> Tuple[int, int]:
    """Whole grid units to partition for *config*.

    Half cells are dropped: segments split only at full-cell boundaries.
    """
    if config.sizing_mode == "fill_area_mm":
        calc = calculate_grid(config.fill_spec())
        units_x, units_y = calc.grid_units_x, calc.grid_units_y
    else:
        units_x, units_y = config.width, config.depth

    total_x = int(math.floor(units_x))
    total_y = int(math.floor(units_y))
    logger.debug("Total grid units for partition: %d x %d", total_x, total_y)
    return total_x, total_y


def _fit_axis(
    target_mm: float,
    grid_unit_mm: float,
    allow_half: bool,
) -> Tuple[int, bool, float, float, float]:
    full_cells = int(math.floor(target_mm / grid_unit_mm))
    remainder = target_mm - full_cells * grid_unit_mm
    has_half = bool(allow_half and remainder >= grid_unit_mm / 2)
    grid_units = full_cells + (0.5 if has_half else 0)
    coverage = grid_units * grid_unit_mm
    return full_cells, has_half, grid_units, coverage, target_mm - coverage


def _split_padding(total: float, alignment: str) -> Tuple[float, float]:
    if alignment == "center":
        return total / 2, total / 2
    if alignment == "near":
        return total, 0.0
    return 0.0, total
