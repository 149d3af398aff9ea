"""
Bed partitioning: split a baseplate grid into printer-bed-sized segments.

Splits happen only at grid cell boundaries. Every segment except those in
the last row/column is exactly the maximum size that fits on the bed.
"""
import logging
import math

from baseplate_split.contracts import Segment, SplitResult
from baseplate_split.errors import InvalidConfiguration

logger = logging.getLogger(__name__)


def split_baseplate_for_printer(
    total_grid_units_x: int,
    total_grid_units_y: int,
    printer_bed_width: float,
    printer_bed_depth: float,
    grid_size: float,
    connector_enabled: bool,
) -> SplitResult:
    """Partition a total_x x total_y grid into bed-sized segments.

    Connector flags are positional: left/front are set on every segment
    that has a neighbour before it, right/back on every segment that has a
    neighbour after it, and only when connectors are enabled.

    Raises:
        InvalidConfiguration: when a bed dimension holds less than one grid
            unit or the grid extent is not positive.
    """
    if grid_size <= 0:
        raise InvalidConfiguration(f"Grid size must be positive, got {grid_size}")
    if total_grid_units_x < 1 or total_grid_units_y < 1:
        raise InvalidConfiguration(
            f"Baseplate must span at least one grid unit per axis, got "
            f"{total_grid_units_x} x {total_grid_units_y}"
        )

    max_units_x = int(math.floor(printer_bed_width / grid_size))
    max_units_y = int(math.floor(printer_bed_depth / grid_size))
    if max_units_x < 1 or max_units_y < 1:
        raise InvalidConfiguration(
            f"Printer bed {printer_bed_width} x {printer_bed_depth} mm cannot "
            f"hold a single {grid_size} mm grid unit"
        )

    segments_x = int(math.ceil(total_grid_units_x / max_units_x))
    segments_y = int(math.ceil(total_grid_units_y / max_units_y))
    needs_split = segments_x > 1 or segments_y > 1

    segments = []
    for sy in range(segments_y):
        row = []
        for sx in range(segments_x):
            start_x = sx * max_units_x
            start_y = sy * max_units_y
            end_x = min(start_x + max_units_x, total_grid_units_x)
            end_y = min(start_y + max_units_y, total_grid_units_y)

            row.append(Segment(
                segment_x=sx,
                segment_y=sy,
                grid_units_x=end_x - start_x,
                grid_units_y=end_y - start_y,
                has_connector_left=connector_enabled and sx > 0,
                has_connector_right=connector_enabled and sx < segments_x - 1,
                has_connector_front=connector_enabled and sy > 0,
                has_connector_back=connector_enabled and sy < segments_y - 1,
            ))
        segments.append(row)

    logger.info(
        "Split %dx%d grid into %dx%d segments (max %dx%d units per bed)",
        total_grid_units_x, total_grid_units_y,
        segments_x, segments_y, max_units_x, max_units_y,
    )
    return SplitResult(
        segments=segments,
        segments_x=segments_x,
        segments_y=segments_y,
        total_segments=segments_x * segments_y,
        max_segment_units_x=max_units_x,
        max_segment_units_y=max_units_y,
        needs_split=needs_split,
    )


def segment_origin_units(split: SplitResult, segment: Segment):
    """Grid-unit offset of *segment* inside the full baseplate."""
    return (
        segment.segment_x * split.max_segment_units_x,
        segment.segment_y * split.max_segment_units_y,
    )
