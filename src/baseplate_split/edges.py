"""
Edge assignment: resolve male/female/none per segment edge.

Defaults follow the partition's connector flags (right/back edges carry
male teeth, left/front edges carry female cavities). A sparse list of
SegmentEdgeOverride entries, keyed by segment coordinate, replaces the
defaults for individual segments. Override lists are treated as immutable
values: every edit returns a new list.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from baseplate_split.contracts import (
    Edge,
    EdgeType,
    EdgeViolation,
    Segment,
    SegmentEdgeOverride,
    SplitResult,
)

logger = logging.getLogger(__name__)

_CYCLE = {
    EdgeType.NONE: EdgeType.MALE,
    EdgeType.MALE: EdgeType.FEMALE,
    EdgeType.FEMALE: EdgeType.NONE,
}


def find_override(
    overrides: Sequence[SegmentEdgeOverride],
    segment_x: int,
    segment_y: int,
) -> Optional[SegmentEdgeOverride]:
    """Return the override for a segment coordinate, if any."""
    key = (segment_x, segment_y)
    for override in overrides:
        if override.key == key:
            return override
    return None


def default_edge_type(segment: Segment, edge: Edge) -> EdgeType:
    """Positional default: males on right/back, females on left/front."""
    if not segment.has_connector(edge):
        return EdgeType.NONE
    if edge in (Edge.RIGHT, Edge.BACK):
        return EdgeType.MALE
    return EdgeType.FEMALE


def get_edge_type(
    segment: Segment,
    edge: Edge,
    overrides: Sequence[SegmentEdgeOverride] = (),
) -> EdgeType:
    """Edge type for one segment edge, honouring overrides."""
    override = find_override(overrides, segment.segment_x, segment.segment_y)
    if override is not None:
        return override.edge_type(edge)
    return default_edge_type(segment, edge)


def resolve_segment_edges(
    segment: Segment,
    overrides: Sequence[SegmentEdgeOverride] = (),
) -> Dict[Edge, EdgeType]:
    return {edge: get_edge_type(segment, edge, overrides) for edge in Edge}


def cycle_edge(
    segment: Segment,
    edge: Edge,
    overrides: Sequence[SegmentEdgeOverride],
) -> List[SegmentEdgeOverride]:
    """Advance one edge none -> male -> female -> none.

    A segment without an override gets one seeded with its four current
    defaults. An existing override is replaced at the same position. The
    other three edges keep their values.
    """
    current = get_edge_type(segment, edge, overrides)
    next_type = _CYCLE[current]

    existing = find_override(overrides, segment.segment_x, segment.segment_y)
    if existing is not None:
        updated = existing.with_edge(edge, next_type)
        result = [updated if o.key == existing.key else o for o in overrides]
    else:
        seeded = SegmentEdgeOverride(
            segment_x=segment.segment_x,
            segment_y=segment.segment_y,
            left_edge=default_edge_type(segment, Edge.LEFT),
            right_edge=default_edge_type(segment, Edge.RIGHT),
            front_edge=default_edge_type(segment, Edge.FRONT),
            back_edge=default_edge_type(segment, Edge.BACK),
        )
        result = list(overrides) + [seeded.with_edge(edge, next_type)]

    logger.debug(
        "Segment [%d, %d] %s edge: %s -> %s",
        segment.segment_x, segment.segment_y, edge.value,
        current.value, next_type.value,
    )
    return result


def reset_overrides() -> List[SegmentEdgeOverride]:
    """Drop every override so all edges fall back to their defaults."""
    return []


def find_stale_overrides(
    overrides: Sequence[SegmentEdgeOverride],
    split: SplitResult,
) -> List[SegmentEdgeOverride]:
    """Overrides whose coordinate no longer exists in *split*."""
    return [o for o in overrides if not split.contains(o.segment_x, o.segment_y)]


def prune_stale_overrides(
    overrides: Sequence[SegmentEdgeOverride],
    split: SplitResult,
) -> List[SegmentEdgeOverride]:
    kept = [o for o in overrides if split.contains(o.segment_x, o.segment_y)]
    dropped = len(overrides) - len(kept)
    if dropped:
        logger.info("Pruned %d stale edge override(s)", dropped)
    return kept


def check_edge_complementarity(
    split: SplitResult,
    overrides: Sequence[SegmentEdgeOverride] = (),
) -> List[EdgeViolation]:
    """Lint resolved edge types across every segment boundary.

    A male edge must face a female edge. A female edge facing anything but
    a male leaves an empty cavity. Connectors on the outer boundary of the
    baseplate have nothing to mate with.
    """
    violations: List[EdgeViolation] = []

    for segment in split.iter_segments():
        edges = resolve_segment_edges(segment, overrides)
        for edge, edge_type in edges.items():
            neighbor_key = _neighbor_key(segment, edge)
            if not split.contains(*neighbor_key):
                if edge_type is not EdgeType.NONE:
                    violations.append(EdgeViolation(
                        code="connector_on_outer_edge",
                        severity="warning",
                        message=(
                            f"Segment {list(segment.key)} {edge.value} edge is "
                            f"{edge_type.value} but faces the baseplate boundary"
                        ),
                        segment=segment.key,
                        edge=edge,
                    ))
                continue

            neighbor = split.segment_at(*neighbor_key)
            facing = get_edge_type(neighbor, _OPPOSITE[edge], overrides)
            violation = _pair_violation(segment, edge, edge_type, neighbor, facing)
            if violation is not None:
                violations.append(violation)

    if violations:
        logger.warning("Edge lint found %d issue(s)", len(violations))
    return violations


_OPPOSITE = {
    Edge.LEFT: Edge.RIGHT,
    Edge.RIGHT: Edge.LEFT,
    Edge.FRONT: Edge.BACK,
    Edge.BACK: Edge.FRONT,
}

_NEIGHBOR_STEP = {
    Edge.LEFT: (-1, 0),
    Edge.RIGHT: (1, 0),
    Edge.FRONT: (0, -1),
    Edge.BACK: (0, 1),
}


def _neighbor_key(segment: Segment, edge: Edge) -> Tuple[int, int]:
    dx, dy = _NEIGHBOR_STEP[edge]
    return (segment.segment_x + dx, segment.segment_y + dy)


def _pair_violation(
    segment: Segment,
    edge: Edge,
    edge_type: EdgeType,
    neighbor: Segment,
    facing: EdgeType,
) -> Optional[EdgeViolation]:
    if edge_type is EdgeType.MALE and facing is not EdgeType.FEMALE:
        return EdgeViolation(
            code="male_unmatched",
            severity="error",
            message=(
                f"Segment {list(segment.key)} {edge.value} teeth collide with "
                f"segment {list(neighbor.key)} ({facing.value} edge)"
            ),
            segment=segment.key,
            edge=edge,
            neighbor=neighbor.key,
        )
    if edge_type is EdgeType.FEMALE and facing is not EdgeType.MALE:
        return EdgeViolation(
            code="female_unmatched",
            severity="warning",
            message=(
                f"Segment {list(segment.key)} {edge.value} cavities face "
                f"segment {list(neighbor.key)} ({facing.value} edge) and stay empty"
            ),
            segment=segment.key,
            edge=edge,
            neighbor=neighbor.key,
        )
    return None
