"""
Tooth profile generator for interlocking segment edges.

Builds the 2D outline of a male tooth and of the matching female cavity as
Shapely polygons. Profiles live in a tooth-local frame: x runs across the
tooth (centred on 0), y runs along the insertion axis, the root sits on the
segment edge at y=0 and the tip at y=tooth_depth.

The female cavity is the male silhouette grown outward by the fit
tolerance. Both outlines are later extruded vertically, so no pattern has
overhangs.
"""
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

import numpy as np
from shapely import affinity
from shapely.geometry import LineString, MultiPolygon, Point, Polygon, box
from shapely.geometry.polygon import orient
from shapely.ops import unary_union

from baseplate_split.contracts import ToothPattern, ToothPatternSpec
from baseplate_split.errors import MalformedProfile

logger = logging.getLogger(__name__)

NECK_STEPS = 12   # samples along a concave neck
QUAD_SEGS = 8     # segments per quarter circle

# Extra height on each face so a cavity cleanly pierces the plate.
CAVITY_Z_MARGIN_MM = 0.1


@dataclass(frozen=True)
class ToothProfile:
    """Male and female outlines for one tooth pattern."""

    spec: ToothPatternSpec
    male: Polygon
    female: Polygon

    @property
    def male_points(self) -> List[Tuple[float, float]]:
        return outline_points(self.male)

    @property
    def female_points(self) -> List[Tuple[float, float]]:
        return outline_points(self.female)


def build_tooth_profile(spec: ToothPatternSpec) -> ToothProfile:
    """Build both outlines for *spec*."""
    male = male_profile(spec)
    female = _grow(male, spec.tolerance)
    logger.debug(
        "Built %s tooth: male area %.2f mm2, female area %.2f mm2",
        spec.pattern.value, male.area, female.area,
    )
    return ToothProfile(spec=spec, male=male, female=female)


def male_profile(spec: ToothPatternSpec) -> Polygon:
    """Outline of the protruding tooth."""
    _validate(spec)
    shape = _BUILDERS[spec.pattern](spec)
    w = spec.tooth_width
    envelope = box(-w / 2, 0.0, w / 2, spec.tooth_depth)
    return _as_polygon(shape.intersection(envelope), spec)


def female_profile(spec: ToothPatternSpec) -> Polygon:
    """Outline of the receiving cavity (male grown by the tolerance)."""
    return _grow(male_profile(spec), spec.tolerance)


def outline_points(polygon: Polygon) -> List[Tuple[float, float]]:
    """Exterior ring as a list of (x, y) without the closing point."""
    coords = list(polygon.exterior.coords)[:-1]
    return [(float(x), float(y)) for x, y in coords]


def concave_half_widths(
    wide: float,
    narrow: float,
    concave_depth_pct: float,
    steps: int = NECK_STEPS,
) -> np.ndarray:
    """Half widths of a neck narrowing from *wide* to *narrow*.

    The full concave swoop follows wide - (wide - narrow) * sin(t * 90deg).
    concave_depth_pct blends it with a straight taper: 0 gives a straight
    line, 100 the full sine curve.
    """
    t = np.linspace(0.0, 1.0, steps + 1)
    c = concave_depth_pct / 100.0
    blend = (1.0 - c) * t + c * np.sin(t * math.pi / 2)
    return wide - (wide - narrow) * blend


# ─── Validation ──────────────────────────────────────────────────────────────

def _validate(spec: ToothPatternSpec) -> None:
    if not isinstance(spec.pattern, ToothPattern):
        raise MalformedProfile(f"Unknown tooth pattern: {spec.pattern!r}")
    if spec.tooth_depth <= 0:
        raise MalformedProfile(f"Tooth depth must be positive, got {spec.tooth_depth}")
    if spec.tooth_width <= 0:
        raise MalformedProfile(f"Tooth width must be positive, got {spec.tooth_width}")
    if spec.tolerance < 0:
        raise MalformedProfile(f"Tolerance cannot be negative, got {spec.tolerance}")
    if not 0 <= spec.concave_depth_pct <= 100:
        raise MalformedProfile(
            f"Concave depth must be within 0-100%, got {spec.concave_depth_pct}"
        )
    if spec.aspect_ratio <= 0:
        raise MalformedProfile(f"Aspect ratio must be positive, got {spec.aspect_ratio}")
    if not 0 <= spec.roof_intensity_pct <= 200:
        raise MalformedProfile(
            f"Roof intensity must be within 0-200%, got {spec.roof_intensity_pct}"
        )
    if not 0 <= spec.roof_depth_pct <= 100:
        raise MalformedProfile(
            f"Roof depth must be within 0-100%, got {spec.roof_depth_pct}"
        )


def _as_polygon(geom, spec: ToothPatternSpec) -> Polygon:
    if isinstance(geom, MultiPolygon):
        geom = max(geom.geoms, key=lambda g: g.area)
    if not isinstance(geom, Polygon) or geom.is_empty or geom.area <= 0:
        raise MalformedProfile(
            f"{spec.pattern.value} tooth {spec.tooth_width} x {spec.tooth_depth} mm "
            f"has no area"
        )
    if not geom.is_valid:
        geom = geom.buffer(0)
    return orient(geom, sign=1.0)


def _grow(male: Polygon, tolerance: float) -> Polygon:
    if tolerance == 0:
        return male
    grown = male.buffer(tolerance, quad_segs=QUAD_SEGS, join_style="round")
    return orient(grown, sign=1.0)


# ─── Pattern builders ────────────────────────────────────────────────────────

def _rectangular(spec: ToothPatternSpec) -> Polygon:
    w, d = spec.tooth_width, spec.tooth_depth
    return box(-w / 2, 0.0, w / 2, d)


def _triangular(spec: ToothPatternSpec) -> Polygon:
    w, d = spec.tooth_width, spec.tooth_depth
    return Polygon([(-w / 2, 0.0), (w / 2, 0.0), (0.0, d)])


def _dovetail(spec: ToothPatternSpec) -> Polygon:
    w, d = spec.tooth_width, spec.tooth_depth
    root_hw = w * 0.7 / 2
    return Polygon([(-root_hw, 0.0), (root_hw, 0.0), (w / 2, d), (-w / 2, d)])


def _puzzle(spec: ToothPatternSpec):
    w, d = spec.tooth_width, spec.tooth_depth
    neck_hw = w * 0.25
    bulb_r = w * 0.4
    neck_len = _require_positive(d - bulb_r, spec, "bulb radius")
    return unary_union([
        box(-neck_hw, 0.0, neck_hw, neck_len),
        Point(0.0, neck_len).buffer(bulb_r, quad_segs=QUAD_SEGS),
    ])


def _tslot(spec: ToothPatternSpec):
    w, d = spec.tooth_width, spec.tooth_depth
    stem_hw = w * 0.2
    stem_len = d * 0.65
    return unary_union([
        box(-stem_hw, 0.0, stem_hw, stem_len),
        box(-w / 2, stem_len, w / 2, d),
    ])


def _puzzle_smooth(spec: ToothPatternSpec):
    w, d = spec.tooth_width, spec.tooth_depth
    bulb_r = w * 0.4
    neck_len = _require_positive(d - bulb_r, spec, "bulb radius")
    base_hw = w * 0.4
    waist_hw = w * 0.2
    waist_y = neck_len * 0.5

    neck = _waisted_neck(base_hw, waist_hw, 0.0, waist_y, spec.concave_depth_pct)
    flare = unary_union([
        LineString([(-waist_hw, waist_y), (waist_hw, waist_y)]),
        Point(0.0, neck_len - bulb_r * 0.3).buffer(bulb_r * 0.7, quad_segs=QUAD_SEGS),
    ]).convex_hull
    bulb = Point(0.0, neck_len).buffer(bulb_r, quad_segs=QUAD_SEGS)
    return unary_union([neck, flare, bulb])


def _tslot_smooth(spec: ToothPatternSpec):
    w, d = spec.tooth_width, spec.tooth_depth
    head_h = d * 0.3
    stem_len = d - head_h
    base_hw = w * 0.3
    waist_hw = w * 0.15
    waist_y = stem_len * 0.6

    neck = _waisted_neck(base_hw, waist_hw, 0.0, waist_y, spec.concave_depth_pct)
    flare = Polygon([
        (-waist_hw, waist_y),
        (waist_hw, waist_y),
        (w / 2, stem_len),
        (-w / 2, stem_len),
    ])
    head = box(-w / 2, stem_len, w / 2, d)
    return unary_union([neck, flare, head])


def _wineglass(spec: ToothPatternSpec):
    w, d = spec.tooth_width, spec.tooth_depth
    bulb_hw, bulb_hh = _bulb_radii(w * 0.4, spec.aspect_ratio)
    bulb_cy = _require_positive(d - bulb_hh, spec, "bulb height")
    base_hw = w * 0.4
    waist_hw = min(w * 0.15, bulb_hw * 0.5)
    stem_top = bulb_cy * 0.6

    stem = _waisted_neck(base_hw, waist_hw, 0.0, stem_top, spec.concave_depth_pct)
    neck = box(-waist_hw, stem_top, waist_hw, bulb_cy)
    bulb = affinity.scale(
        Point(0.0, bulb_cy).buffer(1.0, quad_segs=QUAD_SEGS),
        xfact=bulb_hw,
        yfact=bulb_hh,
        origin=(0.0, bulb_cy),
    )
    body = unary_union([stem, neck, bulb])

    if spec.roof_intensity_pct > 0:
        body = _add_roof(body, spec, bulb_cy - bulb_hh, bulb_hh)
    return body


_BUILDERS: Dict[ToothPattern, Callable[[ToothPatternSpec], object]] = {
    ToothPattern.RECTANGULAR: _rectangular,
    ToothPattern.TRIANGULAR: _triangular,
    ToothPattern.DOVETAIL: _dovetail,
    ToothPattern.PUZZLE: _puzzle,
    ToothPattern.TSLOT: _tslot,
    ToothPattern.PUZZLE_SMOOTH: _puzzle_smooth,
    ToothPattern.TSLOT_SMOOTH: _tslot_smooth,
    ToothPattern.WINEGLASS: _wineglass,
}


# ─── Helpers ─────────────────────────────────────────────────────────────────

def _waisted_neck(
    base_hw: float,
    waist_hw: float,
    y0: float,
    y1: float,
    concave_depth_pct: float,
) -> Polygon:
    """Symmetric neck sampled from base (y0) to waist (y1)."""
    half_widths = concave_half_widths(base_hw, waist_hw, concave_depth_pct)
    ys = np.linspace(y0, y1, len(half_widths))
    right = [(float(hw), float(y)) for hw, y in zip(half_widths, ys)]
    left = [(-x, y) for x, y in reversed(right)]
    return Polygon(right + left)


def _bulb_radii(size: float, aspect_ratio: float) -> Tuple[float, float]:
    """(half width, half height) of the wineglass bulb.

    aspect_ratio > 1 widens the bulb, < 1 makes it taller; the larger radius
    always equals *size*.
    """
    if aspect_ratio >= 1.0:
        return size, size / aspect_ratio
    return size * aspect_ratio, size


def _add_roof(body, spec: ToothPatternSpec, bulb_bottom: float, bulb_hh: float):
    """Replace the top of *body* with a peaked ridge.

    Peak height is half the bulb half-height at 100% intensity. Roof depth
    moves the eave from just under the tip (0%) down to the bulb base (100%).
    """
    w, d = spec.tooth_width, spec.tooth_depth
    peak = bulb_hh * 0.5 * spec.roof_intensity_pct / 100.0
    top_eave = d - peak
    eave_y = top_eave - (spec.roof_depth_pct / 100.0) * (top_eave - bulb_bottom)
    _require_positive(eave_y, spec, "roof peak")

    section = body.intersection(LineString([(-w, eave_y), (w, eave_y)]))
    if section.is_empty:
        raise MalformedProfile(f"Roof eave at y={eave_y:.3f} misses the tooth body")
    min_x, _, max_x, _ = section.bounds

    lower = body.intersection(box(-w, 0.0, w, eave_y))
    roof = Polygon([(min_x, eave_y), (max_x, eave_y), (0.0, eave_y + peak)])
    return unary_union([lower, roof])


def _require_positive(value: float, spec: ToothPatternSpec, what: str) -> float:
    if value <= 0:
        raise MalformedProfile(
            f"{spec.pattern.value} tooth depth {spec.tooth_depth} mm is too "
            f"shallow for its {what}"
        )
    return value
