"""Tests for the interlocking tooth profile generator."""
from dataclasses import replace

import numpy as np
import pytest
from shapely.geometry import LineString, Point, Polygon

from baseplate_split.contracts import ToothPattern, ToothPatternSpec
from baseplate_split.errors import MalformedProfile
from baseplate_split.teeth import (
    build_tooth_profile,
    concave_half_widths,
    female_profile,
    male_profile,
    outline_points,
)

EPS = 1e-6


def _width_at(polygon: Polygon, y: float) -> float:
    section = polygon.intersection(LineString([(-100, y), (100, y)]))
    if section.is_empty:
        return 0.0
    return section.bounds[2] - section.bounds[0]


@pytest.fixture(params=list(ToothPattern), ids=lambda p: p.value)
def pattern_spec(request):
    return ToothPatternSpec(pattern=request.param)


class TestAllPatterns:

    def test_male_is_single_valid_polygon(self, pattern_spec):
        male = male_profile(pattern_spec)
        assert isinstance(male, Polygon)
        assert male.is_valid
        assert male.area > 0
        assert len(male.interiors) == 0

    def test_male_stays_in_tooth_envelope(self, pattern_spec):
        w, d = pattern_spec.tooth_width, pattern_spec.tooth_depth
        min_x, min_y, max_x, max_y = male_profile(pattern_spec).bounds
        assert min_x >= -w / 2 - EPS
        assert max_x <= w / 2 + EPS
        assert min_y >= -EPS
        assert max_y <= d + EPS
        assert max_y == pytest.approx(d, abs=1e-3)

    def test_male_is_symmetric(self, pattern_spec):
        male = male_profile(pattern_spec)
        mirrored = Polygon([(-x, y) for x, y in male.exterior.coords])
        assert male.symmetric_difference(mirrored).area < 1e-6

    def test_male_root_sits_on_edge(self, pattern_spec):
        male = male_profile(pattern_spec)
        assert male.bounds[1] == pytest.approx(0.0, abs=EPS)
        assert _width_at(male, 0.01) > 0

    def test_female_contains_male(self, pattern_spec):
        profile = build_tooth_profile(pattern_spec)
        assert profile.female.is_valid
        assert profile.female.contains(profile.male)
        assert profile.female.area > profile.male.area

    def test_female_is_offset_by_tolerance(self, pattern_spec):
        profile = build_tooth_profile(pattern_spec)
        tol = pattern_spec.tolerance
        distances = [profile.male.distance(Point(p)) for p in profile.female_points]
        assert min(distances) == pytest.approx(tol, abs=0.01)
        assert max(distances) == pytest.approx(tol, abs=0.01)

        w, d = pattern_spec.tooth_width, pattern_spec.tooth_depth
        min_x, min_y, max_x, max_y = profile.female.bounds
        assert min_x >= -w / 2 - tol - EPS
        assert max_x <= w / 2 + tol + EPS
        assert min_y >= -tol - EPS
        assert max_y <= d + tol + EPS

    def test_zero_tolerance_female_equals_male(self, pattern_spec):
        spec = replace(pattern_spec, tolerance=0.0)
        assert female_profile(spec).equals(male_profile(spec))

    def test_outline_points_are_open_ring(self, pattern_spec):
        points = outline_points(male_profile(pattern_spec))
        assert len(points) >= 3
        assert points[0] != points[-1]

    def test_deterministic(self, pattern_spec):
        assert male_profile(pattern_spec).equals(male_profile(pattern_spec))


class TestCaptureShapes:
    """Capture patterns are wider at the head than at the neck."""

    @pytest.mark.parametrize("pattern", [
        ToothPattern.DOVETAIL,
        ToothPattern.PUZZLE,
        ToothPattern.TSLOT,
        ToothPattern.PUZZLE_SMOOTH,
        ToothPattern.TSLOT_SMOOTH,
        ToothPattern.WINEGLASS,
    ])
    def test_head_wider_than_neck(self, pattern):
        male = male_profile(ToothPatternSpec(pattern=pattern, tooth_width=8, tooth_depth=8))
        ys = np.linspace(0.05, 7.95, 80)
        widths = [_width_at(male, y) for y in ys]
        narrowest = int(np.argmin(widths))
        assert max(widths[narrowest:]) > widths[narrowest] + 0.5

    def test_dovetail_widens_from_root(self):
        male = male_profile(ToothPatternSpec(pattern=ToothPattern.DOVETAIL))
        assert _width_at(male, 0.0) == pytest.approx(0.7 * 6)
        assert _width_at(male, 6.0) == pytest.approx(6.0)

    def test_triangle_tapers_to_point(self):
        male = male_profile(ToothPatternSpec(pattern=ToothPattern.TRIANGULAR))
        assert _width_at(male, 0.0) == pytest.approx(6.0)
        assert _width_at(male, 3.0) == pytest.approx(3.0)

    def test_rectangle_is_full_block(self):
        male = male_profile(ToothPatternSpec(pattern=ToothPattern.RECTANGULAR, tooth_width=5))
        assert male.area == pytest.approx(30.0)


class TestConcaveNeck:

    def test_endpoints(self):
        hw = concave_half_widths(2.4, 1.2, 50)
        assert hw[0] == pytest.approx(2.4)
        assert hw[-1] == pytest.approx(1.2)
        assert len(hw) == 13

    def test_zero_is_straight_taper(self):
        hw = concave_half_widths(2.0, 1.0, 0, steps=4)
        assert hw.tolist() == pytest.approx([2.0, 1.75, 1.5, 1.25, 1.0])

    def test_full_depth_follows_sine(self):
        hw = concave_half_widths(2.0, 1.0, 100, steps=2)
        assert hw[1] == pytest.approx(2.0 - np.sin(np.pi / 4))

    def test_deeper_swoop_narrows_sooner(self):
        shallow = concave_half_widths(2.0, 1.0, 0)
        deep = concave_half_widths(2.0, 1.0, 100)
        assert np.all(deep[1:-1] < shallow[1:-1])

    def test_concave_depth_changes_smooth_profile(self):
        straight = male_profile(ToothPatternSpec(pattern=ToothPattern.PUZZLE_SMOOTH, concave_depth_pct=0))
        curved = male_profile(ToothPatternSpec(pattern=ToothPattern.PUZZLE_SMOOTH, concave_depth_pct=100))
        assert curved.area < straight.area


class TestWineglass:

    def test_aspect_ratio_shapes_bulb(self):
        wide = male_profile(ToothPatternSpec(aspect_ratio=2.0))
        tall = male_profile(ToothPatternSpec(aspect_ratio=0.5))
        assert _width_at(wide, 5.0) > _width_at(tall, 5.0) + 1.0

    def test_roof_peaks_at_tip(self):
        flat = male_profile(ToothPatternSpec())
        roofed = male_profile(ToothPatternSpec(roof_intensity_pct=100))
        assert roofed.bounds[3] == pytest.approx(6.0, abs=1e-6)
        assert roofed.area < flat.area
        assert _width_at(roofed, 5.8) < _width_at(flat, 5.8)

    def test_roof_depth_lowers_the_ridge(self):
        shallow = male_profile(ToothPatternSpec(roof_intensity_pct=100, roof_depth_pct=0))
        deep = male_profile(ToothPatternSpec(roof_intensity_pct=100, roof_depth_pct=100))
        assert deep.bounds[3] < shallow.bounds[3]
        assert deep.is_valid

    def test_roof_only_applies_to_wineglass(self):
        plain = male_profile(ToothPatternSpec(pattern=ToothPattern.PUZZLE))
        roofed = male_profile(ToothPatternSpec(pattern=ToothPattern.PUZZLE, roof_intensity_pct=150))
        assert plain.equals(roofed)


class TestValidation:

    @pytest.mark.parametrize("changes", [
        {"tooth_width": 0},
        {"tooth_depth": -1},
        {"tolerance": -0.1},
        {"concave_depth_pct": 120},
        {"aspect_ratio": 0},
        {"roof_intensity_pct": 250},
        {"roof_depth_pct": -5},
        {"pattern": "zigzag"},
    ])
    def test_rejects_bad_parameters(self, changes):
        with pytest.raises(MalformedProfile):
            male_profile(replace(ToothPatternSpec(), **changes))

    def test_rejects_collapsed_puzzle(self):
        with pytest.raises(MalformedProfile):
            male_profile(ToothPatternSpec(pattern=ToothPattern.PUZZLE, tooth_width=6, tooth_depth=2))
