"""Tests for OpenSCAD source emission."""
import re

import pytest

from baseplate_split.assembly import assemble_baseplate, assemble_segment, layout_preview
from baseplate_split.contracts import BaseplateConfig, Segment
from baseplate_split.grid import calculate_grid_from_mm
from baseplate_split.scad_writer import (
    render_baseplate_scad,
    render_preview_scad,
    render_segment_scad,
)


def _balanced(source: str) -> bool:
    return (
        source.count("{") == source.count("}")
        and source.count("(") == source.count(")")
        and source.count("[") == source.count("]")
    )


@pytest.fixture
def first_segment_scad(default_config, grid_split):
    geometry = assemble_segment(grid_split.segment_at(0, 0), default_config)
    return render_segment_scad(geometry, default_config, design_name="shelf")


class TestSegmentScad:

    def test_header_and_entry_point(self, first_segment_scad):
        assert first_segment_scad.startswith("// shelf: baseplate segment [0, 0]")
        assert "\nsegment();\n" in first_segment_scad
        assert "module segment() {" in first_segment_scad
        assert "// Edge pattern: wineglass" in first_segment_scad
        assert "left=none, right=male, front=none, back=male" in first_segment_scad

    def test_parameters_come_from_config(self, first_segment_scad):
        assert "grid_unit = 42;" in first_segment_scad
        assert 'style = "default";' in first_segment_scad
        assert "socket_chamfer_height = 4.75;" in first_segment_scad
        assert "remove_bottom_taper = false;" in first_segment_scad
        assert "$fn = 32;" in first_segment_scad

    def test_one_socket_per_cell(self, first_segment_scad):
        assert first_segment_scad.count("grid_socket(42, 42);") == 25

    def test_male_teeth_placed_on_edges(self, first_segment_scad):
        assert (
            "translate([210, 42, 0]) rotate([0, 0, -90]) male_tooth();  // right"
            in first_segment_scad
        )
        assert (
            "translate([84, 210, 0]) rotate([0, 0, 0]) male_tooth();  // back"
            in first_segment_scad
        )
        assert first_segment_scad.count("male_tooth();") == 8
        assert "female_cavity();" not in first_segment_scad

    def test_female_cavities_are_subtracted(self, default_config, grid_split):
        geometry = assemble_segment(grid_split.segment_at(2, 1), default_config)
        source = render_segment_scad(geometry, default_config)
        assert "translate([0, 42, 0]) rotate([0, 0, -90]) female_cavity();  // left" in source
        assert "translate([42, 0, 0]) rotate([0, 0, 0]) female_cavity();  // front" in source
        assert "linear_extrude(height = plate_height + 2 * cavity_margin)" in source

    def test_profile_polygons_are_emitted(self, first_segment_scad):
        polygons = re.findall(r"polygon\(points = (\[.*\])\);", first_segment_scad)
        assert len(polygons) == 2
        for points in polygons:
            assert points.count("[") - 1 >= 3

    def test_unconnected_segment_has_no_tooth_modules(self, default_config):
        geometry = assemble_segment(Segment(0, 0, 3, 3), default_config)
        source = render_segment_scad(geometry, default_config)
        assert "male_tooth" not in source
        assert "female_cavity" not in source
        assert "module grid_socket(cell_width, cell_depth)" in source

    def test_output_is_balanced(self, first_segment_scad):
        assert _balanced(first_segment_scad)

    def test_deterministic(self, default_config, grid_split):
        segment = grid_split.segment_at(1, 0)
        first = render_segment_scad(assemble_segment(segment, default_config), default_config)
        second = render_segment_scad(assemble_segment(segment, default_config), default_config)
        assert first == second


class TestBaseplateScad:

    def test_half_cells_are_modelled(self):
        config = BaseplateConfig(width=2.5, depth=2, style="magnet")
        source = render_baseplate_scad(assemble_baseplate(config), config)
        assert source.startswith("// baseplate: grid baseplate")
        assert source.count("grid_socket(21, 42, features = false);") == 2
        assert source.count("grid_socket(42, 42);") == 4
        assert "rounded_rect_plate(105, 84, plate_height, corner_radius);" in source
        assert 'style = "magnet";' in source
        assert _balanced(source)

    def test_holes_and_cavities_only_in_full_cells(self):
        config = BaseplateConfig(width=2.5, depth=1, style="magnet")
        source = render_baseplate_scad(assemble_baseplate(config), config)

        sockets = re.findall(r"grid_socket\(([^)]*)\);", source)
        assert sorted(sockets) == ["21, 42, features = false", "42, 42", "42, 42"]
        module = source[source.index("module grid_socket("):source.index("module corner_holes(")]
        assert "    if (features) {" in module
        for call in ("magnet_hole();", "screw_hole();", "weight_cavity_cutout("):
            assert module.index(call) > module.index("if (features)")


class TestPlateFeatures:

    def test_defaults_disable_extra_features(self, first_segment_scad):
        assert "center_screw = false;" in first_segment_scad
        assert "weight_cavity = false;" in first_segment_scad
        assert "magnet_z_offset = 0;" in first_segment_scad
        assert "magnet_top_cover = 0;" in first_segment_scad

    def test_center_screw_and_weight_cavity_flags(self):
        config = BaseplateConfig(width=2, depth=2, center_screw=True, weight_cavity=True)
        source = render_baseplate_scad(assemble_baseplate(config), config)
        assert "center_screw = true;" in source
        assert "weight_cavity = true;" in source
        assert (
            "if (center_screw) translate([cell_width / 2, cell_depth / 2, 0]) screw_hole();"
            in source
        )
        assert 'if (weight_cavity || style == "weighted")' in source

    def test_embedded_magnet_parameters(self):
        config = BaseplateConfig(style="magnet", magnet_z_offset=1.2, magnet_top_cover=0.4)
        source = render_baseplate_scad(assemble_baseplate(config), config)
        assert "magnet_z_offset = 1.2;" in source
        assert "magnet_top_cover = 0.4;" in source
        assert "cylinder(d = magnet_diameter * 0.6, h = magnet_z_offset + cavity_margin);" in source
        assert _balanced(source)

    def test_fill_mode_shifts_plate(self):
        config = BaseplateConfig(
            sizing_mode="fill_area_mm", target_width_mm=110, target_depth_mm=100,
        )
        grid = calculate_grid_from_mm(110, 100, 42, True, True, "center")
        source = render_baseplate_scad(assemble_baseplate(config, grid), config)
        assert "translate([-2.5, -8, 0])" in source
        assert "rounded_rect_plate(110, 100, plate_height, corner_radius);" in source


class TestPreviewScad:

    def test_every_segment_is_translated(self, default_config, grid_split):
        geometries = [assemble_segment(s, default_config) for s in grid_split.iter_segments()]
        offsets = layout_preview(grid_split, default_config.grid_size)
        source = render_preview_scad(geometries, offsets, grid_split, default_config)

        assert "// 6 segments (3 x 2) laid out with gaps" in source
        assert "translate([0, 0, 0]) segment_0_0();" in source
        assert "translate([215, 0, 0]) segment_1_0();" in source
        assert "translate([430, 215, 0]) segment_2_1();" in source
        for sx in range(3):
            for sy in range(2):
                assert f"module segment_{sx}_{sy}() {{" in source
        assert source.count("module male_tooth_2d()") == 1
        assert "$fn = 24;" in source
        assert _balanced(source)
