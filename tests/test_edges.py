"""Tests for edge type resolution, cycling and complementarity lint."""
from baseplate_split.contracts import Edge, EdgeType, SegmentEdgeOverride
from baseplate_split.edges import (
    check_edge_complementarity,
    cycle_edge,
    default_edge_type,
    find_override,
    find_stale_overrides,
    get_edge_type,
    prune_stale_overrides,
    reset_overrides,
    resolve_segment_edges,
)
from baseplate_split.partition import split_baseplate_for_printer


class TestDefaults:

    def test_middle_segment(self, row_split):
        middle = row_split.segment_at(1, 0)
        assert resolve_segment_edges(middle) == {
            Edge.LEFT: EdgeType.FEMALE,
            Edge.RIGHT: EdgeType.MALE,
            Edge.FRONT: EdgeType.NONE,
            Edge.BACK: EdgeType.NONE,
        }

    def test_corner_segments(self, grid_split):
        first = grid_split.segment_at(0, 0)
        assert default_edge_type(first, Edge.RIGHT) is EdgeType.MALE
        assert default_edge_type(first, Edge.BACK) is EdgeType.MALE
        assert default_edge_type(first, Edge.LEFT) is EdgeType.NONE
        assert default_edge_type(first, Edge.FRONT) is EdgeType.NONE

        last = grid_split.segment_at(2, 1)
        assert default_edge_type(last, Edge.LEFT) is EdgeType.FEMALE
        assert default_edge_type(last, Edge.FRONT) is EdgeType.FEMALE
        assert default_edge_type(last, Edge.RIGHT) is EdgeType.NONE
        assert default_edge_type(last, Edge.BACK) is EdgeType.NONE


class TestOverrides:

    def test_override_takes_precedence(self, row_split):
        middle = row_split.segment_at(1, 0)
        overrides = [SegmentEdgeOverride(1, 0, right_edge=EdgeType.FEMALE)]
        assert get_edge_type(middle, Edge.RIGHT, overrides) is EdgeType.FEMALE
        # Every edge comes from the override, including unset ones.
        assert get_edge_type(middle, Edge.LEFT, overrides) is EdgeType.NONE

    def test_override_for_other_segment_is_ignored(self, row_split):
        middle = row_split.segment_at(1, 0)
        overrides = [SegmentEdgeOverride(2, 0, left_edge=EdgeType.MALE)]
        assert get_edge_type(middle, Edge.RIGHT, overrides) is EdgeType.MALE

    def test_lookup_is_by_coordinate_value(self):
        overrides = [SegmentEdgeOverride(0, 1), SegmentEdgeOverride(1, 0)]
        assert find_override(overrides, 1, 0) is overrides[1]
        assert find_override(overrides, 1, 1) is None


class TestCycleEdge:

    def test_right_edge_cycles_through_all_types(self, row_split):
        segment = row_split.segment_at(1, 0)
        overrides = []
        seen = [get_edge_type(segment, Edge.RIGHT, overrides)]
        for _ in range(3):
            overrides = cycle_edge(segment, Edge.RIGHT, overrides)
            seen.append(get_edge_type(segment, Edge.RIGHT, overrides))

            assert get_edge_type(segment, Edge.LEFT, overrides) is EdgeType.FEMALE
            assert get_edge_type(segment, Edge.FRONT, overrides) is EdgeType.NONE
            assert get_edge_type(segment, Edge.BACK, overrides) is EdgeType.NONE

        assert seen == [EdgeType.MALE, EdgeType.FEMALE, EdgeType.NONE, EdgeType.MALE]
        assert len(overrides) == 1

    def test_none_edge_becomes_male(self, row_split):
        segment = row_split.segment_at(0, 0)
        overrides = cycle_edge(segment, Edge.LEFT, [])
        assert get_edge_type(segment, Edge.LEFT, overrides) is EdgeType.MALE

    def test_input_list_is_not_mutated(self, row_split):
        segment = row_split.segment_at(1, 0)
        original = [SegmentEdgeOverride(0, 0, right_edge=EdgeType.MALE)]
        snapshot = list(original)
        updated = cycle_edge(segment, Edge.RIGHT, original)
        assert original == snapshot
        assert len(updated) == 2

    def test_existing_override_patched_in_place(self, row_split):
        segment = row_split.segment_at(1, 0)
        overrides = [
            SegmentEdgeOverride(0, 0),
            SegmentEdgeOverride(1, 0, left_edge=EdgeType.FEMALE, right_edge=EdgeType.MALE),
            SegmentEdgeOverride(2, 0),
        ]
        updated = cycle_edge(segment, Edge.LEFT, overrides)
        assert [o.key for o in updated] == [(0, 0), (1, 0), (2, 0)]
        assert updated[1].left_edge is EdgeType.NONE
        assert updated[1].right_edge is EdgeType.MALE

    def test_reset_restores_defaults(self, row_split):
        segment = row_split.segment_at(1, 0)
        overrides = cycle_edge(segment, Edge.RIGHT, [])
        assert get_edge_type(segment, Edge.RIGHT, overrides) is EdgeType.FEMALE
        overrides = reset_overrides()
        assert overrides == []
        assert get_edge_type(segment, Edge.RIGHT, overrides) is EdgeType.MALE


class TestStaleOverrides:

    def test_repartition_leaves_override_inert(self):
        overrides = [SegmentEdgeOverride(2, 0, left_edge=EdgeType.MALE)]
        smaller = split_baseplate_for_printer(8, 3, 220, 220, 42, True)

        assert find_stale_overrides(overrides, smaller) == overrides
        for segment in smaller.iter_segments():
            for edge in Edge:
                assert get_edge_type(segment, edge, overrides) is default_edge_type(segment, edge)

    def test_prune_keeps_live_overrides(self, row_split):
        live = SegmentEdgeOverride(1, 0)
        stale = SegmentEdgeOverride(5, 5)
        assert prune_stale_overrides([live, stale], row_split) == [live]


class TestComplementarity:

    def test_defaults_are_clean(self, grid_split):
        assert check_edge_complementarity(grid_split) == []

    def test_male_facing_male_is_an_error(self, row_split):
        overrides = [SegmentEdgeOverride(
            1, 0, left_edge=EdgeType.MALE, right_edge=EdgeType.MALE,
        )]
        violations = check_edge_complementarity(row_split, overrides)
        codes = {(v.code, v.segment, v.edge) for v in violations}
        assert ("male_unmatched", (0, 0), Edge.RIGHT) in codes
        assert ("male_unmatched", (1, 0), Edge.LEFT) in codes
        assert all(v.severity == "error" for v in violations if v.code == "male_unmatched")

    def test_female_facing_plain_edge_is_a_warning(self, row_split):
        overrides = [SegmentEdgeOverride(0, 0, right_edge=EdgeType.NONE)]
        violations = check_edge_complementarity(row_split, overrides)
        assert len(violations) == 1
        assert violations[0].code == "female_unmatched"
        assert violations[0].severity == "warning"
        assert violations[0].segment == (1, 0)
        assert violations[0].neighbor == (0, 0)

    def test_connector_on_outer_edge(self, row_split):
        overrides = [SegmentEdgeOverride(
            0, 0, left_edge=EdgeType.MALE, right_edge=EdgeType.MALE,
        )]
        violations = check_edge_complementarity(row_split, overrides)
        assert [v.code for v in violations] == ["connector_on_outer_edge"]
        assert violations[0].edge is Edge.LEFT

    def test_swapped_pair_is_still_complementary(self, row_split):
        overrides = [
            SegmentEdgeOverride(0, 0, right_edge=EdgeType.FEMALE),
            SegmentEdgeOverride(
                1, 0, left_edge=EdgeType.MALE, right_edge=EdgeType.MALE,
            ),
        ]
        assert check_edge_complementarity(row_split, overrides) == []
