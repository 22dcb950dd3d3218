"""Tests for support merging, thin filtering and baseplate coverage."""
import pytest

from fixture_supports.contracts import BaseplateSection, PlacementConfig
from fixture_supports.coverage import (
    filter_supports_by_baseplate_coverage,
    find_best_covering_section,
)
from fixture_supports.generator import make_support
from fixture_supports.merging import (
    filter_thin_supports,
    merge_overlapping_supports,
    supports_overlap,
)


def _square(support_id, cx, cz, half=10.0, height=20.0):
    ring = [(cx - half, cz - half), (cx + half, cz - half), (cx + half, cz + half), (cx - half, cz + half)]
    return make_support(support_id, ring, height, 0.0, PlacementConfig())


class TestOverlap:

    def test_touching_boxes_overlap(self):
        assert supports_overlap(_square("a", 0, 0), _square("b", 22, 0), 5.0)

    def test_distant_boxes_do_not_overlap(self):
        assert not supports_overlap(_square("a", 0, 0), _square("b", 100, 0), 5.0)


class TestMerge:

    def test_overlapping_pair_merges(self):
        merged = merge_overlapping_supports(
            [_square("a", 0, 0, height=20.0), _square("b", 15, 0, height=35.0)],
            PlacementConfig(),
        )
        assert len(merged) == 1
        (support,) = merged
        assert support.id == "sup-merged-0"
        assert support.height == 35.0
        assert support.center[0] == pytest.approx(7.5)

    def test_separate_supports_unchanged(self):
        supports = [_square("a", 0, 0), _square("b", 100, 0), _square("c", 0, 100)]
        assert merge_overlapping_supports(supports, PlacementConfig()) == supports

    def test_chain_merges_transitively(self):
        supports = [_square("a", 0, 0), _square("b", 20, 0), _square("c", 40, 0), _square("d", 200, 0)]
        merged = merge_overlapping_supports(supports, PlacementConfig())
        assert [s.id for s in merged] == ["sup-merged-0", "d"]

    def test_merge_is_idempotent(self):
        supports = [_square("a", 0, 0), _square("b", 18, 5), _square("c", 80, 0), _square("d", 95, 10)]
        once = merge_overlapping_supports(supports, PlacementConfig())
        twice = merge_overlapping_supports(once, PlacementConfig())
        assert twice == once

    def test_explicit_merge_distance(self):
        supports = [_square("a", 0, 0), _square("b", 30, 0)]
        assert len(merge_overlapping_supports(supports, PlacementConfig(), merge_distance=0.0)) == 2
        assert len(merge_overlapping_supports(supports, PlacementConfig(), merge_distance=15.0)) == 1


class TestThinFilter:

    def test_drops_narrow_supports(self):
        thin = make_support("thin", [(0, 0), (40, 0), (40, 4), (0, 4)], 10.0, 0.0, PlacementConfig())
        wide = _square("wide", 0, 0)
        assert filter_thin_supports([thin, wide], 10.0) == [wide]


class TestCoverage:

    SECTIONS = [
        BaseplateSection("left", -100.0, 0.0, -100.0, 100.0),
        BaseplateSection("right", 0.0, 100.0, -100.0, 100.0),
    ]

    def test_fully_covered_support_is_tagged(self):
        result = filter_supports_by_baseplate_coverage([_square("a", -50, 0)], self.SECTIONS)
        assert [s.section_id for s in result.accepted] == ["left"]
        assert result.rejected == []
        assert "60%" in result.message

    def test_straddling_support_is_rejected(self):
        result = filter_supports_by_baseplate_coverage([_square("a", 0, 0)], self.SECTIONS)
        assert result.accepted == []
        assert len(result.rejected) == 1
        assert "1 rejected" in result.message

    def test_mostly_covered_support(self):
        assert find_best_covering_section(_square("a", 4, 0), self.SECTIONS) == "right"

    def test_no_sections_accepts_all(self):
        supports = [_square("a", 0, 0), _square("b", 500, 0)]
        result = filter_supports_by_baseplate_coverage(supports, [])
        assert result.accepted == supports
        assert result.message.startswith("No baseplate sections defined")
