"""Tests for support footprint generation."""
import numpy as np
import pytest

from conftest import make_points
from fixture_supports.clustering import analyze_cluster
from fixture_supports.contracts import PlacementConfig
from fixture_supports.diagnostics import DiagnosticRecorder, Diagnostics
from fixture_supports.generator import (
    compute_support_depths,
    create_boundary_straddling_supports,
    create_cluster_support,
    create_inflated_overhang_support,
    footprint_cluster,
    make_support,
    support_count,
)
from fixture_supports.geometry import point_in_polygon, polygon_bounds, signed_area


class TestDepths:

    def test_square_depths(self, square_perimeter):
        depths = compute_support_depths(square_perimeter, 5)
        assert depths.perimeter_length == pytest.approx(800.0)
        assert depths.support_arc == pytest.approx(64.0)
        # 0.35 * 200 = 70, capped by half the arc
        assert depths.inward == pytest.approx(32.0)
        assert depths.outward == pytest.approx(20.0)
        assert depths.perimeter_coverage == pytest.approx(67.0)

    def test_small_part_floors(self):
        tiny = [(0, 0), (20, 0), (20, 20), (0, 20)]
        depths = compute_support_depths(tiny, 5)
        assert depths.inward == pytest.approx(8.0)
        assert depths.outward == pytest.approx(5.0)

    def test_support_count_uses_target(self):
        assert support_count(PlacementConfig()) == 5
        assert support_count(PlacementConfig(target_support_count=6)) == 6


class TestMakeSupport:

    def test_polygon_relative_to_vertex_mean(self):
        config = PlacementConfig(contact_offset=1.5, corner_radius=3.0)
        support = make_support("s", [(10, 10), (20, 10), (20, 20), (10, 20)], 40.0, 2.0, config)
        assert support.center == (15.0, 15.0)
        assert support.polygon[0] == (-5.0, -5.0)
        assert support.base_y == 2.0
        assert support.contact_offset == 1.5
        assert support.corner_radius == 3.0
        assert np.allclose(support.world_polygon()[2], (20, 20))

    def test_polygon_is_wound_clockwise(self):
        support = make_support("s", [(0, 0), (10, 0), (10, 10), (0, 10)], 10.0, 0.0, PlacementConfig())
        assert signed_area(support.polygon) < 0
        assert support.polygon[0] == (-5.0, -5.0)

    def test_degenerate_ring_is_dropped(self):
        recorder = DiagnosticRecorder()
        support = make_support(
            "s", [(0, 0), (0.1, 0), (0.2, 0.1)], 10.0, 0.0, PlacementConfig(),
            diagnostics=Diagnostics(recorder),
        )
        assert support is None
        (event,) = recorder.events
        assert event.stage == "support"
        assert event.data["id"] == "s"

    def test_footprint_cluster(self):
        support = make_support("s", [(0, 0), (10, 0), (10, 20), (0, 20)], 30.0, 5.0, PlacementConfig())
        cluster = footprint_cluster(support)
        assert cluster.points == ()
        assert cluster.bounding_box == (0.0, 10.0, 0.0, 20.0)
        assert cluster.min_y == 35.0
        assert cluster.total_area == pytest.approx(200.0)


class TestBoundaryStraddling:

    def test_supports_grip_the_edge(self, square_perimeter):
        config = PlacementConfig()
        supports = create_boundary_straddling_supports(
            square_perimeter, (0.0, 0.0), 50.0, 0.0, config,
        )
        assert len(supports) == 5
        assert [s.id for s in supports] == [f"sup-boundary-{i}" for i in range(5)]
        for support in supports:
            world = support.world_polygon()
            assert len(world) >= 3
            inside = [point_in_polygon(tuple(p), square_perimeter) for p in world]
            assert any(inside) and not all(inside)
            assert support.height == 50.0
            assert support.type == "custom"

    def test_support_reach(self, square_perimeter):
        depths = compute_support_depths(square_perimeter, 5)
        supports = create_boundary_straddling_supports(
            square_perimeter, (0.0, 0.0), 50.0, 0.0, PlacementConfig(), depths=depths,
        )
        for support in supports:
            min_x, max_x, min_z, max_z = polygon_bounds(support.world_polygon())
            limit = 100 + depths.outward + 1e-6
            assert -limit <= min_x and max_x <= limit
            assert -limit <= min_z and max_z <= limit

    def test_degenerate_perimeter(self):
        assert create_boundary_straddling_supports(
            [(0, 0), (1, 1)], (0, 0), 10.0, 0.0, PlacementConfig(),
        ) == []

    def test_emits_layout_diagnostics(self, square_perimeter):
        recorder = DiagnosticRecorder()
        create_boundary_straddling_supports(
            square_perimeter, (0.0, 0.0), 50.0, 0.0, PlacementConfig(),
            diagnostics=Diagnostics(recorder),
        )
        (layout,) = [e for e in recorder.events if e.message == "layout"]
        assert layout.data["count"] == 5
        assert len(layout.data["positions"]) == 5


class TestOverhangSupports:

    def test_inflated_support_is_capped(self):
        cluster = analyze_cluster(make_points(np.arange(0, 41, 4.0), np.arange(0, 41, 4.0), y=60.0))
        support = create_inflated_overhang_support(
            cluster, 0.0, PlacementConfig(), index=2, inflation=6.0, max_size=15.0,
        )
        assert support.id == "sup-overhang-2"
        assert support.height == pytest.approx(60.0)
        min_x, max_x, min_z, max_z = polygon_bounds(support.world_polygon())
        assert (max_x - min_x) / 2 <= 15.0 + 1e-6
        assert (max_z - min_z) / 2 <= 15.0 + 1e-6

    def test_inflated_single_point_is_octagon(self):
        cluster = analyze_cluster(make_points([10.0], [20.0], y=30.0))
        support = create_inflated_overhang_support(cluster, 0.0, PlacementConfig(), 0, inflation=6.0)
        assert len(support.polygon) == 8
        assert support.center == (10.0, 20.0)

    def test_cluster_support_pads_hull(self):
        cluster = analyze_cluster(make_points(np.arange(0, 21, 5.0), np.arange(0, 21, 5.0), y=40.0))
        config = PlacementConfig(contact_offset=2.0)
        support = create_cluster_support(cluster, 10.0, config, index=0)
        assert support.height == pytest.approx(28.0)
        assert support.center == pytest.approx((10.0, 10.0))
        min_x, max_x, min_z, max_z = polygon_bounds(support.world_polygon())
        assert min_x == pytest.approx(-3.0, abs=0.5)
        assert max_x == pytest.approx(23.0, abs=0.5)

    def test_cluster_support_square_fallback(self):
        cluster = analyze_cluster(make_points([0.0, 4.0], [0.0], y=20.0))
        support = create_cluster_support(cluster, 0.0, PlacementConfig(), index=1)
        assert len(support.polygon) == 4
        assert support.polygon[0] == (-5.0, -5.0)

    def test_cluster_support_collinear_uses_box(self):
        cluster = analyze_cluster(make_points(np.arange(0, 31, 5.0), [0.0], y=20.0))
        support = create_cluster_support(cluster, 0.0, PlacementConfig(), index=0)
        min_x, max_x, min_z, max_z = polygon_bounds(support.world_polygon())
        assert max_x - min_x == pytest.approx(36.0)
        assert max_z - min_z == pytest.approx(10.0)
