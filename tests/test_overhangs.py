"""Tests for overhang detection and undercut filtering."""
import numpy as np
import pytest

from fixture_supports.contracts import MeshSnapshot, PlacementConfig
from fixture_supports.overhangs import (
    MeshRayVisibility,
    VisibilityQuery,
    find_all_overhangs,
    find_visible_overhangs,
    total_area,
)


class BlockEverything(VisibilityQuery):
    def blocked(self, origins, far):
        return np.ones(len(origins), dtype=bool)


class BrokenVisibility(VisibilityQuery):
    def blocked(self, origins, far):
        raise RuntimeError("ray backend unavailable")


def _tilted_face(angle_from_down_deg, y=20.0):
    """One triangle whose normal is ``angle_from_down_deg`` away from -Y."""
    a = np.radians(angle_from_down_deg)
    # Rotate the downward-facing triangle about the X axis
    verts = np.array([(0, 0, 0), (10, 0, 0), (0, 0, 10)], dtype=float)
    rot = np.array([
        [1, 0, 0],
        [0, np.cos(a), -np.sin(a)],
        [0, np.sin(a), np.cos(a)],
    ])
    verts = verts @ rot.T + (0, y, 0)
    return MeshSnapshot(triangles=verts[None, :, :])


class TestFindAllOverhangs:

    def test_box_has_none(self, box_snapshot):
        assert find_all_overhangs([box_snapshot], 0.0) == []

    def test_table_underside(self, table_snapshot):
        points = find_all_overhangs([table_snapshot], 0.0)
        assert points
        assert all(p.normal_y == pytest.approx(-1.0) for p in points)
        assert all(p.y == pytest.approx(60.0) for p in points)
        # Whole slab underside, including the part resting on the leg
        assert total_area(points) == pytest.approx(300 * 300, rel=1e-6)

    def test_faces_near_plate_are_ignored(self, table_snapshot):
        config = PlacementConfig(buildplate_tolerance=70.0)
        assert find_all_overhangs([table_snapshot], 0.0, config) == []

    def test_angle_threshold(self):
        face = _tilted_face(20.0)
        # normal_y = -cos(20) = -0.94
        assert len(find_all_overhangs([face], 0.0, PlacementConfig(overhang_angle=60))) == 1
        assert find_all_overhangs([face], 0.0, PlacementConfig(overhang_angle=10)) == []

    def test_empty(self):
        assert find_all_overhangs([], 0.0) == []


class TestFindVisibleOverhangs:

    def test_blocked_faces_are_dropped(self, table_snapshot):
        assert find_visible_overhangs([table_snapshot], 0.0, visibility=BlockEverything()) == []

    def test_failed_query_keeps_everything(self, table_snapshot, caplog):
        all_points = find_all_overhangs([table_snapshot], 0.0)
        visible = find_visible_overhangs([table_snapshot], 0.0, visibility=BrokenVisibility())
        assert len(visible) == len(all_points)
        assert "Visibility query failed" in caplog.text

    def test_leg_hides_faces_above_it(self, table_snapshot):
        all_points = find_all_overhangs([table_snapshot], 0.0)
        visible = find_visible_overhangs([table_snapshot], 0.0)
        assert 0 < len(visible) < len(all_points)
        hidden = {(p.x, p.z) for p in all_points} - {(p.x, p.z) for p in visible}
        assert all(abs(x) <= 20 and abs(z) <= 20 for x, z in hidden)


class TestMeshRayVisibility:

    def test_hit_within_far(self, box_snapshot):
        visibility = MeshRayVisibility([box_snapshot])
        origins = np.array([[10.0, 100.0, 3.0], [10.0, 100.0, 3.0], [500.0, 100.0, 3.0]])
        far = np.array([60.0, 40.0, 1000.0])
        assert visibility.blocked(origins, far).tolist() == [True, False, False]
