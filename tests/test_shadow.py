"""Tests for shadow computation and mesh snapshots."""
import numpy as np
import pytest
import trimesh

from fixture_supports.contracts import MeshSnapshot
from fixture_supports.geometry import convex_hull, polygon_area
from fixture_supports.meshes import load_parts, lowest_point_above, snapshot_all
from fixture_supports.shadow import SHADOW_EXPANSION, compute_part_shadow, concave_hull


class TestComputePartShadow:

    def test_box_shadow(self, box_snapshot):
        shadow = compute_part_shadow([box_snapshot], 0.0)
        assert shadow.is_valid
        assert shadow.bounds == pytest.approx((-100.0, 100.0, -100.0, 100.0))
        assert shadow.area == pytest.approx(40000.0)
        assert shadow.center == pytest.approx((0.0, 0.0))
        assert polygon_area(shadow.expanded_shadow) == pytest.approx(
            40000.0 * SHADOW_EXPANSION ** 2
        )

    def test_part_below_plate_has_no_shadow(self, box_snapshot):
        shadow = compute_part_shadow([box_snapshot], 100.0)
        assert not shadow.is_valid
        assert shadow.area == 0.0

    def test_empty_scene(self):
        assert not compute_part_shadow([], 0.0).is_valid

    def test_accepts_trimesh_via_snapshot(self, box_mesh):
        shadow = compute_part_shadow(snapshot_all([box_mesh]), 0.0)
        assert shadow.is_valid


class TestConcaveHull:

    def test_l_shape_is_tighter_than_convex_hull(self):
        pts = [(x, z) for x in np.arange(0, 100, 1.0) for z in np.arange(0, 20, 1.0)]
        pts += [(x, z) for x in np.arange(0, 20, 1.0) for z in np.arange(20, 100, 1.0)]
        pts = np.array(pts)
        hull = convex_hull(pts)
        outline = concave_hull(pts, hull)
        assert len(outline) >= 3
        assert polygon_area(outline) < 0.8 * polygon_area(hull)

    def test_few_points_fall_back_to_convex_hull(self):
        pts = np.array([(0, 0), (10, 0), (10, 10), (0, 10), (5, 5)])
        outline = concave_hull(pts)
        assert len(outline) == 4

    def test_thin_cloud_falls_back(self):
        pts = np.column_stack([np.arange(20.0), np.zeros(20)])
        pts[::2, 1] = 0.5
        outline = concave_hull(pts)
        assert np.allclose(outline, convex_hull(pts))


class TestMeshes:

    def test_snapshot_from_arrays_applies_transform(self):
        verts = [(0, 0, 0), (1, 0, 0), (0, 0, 1)]
        transform = np.eye(4)
        transform[:3, 3] = (10, 5, 0)
        snap = MeshSnapshot.from_arrays(verts, [(0, 1, 2)], transform)
        assert snap.face_count == 1
        assert np.allclose(snap.vertices[:, 1], 5.0)
        assert snap.vertices[:, 0].min() == pytest.approx(10.0)

    def test_lowest_point_above(self, table_snapshot):
        # The leg bottom sits on the plate; the leg top is the lowest vertex above it
        assert lowest_point_above([table_snapshot], 0.0) == pytest.approx(60.0)
        assert lowest_point_above([table_snapshot], 500.0) == pytest.approx(510.0)

    def test_load_split_bodies(self, tmp_path):
        a = trimesh.creation.box(extents=[10, 10, 10])
        b = trimesh.creation.box(extents=[10, 10, 10])
        b.apply_translation([50, 0, 0])
        path = tmp_path / "pair.stl"
        trimesh.util.concatenate([a, b]).export(str(path))
        assert len(load_parts(str(path))) == 1
        assert len(load_parts(str(path), split_bodies=True)) == 2

    def test_load_z_up(self, tmp_path):
        tall = trimesh.creation.box(extents=[10, 10, 40])
        path = tmp_path / "tall.stl"
        tall.export(str(path))
        (part,) = load_parts(str(path), z_up=True)
        ys = part.vertices[:, 1]
        assert ys.max() - ys.min() == pytest.approx(40.0)
