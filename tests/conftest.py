"""
Shared test fixtures for support placement tests.

Meshes are Y-up with the plate top at y=0.
"""
import sys
from pathlib import Path

import numpy as np
import pytest
import trimesh

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fixture_supports.contracts import MeshSnapshot, OverhangPoint


def _box(extents, bottom_center):
    mesh = trimesh.creation.box(extents=extents)
    x, y, z = bottom_center
    mesh.apply_translation([x, y + extents[1] / 2.0, z])
    return mesh


@pytest.fixture
def box_mesh():
    """A 200x50x200mm block resting on the plate, centred on the origin."""
    return _box([200, 50, 200], (0, 0, 0))


@pytest.fixture
def box_snapshot(box_mesh):
    return MeshSnapshot.from_trimesh(box_mesh, name="box")


@pytest.fixture
def table_mesh():
    """A table-like part: a 300x300x10 slab at y=60..70 on a central 40x40 leg.

    The slab is subdivided to 10mm edges so its underside yields a dense
    field of overhang faces.
    """
    slab = _box([300, 10, 300], (0, 60, 0))
    verts, faces = trimesh.remesh.subdivide_to_size(slab.vertices, slab.faces, max_edge=10.0)
    slab = trimesh.Trimesh(vertices=verts, faces=faces, process=False)
    leg = _box([40, 60, 40], (0, 0, 0))
    return trimesh.util.concatenate([slab, leg])


@pytest.fixture
def table_snapshot(table_mesh):
    return MeshSnapshot.from_trimesh(table_mesh, name="table")


@pytest.fixture
def l_shape_mesh():
    """An L-shaped footprint: two 40mm tall blocks sharing a 60x60 corner."""
    arm_x = _box([200, 40, 60], (0, 0, -70))
    arm_z = _box([60, 40, 200], (-70, 0, 0))
    return trimesh.util.concatenate([arm_x, arm_z])


@pytest.fixture
def elliptic_cylinder_mesh():
    """A 40mm tall cylinder with a 240x140mm elliptical footprint."""
    mesh = trimesh.creation.cylinder(radius=1.0, height=40.0, sections=64)
    mesh.apply_transform(trimesh.transformations.rotation_matrix(np.pi / 2, [1, 0, 0]))
    mesh.apply_transform(np.diag([120.0, 1.0, 70.0, 1.0]))
    mesh.apply_translation([0, 20.0, 0])
    return mesh


@pytest.fixture
def square_perimeter():
    """200x200 square outline centred on the origin, counter-clockwise."""
    return np.array([[-100.0, -100.0], [100.0, -100.0], [100.0, 100.0], [-100.0, 100.0]])


@pytest.fixture
def dense_rectangle():
    """160x80 rectangle outline sampled every 2mm."""
    edges = []
    for x in np.arange(-80, 80, 2.0):
        edges.append((x, -40.0))
    for z in np.arange(-40, 40, 2.0):
        edges.append((80.0, z))
    for x in np.arange(80, -80, -2.0):
        edges.append((x, 40.0))
    for z in np.arange(40, -40, -2.0):
        edges.append((-80.0, z))
    return np.array(edges)


def make_points(xs, zs, y=30.0, area=1.0):
    """Grid of overhang points at height ``y``."""
    return [
        OverhangPoint(x=float(x), y=y, z=float(z), normal_y=-1.0, area=area)
        for x in xs for z in zs
    ]


@pytest.fixture
def box_mesh_file(box_mesh, tmp_path):
    path = tmp_path / "box.stl"
    box_mesh.export(str(path))
    return str(path)
