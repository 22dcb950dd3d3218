"""
Mesh input: world-space triangle snapshots and file loading.

The placement core only ever reads immutable ``MeshSnapshot`` triangle
soups. Anything trimesh can load is converted once at the boundary.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Optional, Sequence

import numpy as np
import trimesh

from fixture_supports.contracts import MeshSnapshot

logger = logging.getLogger(__name__)


def snapshot(mesh, name: Optional[str] = None) -> MeshSnapshot:
    """Return a MeshSnapshot for a snapshot or a ``trimesh.Trimesh``."""
    if isinstance(mesh, MeshSnapshot):
        return mesh
    if isinstance(mesh, trimesh.Trimesh):
        return MeshSnapshot.from_trimesh(mesh, name=name)
    raise TypeError(f"Unsupported mesh type: {type(mesh).__name__}")


def snapshot_all(meshes: Optional[Iterable]) -> List[MeshSnapshot]:
    if meshes is None:
        return []
    return [snapshot(m) for m in meshes]


def stack_triangles(meshes: Sequence[MeshSnapshot]) -> np.ndarray:
    """All triangles of all meshes as one ``(F, 3, 3)`` array."""
    blocks = [m.triangles for m in meshes if m.face_count]
    if not blocks:
        return np.zeros((0, 3, 3))
    return np.concatenate(blocks, axis=0)


def vertices_above(meshes: Sequence[MeshSnapshot], plate_top_y: float) -> np.ndarray:
    """World vertices strictly above the plate, ``(N, 3)``."""
    verts = stack_triangles(meshes).reshape(-1, 3)
    return verts[verts[:, 1] > plate_top_y]


def lowest_point_above(meshes: Sequence[MeshSnapshot], plate_top_y: float) -> float:
    """Lowest vertex height above the plate, or plate top + 10 if none."""
    verts = vertices_above(meshes, plate_top_y)
    if len(verts) == 0:
        return plate_top_y + 10.0
    return float(verts[:, 1].min())


def as_trimesh(meshes: Sequence[MeshSnapshot]) -> trimesh.Trimesh:
    """Merge snapshots into one trimesh for ray queries."""
    tris = stack_triangles(meshes)
    if len(tris) == 0:
        return trimesh.Trimesh()
    faces = np.arange(len(tris) * 3).reshape(-1, 3)
    return trimesh.Trimesh(vertices=tris.reshape(-1, 3), faces=faces, process=False)


def load_parts(
    filepath: str,
    split_bodies: bool = False,
    z_up: bool = False,
) -> List[MeshSnapshot]:
    """Load a mesh file as world-space part snapshots.

    Scenes yield one snapshot per geometry node with its scene transform
    applied. With ``split_bodies`` a single mesh is split into its connected
    bodies so each can be placed independently. ``z_up`` rotates Z-up input
    into the Y-up frame used for placement.
    """
    loaded = trimesh.load(filepath)

    if isinstance(loaded, trimesh.Scene):
        meshes = []
        for node_name in loaded.graph.nodes_geometry:
            transform, geom_name = loaded.graph[node_name]
            geom = loaded.geometry.get(geom_name)
            if not isinstance(geom, trimesh.Trimesh) or len(geom.faces) == 0:
                continue
            mesh = geom.copy()
            mesh.apply_transform(transform)
            mesh.metadata["name"] = str(node_name)
            meshes.append(mesh)
        if not meshes:
            raise ValueError(f"No triangle meshes found in {filepath}")
    elif isinstance(loaded, trimesh.Trimesh):
        meshes = [loaded]
    else:
        raise ValueError(f"Unsupported type from trimesh.load: {type(loaded)}")

    if z_up:
        rot = trimesh.transformations.rotation_matrix(-math.pi / 2, [1, 0, 0])
        for mesh in meshes:
            mesh.apply_transform(rot)

    if split_bodies:
        bodies = []
        for mesh in meshes:
            parts = mesh.split(only_watertight=False)
            bodies.extend(parts if len(parts) else [mesh])
        meshes = bodies

    logger.info("Loaded %d part(s) from %s", len(meshes), filepath)
    return [
        snapshot(m, name=m.metadata.get("name") or f"part-{i}")
        for i, m in enumerate(meshes)
    ]
