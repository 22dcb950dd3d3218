"""
Overhang detection: downward-facing triangles that need support.

A face overhangs when its normal's Y component is below
``-cos(overhang_angle)``. Faces resting on (or within tolerance of) the plate
are ignored. The visible-only variant additionally drops undercuts, faces
that other geometry hides from the plate directly below.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import numpy as np

from fixture_supports.contracts import MeshSnapshot, OverhangPoint, PlacementConfig
from fixture_supports.meshes import as_trimesh, stack_triangles

logger = logging.getLogger(__name__)

RAY_ORIGIN_OFFSET = 0.1
DOWN = np.array([0.0, -1.0, 0.0])


class VisibilityQuery(ABC):
    """Answers "does anything block a ray cast straight down from here?"."""

    @abstractmethod
    def blocked(self, origins: np.ndarray, far: np.ndarray) -> np.ndarray:
        """Return a bool per origin: True if geometry lies within ``far`` below it.

        Args:
            origins: (N, 3) ray origins.
            far: (N,) maximum hit distance per ray.
        """
        ...


class MeshRayVisibility(VisibilityQuery):
    """Ray queries against the part geometry via trimesh."""

    def __init__(self, meshes: Sequence[MeshSnapshot]):
        self._mesh = as_trimesh(meshes)

    def blocked(self, origins: np.ndarray, far: np.ndarray) -> np.ndarray:
        origins = np.asarray(origins, dtype=float).reshape(-1, 3)
        far = np.asarray(far, dtype=float).reshape(-1)
        result = np.zeros(len(origins), dtype=bool)
        if len(origins) == 0 or len(self._mesh.faces) == 0:
            return result
        directions = np.tile(DOWN, (len(origins), 1))
        locations, index_ray, _ = self._mesh.ray.intersects_location(
            ray_origins=origins,
            ray_directions=directions,
            multiple_hits=False,
        )
        if len(index_ray):
            dist = np.linalg.norm(locations - origins[index_ray], axis=1)
            hit = dist <= far[index_ray]
            result[index_ray[hit]] = True
        return result


def _face_properties(tris: np.ndarray):
    """Centroids, unit normals and areas for ``(F, 3, 3)`` triangles."""
    centroids = tris.mean(axis=1)
    cross = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
    norms = np.linalg.norm(cross, axis=1)
    areas = 0.5 * norms
    normals = np.zeros_like(cross)
    nonzero = norms > 0
    normals[nonzero] = cross[nonzero] / norms[nonzero, None]
    return centroids, normals, areas


def _overhang_mask(
    tris: np.ndarray,
    plate_top_y: float,
    config: PlacementConfig,
):
    centroids, normals, areas = _face_properties(tris)
    threshold = -math.cos(math.radians(config.overhang_angle))
    mask = (
        (centroids[:, 1] > plate_top_y + config.buildplate_tolerance)
        & (normals[:, 1] < threshold)
        & (areas > 0)
    )
    return mask, centroids, normals, areas


def _to_points(centroids, normals, areas, mask) -> List[OverhangPoint]:
    return [
        OverhangPoint(
            x=float(c[0]), y=float(c[1]), z=float(c[2]),
            normal_y=float(n[1]), area=float(a),
        )
        for c, n, a in zip(centroids[mask], normals[mask], areas[mask])
    ]


def find_all_overhangs(
    meshes: Sequence[MeshSnapshot],
    plate_top_y: float,
    config: Optional[PlacementConfig] = None,
) -> List[OverhangPoint]:
    """Every overhanging face, with no undercut filtering."""
    config = config or PlacementConfig()
    tris = stack_triangles(meshes)
    if len(tris) == 0:
        return []
    mask, centroids, normals, areas = _overhang_mask(tris, plate_top_y, config)
    points = _to_points(centroids, normals, areas, mask)
    logger.debug(
        "Overhangs: %d of %d faces, area=%.1fmm2",
        len(points), len(tris), float(areas[mask].sum()),
    )
    return points


def find_visible_overhangs(
    meshes: Sequence[MeshSnapshot],
    plate_top_y: float,
    config: Optional[PlacementConfig] = None,
    visibility: Optional[VisibilityQuery] = None,
) -> List[OverhangPoint]:
    """Overhanging faces that can be reached by a straight post from the plate.

    A ray is cast from just below each face centroid down to the plate; any
    hit marks the face as an undercut. If the visibility query fails, all
    candidate faces are kept.
    """
    config = config or PlacementConfig()
    tris = stack_triangles(meshes)
    if len(tris) == 0:
        return []
    mask, centroids, normals, areas = _overhang_mask(tris, plate_top_y, config)
    candidates = np.nonzero(mask)[0]
    if len(candidates) == 0:
        return []

    visibility = visibility or MeshRayVisibility(meshes)
    origins = centroids[candidates] - np.array([0.0, RAY_ORIGIN_OFFSET, 0.0])
    far = centroids[candidates, 1] - plate_top_y
    try:
        blocked = np.asarray(visibility.blocked(origins, far), dtype=bool)
    except Exception as exc:
        logger.warning("Visibility query failed, keeping all overhangs: %s", exc)
        blocked = np.zeros(len(candidates), dtype=bool)

    visible = mask.copy()
    visible[candidates[blocked]] = False
    logger.debug(
        "Visible overhangs: %d of %d candidates (%d undercuts)",
        int(visible.sum()), len(candidates), int(blocked.sum()),
    )
    return _to_points(centroids, normals, areas, visible)


def total_area(points: Sequence[OverhangPoint]) -> float:
    return float(sum(p.area for p in points))
