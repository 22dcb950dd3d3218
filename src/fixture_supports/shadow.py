"""
Top-down shadow of a part: projected vertex footprint.

The shadow is the convex hull of every vertex above the plate, refined to a
concave outline by closing an occupancy grid and tracing its boundary with
marching squares.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
from scipy import ndimage
from skimage import measure

from fixture_supports.contracts import MeshSnapshot, ShadowAnalysis
from fixture_supports.geometry import (
    as_points,
    convex_hull,
    polygon_area,
    scale_about,
    simplify_contour,
    to_tuples,
    vertex_centroid,
)
from fixture_supports.meshes import vertices_above

logger = logging.getLogger(__name__)

SHADOW_EXPANSION = 1.20
_GRID_PADDING = 2
_CROSS = ndimage.generate_binary_structure(2, 1)


def project_vertices(meshes: Sequence[MeshSnapshot], plate_top_y: float) -> np.ndarray:
    """``(x, z)`` of every vertex above the plate."""
    verts = vertices_above(meshes, plate_top_y)
    return verts[:, [0, 2]]


def concave_hull(points, hull=None) -> np.ndarray:
    """Grid-closing outline of a point cloud, falling back to ``hull``.

    Args:
        points: (N, 2) projected points.
        hull: Precomputed convex hull; computed when omitted.

    Returns:
        (M, 2) outline; the convex hull when there are fewer than 10 points,
        the cloud is thinner than 1mm in either axis, the closed grid is not
        a single region, or tracing fails.
    """
    pts = as_points(points)
    if hull is None:
        hull = convex_hull(pts)
    if len(pts) < 10 or len(hull) < 3:
        return hull

    min_x, min_z = pts.min(axis=0)
    width, depth = pts.max(axis=0) - pts.min(axis=0)
    if width < 1 or depth < 1:
        return hull

    cell = max(1.5, min(width, depth) / 60.0)
    grid_w = int(np.ceil(width / cell)) + 2 * _GRID_PADDING
    grid_h = int(np.ceil(depth / cell)) + 2 * _GRID_PADDING

    occupancy = np.zeros((grid_h, grid_w), dtype=bool)
    cols = np.floor((pts[:, 0] - min_x) / cell).astype(int) + _GRID_PADDING
    rows = np.floor((pts[:, 1] - min_z) / cell).astype(int) + _GRID_PADDING
    inside = (cols >= 0) & (cols < grid_w) & (rows >= 0) & (rows < grid_h)
    occupancy[rows[inside], cols[inside]] = True

    dilated = ndimage.binary_dilation(occupancy, structure=_CROSS)
    closed = ndimage.binary_erosion(dilated, structure=_CROSS)
    _, components = ndimage.label(closed)
    if components != 1:
        # Sparse vertices (low-poly faces) do not close into one region
        logger.debug("Concave hull: %d grid components, using convex hull", components)
        return hull

    contours = measure.find_contours(closed.astype(float), 0.5)
    if not contours:
        return hull
    # Outermost boundary: the contour enclosing the most area
    contour = max(contours, key=lambda c: polygon_area(c[:, ::-1]))
    if len(contour) < 3:
        return hull

    world = np.column_stack([
        min_x + (contour[:, 1] - _GRID_PADDING + 0.5) * cell,
        min_z + (contour[:, 0] - _GRID_PADDING + 0.5) * cell,
    ])
    simplified = simplify_contour(world, cell * 0.5)
    if len(simplified) < 3:
        return hull
    return simplified


def compute_part_shadow(meshes: Sequence[MeshSnapshot], plate_top_y: float) -> ShadowAnalysis:
    """Project everything above ``plate_top_y`` and summarise its footprint."""
    points = project_vertices(meshes, plate_top_y)
    if len(points) < 3:
        logger.debug("Shadow: only %d vertices above plate", len(points))
        return ShadowAnalysis.empty()

    bounds = (
        float(points[:, 0].min()), float(points[:, 0].max()),
        float(points[:, 1].min()), float(points[:, 1].max()),
    )
    hull = convex_hull(points)
    outline = concave_hull(points, hull)
    if len(outline) < 3:
        return ShadowAnalysis.empty()

    center = vertex_centroid(outline)
    shadow = ShadowAnalysis(
        shadow_hull=to_tuples(outline),
        expanded_shadow=to_tuples(scale_about(outline, center, SHADOW_EXPANSION)),
        bounds=bounds,
        center=center,
        area=polygon_area(outline),
    )
    logger.debug(
        "Shadow: %d hull points from %d vertices, area=%.1fmm2",
        len(outline), len(points), shadow.area,
    )
    return shadow
