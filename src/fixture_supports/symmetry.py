"""
Mirror-symmetry detection and symmetric support spacing.

Positions are arc-length fractions in [0, 1) along the silhouette perimeter.
"""

from __future__ import annotations

import logging
import math
from typing import List

import numpy as np
from scipy.spatial import cKDTree

from fixture_supports.contracts import SymmetryAnalysis, Vec2
from fixture_supports.geometry import PerimeterPath, as_points

logger = logging.getLogger(__name__)

SYMMETRY_THRESHOLD = 0.70
OFFSET_SAMPLES = 100
OFFSET_STEP = 0.01


def _axis_score(perimeter: np.ndarray, reflected: np.ndarray, tolerance: float) -> float:
    tree = cKDTree(perimeter)
    dist, _ = tree.query(reflected, k=1)
    return float(np.count_nonzero(dist <= tolerance)) / len(perimeter)


def detect_symmetry(
    perimeter,
    center: Vec2,
    tolerance_ratio: float = 0.15,
) -> SymmetryAnalysis:
    """Score mirror symmetry about the lines through ``center``.

    ``x_symmetry_score`` reflects across the line ``z = center.z`` (flipping
    z); ``z_symmetry_score`` reflects across ``x = center.x`` (flipping x).
    Each score is the fraction of reflected points whose nearest perimeter
    point is within ``tolerance_ratio`` of the mean extent.
    """
    pts = as_points(perimeter)
    center = (float(center[0]), float(center[1]))
    if len(pts) < 4:
        return SymmetryAnalysis(False, False, center, 0.0, 0.0)

    extent = pts.max(axis=0) - pts.min(axis=0)
    tolerance = float(extent.mean()) * tolerance_ratio

    flip_z = pts.copy()
    flip_z[:, 1] = 2 * center[1] - pts[:, 1]
    flip_x = pts.copy()
    flip_x[:, 0] = 2 * center[0] - pts[:, 0]

    x_score = _axis_score(pts, flip_z, tolerance)
    z_score = _axis_score(pts, flip_x, tolerance)
    logger.debug(
        "Symmetry: %d points, tolerance=%.1fmm, x=%.0f%% z=%.0f%%",
        len(pts), tolerance, x_score * 100, z_score * 100,
    )
    return SymmetryAnalysis(
        is_x_symmetric=x_score >= SYMMETRY_THRESHOLD,
        is_z_symmetric=z_score >= SYMMETRY_THRESHOLD,
        center=center,
        x_symmetry_score=x_score,
        z_symmetry_score=z_score,
    )


def _uniform(count: int) -> List[float]:
    return [i / count for i in range(count)]


def _normalize(positions) -> List[float]:
    return sorted(p % 1.0 for p in positions)


def axis_crossings(path: PerimeterPath, center: Vec2, axis: str) -> List[float]:
    """Sorted perimeter fractions where the outline crosses a symmetry line.

    For ``axis='x'`` the line is ``z = center.z``; for ``axis='z'`` it is
    ``x = center.x``.
    """
    coord = 1 if axis == "x" else 0
    line = center[coord]
    pts = path.points
    n = len(pts)
    crossings = []
    for i in range(n):
        a = pts[i, coord] - line
        b = pts[(i + 1) % n, coord] - line
        if a == 0 and b != 0:
            crossings.append(float(path.cumulative[i] / path.total_length))
        elif a * b < 0:
            t = -a / (b - a)
            pos = path.cumulative[i] + t * path.edge_lengths[i]
            crossings.append(float(pos / path.total_length))
    return sorted(crossings)


def single_axis_positions(
    path: PerimeterPath,
    center: Vec2,
    count: int,
    axis: str,
) -> List[float]:
    crossings = axis_crossings(path, center, axis)
    logger.debug("Symmetry: %d %s-axis crossing(s)", len(crossings), axis)
    if len(crossings) < 2:
        return _uniform(count)

    first, second = crossings[0], crossings[1]
    half1 = second - first
    half2 = 1.0 - half1
    positions: List[float] = []

    if count == 4:
        o1, o2 = half1 / 4, half2 / 4
        positions = [first + o1, first + half1 - o1, second + o2, second + half2 - o2]
    elif count == 5:
        o1, o2 = half1 / 3, half2 / 3
        positions = [first, first + o1, first + 2 * o1, second + o2, second + 2 * o2]
    elif count == 6:
        o1, o2 = half1 / 4, half2 / 4
        positions = [first + k * o1 for k in (1, 2, 3)] + [second + k * o2 for k in (1, 2, 3)]
    else:
        per_half = count // 2
        for i in range(per_half):
            positions.append(first + (i + 0.5) / per_half * half1)
        for i in range(per_half):
            positions.append(second + (i + 0.5) / per_half * half2)
        if count % 2:
            positions.append(first)
    return _normalize(positions)


def find_best_symmetric_offset(
    path: PerimeterPath,
    center: Vec2,
    base_positions: List[float],
) -> float:
    """Phase offset that puts supports furthest from the center on average.

    Scans offsets 0.00, 0.01, ... 0.99 against a 100-sample distance profile;
    the first maximum wins.
    """
    if not base_positions:
        return 0.0
    samples = np.array([
        path.point_at_fraction(i / OFFSET_SAMPLES) for i in range(OFFSET_SAMPLES)
    ])
    profile = np.hypot(samples[:, 0] - center[0], samples[:, 1] - center[1])
    base = np.asarray(base_positions, dtype=float)

    best_offset, best_score = 0.0, -math.inf
    for step in range(int(round(1.0 / OFFSET_STEP))):
        offset = step * OFFSET_STEP
        idx = np.floor(((base + offset) % 1.0) * OFFSET_SAMPLES).astype(int) % OFFSET_SAMPLES
        score = float(profile[idx].sum())
        if score > best_score:
            best_score = score
            best_offset = offset
    return best_offset


def dual_axis_positions(path: PerimeterPath, center: Vec2, count: int) -> List[float]:
    if count == 4:
        base = [0.0, 0.25, 0.5, 0.75]
    else:
        base = _uniform(count)
    offset = find_best_symmetric_offset(path, center, base)
    return _normalize(p + offset for p in base)


def generate_symmetric_support_positions(
    perimeter,
    center: Vec2,
    symmetry: SymmetryAnalysis,
    count: int,
) -> List[float]:
    """Sorted perimeter fractions for ``count`` supports."""
    pts = as_points(perimeter)
    if len(pts) < 3 or count < 1:
        return []
    path = PerimeterPath(pts)
    if path.total_length <= 0:
        return _uniform(count)

    if symmetry.is_x_symmetric and not symmetry.is_z_symmetric:
        logger.debug("Symmetry: x-axis placement")
        return single_axis_positions(path, center, count, "x")
    if symmetry.is_z_symmetric and not symmetry.is_x_symmetric:
        logger.debug("Symmetry: z-axis placement")
        return single_axis_positions(path, center, count, "z")
    if symmetry.is_x_symmetric and symmetry.is_z_symmetric:
        logger.debug("Symmetry: dual-axis placement")
        return dual_axis_positions(path, center, count)
    logger.debug("Symmetry: none, even spacing")
    return _uniform(count)
