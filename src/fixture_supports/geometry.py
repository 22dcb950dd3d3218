"""
2D geometry primitives on the plate plane.

Points are ``(x, z)`` pairs; polygons are ``(N, 2)`` float arrays without a
repeated closing vertex. Heavy lifting (Douglas-Peucker, buffering, validity)
is delegated to shapely.
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Tuple

import numpy as np
from shapely.geometry import LinearRing, LineString, MultiPoint, Point, Polygon
from shapely.validation import explain_validity

from fixture_supports.contracts import Bounds2D, Vec2

logger = logging.getLogger(__name__)


def as_points(points) -> np.ndarray:
    """Coerce a sequence of (x, z) pairs to an ``(N, 2)`` float array."""
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return np.zeros((0, 2))
    return arr.reshape(-1, 2)


def to_tuples(points) -> Tuple[Vec2, ...]:
    return tuple((float(x), float(z)) for x, z in as_points(points))


# ─── Hulls and areas ─────────────────────────────────────────────────────────


def _cross(o, a, b) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def convex_hull(points) -> np.ndarray:
    """Monotone-chain convex hull, counter-clockwise.

    Duplicates (to 1e-6) are dropped and collinear points are removed. With
    fewer than three distinct points the distinct points are returned as-is.
    """
    pts = as_points(points)
    if len(pts) == 0:
        return pts
    keys = np.round(pts, 6)
    _, first = np.unique(keys, axis=0, return_index=True)
    unique = pts[np.sort(first)]
    order = np.lexsort((unique[:, 1], unique[:, 0]))
    ordered = [tuple(p) for p in unique[order]]
    if len(ordered) < 3:
        return np.asarray(ordered, dtype=float).reshape(-1, 2)

    lower: List[tuple] = []
    for p in ordered:
        while len(lower) >= 2 and _cross(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)

    upper: List[tuple] = []
    for p in reversed(ordered):
        while len(upper) >= 2 and _cross(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)

    hull = lower[:-1] + upper[:-1]
    return np.asarray(hull, dtype=float).reshape(-1, 2)


def signed_area(polygon) -> float:
    """Shoelace area; positive for counter-clockwise rings."""
    pts = as_points(polygon)
    if len(pts) < 3:
        return 0.0
    x, z = pts[:, 0], pts[:, 1]
    return 0.5 * float(np.dot(x, np.roll(z, -1)) - np.dot(np.roll(x, -1), z))


def polygon_area(polygon) -> float:
    return abs(signed_area(polygon))


def polygon_bounds(polygon) -> Bounds2D:
    pts = as_points(polygon)
    if len(pts) == 0:
        return (0.0, 0.0, 0.0, 0.0)
    return (
        float(pts[:, 0].min()), float(pts[:, 0].max()),
        float(pts[:, 1].min()), float(pts[:, 1].max()),
    )


def vertex_centroid(polygon) -> Vec2:
    """Mean of the vertices (not the area centroid)."""
    pts = as_points(polygon)
    if len(pts) == 0:
        return (0.0, 0.0)
    mean = pts.mean(axis=0)
    return (float(mean[0]), float(mean[1]))


def perimeter_length(polygon) -> float:
    pts = as_points(polygon)
    if len(pts) < 2:
        return 0.0
    return float(np.linalg.norm(np.roll(pts, -1, axis=0) - pts, axis=1).sum())


def scale_about(polygon, center: Vec2, factor: float) -> np.ndarray:
    pts = as_points(polygon)
    c = np.asarray(center, dtype=float)
    return c + (pts - c) * factor


# ─── Simplification ──────────────────────────────────────────────────────────


def douglas_peucker(points, tolerance: float) -> np.ndarray:
    """Douglas-Peucker on an open polyline; endpoints are always kept."""
    pts = as_points(points)
    if len(pts) <= 2 or tolerance <= 0:
        return pts.copy()
    simplified = LineString(pts).simplify(tolerance, preserve_topology=False)
    coords = np.asarray(simplified.coords, dtype=float).reshape(-1, 2)
    if len(coords) < 2:
        return pts[[0, -1]]
    return coords


def simplify_contour(points, tolerance: float) -> np.ndarray:
    """Douglas-Peucker on a closed contour, dropping any closing duplicate."""
    pts = as_points(points)
    if len(pts) > 1 and np.allclose(pts[0], pts[-1]):
        pts = pts[:-1]
    simplified = douglas_peucker(pts, tolerance)
    if len(simplified) > 1 and np.allclose(simplified[0], simplified[-1]):
        simplified = simplified[:-1]
    return simplified


def simplify_polygon(polygon, min_edge_length: float = 5.0) -> np.ndarray:
    """Drop vertices closer than ``min_edge_length`` to the previous kept one.

    Returns the input unchanged when fewer than three vertices would survive.
    """
    pts = as_points(polygon)
    if len(pts) < 3 or min_edge_length <= 0:
        return pts.copy()
    kept = [pts[0]]
    for p in pts[1:]:
        if math.hypot(p[0] - kept[-1][0], p[1] - kept[-1][1]) >= min_edge_length:
            kept.append(p)
    if len(kept) > 2:
        if math.hypot(kept[-1][0] - kept[0][0], kept[-1][1] - kept[0][1]) < min_edge_length:
            kept.pop()
    if len(kept) < 3:
        return pts.copy()
    return np.asarray(kept, dtype=float)


def simplify_polygon_to_max_edge(polygon, max_length: float = 5.0) -> np.ndarray:
    """Thin a dense hull: spacing pre-filter, then Douglas-Peucker.

    Polygons with four or fewer vertices are returned unchanged. If the first
    Douglas-Peucker pass leaves more than 12 vertices it is repeated at 1.5x
    tolerance.
    """
    pts = as_points(polygon)
    if len(pts) <= 4:
        return pts.copy()

    min_spacing = max_length * 0.3
    filtered = [pts[0]]
    for p in pts[1:]:
        if math.hypot(p[0] - filtered[-1][0], p[1] - filtered[-1][1]) >= min_spacing:
            filtered.append(p)
    if len(filtered) < 4:
        return pts.copy()
    filtered = np.asarray(filtered, dtype=float)

    tolerance = max_length * 0.5
    simplified = douglas_peucker(filtered, tolerance)
    if len(simplified) < 4:
        return filtered
    if len(simplified) > 12:
        return douglas_peucker(simplified, tolerance * 1.5)
    return simplified


# ─── Distances ───────────────────────────────────────────────────────────────


def point_segment_distance(point: Vec2, a: Vec2, b: Vec2) -> float:
    dx, dz = b[0] - a[0], b[1] - a[1]
    length_sq = dx * dx + dz * dz
    if length_sq == 0:
        return math.hypot(point[0] - a[0], point[1] - a[1])
    t = ((point[0] - a[0]) * dx + (point[1] - a[1]) * dz) / length_sq
    t = max(0.0, min(1.0, t))
    return math.hypot(point[0] - (a[0] + t * dx), point[1] - (a[1] + t * dz))


def distance_to_polygon_boundary(point: Vec2, polygon) -> float:
    """Distance from ``point`` to the nearest edge of a closed polygon."""
    pts = as_points(polygon)
    if len(pts) == 0:
        return math.inf
    if len(pts) == 1:
        return math.hypot(point[0] - pts[0, 0], point[1] - pts[0, 1])
    if len(pts) == 2:
        return point_segment_distance(point, pts[0], pts[1])
    return float(LinearRing(pts).distance(Point(point)))


def point_in_polygon(point: Vec2, polygon) -> bool:
    pts = as_points(polygon)
    if len(pts) < 3:
        return False
    return bool(Polygon(pts).contains(Point(point)))


# ─── Offsetting and widths ───────────────────────────────────────────────────


def offset_polygon(polygon, offset: float) -> np.ndarray:
    """Grow the convex hull of ``polygon`` by ``offset`` with rounded corners.

    Degenerate input (a point or a collinear run) grows into a disc or a
    stadium. The result is convex, so it can never self-intersect.
    """
    pts = as_points(polygon)
    if len(pts) == 0 or offset <= 0:
        return pts.copy()
    grown = MultiPoint([tuple(p) for p in pts]).convex_hull.buffer(offset, quad_segs=4)
    if grown.is_empty or grown.geom_type != "Polygon":
        return pts.copy()
    outline = np.asarray(grown.exterior.coords, dtype=float)[:-1]
    return convex_hull(outline)


def calculate_min_polygon_width(polygon) -> float:
    """Approximate minimum width from four projection directions.

    Checks the bounding box extents plus the 45 and 135 degree projected
    widths; this is not a true rotating-calipers minimum.
    """
    pts = as_points(polygon)
    if len(pts) < 3:
        return 0.0
    extent = pts.max(axis=0) - pts.min(axis=0)
    min_width = float(min(extent[0], extent[1]))
    for angle in (math.pi / 4, 3 * math.pi / 4):
        proj = pts[:, 0] * -math.sin(angle) + pts[:, 1] * math.cos(angle)
        min_width = min(min_width, float(proj.max() - proj.min()))
    return min_width


# ─── Validation ──────────────────────────────────────────────────────────────


def is_polygon_simple(polygon) -> bool:
    pts = as_points(polygon)
    if len(pts) < 3:
        return False
    return bool(LinearRing(pts).is_simple)


def ensure_clockwise(polygon) -> np.ndarray:
    pts = as_points(polygon)
    if signed_area(pts) > 0:
        return np.vstack([pts[:1], pts[:0:-1]])
    return pts.copy()


def validate_polygon(polygon, min_edge_length: float = 0.5) -> Optional[np.ndarray]:
    """Clean a footprint for downstream extrusion.

    Collapses near-duplicate vertices, rejects rings with fewer than three
    vertices and returns a clockwise ring. Self-intersections are logged but
    left for the caller to decide on.
    """
    pts = as_points(polygon)
    if len(pts) < 3:
        return None
    cleaned = [pts[0]]
    for p in pts[1:]:
        if math.hypot(p[0] - cleaned[-1][0], p[1] - cleaned[-1][1]) >= min_edge_length:
            cleaned.append(p)
    if len(cleaned) > 2 and math.hypot(
        cleaned[-1][0] - cleaned[0][0], cleaned[-1][1] - cleaned[0][1]
    ) < min_edge_length:
        cleaned.pop()
    if len(cleaned) < 3:
        return None
    result = np.asarray(cleaned, dtype=float)
    if not is_polygon_simple(result):
        logger.warning(
            "Polygon is self-intersecting: %s", explain_validity(Polygon(result))
        )
    return ensure_clockwise(result)


# ─── Perimeter arc-length parameterisation ───────────────────────────────────


class PerimeterPath:
    """Closed polyline addressed by arc length.

    Positions wrap modulo the total length, so callers may step past either
    end of the perimeter.
    """

    def __init__(self, points):
        pts = as_points(points)
        if len(pts) < 2:
            raise ValueError("PerimeterPath needs at least two points")
        self.points = pts
        edges = np.roll(pts, -1, axis=0) - pts
        self.edge_lengths = np.linalg.norm(edges, axis=1)
        self.cumulative = np.concatenate([[0.0], np.cumsum(self.edge_lengths)[:-1]])
        self.total_length = float(self.edge_lengths.sum())

    def __len__(self) -> int:
        return len(self.points)

    def point_at(self, position: float) -> np.ndarray:
        if self.total_length <= 0:
            return self.points[0].copy()
        pos = position % self.total_length
        idx = int(np.searchsorted(self.cumulative, pos, side="right") - 1)
        idx = min(max(idx, 0), len(self.points) - 1)
        length = self.edge_lengths[idx]
        t = (pos - self.cumulative[idx]) / length if length > 0.001 else 0.0
        p1 = self.points[idx]
        p2 = self.points[(idx + 1) % len(self.points)]
        return p1 + t * (p2 - p1)

    def point_at_fraction(self, fraction: float) -> np.ndarray:
        return self.point_at(fraction * self.total_length)

    def normal_at(self, position: float, center: Vec2) -> Optional[np.ndarray]:
        """Unit normal at ``position`` pointing away from ``center``.

        Uses a +/-1 unit finite difference; returns None where the tangent
        collapses.
        """
        prev_pt = self.point_at(position - 1.0)
        next_pt = self.point_at(position + 1.0)
        tangent = next_pt - prev_pt
        length = float(np.hypot(tangent[0], tangent[1]))
        if length < 0.001:
            return None
        normal = np.array([-tangent[1], tangent[0]]) / length
        to_center = np.asarray(center, dtype=float) - self.point_at(position)
        if float(np.dot(normal, to_center)) > 0:
            normal = -normal
        return normal
