"""
Support polygon generation.

Three kinds of footprint are produced here:

1. Boundary-straddling supports: spaced around the silhouette, each reaching
   both outside the outline and into the part so it grips the edge.
2. Interior overhang supports: a small inflated hull under an overhang
   cluster far from the perimeter, never larger than the boundary supports.
3. Per-cluster supports: padded hull of an overhang cluster, used by the
   ``overhang`` placement strategy.

All supports store their polygon relative to ``center``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from fixture_supports.contracts import (
    CustomSupport,
    OverhangCluster,
    PlacementConfig,
    SymmetryAnalysis,
    Vec2,
)
from fixture_supports.diagnostics import NULL_DIAGNOSTICS, Diagnostics
from fixture_supports.geometry import (
    PerimeterPath,
    as_points,
    convex_hull,
    offset_polygon,
    polygon_area,
    polygon_bounds,
    simplify_polygon,
    simplify_polygon_to_max_edge,
    to_tuples,
    validate_polygon,
    vertex_centroid,
)
from fixture_supports.symmetry import detect_symmetry, generate_symmetric_support_positions

logger = logging.getLogger(__name__)

SUPPORT_ARC_FRACTION = 0.40  # share of each perimeter segment under a support
SAMPLE_INTERVAL = 10.0
SAMPLE_END_CLEARANCE = 3.0
MAX_EDGE_LENGTH = 5.0
MIN_EDGE_LENGTH = 5.0
PERIMETER_CLEARANCE = 15.0
INTERIOR_SIZE_RATIO = 0.6
INTERIOR_INFLATION_RATIO = 0.3


@dataclass(frozen=True)
class SupportDepths:
    """How far boundary supports reach into and out of the silhouette."""

    inward: float
    outward: float
    smallest_dimension: float
    perimeter_length: float
    support_arc: float

    @property
    def perimeter_coverage(self) -> float:
        """Interior overhangs closer than this to the outline are skipped."""
        return self.inward + self.outward + PERIMETER_CLEARANCE

    @property
    def interior_max_size(self) -> float:
        return self.inward * INTERIOR_SIZE_RATIO


def support_count(config: PlacementConfig) -> int:
    return max(config.min_support_count, min(config.max_support_count, config.target_support_count))


def compute_support_depths(perimeter, count: int) -> SupportDepths:
    """Inward and outward reach for ``count`` supports around ``perimeter``.

    Inward reach is 35% of the smaller part dimension, capped at 50mm and at
    half the support's own arc width, with an 8mm floor. Outward reach is
    10% of the smaller dimension clamped to [5, 20]mm.
    """
    pts = as_points(perimeter)
    min_x, max_x, min_z, max_z = polygon_bounds(pts)
    smallest = min(max_x - min_x, max_z - min_z)
    path = PerimeterPath(pts)
    arc = path.total_length / max(count, 1) * SUPPORT_ARC_FRACTION

    inward = max(8.0, min(smallest * 0.35, 50.0, arc / 2.0))
    outward = max(5.0, min(20.0, smallest * 0.10))
    return SupportDepths(
        inward=inward,
        outward=outward,
        smallest_dimension=smallest,
        perimeter_length=path.total_length,
        support_arc=arc,
    )


def make_support(
    support_id: str,
    world_polygon,
    height: float,
    plate_top_y: float,
    config: PlacementConfig,
    center: Optional[Vec2] = None,
    diagnostics: Diagnostics = NULL_DIAGNOSTICS,
) -> Optional[CustomSupport]:
    """Build a support from a world-space ring, centred on its vertex mean by default.

    The ring is cleaned and wound clockwise first; ``None`` is returned when
    fewer than three distinct vertices survive.
    """
    pts = validate_polygon(world_polygon)
    if pts is None:
        diagnostics.emit("support", "dropped: degenerate footprint", id=support_id)
        return None
    if center is None:
        center = vertex_centroid(pts)
    local = pts - np.asarray(center, dtype=float)
    return CustomSupport(
        id=support_id,
        center=(float(center[0]), float(center[1])),
        height=float(height),
        base_y=float(plate_top_y),
        polygon=to_tuples(local),
        contact_offset=config.contact_offset,
        corner_radius=config.corner_radius,
    )


def footprint_cluster(support: CustomSupport) -> OverhangCluster:
    """Describe a support footprint as a point-less cluster for reporting."""
    world = support.world_polygon()
    min_x, max_x, min_z, max_z = polygon_bounds(world)
    top = support.base_y + support.height
    return OverhangCluster(
        points=(),
        centroid_x=support.center[0],
        centroid_z=support.center[1],
        min_y=top,
        max_y=top,
        bounding_box=(min_x, max_x, min_z, max_z),
        width=max_x - min_x,
        depth=max_z - min_z,
        aspect_ratio=1.0,
        total_area=polygon_area(support.polygon),
    )


# ─── Boundary-straddling supports ────────────────────────────────────────────


def create_boundary_straddling_supports(
    perimeter,
    center: Vec2,
    height: float,
    plate_top_y: float,
    config: PlacementConfig,
    depths: Optional[SupportDepths] = None,
    symmetry: Optional[SymmetryAnalysis] = None,
    diagnostics: Diagnostics = NULL_DIAGNOSTICS,
) -> List[CustomSupport]:
    """Place supports that grip the silhouette edge.

    Positions come from the symmetry analysis; each support covers the
    central 40% of its perimeter segment. Supports whose footprint cannot
    be built are skipped.
    """
    pts = as_points(perimeter)
    if len(pts) < 3:
        return []
    count = support_count(config)
    path = PerimeterPath(pts)
    if path.total_length <= 0:
        return []
    depths = depths or compute_support_depths(pts, count)
    symmetry = symmetry or detect_symmetry(pts, center)
    positions = generate_symmetric_support_positions(pts, center, symmetry, count)

    inward, outward = depths.inward, depths.outward
    perp_radius = min(inward, outward) * 0.5
    arc = depths.support_arc
    diagnostics.emit(
        "boundary", "layout",
        perimeter=round(depths.perimeter_length, 2), count=count,
        smallest=round(depths.smallest_dimension, 2),
        inward=round(inward, 2), outward=round(outward, 2),
        x_symmetric=symmetry.is_x_symmetric, z_symmetric=symmetry.is_z_symmetric,
        positions=[round(p, 4) for p in positions],
    )

    supports: List[CustomSupport] = []
    for i in range(count):
        fraction = positions[i] if i < len(positions) else i / count
        mid = fraction * path.total_length
        start, end = mid - arc / 2.0, mid + arc / 2.0

        start_normal = path.normal_at(start, center)
        end_normal = path.normal_at(end, center)
        if start_normal is None or end_normal is None:
            diagnostics.emit("boundary", "skipped: degenerate normal", index=i)
            continue

        candidates = []
        for pos, normal in ((start, start_normal), (end, end_normal)):
            point = path.point_at(pos)
            perp = np.array([-normal[1], normal[0]])
            candidates.extend([
                point + normal * outward,
                point - normal * inward,
                point + perp * perp_radius,
                point - perp * perp_radius,
            ])

        n_samples = max(1, int(math.floor(arc / SAMPLE_INTERVAL)))
        for s in range(1, n_samples):
            pos = start + s * SAMPLE_INTERVAL
            if pos <= start + SAMPLE_END_CLEARANCE or pos >= end - SAMPLE_END_CLEARANCE:
                continue
            normal = path.normal_at(pos, center)
            if normal is None:
                continue
            point = path.point_at(pos)
            candidates.extend([point + normal * outward, point - normal * inward])

        if len(candidates) < 6:
            diagnostics.emit("boundary", "skipped: too few points", index=i, points=len(candidates))
            continue
        hull = convex_hull(candidates)
        if len(hull) < 3:
            diagnostics.emit("boundary", "skipped: degenerate hull", index=i)
            continue
        hull = simplify_polygon_to_max_edge(hull, MAX_EDGE_LENGTH)

        support = make_support(
            f"sup-boundary-{i}", hull, height, plate_top_y, config, diagnostics=diagnostics,
        )
        if support is not None:
            supports.append(support)

    logger.debug("Created %d of %d boundary supports", len(supports), count)
    return supports


# ─── Interior and per-cluster supports ───────────────────────────────────────


def _regular_polygon(center: Vec2, radius: float, sides: int = 8) -> np.ndarray:
    angles = np.arange(sides) * (2 * math.pi / sides)
    return np.column_stack([
        center[0] + np.cos(angles) * radius,
        center[1] + np.sin(angles) * radius,
    ])


def cluster_support_height(cluster: OverhangCluster, plate_top_y: float, config: PlacementConfig) -> float:
    return max(1.0, cluster.min_y - plate_top_y - config.contact_offset)


def create_inflated_overhang_support(
    cluster: OverhangCluster,
    plate_top_y: float,
    config: PlacementConfig,
    index: int,
    inflation: float,
    max_size: Optional[float] = None,
    diagnostics: Diagnostics = NULL_DIAGNOSTICS,
) -> Optional[CustomSupport]:
    """Inflated hull of an interior overhang cluster, capped at ``max_size``.

    ``max_size`` bounds the half-extent of the footprint; clusters with
    fewer than three points get an octagon instead.
    """
    height = cluster_support_height(cluster, plate_top_y, config)
    support_id = f"sup-overhang-{index}"
    effective_max = max_size or (cluster.max_dimension + inflation)
    centroid = (cluster.centroid_x, cluster.centroid_z)

    def octagon() -> Optional[CustomSupport]:
        base = cluster.max_dimension / 2.0 + inflation
        size = max(config.min_support_size, min(base, effective_max))
        ring = _regular_polygon((0.0, 0.0), size) + np.asarray(centroid)
        return make_support(
            support_id, ring, height, plate_top_y, config, center=centroid, diagnostics=diagnostics,
        )

    if len(cluster.points) < 3:
        return octagon()

    hull = convex_hull([(p.x, p.z) for p in cluster.points])
    inflated = offset_polygon(hull, inflation)
    if len(inflated) < 3:
        return octagon()

    min_x, max_x, min_z, max_z = polygon_bounds(inflated)
    current = max(max_x - min_x, max_z - min_z) / 2.0
    if max_size and current > max_size:
        mid = np.array([(min_x + max_x) / 2.0, (min_z + max_z) / 2.0])
        inflated = mid + (inflated - mid) * (max_size / current)

    ring = simplify_polygon(inflated, MIN_EDGE_LENGTH)
    return make_support(support_id, ring, height, plate_top_y, config, diagnostics=diagnostics)


def create_cluster_support(
    cluster: OverhangCluster,
    plate_top_y: float,
    config: PlacementConfig,
    index: int,
    diagnostics: Diagnostics = NULL_DIAGNOSTICS,
) -> Optional[CustomSupport]:
    """Padded hull of a whole overhang cluster, centred on its centroid.

    Falls back to a square for tiny clusters and to the padded bounding box
    when the hull is degenerate.
    """
    height = cluster_support_height(cluster, plate_top_y, config)
    support_id = f"sup-overhang-{index}"
    centroid = (cluster.centroid_x, cluster.centroid_z)
    pad = config.support_padding

    if len(cluster.points) < 3:
        size = max(config.min_support_size, min(config.max_support_size, cluster.max_dimension / 2.0 + pad))
        ring = np.array([[-size, -size], [size, -size], [size, size], [-size, size]]) + np.asarray(centroid)
    else:
        hull = convex_hull([(p.x, p.z) for p in cluster.points])
        if len(hull) >= 3:
            ring = simplify_polygon(offset_polygon(hull, pad), MIN_EDGE_LENGTH)
        else:
            half_w = max(config.min_support_size, cluster.width / 2.0 + pad)
            half_d = max(config.min_support_size, cluster.depth / 2.0 + pad)
            box = np.array([[-half_w, -half_d], [half_w, -half_d], [half_w, half_d], [-half_w, half_d]])
            ring = box + np.asarray(centroid)
    return make_support(
        support_id, ring, height, plate_top_y, config, center=centroid, diagnostics=diagnostics,
    )
