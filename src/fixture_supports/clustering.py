"""
Clustering of overhang points on the plate plane.

Clusters are connected components of the "within ``cluster_distance``"
graph, so chains of nearby faces form one elongated cluster even when their
ends are far apart.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import List, Sequence

import numpy as np
from scipy.spatial import cKDTree

from fixture_supports.contracts import OverhangCluster, OverhangPoint

logger = logging.getLogger(__name__)


def analyze_cluster(points: Sequence[OverhangPoint]) -> OverhangCluster:
    """Summarise a non-empty group of points.

    The centroid is area weighted; with zero total area it falls back to the
    bounding-box midpoint.
    """
    if not points:
        raise ValueError("Cannot analyze an empty cluster")
    arr = np.array([(p.x, p.y, p.z, p.area) for p in points], dtype=float)
    xs, ys, zs, areas = arr[:, 0], arr[:, 1], arr[:, 2], arr[:, 3]

    min_x, max_x = float(xs.min()), float(xs.max())
    min_z, max_z = float(zs.min()), float(zs.max())
    width = max_x - min_x
    depth = max_z - min_z
    total = float(areas.sum())

    if total > 0:
        cx = float(np.dot(xs, areas) / total)
        cz = float(np.dot(zs, areas) / total)
    else:
        cx = (min_x + max_x) / 2.0
        cz = (min_z + max_z) / 2.0

    return OverhangCluster(
        points=tuple(points),
        centroid_x=cx,
        centroid_z=cz,
        min_y=float(ys.min()),
        max_y=float(ys.max()),
        bounding_box=(min_x, max_x, min_z, max_z),
        width=width,
        depth=depth,
        aspect_ratio=max(width, 1.0) / max(depth, 1.0),
        total_area=total,
    )


def cluster_overhang_points(
    points: Sequence[OverhangPoint],
    cluster_distance: float,
) -> List[OverhangCluster]:
    """Group points whose planar distance chains within ``cluster_distance``.

    Membership depends only on the point set, not on its order; clusters are
    emitted in order of their first member in ``points``.
    """
    if not points:
        return []
    xz = np.array([(p.x, p.z) for p in points], dtype=float)
    tree = cKDTree(xz)
    neighbours = tree.query_ball_point(xz, r=cluster_distance)

    assigned = np.zeros(len(points), dtype=bool)
    clusters: List[OverhangCluster] = []
    for seed in range(len(points)):
        if assigned[seed]:
            continue
        assigned[seed] = True
        members = [seed]
        queue = deque([seed])
        while queue:
            current = queue.popleft()
            for k in neighbours[current]:
                if not assigned[k]:
                    assigned[k] = True
                    members.append(k)
                    queue.append(k)
        clusters.append(analyze_cluster([points[i] for i in members]))

    logger.debug(
        "Clustered %d points into %d cluster(s) at %.1fmm",
        len(points), len(clusters), cluster_distance,
    )
    return clusters


def subdivide_cluster(cluster: OverhangCluster, max_span: float) -> List[OverhangCluster]:
    """Split a cluster wider than ``max_span`` over a regular grid.

    The grid has ``ceil(width / max_span) x ceil(depth / max_span)`` cells;
    only non-empty cells become sub-clusters.
    """
    if cluster.max_dimension <= max_span:
        return [cluster]

    nx = max(1, math.ceil(cluster.width / max_span))
    nz = max(1, math.ceil(cluster.depth / max_span))
    if nx * nz <= 1:
        return [cluster]

    min_x, _, min_z, _ = cluster.bounding_box
    cell_w = cluster.width / nx
    cell_d = cluster.depth / nz

    buckets: List[List[OverhangPoint]] = [[] for _ in range(nx * nz)]
    for p in cluster.points:
        ix = min(nx - 1, int((p.x - min_x) // cell_w)) if cell_w > 0 else 0
        iz = min(nz - 1, int((p.z - min_z) // cell_d)) if cell_d > 0 else 0
        buckets[iz * nx + ix].append(p)

    subclusters = [analyze_cluster(b) for b in buckets if b]
    logger.debug(
        "Subdivided %.1fx%.1fmm cluster into %d cell(s) (%dx%d grid)",
        cluster.width, cluster.depth, len(subclusters), nx, nz,
    )
    return subclusters or [cluster]


def subdivide_all(clusters: Sequence[OverhangCluster], max_span: float) -> List[OverhangCluster]:
    result: List[OverhangCluster] = []
    for cluster in clusters:
        result.extend(subdivide_cluster(cluster, max_span))
    return result
