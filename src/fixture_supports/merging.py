"""
Overlap merging and thin-support filtering.

Overlapping supports form a graph; each connected component is replaced by
the convex hull of all its members. Merging repeats until no two supports
overlap, so running it again on its own output changes nothing.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from typing import List, Optional, Sequence

import numpy as np

from fixture_supports.contracts import CustomSupport, PlacementConfig
from fixture_supports.generator import MIN_EDGE_LENGTH, make_support
from fixture_supports.geometry import (
    calculate_min_polygon_width,
    convex_hull,
    polygon_bounds,
    simplify_polygon,
)

logger = logging.getLogger(__name__)

MAX_MERGE_PASSES = 32


def supports_overlap(a: CustomSupport, b: CustomSupport, merge_distance: float) -> bool:
    """Bounding boxes within ``merge_distance`` or centres closer than their radii.

    A support's radius is the half-diagonal of its footprint's bounding box.
    """
    a_min_x, a_max_x, a_min_z, a_max_z = polygon_bounds(a.world_polygon())
    b_min_x, b_max_x, b_min_z, b_max_z = polygon_bounds(b.world_polygon())

    boxes_overlap = not (
        a_max_x + merge_distance < b_min_x
        or b_max_x + merge_distance < a_min_x
        or a_max_z + merge_distance < b_min_z
        or b_max_z + merge_distance < a_min_z
    )
    if boxes_overlap:
        return True

    r_a = math.hypot(a_max_x - a_min_x, a_max_z - a_min_z) / 2.0
    r_b = math.hypot(b_max_x - b_min_x, b_max_z - b_min_z) / 2.0
    dist = math.hypot(a.center[0] - b.center[0], a.center[1] - b.center[1])
    return dist < r_a + r_b - merge_distance


def overlap_groups(supports: Sequence[CustomSupport], merge_distance: float) -> List[List[int]]:
    """Connected components of the overlap graph, in first-member order."""
    n = len(supports)
    adjacency = [[] for _ in range(n)]
    for i in range(n):
        for j in range(i + 1, n):
            if supports_overlap(supports[i], supports[j], merge_distance):
                adjacency[i].append(j)
                adjacency[j].append(i)

    visited = [False] * n
    groups: List[List[int]] = []
    for i in range(n):
        if visited[i]:
            continue
        visited[i] = True
        group = []
        queue = deque([i])
        while queue:
            current = queue.popleft()
            group.append(current)
            for j in adjacency[current]:
                if not visited[j]:
                    visited[j] = True
                    queue.append(j)
        groups.append(group)
    return groups


def merge_group(
    members: Sequence[CustomSupport],
    support_id: str,
    config: PlacementConfig,
) -> Optional[CustomSupport]:
    world = np.vstack([s.world_polygon() for s in members])
    hull = simplify_polygon(convex_hull(world), MIN_EDGE_LENGTH)
    height = max(s.height for s in members)
    return make_support(support_id, hull, height, members[0].base_y, config)


def merge_overlapping_supports(
    supports: Sequence[CustomSupport],
    config: PlacementConfig,
    merge_distance: Optional[float] = None,
) -> List[CustomSupport]:
    """Merge overlapping supports until none overlap."""
    if merge_distance is None:
        merge_distance = config.merge_distance
    current = list(supports)
    merged_count = 0
    for _ in range(MAX_MERGE_PASSES):
        if len(current) <= 1:
            break
        groups = overlap_groups(current, merge_distance)
        if all(len(g) == 1 for g in groups):
            break
        result: List[CustomSupport] = []
        for group in groups:
            if len(group) == 1:
                result.append(current[group[0]])
                continue
            logger.debug("Merging %d overlapping supports", len(group))
            members = [current[i] for i in group]
            merged = merge_group(members, f"sup-merged-{merged_count}", config)
            if merged is None:
                logger.warning("Merged footprint of %s collapsed", [s.id for s in members])
                result.extend(members)
                continue
            result.append(merged)
            merged_count += 1
        current = result
    else:
        logger.warning("Support merge did not converge in %d passes", MAX_MERGE_PASSES)
    return current


def filter_thin_supports(
    supports: Sequence[CustomSupport],
    min_width: float = 10.0,
) -> List[CustomSupport]:
    """Drop supports narrower than ``min_width`` in any sampled direction."""
    kept = []
    for support in supports:
        width = calculate_min_polygon_width(support.polygon)
        if width < min_width:
            logger.debug(
                "Filtered thin support %s (width=%.1fmm < %.1fmm)",
                support.id, width, min_width,
            )
            continue
        kept.append(support)
    return kept
