"""
Support placement orchestration.

Fixture strategy (default):
  1. Shadow of everything above the plate (vertex projection).
  2. Accurate silhouette perimeter (render -> Moore trace -> row scan ->
     concave hull, first success wins).
  3. Boundary-straddling supports at symmetric positions, merged where they
     overlap.
  4. Extra interior supports under large overhang clusters that are far
     from the perimeter, up to the support budget.
  5. Thin supports removed.

Overhang strategy: one padded support per visible overhang cluster.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

from fixture_supports.clustering import cluster_overhang_points, subdivide_all
from fixture_supports.contracts import (
    AutoPlacementResult,
    BaseplateSection,
    CustomSupport,
    OverhangCluster,
    PlacementConfig,
    PlacementResult,
)
from fixture_supports.coverage import filter_supports_by_baseplate_coverage
from fixture_supports.diagnostics import DiagnosticSink, Diagnostics
from fixture_supports.generator import (
    INTERIOR_INFLATION_RATIO,
    compute_support_depths,
    create_boundary_straddling_supports,
    create_cluster_support,
    create_inflated_overhang_support,
    footprint_cluster,
    support_count,
)
from fixture_supports.geometry import distance_to_polygon_boundary, polygon_area, vertex_centroid
from fixture_supports.meshes import lowest_point_above, snapshot_all
from fixture_supports.merging import filter_thin_supports, merge_overlapping_supports
from fixture_supports.overhangs import (
    VisibilityQuery,
    find_all_overhangs,
    find_visible_overhangs,
    total_area,
)
from fixture_supports.rasterize import TopDownRasterizer
from fixture_supports.shadow import compute_part_shadow
from fixture_supports.silhouette import extract_perimeter
from fixture_supports.symmetry import detect_symmetry

logger = logging.getLogger(__name__)

NO_SHADOW_MESSAGE = "Could not compute part shadow - model may be too small or below baseplate"


def _failure(message: str) -> PlacementResult:
    return PlacementResult(message=message, ok=False)


def material_savings(supports: Sequence[CustomSupport], shadow_area: float, height: float) -> float:
    """Percentage of a solid shadow-sized block saved by discrete supports."""
    solid = shadow_area * height
    if solid <= 0:
        return 0.0
    used = sum(polygon_area(s.polygon) * s.height for s in supports)
    return (1.0 - used / solid) * 100.0


def place_overhang_supports(
    meshes: Iterable,
    plate_top_y: float,
    config: Optional[PlacementConfig] = None,
    *,
    rasterizer: Optional[TopDownRasterizer] = None,
    visibility: Optional[VisibilityQuery] = None,
    on_diagnostic: Optional[DiagnosticSink] = None,
) -> PlacementResult:
    """Compute support footprints for one part resting on the plate.

    Args:
        meshes: MeshSnapshots or trimesh meshes in world space (Y-up).
        plate_top_y: Height of the plate's top surface.
        config: Placement options; defaults when omitted.
        rasterizer: Top-down renderer for the silhouette; scikit-image
            scan conversion by default.
        visibility: Undercut ray query for the ``overhang`` strategy.
        on_diagnostic: Optional callback receiving DiagnosticEvents.

    Returns:
        PlacementResult. ``ok`` is False only when no silhouette could be
        extracted, in which case supports and clusters are empty.
    """
    config = config or PlacementConfig()
    diagnostics = Diagnostics(on_diagnostic)
    snapshots = snapshot_all(meshes)

    shadow = compute_part_shadow(snapshots, plate_top_y)
    diagnostics.emit(
        "shadow", "computed", hull_points=len(shadow.shadow_hull),
        area=round(shadow.area, 2), bounds=shadow.bounds,
    )
    if not shadow.is_valid:
        logger.info(NO_SHADOW_MESSAGE)
        return _failure(NO_SHADOW_MESSAGE)

    if config.strategy == "overhang":
        return _place_per_cluster(snapshots, plate_top_y, config, visibility, diagnostics)

    outcome = extract_perimeter(
        snapshots, shadow, rasterizer,
        resolution=config.raster_resolution,
        padding=config.raster_padding,
        diagnostics=diagnostics,
    )
    if not outcome.ok:
        logger.info("No silhouette: %s", outcome.reason)
        return _failure(f"{NO_SHADOW_MESSAGE} ({outcome.reason})")
    perimeter = outcome.perimeter
    center = vertex_centroid(perimeter)

    overhangs = find_all_overhangs(snapshots, plate_top_y, config)
    overhang_area = total_area(overhangs)
    diagnostics.emit("overhangs", "detected", count=len(overhangs), area=round(overhang_area, 2))

    lowest = lowest_point_above(snapshots, plate_top_y)
    height = max(1.0, lowest - plate_top_y - config.contact_offset)

    count = support_count(config)
    depths = compute_support_depths(perimeter, count)
    symmetry = detect_symmetry(perimeter, center)
    boundary = create_boundary_straddling_supports(
        perimeter, center, height, plate_top_y, config,
        depths=depths, symmetry=symmetry, diagnostics=diagnostics,
    )
    merged = merge_overlapping_supports(boundary, config)
    diagnostics.emit("boundary", "merged", created=len(boundary), merged=len(merged))

    clusters: List[OverhangCluster] = [footprint_cluster(s) for s in merged]
    interior = _interior_supports(
        overhangs, perimeter, plate_top_y, config, depths,
        remaining=config.max_support_count - len(merged),
        clusters=clusters, diagnostics=diagnostics,
    )

    supports = filter_thin_supports(merged + interior, config.min_support_width)
    interior_ids = {s.id for s in interior}
    overhang_count = sum(1 for s in supports if s.id in interior_ids)
    savings = material_savings(supports, shadow.area, height)

    if overhang_count == 0:
        message = f"Created {len(supports)} perimeter supports (~{savings:.0f}% material savings)"
    else:
        message = (
            f"Created {len(supports)} supports: {len(supports) - overhang_count} perimeter"
            f" + {overhang_count} overhang (~{savings:.0f}% savings)"
        )
    logger.info(message)

    return PlacementResult(
        supports=supports,
        clusters=clusters,
        message=message,
        total_overhang_area=overhang_area,
        debug_perimeter=[(float(x), float(z)) for x, z in perimeter],
    )


def _interior_supports(
    overhangs,
    perimeter,
    plate_top_y: float,
    config: PlacementConfig,
    depths,
    remaining: int,
    clusters: List[OverhangCluster],
    diagnostics: Diagnostics,
) -> List[CustomSupport]:
    """Smaller supports under significant overhangs away from the perimeter.

    Appends each supported cluster to ``clusters``.
    """
    if not overhangs or remaining <= 0:
        return []

    candidates = subdivide_all(
        cluster_overhang_points(overhangs, config.overhang_cluster_distance),
        config.max_support_span,
    )
    significant = sorted(
        (c for c in candidates if c.total_area >= config.overhang_min_cluster_area),
        key=lambda c: -c.total_area,
    )
    max_size = depths.interior_max_size
    inflation = min(config.overhang_inflation * INTERIOR_INFLATION_RATIO, max_size * 0.5)
    diagnostics.emit(
        "interior", "candidates", clusters=len(significant), slots=remaining,
        max_size=round(max_size, 2), inflation=round(inflation, 2),
    )

    supports: List[CustomSupport] = []
    for cluster in significant:
        if len(supports) >= remaining:
            break
        dist = distance_to_polygon_boundary((cluster.centroid_x, cluster.centroid_z), perimeter)
        if dist < depths.perimeter_coverage:
            diagnostics.emit(
                "interior", "skipped near perimeter",
                distance=round(dist, 2), limit=round(depths.perimeter_coverage, 2),
            )
            continue
        support = create_inflated_overhang_support(
            cluster, plate_top_y, config, index=len(supports),
            inflation=inflation, max_size=max_size, diagnostics=diagnostics,
        )
        if support is None:
            continue
        supports.append(support)
        clusters.append(cluster)
    return supports


def _place_per_cluster(
    snapshots,
    plate_top_y: float,
    config: PlacementConfig,
    visibility: Optional[VisibilityQuery],
    diagnostics: Diagnostics,
) -> PlacementResult:
    overhangs = find_visible_overhangs(snapshots, plate_top_y, config, visibility)
    overhang_area = total_area(overhangs)
    diagnostics.emit("overhangs", "visible", count=len(overhangs), area=round(overhang_area, 2))
    if not overhangs:
        return PlacementResult(message="No overhangs detected - model may not need supports")

    clusters = [
        c for c in cluster_overhang_points(overhangs, config.cluster_distance)
        if c.total_area >= config.min_cluster_area
    ]
    clusters = subdivide_all(clusters, config.max_support_span)
    supports = []
    for i, cluster in enumerate(clusters):
        support = create_cluster_support(cluster, plate_top_y, config, i, diagnostics=diagnostics)
        if support is not None:
            supports.append(support)
    supports = merge_overlapping_supports(supports, config)
    supports = filter_thin_supports(supports, config.min_support_width)

    message = (
        f"Created {len(supports)} supports for {len(clusters)} overhang cluster(s)"
        f" ({overhang_area:.0f}mm2 overhang area)"
    )
    logger.info(message)
    return PlacementResult(
        supports=supports,
        clusters=clusters,
        message=message,
        total_overhang_area=overhang_area,
    )


def auto_place_supports(
    parts: Sequence,
    plate_top_y: float,
    config: Optional[PlacementConfig] = None,
    *,
    sections: Optional[Sequence[BaseplateSection]] = None,
    rasterizer: Optional[TopDownRasterizer] = None,
    visibility: Optional[VisibilityQuery] = None,
    on_diagnostic: Optional[DiagnosticSink] = None,
) -> AutoPlacementResult:
    """Place supports for each part independently and combine the results.

    Support ids get a ``-p{index}`` suffix so they stay unique across parts.
    With ``sections``, supports not resting mostly on one baseplate section
    are dropped.
    """
    result = AutoPlacementResult()
    messages: List[str] = []
    for index, part in enumerate(parts):
        logger.debug("Placing part %d/%d", index + 1, len(parts))
        part_result = place_overhang_supports(
            [part], plate_top_y, config,
            rasterizer=rasterizer, visibility=visibility, on_diagnostic=on_diagnostic,
        )
        part_result.supports = [replace(s, id=f"{s.id}-p{index}") for s in part_result.supports]
        result.part_results.append(part_result)
        result.supports.extend(part_result.supports)
        result.clusters_found += len(part_result.clusters)
        result.total_overhang_area += part_result.total_overhang_area
        if part_result.debug_perimeter:
            result.debug_perimeters.append(part_result.debug_perimeter)
        messages.append(f"Part {index + 1}: {part_result.message}")

    if len(parts) > 1:
        result.message = f"Processed {len(parts)} parts: {len(result.supports)} total supports"
    else:
        result.message = messages[0] if messages else "No parts processed"

    if sections:
        coverage = filter_supports_by_baseplate_coverage(result.supports, sections)
        result.supports = coverage.accepted
        result.message = f"{result.message}; {coverage.message}"

    logger.info(result.message)
    return result
