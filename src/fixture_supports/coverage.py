"""
Baseplate section coverage filter.

On a baseplate split into several rectangular sections a support is only
kept when enough of its footprint lands on a single section. Coverage is a
bounding-box approximation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

from fixture_supports.contracts import BaseplateSection, Bounds2D, CustomSupport
from fixture_supports.geometry import polygon_area, polygon_bounds

logger = logging.getLogger(__name__)

MIN_BASEPLATE_COVERAGE_RATIO = 0.6
AREA_SAFETY_MARGIN = 1.2


@dataclass
class CoverageResult:
    accepted: List[CustomSupport] = field(default_factory=list)
    rejected: List[CustomSupport] = field(default_factory=list)
    message: str = ""


def _box_overlap_area(box: Bounds2D, section: BaseplateSection) -> float:
    min_x = max(box[0], section.min_x)
    max_x = min(box[1], section.max_x)
    min_z = max(box[2], section.min_z)
    max_z = min(box[3], section.max_z)
    if min_x >= max_x or min_z >= max_z:
        return 0.0
    return (max_x - min_x) * (max_z - min_z)


def find_best_covering_section(
    support: CustomSupport,
    sections: Sequence[BaseplateSection],
    min_ratio: float = MIN_BASEPLATE_COVERAGE_RATIO,
) -> Optional[str]:
    """Id of the section with the largest overlap, if it covers enough.

    The reference area is the smaller of the footprint's bounding-box area
    and 1.2x its polygon area.
    """
    if not sections:
        return None
    box = polygon_bounds(support.world_polygon())
    box_area = (box[1] - box[0]) * (box[3] - box[2])
    reference = min(box_area, polygon_area(support.polygon) * AREA_SAFETY_MARGIN)
    if reference <= 0:
        return None

    best: Optional[BaseplateSection] = None
    best_overlap = 0.0
    for section in sections:
        overlap = _box_overlap_area(box, section)
        if overlap > best_overlap:
            best_overlap = overlap
            best = section
    if best is None:
        return None
    if best_overlap / reference >= min_ratio:
        return best.id
    return None


def filter_supports_by_baseplate_coverage(
    supports: Sequence[CustomSupport],
    sections: Optional[Sequence[BaseplateSection]],
    min_ratio: float = MIN_BASEPLATE_COVERAGE_RATIO,
) -> CoverageResult:
    """Keep supports resting mostly on one section, tagging each with its id."""
    if not sections:
        return CoverageResult(
            accepted=list(supports),
            message=f"No baseplate sections defined - {len(supports)} supports accepted",
        )

    result = CoverageResult()
    for support in supports:
        section_id = find_best_covering_section(support, sections, min_ratio)
        if section_id is None:
            result.rejected.append(support)
        else:
            result.accepted.append(replace(support, section_id=section_id))

    percent = round(min_ratio * 100)
    if result.rejected:
        result.message = (
            f"{len(result.accepted)} supports placed ({len(result.rejected)} rejected - "
            f"less than {percent}% on baseplate)"
        )
    else:
        result.message = f"{len(result.accepted)} supports placed with >={percent}% baseplate coverage"
    logger.info(result.message)
    return result
