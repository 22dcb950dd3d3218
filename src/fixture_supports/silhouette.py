"""
Silhouette perimeter extraction from a top-down render.

Extraction is a staged pipeline. Each stage returns a ``StageOutcome`` that
either carries a perimeter or says why it could not produce one, and
``first_success`` runs the stages in order until one succeeds:

    moore_trace -> row_scan -> concave_hull
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from fixture_supports.contracts import MeshSnapshot, ShadowAnalysis
from fixture_supports.diagnostics import NULL_DIAGNOSTICS, Diagnostics
from fixture_supports.geometry import as_points, douglas_peucker
from fixture_supports.meshes import stack_triangles
from fixture_supports.rasterize import SkimageRasterizer, TopDownRasterizer, TopDownView

logger = logging.getLogger(__name__)

# Moore neighbourhood, clockwise from West: (d_row, d_col)
# Rows here grow toward +Z, matching the flipped silhouette grid.
MOORE_DIRECTIONS: Tuple[Tuple[int, int], ...] = (
    (0, -1),   # 0 W
    (-1, -1),  # 1 NW
    (-1, 0),   # 2 N
    (-1, 1),   # 3 NE
    (0, 1),    # 4 E
    (1, 1),    # 5 SE
    (1, 0),    # 6 S
    (1, -1),   # 7 SW
)

PART_THRESHOLD = 128


@dataclass(frozen=True)
class StageOutcome:
    """Result of one extraction stage: a perimeter, or the reason there is none."""

    stage: str
    perimeter: Optional[np.ndarray] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.perimeter is not None and len(self.perimeter) >= 3

    @classmethod
    def success(cls, stage: str, perimeter) -> "StageOutcome":
        pts = as_points(perimeter)
        if len(pts) < 3:
            return cls(stage=stage, reason=f"only {len(pts)} point(s)")
        return cls(stage=stage, perimeter=pts)

    @classmethod
    def insufficient(cls, stage: str, reason: str) -> "StageOutcome":
        return cls(stage=stage, reason=reason)


Stage = Callable[[], StageOutcome]


def first_success(
    stages: Sequence[Tuple[str, Stage]],
    diagnostics: Diagnostics = NULL_DIAGNOSTICS,
) -> StageOutcome:
    """Run ``stages`` in order and return the first successful outcome.

    When every stage is insufficient, the returned outcome names them all.
    """
    reasons: List[str] = []
    for name, stage in stages:
        outcome = stage()
        if outcome.ok:
            diagnostics.emit(
                "silhouette", f"{name} succeeded", points=len(outcome.perimeter)
            )
            return outcome
        diagnostics.emit("silhouette", f"{name} insufficient", reason=outcome.reason)
        reasons.append(f"{name}: {outcome.reason}")
    return StageOutcome.insufficient("none", "; ".join(reasons) or "no stages")


# ─── Binary grid ─────────────────────────────────────────────────────────────


def threshold_pixels(pixels: np.ndarray) -> np.ndarray:
    """Part mask from an RGBA buffer with rows flipped so row 0 is -Z."""
    rgba = np.asarray(pixels)
    if rgba.ndim != 3 or rgba.shape[2] < 3:
        raise ValueError(f"Expected (R, R, 4) pixel buffer, got shape {rgba.shape}")
    rgb = rgba[:, :, :3]
    mask = np.all(rgb < PART_THRESHOLD, axis=2)
    return mask[::-1].copy()


def render_silhouette_grid(
    meshes: Sequence[MeshSnapshot],
    view: TopDownView,
    rasterizer: Optional[TopDownRasterizer] = None,
) -> np.ndarray:
    """Boolean part mask for ``view``; row 0 is the -Z edge."""
    rasterizer = rasterizer or SkimageRasterizer()
    pixels = rasterizer.rasterize(stack_triangles(meshes), view)
    return threshold_pixels(pixels)


# ─── Contour tracing ─────────────────────────────────────────────────────────


def _first_part_pixel(grid: np.ndarray) -> Optional[Tuple[int, int]]:
    rows, cols = np.nonzero(grid)
    if len(rows) == 0:
        return None
    # np.nonzero is row-major, so index 0 is the first hit of a raster scan
    return int(rows[0]), int(cols[0])


def _next_move(grid: np.ndarray, row: int, col: int, backtrack: int) -> Optional[int]:
    h, w = grid.shape
    for i in range(8):
        d = (backtrack + 1 + i) % 8
        dr, dc = MOORE_DIRECTIONS[d]
        nr, nc = row + dr, col + dc
        if 0 <= nr < h and 0 <= nc < w and grid[nr, nc]:
            return d
    return None


def moore_trace(grid: np.ndarray, max_iterations: Optional[int] = None) -> List[Tuple[int, int]]:
    """Outer boundary pixels of the first blob in raster order.

    8-connected clockwise walk. The start pixel is entered from the West;
    each step scans clockwise from one past the backtrack direction. The walk
    ends when it is back at the start about to repeat its first move.

    Returns:
        List of ``(row, col)`` boundary pixels; a single pixel for an
        isolated dot and an empty list for an empty grid.
    """
    mask = np.asarray(grid, dtype=bool)
    start = _first_part_pixel(mask)
    if start is None:
        return []
    if max_iterations is None:
        max_iterations = mask.size

    row, col = start
    first_move = _next_move(mask, row, col, 0)
    if first_move is None:
        return [start]

    contour: List[Tuple[int, int]] = [start]
    backtrack = 0
    move = first_move
    for _ in range(max_iterations):
        dr, dc = MOORE_DIRECTIONS[move]
        row, col = row + dr, col + dc
        backtrack = (move + 4) % 8
        move = _next_move(mask, row, col, backtrack)
        if (row, col) == start and move == first_move:
            break
        if contour[-1] != (row, col):
            contour.append((row, col))
        if move is None:
            break
    else:
        logger.debug("Moore trace hit iteration cap (%d)", max_iterations)
    return contour


def row_scan(grid: np.ndarray) -> List[Tuple[int, int]]:
    """Left edge down the rows then right edge back up.

    Returns an empty list when fewer than two rows are occupied.
    """
    mask = np.asarray(grid, dtype=bool)
    occupied = np.nonzero(mask.any(axis=1))[0]
    if len(occupied) < 2:
        return []
    left: List[Tuple[int, int]] = []
    right: List[Tuple[int, int]] = []
    for r in occupied:
        cols = np.nonzero(mask[r])[0]
        left.append((int(r), int(cols[0])))
        right.append((int(r), int(cols[-1])))
    return left + right[::-1]


def _to_world(view: TopDownView, pixels: List[Tuple[int, int]]) -> np.ndarray:
    if not pixels:
        return np.zeros((0, 2))
    arr = np.asarray(pixels, dtype=float)
    return view.pixel_to_world(arr[:, 0], arr[:, 1])


def moore_stage(grid: Optional[np.ndarray], view: TopDownView) -> StageOutcome:
    if grid is None:
        return StageOutcome.insufficient("moore_trace", "no raster")
    if not grid.any():
        return StageOutcome.insufficient("moore_trace", "no part pixels")
    contour = _to_world(view, moore_trace(grid))
    if len(contour) < 3:
        return StageOutcome.insufficient("moore_trace", f"traced {len(contour)} point(s)")
    # simplify as a closed ring so the start pixel is not kept as an extra corner
    ring = douglas_peucker(np.vstack([contour, contour[:1]]), view.cell_size * 1.5)[:-1]
    return StageOutcome.success("moore_trace", ring)


def row_scan_stage(grid: Optional[np.ndarray], view: TopDownView) -> StageOutcome:
    if grid is None:
        return StageOutcome.insufficient("row_scan", "no raster")
    contour = _to_world(view, row_scan(grid))
    if len(contour) < 3:
        return StageOutcome.insufficient("row_scan", "fewer than two occupied rows")
    return StageOutcome.success("row_scan", douglas_peucker(contour, view.cell_size * 2.0))


def concave_hull_stage(shadow: ShadowAnalysis) -> StageOutcome:
    if not shadow.is_valid:
        return StageOutcome.insufficient("concave_hull", "empty shadow")
    return StageOutcome.success("concave_hull", shadow.shadow_hull)


def compute_raster_silhouette(
    meshes: Sequence[MeshSnapshot],
    bounds,
    rasterizer: Optional[TopDownRasterizer] = None,
    resolution: int = 512,
    padding: float = 5.0,
) -> np.ndarray:
    """Render-based perimeter (Moore trace, else row scan); may be empty."""
    view = TopDownView.framing(bounds, resolution, padding)
    if view.size <= 0:
        return np.zeros((0, 2))
    grid = render_silhouette_grid(meshes, view, rasterizer)
    for outcome in (moore_stage(grid, view), row_scan_stage(grid, view)):
        if outcome.ok:
            return outcome.perimeter
    return np.zeros((0, 2))


def extract_perimeter(
    meshes: Sequence[MeshSnapshot],
    shadow: ShadowAnalysis,
    rasterizer: Optional[TopDownRasterizer] = None,
    resolution: int = 512,
    padding: float = 5.0,
    diagnostics: Diagnostics = NULL_DIAGNOSTICS,
) -> StageOutcome:
    """Best available silhouette perimeter for placement.

    A failing rasterizer is logged and the pipeline continues with the
    concave-hull perimeter.
    """
    view = TopDownView.framing(shadow.bounds, resolution, padding)
    grid: Optional[np.ndarray] = None
    if shadow.is_valid and view.size > 0:
        try:
            grid = render_silhouette_grid(meshes, view, rasterizer)
        except Exception as exc:
            logger.warning("Top-down rasterization failed: %s", exc)
            diagnostics.emit("silhouette", "rasterizer failed", error=str(exc))
        else:
            diagnostics.emit(
                "silhouette", "rendered", resolution=view.resolution,
                part_pixels=int(grid.sum()),
            )

    return first_success(
        [
            ("moore_trace", lambda: moore_stage(grid, view)),
            ("row_scan", lambda: row_scan_stage(grid, view)),
            ("concave_hull", lambda: concave_hull_stage(shadow)),
        ],
        diagnostics,
    )
