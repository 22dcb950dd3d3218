"""
Top-down rasterization collaborator.

The silhouette extractor only needs "render these triangles from above onto
an R x R grid, black on white". ``TopDownRasterizer`` is that interface;
``SkimageRasterizer`` is a CPU implementation built on scikit-image polygon
scan conversion.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np
from scipy import ndimage
from skimage.draw import polygon as fill_polygon

from fixture_supports.contracts import Bounds2D

logger = logging.getLogger(__name__)


class RasterizationError(Exception):
    """Raised when a top-down render cannot be produced."""


@dataclass(frozen=True)
class TopDownView:
    """Square orthographic window over the plate.

    Image row 0 is the +Z edge of the window; column 0 is the -X edge.
    """

    center_x: float
    center_z: float
    size: float
    resolution: int

    @classmethod
    def framing(cls, bounds: Bounds2D, resolution: int = 512, padding: float = 5.0) -> "TopDownView":
        min_x, max_x = bounds[0] - padding, bounds[1] + padding
        min_z, max_z = bounds[2] - padding, bounds[3] + padding
        return cls(
            center_x=(min_x + max_x) / 2.0,
            center_z=(min_z + max_z) / 2.0,
            size=max(max_x - min_x, max_z - min_z),
            resolution=int(resolution),
        )

    @property
    def min_x(self) -> float:
        return self.center_x - self.size / 2.0

    @property
    def min_z(self) -> float:
        return self.center_z - self.size / 2.0

    @property
    def cell_size(self) -> float:
        return self.size / self.resolution

    def pixel_to_world(self, rows, cols) -> np.ndarray:
        """Pixel centres to ``(x, z)``; ``rows`` count up from the -Z edge."""
        rows = np.asarray(rows, dtype=float)
        cols = np.asarray(cols, dtype=float)
        x = self.min_x + (cols + 0.5) / self.resolution * self.size
        z = self.min_z + (rows + 0.5) / self.resolution * self.size
        return np.column_stack([x, z])


class TopDownRasterizer(ABC):
    """Renders world triangles seen from +Y into an RGBA buffer."""

    @abstractmethod
    def rasterize(self, triangles: np.ndarray, view: TopDownView) -> np.ndarray:
        """Return a ``(R, R, 4)`` uint8 buffer, part black on white.

        Args:
            triangles: (F, 3, 3) world-space triangles.
            view: Window to render.
        """
        ...


class SkimageRasterizer(TopDownRasterizer):
    """Scan-converts each projected triangle with ``skimage.draw.polygon``."""

    def __init__(self, min_projected_area: float = 1e-9):
        self.min_projected_area = min_projected_area

    def rasterize(self, triangles: np.ndarray, view: TopDownView) -> np.ndarray:
        if view.size <= 0 or view.resolution <= 0:
            raise RasterizationError(f"Degenerate view: {view}")

        res = view.resolution
        image = np.full((res, res, 4), 255, dtype=np.uint8)
        tris = np.asarray(triangles, dtype=float).reshape(-1, 3, 3)
        if len(tris) == 0:
            return image

        # Continuous pixel coordinates, pixel centres at integer positions
        cols = (tris[:, :, 0] - view.min_x) / view.size * res - 0.5
        rows = (res - 1) - ((tris[:, :, 2] - view.min_z) / view.size * res - 0.5)

        e1c, e1r = cols[:, 1] - cols[:, 0], rows[:, 1] - rows[:, 0]
        e2c, e2r = cols[:, 2] - cols[:, 0], rows[:, 2] - rows[:, 0]
        projected = 0.5 * np.abs(e1c * e2r - e1r * e2c)
        keep = projected > self.min_projected_area

        mask = np.zeros((res, res), dtype=bool)
        for r, c in zip(rows[keep], cols[keep]):
            rr, cc = fill_polygon(r, c, shape=mask.shape)
            mask[rr, cc] = True

        # Pixel centres lying exactly on shared triangle edges can be missed
        mask = ndimage.binary_fill_holes(mask)
        image[mask, :3] = 0
        logger.debug(
            "Rasterized %d/%d triangles, %d part pixels",
            int(keep.sum()), len(tris), int(mask.sum()),
        )
        return image
