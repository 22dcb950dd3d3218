"""Contracts for the fixture support placement pipeline.

Coordinates are world-space and Y-up: the build plate is the XZ plane at
``plate_top_y`` and every 2D quantity here is an ``(x, z)`` pair.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]
Bounds2D = Tuple[float, float, float, float]  # (min_x, max_x, min_z, max_z)

STRATEGIES = ("fixture", "overhang")


@dataclass(frozen=True)
class PlacementConfig:
    """User-tunable options for support placement."""

    overhang_angle: float = 60.0  # degrees from vertical
    buildplate_tolerance: float = 2.0  # faces this close to the plate are ignored
    cluster_distance: float = 15.0
    min_cluster_area: float = 25.0
    support_padding: float = 3.0
    min_support_size: float = 5.0
    max_support_size: float = 40.0
    corner_radius: float = 2.0
    contact_offset: float = 0.0
    max_support_span: float = 50.0

    # Placement strategy: "fixture" (silhouette + interior) or "overhang"
    # (one support per visible overhang cluster)
    strategy: str = "fixture"

    # Perimeter supports
    target_support_count: int = 5
    min_support_count: int = 4
    max_support_count: int = 6

    # Interior overhang supports
    overhang_cluster_distance: float = 80.0
    overhang_min_cluster_area: float = 30.0
    overhang_inflation: float = 20.0

    # Merge / filter
    merge_distance: float = 5.0
    min_support_width: float = 10.0

    # Top-down silhouette raster
    raster_resolution: int = 512
    raster_padding: float = 5.0

    def __post_init__(self) -> None:
        if self.strategy not in STRATEGIES:
            raise ValueError(
                f"Unknown strategy {self.strategy!r}; expected one of {STRATEGIES}"
            )
        if not 0.0 < self.overhang_angle < 90.0:
            raise ValueError("overhang_angle must be in (0, 90) degrees")
        if self.min_support_count < 1:
            raise ValueError("min_support_count must be >= 1")
        if not (self.min_support_count <= self.target_support_count
                <= self.max_support_count):
            raise ValueError(
                "support counts must satisfy min <= target <= max, got "
                f"{self.min_support_count} <= {self.target_support_count} "
                f"<= {self.max_support_count}"
            )
        if self.raster_resolution < 8:
            raise ValueError("raster_resolution must be >= 8")
        for name in (
            "buildplate_tolerance", "cluster_distance", "min_cluster_area",
            "support_padding", "min_support_size", "max_support_size",
            "corner_radius", "contact_offset", "max_support_span",
            "overhang_cluster_distance", "overhang_min_cluster_area",
            "overhang_inflation", "merge_distance", "min_support_width",
            "raster_padding",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative")
        if self.max_support_span <= 0:
            raise ValueError("max_support_span must be positive")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlacementConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown placement option(s): {', '.join(unknown)}")
        return cls(**data)


@dataclass(frozen=True)
class OverhangPoint:
    """Centroid of one downward-facing triangle."""

    x: float
    y: float
    z: float
    normal_y: float
    area: float


@dataclass(frozen=True)
class OverhangCluster:
    """Aggregate of nearby overhang points."""

    points: Tuple[OverhangPoint, ...]
    centroid_x: float
    centroid_z: float
    min_y: float
    max_y: float
    bounding_box: Bounds2D
    width: float
    depth: float
    aspect_ratio: float
    total_area: float

    @property
    def max_dimension(self) -> float:
        return max(self.width, self.depth)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "point_count": len(self.points),
            "centroid": [self.centroid_x, self.centroid_z],
            "min_y": self.min_y,
            "max_y": self.max_y,
            "bounding_box": list(self.bounding_box),
            "width": self.width,
            "depth": self.depth,
            "aspect_ratio": self.aspect_ratio,
            "total_area": self.total_area,
        }


@dataclass(frozen=True)
class ShadowAnalysis:
    """Top-down footprint of everything above the plate."""

    shadow_hull: Tuple[Vec2, ...]
    expanded_shadow: Tuple[Vec2, ...]
    bounds: Bounds2D
    center: Vec2
    area: float

    @property
    def is_valid(self) -> bool:
        return len(self.shadow_hull) >= 3

    @property
    def width(self) -> float:
        return self.bounds[1] - self.bounds[0]

    @property
    def depth(self) -> float:
        return self.bounds[3] - self.bounds[2]

    @classmethod
    def empty(cls) -> "ShadowAnalysis":
        return cls((), (), (0.0, 0.0, 0.0, 0.0), (0.0, 0.0), 0.0)


@dataclass(frozen=True)
class SymmetryAnalysis:
    is_x_symmetric: bool
    is_z_symmetric: bool
    center: Vec2
    x_symmetry_score: float
    z_symmetry_score: float


@dataclass(frozen=True)
class CustomSupport:
    """A support footprint extruded from the plate to the part.

    ``polygon`` is expressed relative to ``center``; use
    :meth:`world_polygon` for plate coordinates.
    """

    id: str
    center: Vec2
    height: float
    base_y: float
    polygon: Tuple[Vec2, ...]
    contact_offset: float = 0.0
    corner_radius: float = 0.0
    type: str = "custom"
    section_id: Optional[str] = None

    def world_polygon(self) -> np.ndarray:
        return np.asarray(self.polygon, dtype=float).reshape(-1, 2) + np.asarray(
            self.center, dtype=float
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["center"] = list(self.center)
        data["polygon"] = [list(p) for p in self.polygon]
        return data


@dataclass(frozen=True)
class MeshSnapshot:
    """World-space triangle soup of one part, shape ``(F, 3, 3)``."""

    triangles: np.ndarray
    name: str = "part"

    @classmethod
    def from_arrays(
        cls,
        vertices: Sequence[Sequence[float]],
        faces: Sequence[Sequence[int]],
        transform: Optional[np.ndarray] = None,
        name: str = "part",
    ) -> "MeshSnapshot":
        verts = np.asarray(vertices, dtype=float).reshape(-1, 3)
        if transform is not None:
            matrix = np.asarray(transform, dtype=float).reshape(4, 4)
            homo = np.hstack([verts, np.ones((len(verts), 1))])
            verts = (homo @ matrix.T)[:, :3]
        idx = np.asarray(faces, dtype=int).reshape(-1, 3)
        tris = verts[idx] if len(idx) else np.zeros((0, 3, 3))
        return cls(triangles=tris, name=name)

    @classmethod
    def from_trimesh(cls, mesh, name: Optional[str] = None) -> "MeshSnapshot":
        """Snapshot a ``trimesh.Trimesh`` (already in world space)."""
        label = name or mesh.metadata.get("name") or "part"
        return cls.from_arrays(mesh.vertices, mesh.faces, name=label)

    @property
    def vertices(self) -> np.ndarray:
        return self.triangles.reshape(-1, 3)

    @property
    def face_count(self) -> int:
        return int(len(self.triangles))


@dataclass
class PlacementResult:
    """Outcome of one placement run."""

    supports: List[CustomSupport] = field(default_factory=list)
    clusters: List[OverhangCluster] = field(default_factory=list)
    message: str = ""
    total_overhang_area: float = 0.0
    debug_perimeter: Optional[List[Vec2]] = None
    ok: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "message": self.message,
            "total_overhang_area": round(self.total_overhang_area, 3),
            "supports": [s.to_dict() for s in self.supports],
            "clusters": [c.to_dict() for c in self.clusters],
            "debug_perimeter": (
                [list(p) for p in self.debug_perimeter]
                if self.debug_perimeter is not None else None
            ),
        }


@dataclass
class AutoPlacementResult:
    """Aggregated placement over several independent parts."""

    supports: List[CustomSupport] = field(default_factory=list)
    clusters_found: int = 0
    total_overhang_area: float = 0.0
    message: str = ""
    debug_perimeters: List[List[Vec2]] = field(default_factory=list)
    part_results: List[PlacementResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "clusters_found": self.clusters_found,
            "total_overhang_area": round(self.total_overhang_area, 3),
            "supports": [s.to_dict() for s in self.supports],
            "parts": [r.to_dict() for r in self.part_results],
        }


@dataclass(frozen=True)
class BaseplateSection:
    """Rectangular baseplate section (plate coordinates)."""

    id: str
    min_x: float
    max_x: float
    min_z: float
    max_z: float
