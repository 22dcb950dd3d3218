"""Public API for automatic fixture support placement."""

from fixture_supports.contracts import (
    AutoPlacementResult,
    BaseplateSection,
    CustomSupport,
    MeshSnapshot,
    OverhangCluster,
    OverhangPoint,
    PlacementConfig,
    PlacementResult,
    ShadowAnalysis,
    SymmetryAnalysis,
)
from fixture_supports.diagnostics import DiagnosticEvent, DiagnosticRecorder
from fixture_supports.meshes import load_parts
from fixture_supports.placement import auto_place_supports, place_overhang_supports
from fixture_supports.rasterize import SkimageRasterizer, TopDownRasterizer, TopDownView

__all__ = [
    "AutoPlacementResult",
    "BaseplateSection",
    "CustomSupport",
    "DiagnosticEvent",
    "DiagnosticRecorder",
    "MeshSnapshot",
    "OverhangCluster",
    "OverhangPoint",
    "PlacementConfig",
    "PlacementResult",
    "ShadowAnalysis",
    "SkimageRasterizer",
    "SymmetryAnalysis",
    "TopDownRasterizer",
    "TopDownView",
    "auto_place_supports",
    "load_parts",
    "place_overhang_supports",
]
