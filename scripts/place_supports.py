#!/usr/bin/env python3
"""
Place fixture supports under a mesh resting on a baseplate.

Loads a mesh (STL, OBJ, GLB, PLY), runs support placement per part and
writes the supports as JSON.

Usage:
    python scripts/place_supports.py --input part.stl
    python scripts/place_supports.py --input parts.glb --split-bodies --plate-top 0
    python scripts/place_supports.py --input part.stl --strategy overhang --overhang-angle 45
    python scripts/place_supports.py --input part.stl --z-up --visualize --output out/
"""
import sys
import os
import json
import argparse
import logging
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fixture_supports import (
    BaseplateSection,
    DiagnosticRecorder,
    PlacementConfig,
    auto_place_supports,
    load_parts,
)
from fixture_supports.meshes import stack_triangles


def _load_sections(path):
    with open(path) as f:
        raw = json.load(f)
    return [
        BaseplateSection(
            id=str(s["id"]),
            min_x=float(s["min_x"]), max_x=float(s["max_x"]),
            min_z=float(s["min_z"]), max_z=float(s["max_z"]),
        )
        for s in raw
    ]


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Place fixture supports under a mesh resting on a baseplate.",
    )
    parser.add_argument(
        "--input", required=True,
        help="Path to input mesh file (STL, OBJ, GLB, PLY)",
    )
    parser.add_argument(
        "--output", default=None,
        help="Output directory (default: <input_dir>/<input_stem>_supports/)",
    )
    parser.add_argument(
        "--plate-top", type=float, default=None,
        help="Baseplate top height (default: lowest point of the mesh)",
    )
    parser.add_argument(
        "--strategy", default="fixture", choices=["fixture", "overhang"],
        help="Placement strategy (default: fixture)",
    )
    parser.add_argument(
        "--overhang-angle", type=float, default=60.0,
        help="Overhang threshold in degrees from vertical (default: 60)",
    )
    parser.add_argument(
        "--contact-offset", type=float, default=0.0,
        help="Gap between support top and part (default: 0)",
    )
    parser.add_argument(
        "--config", default=None,
        help="JSON file with additional PlacementConfig options",
    )
    parser.add_argument(
        "--sections", default=None,
        help="JSON list of baseplate sections {id,min_x,max_x,min_z,max_z}",
    )
    parser.add_argument(
        "--split-bodies", action="store_true",
        help="Treat each connected body as a separate part",
    )
    parser.add_argument(
        "--z-up", action="store_true",
        help="Input is Z-up; rotate into the Y-up placement frame",
    )
    parser.add_argument(
        "--diagnostics", action="store_true",
        help="Also write diagnostics.json with placement events",
    )
    parser.add_argument(
        "--visualize", action="store_true",
        help="Save a matplotlib top-down plot of perimeters and supports",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args(argv)

    # Logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Resolve paths
    input_path = os.path.abspath(args.input)
    if not os.path.isfile(input_path):
        parser.error(f"Input file not found: {input_path}")

    if args.output:
        output_dir = os.path.abspath(args.output)
    else:
        stem = Path(input_path).stem
        output_dir = os.path.join(os.path.dirname(input_path), f"{stem}_supports")
    os.makedirs(output_dir, exist_ok=True)

    # Build config
    options = {}
    if args.config:
        with open(args.config) as f:
            options.update(json.load(f))
    options.update(
        strategy=args.strategy,
        overhang_angle=args.overhang_angle,
        contact_offset=args.contact_offset,
    )
    try:
        config = PlacementConfig.from_dict(options)
    except (TypeError, ValueError) as exc:
        parser.error(str(exc))

    sections = _load_sections(args.sections) if args.sections else None

    parts = load_parts(input_path, split_bodies=args.split_bodies, z_up=args.z_up)
    if args.plate_top is not None:
        plate_top = args.plate_top
    else:
        verts = stack_triangles(parts).reshape(-1, 3)
        plate_top = float(verts[:, 1].min()) if len(verts) else 0.0

    print(f"Placing supports for {len(parts)} part(s) on plate y={plate_top:.2f} ...")
    recorder = DiagnosticRecorder() if args.diagnostics else None
    result = auto_place_supports(
        parts, plate_top, config, sections=sections, on_diagnostic=recorder,
    )

    # Summary
    print(f"\nResult: {result.message}")
    for support in result.supports:
        print(f"  {support.id}: {len(support.polygon)} vertices, "
              f"center=({support.center[0]:.1f}, {support.center[1]:.1f}), "
              f"height={support.height:.1f} mm")

    json_path = os.path.join(output_dir, "supports.json")
    payload = result.to_dict()
    payload["plate_top_y"] = plate_top
    payload["config"] = options
    with open(json_path, "w") as f:
        json.dump(payload, f, indent=2)
    print(f"\nSupports saved to {json_path}")

    if recorder is not None:
        diag_path = os.path.join(output_dir, "diagnostics.json")
        with open(diag_path, "w") as f:
            json.dump(
                [{"stage": e.stage, "message": e.message, "data": e.data}
                 for e in recorder.events],
                f, indent=2, default=str,
            )
        print(f"Diagnostics saved to {diag_path}")

    if args.visualize:
        from visualize_supports import plot_placement
        png_path = os.path.join(output_dir, "supports.png")
        plot_placement(result, png_path, title=Path(input_path).name)
        print(f"Plot saved to {png_path}")

    print("\nDone.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
