#!/usr/bin/env python3
"""
Top-down plot of a support placement.

Shows each part's silhouette perimeter with the support footprints laid
over it, as seen from above (X right, Z up).

Usage:
    python scripts/visualize_supports.py --input part_supports/supports.json
"""
import sys
import json
import argparse
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.colors as mcolors
from matplotlib.patches import Polygon as PolygonPatch


SUPPORT_COLORS = list(mcolors.TABLEAU_COLORS.values())


def _draw(ax, perimeters, supports, title=None):
    for perimeter in perimeters:
        if not perimeter:
            continue
        xs = [p[0] for p in perimeter] + [perimeter[0][0]]
        zs = [p[1] for p in perimeter] + [perimeter[0][1]]
        ax.plot(xs, zs, color="black", linewidth=1.0)

    for i, support in enumerate(supports):
        cx, cz = support["center"]
        ring = [(cx + x, cz + z) for x, z in support["polygon"]]
        color = SUPPORT_COLORS[i % len(SUPPORT_COLORS)]
        ax.add_patch(PolygonPatch(ring, closed=True, alpha=0.45, facecolor=color, edgecolor=color))
        ax.annotate(support["id"], (cx, cz), fontsize=6, ha="center", va="center")

    ax.set_aspect("equal")
    ax.autoscale_view()
    ax.set_xlabel("X (mm)")
    ax.set_ylabel("Z (mm)")
    if title:
        ax.set_title(title)


def plot_payload(payload, output_path, title=None):
    """Plot a ``to_dict()`` payload (single or multi-part) to ``output_path``."""
    if "parts" in payload:
        perimeters = [p.get("debug_perimeter") or [] for p in payload["parts"]]
    else:
        perimeters = [payload.get("debug_perimeter") or []]
    fig, ax = plt.subplots(figsize=(8, 8))
    try:
        _draw(ax, perimeters, payload.get("supports", []), title)
        fig.savefig(output_path, dpi=150, bbox_inches="tight")
    finally:
        plt.close(fig)


def plot_placement(result, output_path, title=None):
    plot_payload(result.to_dict(), output_path, title)


def main():
    parser = argparse.ArgumentParser(description="Plot a supports.json placement.")
    parser.add_argument("--input", required=True, help="supports.json written by place_supports.py")
    parser.add_argument("--output", default=None, help="PNG path (default: next to input)")
    args = parser.parse_args()

    with open(args.input) as f:
        payload = json.load(f)
    output = args.output or str(Path(args.input).with_suffix(".png"))
    plot_payload(payload, output, title=Path(args.input).stem)
    print(f"Plot saved to {output}")


if __name__ == "__main__":
    main()
