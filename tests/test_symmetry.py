"""Tests for symmetry detection and support spacing."""
import math

import numpy as np
import pytest

from fixture_supports.contracts import SymmetryAnalysis
from fixture_supports.geometry import PerimeterPath
from fixture_supports.symmetry import (
    axis_crossings,
    detect_symmetry,
    find_best_symmetric_offset,
    generate_symmetric_support_positions,
)


def _ellipse(a=100.0, b=50.0, n=200):
    t = np.linspace(0, 2 * math.pi, n, endpoint=False)
    return np.column_stack([a * np.cos(t), b * np.sin(t)])


def _arrow(n_per_edge=50):
    """Triangle pointing +X: mirror symmetric about z=0 only."""
    corners = [(0.0, -50.0), (100.0, 0.0), (0.0, 50.0)]
    pts = []
    for i in range(3):
        a = np.array(corners[i])
        b = np.array(corners[(i + 1) % 3])
        for t in np.linspace(0, 1, n_per_edge, endpoint=False):
            pts.append(a + t * (b - a))
    return np.array(pts)


class TestDetectSymmetry:

    def test_rectangle_is_symmetric_on_both_axes(self, dense_rectangle):
        sym = detect_symmetry(dense_rectangle, (0.0, 0.0))
        assert sym.is_x_symmetric and sym.is_z_symmetric
        assert sym.x_symmetry_score == pytest.approx(1.0)
        assert sym.z_symmetry_score == pytest.approx(1.0)

    def test_arrow_is_symmetric_about_one_axis(self):
        sym = detect_symmetry(_arrow(), (100.0 / 3, 0.0))
        assert sym.is_x_symmetric
        assert not sym.is_z_symmetric

    def test_too_few_points(self):
        sym = detect_symmetry([(0, 0), (1, 0), (1, 1)], (0.5, 0.5))
        assert not sym.is_x_symmetric and not sym.is_z_symmetric
        assert sym.x_symmetry_score == 0.0


class TestPositions:

    def test_ellipse_four_supports_evenly_spaced(self):
        pts = _ellipse()
        sym = detect_symmetry(pts, (0.0, 0.0))
        positions = generate_symmetric_support_positions(pts, (0.0, 0.0), sym, 4)
        assert len(positions) == 4
        gaps = np.diff(positions + [positions[0] + 1.0])
        assert np.allclose(gaps, 0.25, atol=1e-9)

    def test_positions_are_sorted_fractions(self):
        pts = _arrow()
        center = (100.0 / 3, 0.0)
        sym = detect_symmetry(pts, center)
        for count in (4, 5, 6, 7):
            positions = generate_symmetric_support_positions(pts, center, sym, count)
            assert len(positions) == count
            assert positions == sorted(positions)
            assert all(0.0 <= p < 1.0 for p in positions)

    def test_no_symmetry_is_uniform(self, dense_rectangle):
        sym = SymmetryAnalysis(False, False, (0.0, 0.0), 0.0, 0.0)
        positions = generate_symmetric_support_positions(dense_rectangle, (0.0, 0.0), sym, 5)
        assert positions == pytest.approx([0.0, 0.2, 0.4, 0.6, 0.8])

    def test_degenerate_perimeter(self):
        sym = SymmetryAnalysis(False, False, (0.0, 0.0), 0.0, 0.0)
        assert generate_symmetric_support_positions([(0, 0), (1, 1)], (0, 0), sym, 4) == []

    def test_axis_crossings_of_rectangle(self, square_perimeter):
        path = PerimeterPath(square_perimeter)
        assert axis_crossings(path, (0.0, 0.0), "x") == pytest.approx([0.375, 0.875])
        assert axis_crossings(path, (0.0, 0.0), "z") == pytest.approx([0.125, 0.625])

    def test_best_offset_in_range(self):
        pts = _ellipse()
        path = PerimeterPath(pts)
        offset = find_best_symmetric_offset(path, (0.0, 0.0), [0.0, 0.25, 0.5, 0.75])
        assert 0.0 <= offset < 1.0
        assert find_best_symmetric_offset(path, (0.0, 0.0), []) == 0.0
