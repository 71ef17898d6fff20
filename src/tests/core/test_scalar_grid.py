"""
Tests for the regular scalar grid
=================================

- lattice queries and the out-of-range sentinel
- trilinear interpolation (exact on linear fields, clamped outside)
- supersampling
- active-cube detection and edge crossings

Run: python -m pytest tests/core/test_scalar_grid.py -v
"""

import numpy as np
import pytest

from vdc.field.scalar_grid import (
    ScalarGrid,
    crosses_inclusive,
    cube_centers,
    interpolate_crossing,
    is_bipolar,
)


def linear_grid(shape=(4, 5, 6), spacing=(1.0, 0.5, 2.0), origin=(1.0, -2.0, 0.5)):
    """f = 2x - y + 0.5z + 1 sampled on a grid with non-trivial spacing/origin."""
    spacing = np.asarray(spacing)
    origin = np.asarray(origin)
    idx = np.meshgrid(*[np.arange(n) for n in shape], indexing='ij')
    X, Y, Z = [origin[d] + idx[d] * spacing[d] for d in range(3)]
    return ScalarGrid(2 * X - Y + 0.5 * Z + 1, spacing, origin)


def linear_value(p):
    return 2 * p[0] - p[1] + 0.5 * p[2] + 1


# =============================================================================
# CONSTRUCTION + LATTICE QUERIES
# =============================================================================

class TestConstruction:

    def test_rejects_non_3d(self):
        with pytest.raises(ValueError, match="3-D"):
            ScalarGrid(np.zeros((3, 3)))

    def test_rejects_single_sample_axis(self):
        with pytest.raises(ValueError, match=">= 2 samples"):
            ScalarGrid(np.zeros((3, 1, 3)))

    def test_rejects_non_positive_spacing(self):
        with pytest.raises(ValueError, match="spacing must be positive"):
            ScalarGrid(np.zeros((2, 2, 2)), spacing=(1.0, 0.0, 1.0))

    def test_bounds_and_position(self):
        grid = linear_grid()
        lo, hi = grid.bounds()
        np.testing.assert_allclose(lo, [1.0, -2.0, 0.5])
        np.testing.assert_allclose(hi, [1.0 + 3 * 1.0, -2.0 + 4 * 0.5, 0.5 + 5 * 2.0])
        np.testing.assert_allclose(grid.position(1, 2, 3), [2.0, -1.0, 6.5])
        assert grid.min_spacing == 0.5
        assert grid.shape == (4, 5, 6)

    def test_get_value_inside_and_sentinel(self):
        grid = linear_grid()
        assert grid.get_value(1, 2, 3) == pytest.approx(linear_value(grid.position(1, 2, 3)))
        assert grid.get_value(-1, 0, 0) == 0.0
        assert grid.get_value(0, 5, 0) == 0.0
        assert grid.get_value(0, 0, 99) == 0.0

    def test_point_to_grid_index(self):
        grid = linear_grid()
        assert grid.point_to_grid_index([2.5, -1.2, 4.0]) == (1, 1, 1)
        assert grid.point_to_grid_index([0.0, -2.0, 0.5]) == (-1, 0, 0)


# =============================================================================
# TRILINEAR INTERPOLATION
# =============================================================================

class TestTrilinear:

    def test_exact_on_linear_field(self):
        grid = linear_grid()
        rng = np.random.default_rng(7)
        lo, hi = grid.bounds()
        pts = lo + rng.random((50, 3)) * (hi - lo)
        expected = [linear_value(p) for p in pts]
        np.testing.assert_allclose(grid.trilinear_many(pts), expected, atol=1e-12)

    def test_reproduces_samples(self):
        grid = linear_grid()
        for ijk in [(0, 0, 0), (3, 4, 5), (2, 1, 3)]:
            assert grid.trilinear(grid.position(*ijk)) == pytest.approx(grid.values[ijk])

    def test_clamped_outside(self):
        """Points outside take the value of the nearest boundary position."""
        grid = linear_grid()
        lo, hi = grid.bounds()
        outside = np.array([lo[0] - 5.0, (lo[1] + hi[1]) / 2, hi[2] + 3.0])
        clamped = np.array([lo[0], (lo[1] + hi[1]) / 2, hi[2]])
        assert grid.trilinear(outside) == pytest.approx(linear_value(clamped))

    def test_upper_corner(self):
        grid = linear_grid()
        _, hi = grid.bounds()
        assert grid.trilinear(hi) == pytest.approx(grid.values[-1, -1, -1])


# =============================================================================
# SUPERSAMPLING
# =============================================================================

class TestSupersample:

    def test_dims_and_spacing(self):
        grid = linear_grid(shape=(3, 4, 5))
        fine = grid.supersample(3)
        assert fine.shape == (3 * 3 - 2, 4 * 3 - 2, 5 * 3 - 2)
        np.testing.assert_allclose(fine.spacing, grid.spacing / 3)
        np.testing.assert_allclose(fine.origin, grid.origin)
        np.testing.assert_allclose(fine.bounds()[1], grid.bounds()[1])

    def test_original_samples_preserved(self):
        grid = ScalarGrid(np.random.default_rng(3).random((3, 3, 3)))
        fine = grid.supersample(2)
        np.testing.assert_allclose(fine.values[::2, ::2, ::2], grid.values, atol=1e-12)

    def test_factor_one_is_copy(self):
        grid = linear_grid()
        same = grid.supersample(1)
        np.testing.assert_array_equal(same.values, grid.values)
        assert same.values is not grid.values

    def test_rejects_zero_factor(self):
        with pytest.raises(ValueError, match="factor"):
            linear_grid().supersample(0)


# =============================================================================
# ACTIVE CUBES
# =============================================================================

class TestActiveCubes:

    def test_matches_per_cube_predicate(self, sphere_grid):
        iso = 3.1
        cubes = sphere_grid.find_active_cubes(iso)
        found = {c.index for c in cubes}
        nx, ny, nz = sphere_grid.shape
        for i in range(nx - 1):
            for j in range(ny - 1):
                for k in range(nz - 1):
                    assert ((i, j, k) in found) == sphere_grid.is_cube_active(i, j, k, iso)

    def test_lexicographic_order(self, sphere_grid):
        cubes = sphere_grid.find_active_cubes(3.1)
        indices = [c.index for c in cubes]
        assert indices == sorted(indices)

    def test_cube_geometry(self):
        grid = linear_grid()
        cube = grid.make_cube(1, 2, 3)
        np.testing.assert_allclose(cube.rep_vertex, grid.position(1, 2, 3))
        np.testing.assert_allclose(cube.center, grid.position(1, 2, 3) + 0.5 * grid.spacing)
        np.testing.assert_allclose(cube_centers([cube]), [cube.center])
        assert cube_centers([]).shape == (0, 3)

    def test_corner_equal_to_isovalue_counts_as_above(self):
        """Classification is value < isovalue, so a corner at the isovalue is 'above'."""
        values = np.ones((2, 2, 2))
        values[0, 0, 0] = 0.5
        grid = ScalarGrid(values)
        assert grid.is_cube_active(0, 0, 0, 0.5) is False
        assert grid.is_cube_active(0, 0, 0, 0.75) is True

    def test_active_cubes_along_a_line(self):
        """Only the cube column straddling the step is active."""
        values = np.zeros((2, 2, 5))
        values[:, :, 3:] = 1.0
        cubes = ScalarGrid(values).find_active_cubes(0.5)
        assert [c.index for c in cubes] == [(0, 0, 2)]

    def test_no_active_cubes(self, sphere_grid):
        assert sphere_grid.find_active_cubes(100.0) == []


# =============================================================================
# CROSSINGS
# =============================================================================

class TestCrossings:

    @pytest.mark.parametrize("v1,v2,expected", [
        (0.0, 1.0, True),
        (1.0, 0.0, True),
        (0.5, 1.0, False),   # endpoint at isovalue is not a strict change
        (0.5, 0.5, False),
        (0.7, 0.9, False),
        (-3.0, 0.2, False),
    ])
    def test_is_bipolar_symmetric(self, v1, v2, expected):
        assert is_bipolar(v1, v2, 0.5) is expected
        assert is_bipolar(v2, v1, 0.5) is expected

    def test_crosses_inclusive(self):
        assert crosses_inclusive(0.0, 0.5, 0.5)
        assert crosses_inclusive(0.5, 1.0, 0.5)
        assert not crosses_inclusive(0.5, 0.5, 0.5)
        assert not crosses_inclusive(0.6, 0.9, 0.5)

    def test_interpolate_crossing(self):
        p = interpolate_crossing([0, 0, 0], [2, 0, 0], 0.0, 1.0, 0.25)
        np.testing.assert_allclose(p, [0.5, 0, 0])

    def test_interpolate_flat_edge_returns_first_point(self):
        p = interpolate_crossing([1, 2, 3], [4, 5, 6], 0.3, 0.3 + 1e-9, 0.3)
        np.testing.assert_allclose(p, [1, 2, 3])
