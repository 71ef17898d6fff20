"""
Regular scalar grid
===================

Samples f(i, j, k) on a lattice with per-axis spacing and origin:

    position(i, j, k) = origin + (i, j, k) * spacing

values[i, j, k] is indexed x-first. Continuous queries use trilinear
interpolation with coordinates clamped to the grid bounds, so every
point in space gets a finite value.
"""

import logging
from typing import List, Sequence, Tuple

import numpy as np

from ..spec.constants import CUBE_VERTICES, EPS_INTERP
from ..spec.structures import Cube

logger = logging.getLogger(__name__)


class ScalarGrid:
    """
    Regular 3D grid of scalar samples.

    Args:
        values: (nx, ny, nz) array, at least 2 samples per axis
        spacing: (dx, dy, dz), all positive
        origin: real-space position of sample (0, 0, 0)
    """

    def __init__(self, values, spacing: Sequence[float] = (1.0, 1.0, 1.0),
                 origin: Sequence[float] = (0.0, 0.0, 0.0)):
        values = np.asarray(values, dtype=float)
        if values.ndim != 3:
            raise ValueError(f"Grid values must be 3-D, got shape {values.shape}")
        if min(values.shape) < 2:
            raise ValueError(f"Grid needs >= 2 samples per axis, got shape {values.shape}")

        spacing = np.asarray(spacing, dtype=float).reshape(3)
        if np.any(spacing <= 0):
            raise ValueError(f"Grid spacing must be positive, got {spacing}")

        self.values = values
        self.spacing = spacing
        self.origin = np.asarray(origin, dtype=float).reshape(3)
        self.dims = np.array(values.shape, dtype=int)

    def __repr__(self):
        return (f"ScalarGrid(dims={tuple(self.dims)}, spacing={tuple(self.spacing)}, "
                f"origin={tuple(self.origin)})")

    # ─────────────────────────────────────────────────────────────
    # Lattice queries
    # ─────────────────────────────────────────────────────────────

    @property
    def shape(self) -> Tuple[int, int, int]:
        return tuple(int(n) for n in self.dims)

    @property
    def min_spacing(self) -> float:
        return float(self.spacing.min())

    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Axis-aligned box spanned by the sample positions."""
        return self.origin.copy(), self.origin + (self.dims - 1) * self.spacing

    def position(self, i: int, j: int, k: int) -> np.ndarray:
        return self.origin + np.array([i, j, k], dtype=float) * self.spacing

    def get_value(self, i: int, j: int, k: int) -> float:
        """Sample at (i, j, k); 0.0 outside the grid."""
        nx, ny, nz = self.dims
        if 0 <= i < nx and 0 <= j < ny and 0 <= k < nz:
            return float(self.values[i, j, k])
        return 0.0

    def point_to_grid_index(self, point) -> Tuple[int, int, int]:
        """Lattice corner of the cube containing point (not clamped)."""
        g = np.floor((np.asarray(point, dtype=float) - self.origin) / self.spacing)
        return tuple(int(x) for x in g)

    # ─────────────────────────────────────────────────────────────
    # Interpolation
    # ─────────────────────────────────────────────────────────────

    def trilinear_many(self, points) -> np.ndarray:
        """
        Trilinear interpolation at (N, 3) points.

        Continuous grid coordinates are clamped to [0, n-1] per axis, and
        the upper corner index to n-1, so points outside the grid take the
        value of the nearest boundary position.
        """
        pts = np.atleast_2d(np.asarray(points, dtype=float))
        n_max = (self.dims - 1).astype(float)

        g = np.clip((pts - self.origin) / self.spacing, 0.0, n_max)
        i0 = np.minimum(np.floor(g).astype(int), self.dims - 1)
        i1 = np.minimum(i0 + 1, self.dims - 1)
        t = g - i0

        v = self.values
        x0, y0, z0 = i0[:, 0], i0[:, 1], i0[:, 2]
        x1, y1, z1 = i1[:, 0], i1[:, 1], i1[:, 2]
        tx, ty, tz = t[:, 0], t[:, 1], t[:, 2]

        c00 = v[x0, y0, z0] * (1 - tx) + v[x1, y0, z0] * tx
        c10 = v[x0, y1, z0] * (1 - tx) + v[x1, y1, z0] * tx
        c01 = v[x0, y0, z1] * (1 - tx) + v[x1, y0, z1] * tx
        c11 = v[x0, y1, z1] * (1 - tx) + v[x1, y1, z1] * tx

        c0 = c00 * (1 - ty) + c10 * ty
        c1 = c01 * (1 - ty) + c11 * ty

        return c0 * (1 - tz) + c1 * tz

    def trilinear(self, point) -> float:
        return float(self.trilinear_many(point)[0])

    def supersample(self, factor: int) -> "ScalarGrid":
        """
        Refine the grid by an integer factor.

        New dims are n*factor - (factor-1), new spacing d/factor; original
        samples are preserved and new ones are trilinearly interpolated.
        """
        factor = int(factor)
        if factor < 1:
            raise ValueError(f"Supersample factor must be >= 1, got {factor}")
        if factor == 1:
            return ScalarGrid(self.values.copy(), self.spacing, self.origin)

        new_dims = self.dims * factor - (factor - 1)
        new_spacing = self.spacing / factor

        axes = [self.origin[d] + np.arange(new_dims[d]) * new_spacing[d] for d in range(3)]
        X, Y, Z = np.meshgrid(*axes, indexing='ij')
        pts = np.column_stack([X.ravel(), Y.ravel(), Z.ravel()])
        values = self.trilinear_many(pts).reshape(tuple(new_dims))

        logger.info(f"Supersampled grid x{factor}: {tuple(self.dims)} -> {tuple(new_dims)}")
        return ScalarGrid(values, new_spacing, self.origin)

    # ─────────────────────────────────────────────────────────────
    # Active cubes
    # ─────────────────────────────────────────────────────────────

    def cube_corner_values(self, i: int, j: int, k: int) -> np.ndarray:
        """The 8 corner samples of cube (i, j, k), in CUBE_VERTICES order."""
        return np.array([self.values[i + a, j + b, k + c] for a, b, c in CUBE_VERTICES])

    def cube_corner_positions(self, i: int, j: int, k: int) -> np.ndarray:
        base = self.position(i, j, k)
        return base + np.array(CUBE_VERTICES, dtype=float) * self.spacing

    def is_cube_active(self, i: int, j: int, k: int, isovalue: float) -> bool:
        """True iff the corners of cube (i, j, k) fall on both sides of isovalue."""
        below = self.cube_corner_values(i, j, k) < isovalue
        return bool(below.any() and not below.all())

    def find_active_cubes(self, isovalue: float) -> List[Cube]:
        """
        All active cubes, in lexicographic (i, j, k) order.

        A cube is active when its corner classification (value < isovalue)
        is not uniform.
        """
        below = self.values < isovalue
        nx, ny, nz = self.dims
        any_below = np.zeros((nx - 1, ny - 1, nz - 1), dtype=bool)
        all_below = np.ones((nx - 1, ny - 1, nz - 1), dtype=bool)
        for a, b, c in CUBE_VERTICES:
            corner = below[a:a + nx - 1, b:b + ny - 1, c:c + nz - 1]
            any_below |= corner
            all_below &= corner

        active = any_below & ~all_below
        cubes = [self.make_cube(int(i), int(j), int(k)) for i, j, k in zip(*np.nonzero(active))]
        logger.info(f"Found {len(cubes)} active cubes at isovalue {isovalue}")
        return cubes

    def make_cube(self, i: int, j: int, k: int) -> Cube:
        rep = self.position(i, j, k)
        center = rep + 0.5 * self.spacing
        return Cube(i, j, k, tuple(float(x) for x in rep), tuple(float(x) for x in center))


def cube_centers(cubes: List[Cube]) -> np.ndarray:
    """(N, 3) array of cube centers."""
    if not cubes:
        return np.zeros((0, 3))
    return np.array([c.center for c in cubes], dtype=float)


# ═══════════════════════════════════════════════════════════════
# CROSSINGS
# ═══════════════════════════════════════════════════════════════

def is_bipolar(v1: float, v2: float, isovalue: float) -> bool:
    """Strict sign change: (v1 - iso) * (v2 - iso) < 0. Symmetric in v1, v2."""
    return (v1 - isovalue) * (v2 - isovalue) < 0


def crosses_inclusive(v1: float, v2: float, isovalue: float) -> bool:
    """
    Cube-edge crossing test that counts a corner equal to isovalue.

    An edge from a value strictly on one side to a value on or past the
    isovalue crosses; an edge with both ends equal to isovalue does not.
    """
    return ((v1 > isovalue and v2 <= isovalue) or (v1 >= isovalue and v2 < isovalue)
            or (v1 < isovalue and v2 >= isovalue) or (v1 <= isovalue and v2 > isovalue))


def interpolate_crossing(p1, p2, v1: float, v2: float, isovalue: float) -> np.ndarray:
    """Linear isovalue crossing on p1-p2; p1 when |v1 - v2| < EPS_INTERP."""
    p1 = np.asarray(p1, dtype=float)
    p2 = np.asarray(p2, dtype=float)
    if abs(v1 - v2) < EPS_INTERP:
        return p1.copy()
    t = (isovalue - v1) / (v2 - v1)
    return p1 + t * (p2 - p1)
