"""Pytest configuration and shared fields for core tests."""
import sys
from pathlib import Path

import numpy as np
import pytest


def pytest_configure(config):
    """Add src/ to path before any test imports."""
    src_root = Path(__file__).parent.parent.parent
    if str(src_root) not in sys.path:
        sys.path.insert(0, str(src_root))


# Also do it at module level for import ordering
src_root = Path(__file__).parent.parent.parent
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from vdc.field.scalar_grid import ScalarGrid  # noqa: E402
from vdc.kernel.delaunay import build_delaunay  # noqa: E402
from vdc.spec.structures import DelaunayFacet, EdgeLine, VoronoiDiagram, VoronoiEdge  # noqa: E402


SPHERE_CENTER = np.array([4.3, 4.6, 4.4])
SPHERE_RADIUS = 3.1


def sphere_values(n: int = 10, center=SPHERE_CENTER) -> np.ndarray:
    """Distance to center, sampled on an n³ unit lattice."""
    axis = np.arange(n, dtype=float)
    X, Y, Z = np.meshgrid(axis, axis, axis, indexing='ij')
    return np.sqrt((X - center[0]) ** 2 + (Y - center[1]) ** 2 + (Z - center[2]) ** 2)


@pytest.fixture
def sphere_grid():
    """Distance field of a sphere; the surface is at SPHERE_RADIUS."""
    return ScalarGrid(sphere_values())


@pytest.fixture
def corner_grid():
    """
    3x3x3 samples of x + y + z.

    At isovalue 2.9 every cube except (1, 1, 1) is active, and the seven
    active centers are cospherical around the node (1, 1, 1).
    """
    axis = np.arange(3, dtype=float)
    X, Y, Z = np.meshgrid(axis, axis, axis, indexing='ij')
    return ScalarGrid(X + Y + Z)


@pytest.fixture
def saddle_cube_grid():
    """One cube: +1 at corners 0 and 6, -1 elsewhere (two separate sheets at 0)."""
    values = -np.ones((2, 2, 2))
    values[0, 0, 0] = 1.0
    values[1, 1, 1] = 1.0
    return ScalarGrid(values)


@pytest.fixture
def sphere_center():
    return SPHERE_CENTER.copy()


@pytest.fixture
def line_edge_case():
    """
    Hand-built diagram holding two line edges over f = x on a 4³ grid.

    Edge 0 runs along +x through (1, 1, 1) and crosses the whole box.
    Edge 1 runs along +x through (1, 5, 1) and misses it.
    Both are dual to a facet over Delaunay vertices 0, 1, 2, which lie
    in the plane x = 0 and whose (b-a)×(c-a) normal is +x.
    """
    axis = np.arange(4, dtype=float)
    X, _, _ = np.meshgrid(axis, axis, axis, indexing='ij')
    grid = ScalarGrid(X)

    tri = build_delaunay(np.array([[0, 0, 0], [0, 1, 0], [0, 0, 1], [1, 0, 0]], dtype=float))
    facet = DelaunayFacet(cell=0, opposite=3, corners=(0, 1, 2), neighbor=-1)
    vd = VoronoiDiagram(
        vertices=np.zeros((0, 3)),
        vertex_values=np.zeros(0),
        simplex_to_vertex=np.zeros(tri.n_cells, dtype=np.int64),
        bbox=grid.bounds(),
        edges=[
            VoronoiEdge(0, EdgeLine((1.0, 1.0, 1.0), (1.0, 0.0, 0.0)), [facet]),
            VoronoiEdge(1, EdgeLine((1.0, 5.0, 1.0), (1.0, 0.0, 0.0)), [facet]),
        ],
    )
    return grid, tri, vd
