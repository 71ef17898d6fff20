"""
Triangulation Builder
=====================

Inserts active-cube centers into a Delaunay triangulation. In multi mode,
dummy points one grid step outside the active-cube box are inserted too,
so every real vertex owns a bounded Voronoi cell.

Real vertices come first and keep the order of the cube list, so Delaunay
vertex v < n_real is cube v.
"""

import logging
from typing import List, Tuple

import numpy as np

from ..field.active_cubes import build_dummy_points
from ..field.scalar_grid import ScalarGrid, cube_centers
from ..kernel.delaunay import build_delaunay
from ..spec.constants import MODE_MULTI, VALID_MODES
from ..spec.structures import Cube, Triangulation

logger = logging.getLogger(__name__)


def construct_delaunay_triangulation(cubes: List[Cube], grid: ScalarGrid,
                                     mode: str) -> Tuple[Triangulation, np.ndarray]:
    """
    Build the triangulation of the active-cube centers.

    Args:
        cubes: active cubes (already subsampled if requested)
        grid: source grid (spacing and origin for dummy placement)
        mode: "single" or "multi"

    Returns:
        (triangulation, point_index_map) where point_index_map[v] is the
        cube index of Delaunay vertex v, -1 for dummy vertices

    Raises:
        DegenerateGeometryError: from the kernel, for degenerate point sets
    """
    if mode not in VALID_MODES:
        raise ValueError(f"Invalid mode: {mode}")

    real = cube_centers(cubes)
    if mode == MODE_MULTI and cubes:
        dummies = build_dummy_points(cubes, grid.spacing, grid.origin)
    else:
        dummies = np.zeros((0, 3))

    points = np.vstack([real, dummies])
    is_dummy = np.concatenate([np.zeros(len(real), dtype=bool), np.ones(len(dummies), dtype=bool)])

    logger.info(f"Constructing Delaunay triangulation ({mode} mode): "
                f"{len(real)} real + {len(dummies)} dummy points")
    tri = build_delaunay(points, is_dummy, scale=grid.min_spacing)

    point_index_map = np.where(is_dummy, -1, np.arange(len(points)))
    return tri, point_index_map
