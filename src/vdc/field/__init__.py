"""
Scalar field side: the sampled grid, active cubes, and the dummy points
that bound the triangulation in multi mode.
"""

from .scalar_grid import ScalarGrid, interpolate_crossing, is_bipolar
from .active_cubes import (
    build_dummy_points,
    create_grid_facets,
    separate_active_cubes_graph,
    separate_active_cubes_greedy,
)
