"""
Geometry kernel over scipy.spatial (Qhull).

EXPORTS:
- build_delaunay, DegenerateGeometryError
- clipping, hull / half-space cell facets, cycle ordering
"""

from .delaunay import DegenerateGeometryError, build_delaunay
from .primitives import (
    clip_line_to_box,
    clip_ray_to_box,
    halfspace_cell_facets,
    hull_cell_facets,
    order_cycle_vertices,
)
