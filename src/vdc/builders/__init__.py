"""
Combinatorial construction: triangulation, Voronoi diagram, cell-edge ring.
"""

from .triangulation import construct_delaunay_triangulation
from .voronoi import build_voronoi_diagram, sample_edge
from .cell_edges import build_cell_edge_graph, resolve_cycle
