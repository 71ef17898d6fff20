"""
Dual Triangle Assembler
=======================

For every bipolar Voronoi edge and every Delaunay facet dual to it, emit
one triangle over the isovertices of the facet's three corners.

Winding (see ORIENTATION CONVENTION in spec/constants.py):

    toward = +1 if the facet normal (a, b, c) points along the dual edge
    v1_positive = value at the edge source >= value at the edge target

    keep (a, b, c) when (toward > 0) == v1_positive, else (a, c, b)

so every triangle normal points toward decreasing scalar value. For a
non-flat simplex toward follows from the facet-local index parity and the
simplex orientation sign; flat simplices and lines use the geometry.
"""

import logging
from typing import Iterator, List, Tuple

import numpy as np

from ..builders.cell_edges import resolve_cycle
from ..builders.voronoi import sample_edge
from ..field.scalar_grid import ScalarGrid, is_bipolar
from ..spec.constants import EDGE_LINE, EDGE_SEGMENT
from ..spec.structures import DelaunayFacet, Triangulation, VoronoiDiagram, VoronoiEdge

logger = logging.getLogger(__name__)

Triangle = Tuple[int, int, int]


# ═══════════════════════════════════════════════════════════════
# ORIENTATION
# ═══════════════════════════════════════════════════════════════

def facet_points_along(tri: Triangulation, facet: DelaunayFacet, direction: np.ndarray,
                       use_parity: bool = True) -> bool:
    """
    True when the normal of (corners[0], corners[1], corners[2]) has a
    positive component along direction.

    With use_parity, a non-flat simplex answers from its orientation sign:
    the normal points away from the opposite vertex for even local index
    (positive simplex) and toward it for odd; the dual edge leaves the
    simplex away from the opposite vertex.
    """
    sigma = int(tri.orientation[facet.cell])
    if use_parity and sigma != 0:
        parity = 1 if facet.opposite % 2 == 0 else -1
        return sigma * parity > 0

    a, b, c = tri.points[list(facet.corners)]
    return float(np.dot(np.cross(b - a, c - a), direction)) > 0


def orient_triangle(corners: Triangle, toward_target: bool, v1_positive: bool) -> Triangle:
    a, b, c = corners
    if toward_target == v1_positive:
        return (a, b, c)
    return (a, c, b)


# ═══════════════════════════════════════════════════════════════
# BIPOLAR FACETS
# ═══════════════════════════════════════════════════════════════

def bipolar_facets(vd: VoronoiDiagram, tri: Triangulation, grid: ScalarGrid,
                   isovalue: float) -> Iterator[Tuple[VoronoiEdge, DelaunayFacet, bool, bool]]:
    """
    Yield (edge, facet, toward_target, v1_positive) for every facet dual
    to a bipolar edge.

    Segment facets are sampled from their own simplex to its neighbour, so
    facets sharing an edge from opposite sides each get their own source.
    """
    stv = vd.simplex_to_vertex
    for edge in vd.edges:
        sample = sample_edge(vd, edge, grid)
        if sample is None or not is_bipolar(sample.f1, sample.f2, isovalue):
            continue

        for facet in edge.facets:
            if edge.kind == EDGE_SEGMENT:
                s, t = stv[facet.cell], stv[facet.neighbor]
                f1, f2 = vd.vertex_values[s], vd.vertex_values[t]
                direction = vd.vertices[t] - vd.vertices[s]
            else:
                f1, f2 = sample.f1, sample.f2
                direction = sample.p2 - sample.p1

            toward = facet_points_along(tri, facet, direction, use_parity=edge.kind != EDGE_LINE)
            yield edge, facet, toward, bool(f1 >= f2)


# ═══════════════════════════════════════════════════════════════
# ASSEMBLY
# ═══════════════════════════════════════════════════════════════

def assemble_single_triangles(vd: VoronoiDiagram, tri: Triangulation, grid: ScalarGrid,
                              point_index_map: np.ndarray, cube_to_isovertex: np.ndarray,
                              isovalue: float) -> Tuple[List[Triangle], int]:
    """
    Triangles over cube isovertices.

    Returns:
        (triangles, n_dropped)
    """
    triangles = []
    n_dropped = 0

    for edge, facet, toward, v1_positive in bipolar_facets(vd, tri, grid, isovalue):
        cubes = [point_index_map[v] for v in facet.corners]
        if min(cubes) < 0:
            continue
        corners = tuple(int(cube_to_isovertex[c]) for c in cubes)
        if min(corners) < 0:
            logger.warning(f"Edge {edge.index}: facet corner cube without isovertex {cubes}")
            n_dropped += 1
            continue
        if len(set(corners)) < 3:
            logger.warning(f"Edge {edge.index}: degenerate triangle {corners}")
            n_dropped += 1
            continue
        triangles.append(orient_triangle(corners, toward, v1_positive))

    logger.info(f"Single-mode triangles: {len(triangles)} ({n_dropped} dropped)")
    return triangles, n_dropped


def assemble_multi_triangles(vd: VoronoiDiagram, tri: Triangulation, grid: ScalarGrid,
                             isovalue: float) -> Tuple[List[Triangle], int]:
    """
    Triangles over cell isovertices, resolved through the cell-edge ring.

    Facets with a dummy corner are skipped. A corner whose cycle cannot be
    resolved drops the triangle.

    Returns:
        (triangles, n_dropped)
    """
    triangles = []
    n_dropped = 0
    n_dummy = 0

    for edge, facet, toward, v1_positive in bipolar_facets(vd, tri, grid, isovalue):
        cells = [int(vd.vertex_to_cell[v]) for v in facet.corners]
        if min(cells) < 0:
            n_dummy += 1
            continue

        corners = []
        for c in cells:
            cycle = resolve_cycle(vd, c, edge.index)
            if cycle is None:
                break
            corners.append(vd.cells[c].iso_vertex_start + cycle)
        if len(corners) < 3:
            logger.warning(f"Edge {edge.index}: no isovertex of cell {c} resolved "
                           f"(facet {facet.cell}/{facet.opposite})")
            n_dropped += 1
            continue

        corners = tuple(corners)
        if len(set(corners)) < 3:
            logger.warning(f"Edge {edge.index}: degenerate triangle {corners}")
            n_dropped += 1
            continue
        triangles.append(orient_triangle(corners, toward, v1_positive))

    if n_dummy:
        logger.debug(f"Skipped {n_dummy} bipolar facets with a dummy corner")
    logger.info(f"Multi-mode triangles: {len(triangles)} ({n_dropped} dropped)")
    return triangles, n_dropped
