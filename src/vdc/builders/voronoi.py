"""
Voronoi Diagram Builder
=======================

Derives the Voronoi diagram from a Delaunay triangulation:

    1. vertices  - circumcenters of finite simplices, deduplicated
    2. values    - trilinear field value per vertex, computed once
    3. edges     - dual of every Delaunay facet (segment / ray / line),
                   deduplicated, each with the list of facets sharing it
    4. cells     - (multi mode) bounded cell of each real vertex with
                   CCW-ordered facet cycles
    5. ring      - (multi mode) cell-edge graph, see cell_edges.py

After step 1 everything is addressed by integer index; no geometry is
re-hashed downstream.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy.spatial import cKDTree

from ..field.scalar_grid import ScalarGrid
from ..kernel.delaunay import DegenerateGeometryError, hull_ray_direction
from ..kernel.primitives import (
    clip_line_to_box,
    clip_ray_to_box,
    halfspace_cell_facets,
    hull_cell_facets,
    order_cycle_vertices,
)
from ..spec.constants import (
    CELL_HALFSPACE,
    CELL_HULL,
    DIRECTION_DECIMALS,
    EDGE_LINE,
    EDGE_RAY,
    EDGE_SEGMENT,
    MATCH_TOL,
    MODE_MULTI,
    VERTEX_DECIMALS,
)
from ..spec.structures import (
    EdgeRay,
    EdgeSegment,
    Triangulation,
    VoronoiCell,
    VoronoiDiagram,
    VoronoiEdge,
    VoronoiFacet,
)
from .cell_edges import build_cell_edge_graph, build_segment_edge_index

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# 1-2. VERTICES + VALUES
# ═══════════════════════════════════════════════════════════════

def construct_voronoi_vertices(tri: Triangulation) -> Tuple[np.ndarray, np.ndarray]:
    """
    Deduplicate simplex circumcenters.

    Coordinates are scaled by the triangulation scale and rounded to
    VERTEX_DECIMALS. Vertex indices follow first occurrence in simplex order.

    Returns:
        (vertices (V, 3), simplex_to_vertex (m,))
    """
    centers = tri.circumcenters
    keys = np.round(centers / tri.scale, VERTEX_DECIMALS)
    _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
    inverse = inverse.reshape(-1)

    order = np.argsort(first, kind="stable")
    rank = np.empty(len(first), dtype=np.int64)
    rank[order] = np.arange(len(first))

    vertices = centers[first[order]]
    simplex_to_vertex = rank[inverse]
    return vertices, simplex_to_vertex


def compute_voronoi_values(vertices: np.ndarray, grid: ScalarGrid) -> np.ndarray:
    if len(vertices) == 0:
        return np.zeros(0)
    return grid.trilinear_many(vertices)


# ═══════════════════════════════════════════════════════════════
# 3. EDGES
# ═══════════════════════════════════════════════════════════════

def _direction_key(direction: np.ndarray) -> tuple:
    return tuple(float(x) for x in np.round(direction, DIRECTION_DECIMALS))


def construct_voronoi_edges(vd: VoronoiDiagram, tri: Triangulation) -> None:
    """
    Dual of every Delaunay facet, seen from its finite simplex.

    Interior facet -> segment c(cell) -> c(neighbor), skipped when both
    simplices share a Voronoi vertex. Hull facet -> ray from c(cell) along
    the outward facet normal.

    Edge keys: ("segment", min, max), ("ray", source, direction),
    ("line", point, direction).
    """
    stv = vd.simplex_to_vertex
    interior = tri.points.mean(axis=0)
    edge_index: Dict[tuple, int] = {}
    n_degenerate = 0

    for facet in tri.finite_facets():
        source = int(stv[facet.cell])
        if facet.neighbor == -1:
            direction = hull_ray_direction(tri, facet, interior)
            key = (EDGE_RAY, source, _direction_key(direction))
            geometry = EdgeRay(source, tuple(float(x) for x in direction))
        else:
            target = int(stv[facet.neighbor])
            if source == target:
                n_degenerate += 1
                continue
            key = (EDGE_SEGMENT, min(source, target), max(source, target))
            geometry = EdgeSegment(source, target)

        idx = edge_index.get(key)
        if idx is None:
            idx = len(vd.edges)
            edge_index[key] = idx
            vd.edges.append(VoronoiEdge(idx, geometry))
        vd.edges[idx].facets.append(facet)

    counts = {}
    for e in vd.edges:
        counts[e.kind] = counts.get(e.kind, 0) + 1
    logger.info(f"Voronoi edges: {len(vd.edges)} {counts}, "
                f"{n_degenerate} degenerate facet duals skipped")


@dataclass(frozen=True)
class EdgeSample:
    """Endpoints of an edge inside the field box, with their scalar values."""
    p1: np.ndarray
    p2: np.ndarray
    f1: float
    f2: float


def sample_edge(vd: VoronoiDiagram, edge: VoronoiEdge, grid: ScalarGrid) -> Optional[EdgeSample]:
    """
    Finite endpoints and values of an edge.

    Segments use the cached vertex values. A ray keeps its source vertex
    (and cached value) and ends where it leaves the field box; a line is
    clipped at both ends. Clipped endpoints are interpolated with clamping.

    Returns:
        EdgeSample, or None when an unbounded edge misses the box
    """
    g = edge.geometry
    lo, hi = vd.bbox

    if g.kind == EDGE_SEGMENT:
        return EdgeSample(vd.vertices[g.source], vd.vertices[g.target],
                          float(vd.vertex_values[g.source]), float(vd.vertex_values[g.target]))

    if g.kind == EDGE_RAY:
        clipped = clip_ray_to_box(vd.vertices[g.source], g.direction, lo, hi)
        if clipped is None:
            return None
        p2 = clipped[1]
        return EdgeSample(vd.vertices[g.source], p2,
                          float(vd.vertex_values[g.source]), grid.trilinear(p2))

    if g.kind == EDGE_LINE:
        clipped = clip_line_to_box(g.point, g.direction, lo, hi)
        if clipped is None:
            return None
        p1, p2 = clipped
        return EdgeSample(p1, p2, grid.trilinear(p1), grid.trilinear(p2))

    raise ValueError(f"Unknown edge kind: {g.kind}")


# ═══════════════════════════════════════════════════════════════
# 4. CELLS
# ═══════════════════════════════════════════════════════════════

def _check_bounded(tri: Triangulation, v: int, incident: np.ndarray) -> None:
    """A vertex on a hull facet has an unbounded cell."""
    for s in incident:
        for i in range(4):
            if tri.neighbors[s, i] == -1 and tri.simplices[s, i] != v:
                vertex = tri.vertex(v)
                raise DegenerateGeometryError(
                    f"Voronoi cell of real vertex {vertex.index} at {vertex.point} is unbounded "
                    f"(vertex lies on the hull)")


def _add_facet(vd: VoronoiDiagram, cell: VoronoiCell, global_ids: List[int], normal: np.ndarray) -> None:
    ids = list(dict.fromkeys(global_ids))
    if len(ids) < 3:
        return
    order = order_cycle_vertices(vd.vertices[ids], normal)
    cycle = [ids[k] for k in order]
    facet = VoronoiFacet(
        index=len(vd.facets),
        cell_index=cell.index,
        vertex_indices=cycle,
        vertex_values=[float(vd.vertex_values[u]) for u in cycle],
        normal=tuple(float(x) for x in normal),
    )
    vd.facets.append(facet)
    cell.facet_indices.append(facet.index)


def construct_voronoi_cells(vd: VoronoiDiagram, tri: Triangulation, method: str = CELL_HULL) -> None:
    """
    Bounded Voronoi cell of every real Delaunay vertex.

    method "hull": convex hull of the Voronoi vertices of incident simplices.
    method "halfspace": intersection of bisector half-spaces with all
    Delaunay neighbours; its vertices are matched back to Voronoi vertices.

    Raises:
        DegenerateGeometryError: unbounded cell, failed hull or half-space
            intersection, or a half-space vertex with no Voronoi vertex match
    """
    if method not in (CELL_HULL, CELL_HALFSPACE):
        raise ValueError(f"Invalid cell method: {method}")

    vd.vertex_to_cell = np.full(tri.n_vertices, -1, dtype=np.int64)
    tree = cKDTree(vd.vertices) if method == CELL_HALFSPACE else None
    match_radius = MATCH_TOL * tri.scale

    for v in tri.real_vertices:
        v = int(v)
        incident = tri.incident_cells(v)
        _check_bounded(tri, v, incident)

        cell = VoronoiCell(index=len(vd.cells), delaunay_vertex=v)
        vd.vertex_to_cell[v] = cell.index
        vd.cells.append(cell)

        vids = np.unique(vd.simplex_to_vertex[incident])

        if method == CELL_HULL:
            for local, normal in hull_cell_facets(vd.vertices[vids], tri.scale):
                _add_facet(vd, cell, [int(vids[k]) for k in local], normal)
            cell.vertex_indices = [int(u) for u in vids]
        else:
            nbrs = tri.neighbor_vertices(v)
            points, facets = halfspace_cell_facets(tri.points[v], tri.points[nbrs])
            dist, match = tree.query(points)
            if np.any(dist > match_radius):
                raise DegenerateGeometryError(
                    f"Cell {cell.index}: half-space vertex {float(dist.max()):.3g} away "
                    f"from the nearest Voronoi vertex")
            for local, normal in facets:
                _add_facet(vd, cell, [int(match[k]) for k in local], normal)
            cell.vertex_indices = sorted(set(int(u) for u in match))

    logger.info(f"Voronoi cells: {len(vd.cells)} cells, {len(vd.facets)} facets ({method})")


# ═══════════════════════════════════════════════════════════════
# ENTRY POINT
# ═══════════════════════════════════════════════════════════════

def build_voronoi_diagram(tri: Triangulation, grid: ScalarGrid, mode: str,
                          cell_method: str = CELL_HULL) -> VoronoiDiagram:
    """Run steps 1-5 and return the single Voronoi aggregate."""
    vertices, simplex_to_vertex = construct_voronoi_vertices(tri)
    values = compute_voronoi_values(vertices, grid)
    logger.info(f"Voronoi vertices: {len(vertices)} from {tri.n_cells} Delaunay cells")

    vd = VoronoiDiagram(
        vertices=vertices,
        vertex_values=values,
        simplex_to_vertex=simplex_to_vertex,
        bbox=grid.bounds(),
    )
    construct_voronoi_edges(vd, tri)
    vd.segment_edge_index = build_segment_edge_index(vd)

    if mode == MODE_MULTI:
        construct_voronoi_cells(vd, tri, cell_method)
        build_cell_edge_graph(vd)

    return vd
