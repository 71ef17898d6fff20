"""
Isosurface Vertex Placer
========================

Single mode: one isovertex per active cube, the centroid of the isovalue
crossings on its 12 edges.

Multi mode: one isovertex per surface sheet through a Voronoi cell.

    facet cycles ──► bipolar facet edges ──► midpoints (shared by key)
                                             │ pair k with k+1 per facet
                                             ▼
                           midpoint graph ──► connected components (cycles)
                                             │ centroid
                                             ▼
                                  isovertices [start, start + count)

Per-cell work has no cross-cell dependency. Registering cycles on the
cell-edge ring is a second pass over all cells, strictly after the first.
"""

import logging
from typing import List, Tuple

import numpy as np

from ..builders.cell_edges import register_cycle
from ..field.scalar_grid import ScalarGrid, crosses_inclusive, interpolate_crossing, is_bipolar
from ..spec.constants import CUBE_EDGES
from ..spec.structures import Cube, Cycle, MidpointNode, VoronoiCell, VoronoiDiagram

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# SINGLE MODE
# ═══════════════════════════════════════════════════════════════

def cube_isovertex(grid: ScalarGrid, cube: Cube, isovalue: float):
    """Centroid of the edge crossings of one cube, or None without crossings."""
    values = grid.cube_corner_values(*cube.index)
    positions = grid.cube_corner_positions(*cube.index)

    crossings = []
    for a, b in CUBE_EDGES:
        if crosses_inclusive(values[a], values[b], isovalue):
            crossings.append(interpolate_crossing(positions[a], positions[b],
                                                  values[a], values[b], isovalue))
    if not crossings:
        return None
    return np.mean(crossings, axis=0)


def compute_single_isovertices(grid: ScalarGrid, cubes: List[Cube],
                               isovalue: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Isovertices of all cubes.

    Every cube writes into its own pre-sized slot; slots are compacted
    afterwards in cube order.

    Returns:
        (vertices (V, 3), cube_to_isovertex (n_cubes,), -1 for cubes
        without a crossing)
    """
    n = len(cubes)
    slots = np.zeros((n, 3))
    has_vertex = np.zeros(n, dtype=bool)

    for idx, cube in enumerate(cubes):
        p = cube_isovertex(grid, cube, isovalue)
        if p is not None:
            slots[idx] = p
            has_vertex[idx] = True

    cube_to_isovertex = np.full(n, -1, dtype=np.int64)
    cube_to_isovertex[has_vertex] = np.arange(int(has_vertex.sum()))

    logger.info(f"Single-mode isovertices: {int(has_vertex.sum())} from {n} cubes")
    return slots[has_vertex], cube_to_isovertex


# ═══════════════════════════════════════════════════════════════
# MULTI MODE
# ═══════════════════════════════════════════════════════════════

def collect_midpoints(vd: VoronoiDiagram, cell: VoronoiCell, isovalue: float) -> List[MidpointNode]:
    """
    Midpoints of the bipolar facet edges of a cell, linked within each facet.

    A midpoint is keyed by its (min, max) Voronoi vertex pair, so two facets
    sharing an edge share the node. Within a facet the crossings found while
    walking its cycle are linked pairwise: (0, 1), (2, 3), ...
    """
    nodes: List[MidpointNode] = []
    by_key = {}

    for f in cell.facet_indices:
        facet = vd.facets[f]
        ids, vals = facet.vertex_indices, facet.vertex_values
        m = len(ids)

        crossing = []
        for j in range(m):
            u, w = ids[j], ids[(j + 1) % m]
            fu, fw = vals[j], vals[(j + 1) % m]
            if not is_bipolar(fu, fw, isovalue):
                continue
            key = (min(u, w), max(u, w))
            node = by_key.get(key)
            if node is None:
                point = interpolate_crossing(vd.vertices[u], vd.vertices[w], fu, fw, isovalue)
                node = len(nodes)
                nodes.append(MidpointNode(point, key, vd.segment_edge_index.get(key)))
                by_key[key] = node
            crossing.append(node)

        if len(crossing) % 2:
            logger.debug(f"Cell {cell.index} facet {f}: odd number of crossings ({len(crossing)})")

        for k in range(0, len(crossing) - 1, 2):
            a, b = crossing[k], crossing[k + 1]
            if b not in nodes[a].connected_to:
                nodes[a].connected_to.append(b)
                nodes[b].connected_to.append(a)

    return nodes


def extract_cycles(cell_index: int, nodes: List[MidpointNode]) -> List[Cycle]:
    """Connected components of the midpoint graph (depth-first, explicit stack)."""
    visited = [False] * len(nodes)
    cycles = []

    for start in range(len(nodes)):
        if visited[start]:
            continue
        visited[start] = True
        stack = [start]
        members, links = [], []
        while stack:
            n = stack.pop()
            members.append(n)
            for m in nodes[n].connected_to:
                if n < m:
                    links.append((n, m))
                if not visited[m]:
                    visited[m] = True
                    stack.append(m)

        centroid = np.mean([nodes[n].point for n in members], axis=0)
        cycles.append(Cycle(cell_index, members, links, centroid))

    return cycles


def compute_cell_cycles(vd: VoronoiDiagram, cell: VoronoiCell, isovalue: float) -> List[Cycle]:
    """Midpoints and cycles of one cell; stored on the cell and returned."""
    cell.midpoints = collect_midpoints(vd, cell, isovalue)
    cell.cycles = extract_cycles(cell.index, cell.midpoints)
    return cell.cycles


def compute_multi_isovertices(vd: VoronoiDiagram, isovalue: float) -> np.ndarray:
    """
    Isovertices of all cells, then cycle registration on the cell-edge ring.

    Returns:
        (V, 3) isovertices; cell c owns rows
        [c.iso_vertex_start, c.iso_vertex_start + c.num_iso_vertices)
    """
    for cell in vd.cells:
        compute_cell_cycles(vd, cell, isovalue)

    count = 0
    for cell in vd.cells:
        cell.iso_vertex_start = count
        cell.num_iso_vertices = len(cell.cycles)
        count += cell.num_iso_vertices

    n_unregistered = 0
    for cell in vd.cells:
        for c_idx, cycle in enumerate(cell.cycles):
            for n in cycle.midpoint_indices:
                node = cell.midpoints[n]
                if node.global_edge is None or not register_cycle(vd, cell.index, node.global_edge, c_idx):
                    n_unregistered += 1
    if n_unregistered:
        logger.debug(f"{n_unregistered} midpoints had no cell-edge record")

    multi = sum(1 for cell in vd.cells if cell.num_iso_vertices > 1)
    logger.info(f"Multi-mode isovertices: {count} over {len(vd.cells)} cells "
                f"({multi} cells with several sheets)")

    if count == 0:
        return np.zeros((0, 3))
    return np.array([cycle.isovertex for cell in vd.cells for cycle in cell.cycles])
