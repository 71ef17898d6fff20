"""
Cell-edge graph
===============

One VoronoiCellEdge per (cell, edge) pair, for every cell bordering the
edge (real corners of every Delaunay facet dual to it). Records sharing an
edge form a circular list through next_cell_edge:

    edge e bordered by cells A, B, C:

        (A,e) -> (B,e) -> (C,e) -> (A,e)

The placer writes the local cycle of each cell into its record;
resolve_cycle reads it back for the triangle assembler.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..spec.constants import EDGE_SEGMENT
from ..spec.structures import VoronoiCellEdge, VoronoiDiagram

logger = logging.getLogger(__name__)


def build_segment_edge_index(vd: VoronoiDiagram) -> Dict[Tuple[int, int], int]:
    """(min, max) Voronoi vertex pair -> index of the segment edge joining them."""
    index = {}
    for edge in vd.edges:
        if edge.kind != EDGE_SEGMENT:
            continue
        g = edge.geometry
        index[(min(g.source, g.target), max(g.source, g.target))] = edge.index
    return index


def edge_cells(vd: VoronoiDiagram, edge_index: int) -> List[int]:
    """Cells bordering an edge, in facet order, dummy corners excluded."""
    cells = []
    for facet in vd.edges[edge_index].facets:
        for v in facet.corners:
            c = int(vd.vertex_to_cell[v])
            if c >= 0 and c not in cells:
                cells.append(c)
    return cells


def build_cell_edge_graph(vd: VoronoiDiagram) -> None:
    """Create and link the VoronoiCellEdge records of every edge."""
    if vd.vertex_to_cell is None:
        raise ValueError("build_cell_edge_graph needs the Voronoi cells first")

    vd.cell_edges = []
    vd.cell_edge_lookup = {}
    for edge in vd.edges:
        cells = edge_cells(vd, edge.index)
        if not cells:
            continue
        first = len(vd.cell_edges)
        for n, c in enumerate(cells):
            ce = VoronoiCellEdge(index=first + n, cell_index=c, edge_index=edge.index,
                                 next_cell_edge=first + (n + 1) % len(cells))
            vd.cell_edges.append(ce)
            vd.cell_edge_lookup[(c, edge.index)] = ce.index

    logger.info(f"Cell-edge graph: {len(vd.cell_edges)} records over {len(vd.edges)} edges")


def ring(vd: VoronoiDiagram, start: int) -> List[int]:
    """Record indices of the circular list containing start, beginning at start."""
    out = [start]
    ce = vd.cell_edges[start].next_cell_edge
    while ce != start:
        out.append(ce)
        ce = vd.cell_edges[ce].next_cell_edge
        if len(out) > len(vd.cell_edges):
            raise RuntimeError(f"Cell-edge ring from {start} does not close")
    return out


def register_cycle(vd: VoronoiDiagram, cell_index: int, edge_index: int, cycle: int) -> bool:
    """Record that local cycle of cell_index crosses edge_index. False if no such record."""
    ce = vd.cell_edge_lookup.get((cell_index, edge_index))
    if ce is None:
        return False
    cycles = vd.cell_edges[ce].cycle_indices
    if cycle not in cycles:
        cycles.append(cycle)
    return True


def resolve_cycle(vd: VoronoiDiagram, cell_index: int, edge_index: int) -> Optional[int]:
    """
    Local isovertex (cycle) of cell_index for a bipolar edge.

    1. the cell's own record, if a cycle was registered on it
    2. the cell's only cycle, if it has exactly one
    3. walk the ring: first registered cycle whose index is valid for the cell

    Returns:
        cycle index within the cell, or None when the ring is exhausted
    """
    cell = vd.cells[cell_index]
    start = vd.cell_edge_lookup.get((cell_index, edge_index))

    if start is not None and vd.cell_edges[start].cycle_indices:
        return vd.cell_edges[start].cycle_indices[0]
    if cell.num_iso_vertices == 1:
        return 0
    if start is None:
        return None

    for ce in ring(vd, start)[1:]:
        for cycle in vd.cell_edges[ce].cycle_indices:
            if cycle < cell.num_iso_vertices:
                return cycle
    return None
