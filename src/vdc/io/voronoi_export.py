"""
Voronoi diagnostics
===================

export_voronoi_csv: vertices and edges for external visualization.
Two CSV sections separated by a blank line:

    x,y,z,value                  one row per Voronoi vertex
    type,x1,y1,z1,x2,y2,z2       one row per edge (rays/lines clipped to the field box)

format_voronoi_diagram / dump_voronoi_diagram: human-readable dump of
vertices, edges, cells with their facets, cycles and isovertex ranges.
"""

import csv
import logging
from typing import List

from ..builders.voronoi import sample_edge
from ..field.scalar_grid import ScalarGrid
from ..spec.constants import EDGE_LINE, EDGE_RAY, EDGE_SEGMENT
from ..spec.structures import VoronoiDiagram, VoronoiEdge

logger = logging.getLogger(__name__)


def export_voronoi_csv(vd: VoronoiDiagram, grid: ScalarGrid, path) -> int:
    """
    Write the CSV; unbounded edges that miss the box are left out.

    Returns:
        number of edge rows written
    """
    n_edges = 0
    with open(path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["x", "y", "z", "value"])
        for p, value in zip(vd.vertices, vd.vertex_values):
            writer.writerow([float(p[0]), float(p[1]), float(p[2]), float(value)])

        writer.writerow([])
        writer.writerow(["type", "x1", "y1", "z1", "x2", "y2", "z2"])
        for edge in vd.edges:
            sample = sample_edge(vd, edge, grid)
            if sample is None:
                continue
            writer.writerow([edge.kind] + [float(x) for x in sample.p1] + [float(x) for x in sample.p2])
            n_edges += 1

    logger.info(f"Wrote Voronoi CSV {path}: {vd.n_vertices} vertices, {n_edges} edges")
    return n_edges


def _format_edge(edge: VoronoiEdge) -> str:
    g = edge.geometry
    if edge.kind == EDGE_SEGMENT:
        body = f"segment {g.source} -> {g.target}"
    elif edge.kind == EDGE_RAY:
        body = f"ray from {g.source} dir ({g.direction[0]:.6g}, {g.direction[1]:.6g}, {g.direction[2]:.6g})"
    elif edge.kind == EDGE_LINE:
        body = (f"line through ({g.point[0]:.6g}, {g.point[1]:.6g}, {g.point[2]:.6g}) "
                f"dir ({g.direction[0]:.6g}, {g.direction[1]:.6g}, {g.direction[2]:.6g})")
    else:
        body = edge.kind
    facets = ", ".join(f"{f.cell}/{f.opposite}" for f in edge.facets)
    return f"  [{edge.index}] {body}  facets: {facets}"


def format_voronoi_diagram(vd: VoronoiDiagram) -> str:
    lines: List[str] = []

    lines.append(f"Voronoi vertices ({vd.n_vertices}):")
    for i, (p, value) in enumerate(zip(vd.vertices, vd.vertex_values)):
        lines.append(f"  [{i}] ({p[0]:.6g}, {p[1]:.6g}, {p[2]:.6g})  value={value:.6g}")

    lines.append(f"Voronoi edges ({len(vd.edges)}):")
    lines.extend(_format_edge(e) for e in vd.edges)

    if vd.cells:
        lines.append(f"Voronoi cells ({len(vd.cells)}):")
    for cell in vd.cells:
        lines.append(f"  Cell {cell.index} (Delaunay vertex {cell.delaunay_vertex}): "
                     f"{len(cell.vertex_indices)} vertices, {len(cell.facet_indices)} facets, "
                     f"isovertices [{cell.iso_vertex_start}, "
                     f"{cell.iso_vertex_start + cell.num_iso_vertices})")
        for f in cell.facet_indices:
            lines.append(f"    facet {f}: {vd.facets[f].vertex_indices}")
        for c_idx, cycle in enumerate(cell.cycles):
            p = cycle.isovertex
            lines.append(f"    cycle {c_idx}: {len(cycle.midpoint_indices)} midpoints, "
                         f"isovertex ({p[0]:.6g}, {p[1]:.6g}, {p[2]:.6g})")

    if vd.cell_edges:
        lines.append(f"Cell edges ({len(vd.cell_edges)}):")
    for ce in vd.cell_edges:
        lines.append(f"  [{ce.index}] cell {ce.cell_index} edge {ce.edge_index} "
                     f"cycles {ce.cycle_indices} next {ce.next_cell_edge}")

    return "\n".join(lines) + "\n"


def dump_voronoi_diagram(vd: VoronoiDiagram, path) -> None:
    with open(path, "w") as f:
        f.write(format_voronoi_diagram(vd))
    logger.info(f"Wrote Voronoi dump {path}")
