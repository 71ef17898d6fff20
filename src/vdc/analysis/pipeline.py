"""
Extraction pipeline
===================

    ScalarGrid ─► active cubes ─► Delaunay ─► Voronoi ─► isovertices ─► triangles

Each stage consumes the previous one in full. Fatal errors
(DegenerateGeometryError, ValueError) propagate; topology misses are
logged and counted in IsoSurface.n_dropped.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from ..builders.triangulation import construct_delaunay_triangulation
from ..builders.voronoi import build_voronoi_diagram
from ..field.active_cubes import separate_active_cubes_graph, separate_active_cubes_greedy
from ..field.scalar_grid import ScalarGrid
from ..spec.constants import MODE_MULTI, SEP_GRAPH
from ..spec.structures import Cube, IsoSurface, RunConfig, Triangulation, VoronoiDiagram, validate_isosurface
from .dual_triangles import assemble_multi_triangles, assemble_single_triangles
from .isovertices import compute_multi_isovertices, compute_single_isovertices

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything a run produced; diagram and triangulation are None without active cubes."""
    surface: IsoSurface
    grid: ScalarGrid
    cubes: List[Cube] = field(default_factory=list)
    triangulation: Optional[Triangulation] = None
    diagram: Optional[VoronoiDiagram] = None


def select_active_cubes(grid: ScalarGrid, config: RunConfig) -> List[Cube]:
    cubes = grid.find_active_cubes(config.isovalue)
    if config.sep_isov and cubes:
        if config.sep_method == SEP_GRAPH:
            cubes = separate_active_cubes_graph(cubes)
        else:
            cubes = separate_active_cubes_greedy(cubes)
    return cubes


def run_pipeline(grid: ScalarGrid, config: RunConfig) -> PipelineResult:
    """
    Extract the isosurface of grid at config.isovalue.

    Raises:
        ValueError: invalid configuration
        DegenerateGeometryError: the active-cube point set (plus dummies)
            cannot be triangulated, or a cell cannot be built
    """
    config.validate()
    iso = config.isovalue

    if config.supersample is not None and int(config.supersample) > 1:
        grid = grid.supersample(int(config.supersample))

    cubes = select_active_cubes(grid, config)
    if not cubes:
        logger.info("No active cubes: empty isosurface")
        return PipelineResult(IsoSurface.empty(), grid, cubes)

    tri, point_index_map = construct_delaunay_triangulation(cubes, grid, config.mode)
    vd = build_voronoi_diagram(tri, grid, config.mode, config.cell_method)

    if config.mode == MODE_MULTI:
        vertices = compute_multi_isovertices(vd, iso)
        triangles, n_dropped = assemble_multi_triangles(vd, tri, grid, iso)
    else:
        vertices, cube_to_isovertex = compute_single_isovertices(grid, cubes, iso)
        triangles, n_dropped = assemble_single_triangles(vd, tri, grid, point_index_map,
                                                         cube_to_isovertex, iso)

    surface = IsoSurface(np.asarray(vertices, dtype=float).reshape(-1, 3), triangles, n_dropped)
    validate_isosurface(surface, strict=True)
    logger.info(f"Isosurface: {surface.n_vertices} vertices, {surface.n_triangles} triangles, "
                f"{n_dropped} dropped")
    return PipelineResult(surface, grid, cubes, tri, vd)
