"""
Active-cube selection and bounding points
=========================================

separate_active_cubes_greedy / separate_active_cubes_graph:
    Thin out the active cubes so no two kept cubes are 26-neighbours.

GridFacet:
    Projection of the active cubes onto the six faces of their index
    bounding box. Each flagged projection cell gets one dummy point one
    grid step outside the box, so that every real point is strictly inside
    the convex hull of the point set and owns a bounded Voronoi cell.
"""

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from ..spec.constants import NEIGHBOR_OFFSETS
from ..spec.structures import Cube

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════
# SEPARATION
# ═══════════════════════════════════════════════════════════════

def separate_active_cubes_greedy(cubes: List[Cube]) -> List[Cube]:
    """
    Keep a cube unless one of its 26 neighbours was already kept.

    Cubes are visited in the given order, so the result is deterministic.
    """
    kept = set()
    result = []
    for cube in cubes:
        i, j, k = cube.index
        if any((i + di, j + dj, k + dk) in kept for di, dj, dk in NEIGHBOR_OFFSETS):
            continue
        kept.add(cube.index)
        result.append(cube)

    logger.info(f"Greedy separation kept {len(result)}/{len(cubes)} active cubes")
    return result


def separate_active_cubes_graph(cubes: List[Cube]) -> List[Cube]:
    """
    Colour the 26-adjacency graph greedily and keep the largest colour class.

    Ties go to the lowest colour. Order of the input is preserved.
    """
    if not cubes:
        return []

    position = {cube.index: n for n, cube in enumerate(cubes)}
    colors = np.full(len(cubes), -1, dtype=int)

    for n, cube in enumerate(cubes):
        i, j, k = cube.index
        used = set()
        for di, dj, dk in NEIGHBOR_OFFSETS:
            m = position.get((i + di, j + dj, k + dk))
            if m is not None and colors[m] >= 0:
                used.add(colors[m])
        c = 0
        while c in used:
            c += 1
        colors[n] = c

    counts = np.bincount(colors)
    best = int(np.argmax(counts))
    result = [cube for n, cube in enumerate(cubes) if colors[n] == best]

    logger.info(f"Graph separation: {len(counts)} colours, kept class {best} "
                f"({len(result)}/{len(cubes)} cubes)")
    return result


# ═══════════════════════════════════════════════════════════════
# GRID FACETS + DUMMY POINTS
# ═══════════════════════════════════════════════════════════════

@dataclass
class GridFacet:
    """
    One face of the active-cube index box, seen along orth_dir.

    flags is a 2D bool array over axes ((orth_dir+1)%3, (orth_dir+2)%3),
    offset by min_index on those axes; True where an active cube projects.
    side 0 is the low face (below min_index), side 1 the high face.
    """
    orth_dir: int
    side: int
    min_index: np.ndarray
    max_index: np.ndarray
    flags: np.ndarray

    @property
    def axis_dir(self) -> Tuple[int, int]:
        return (self.orth_dir + 1) % 3, (self.orth_dir + 2) % 3

    @property
    def n_flagged(self) -> int:
        return int(self.flags.sum())


def create_grid_facets(cubes: List[Cube]) -> List[GridFacet]:
    """The six faces (orth_dir 0..2, side 0/1) of the active-cube index box."""
    if not cubes:
        raise ValueError("create_grid_facets needs at least one active cube")

    idx = np.array([c.index for c in cubes], dtype=int)
    min_index = idx.min(axis=0)
    max_index = idx.max(axis=0)
    extent = max_index - min_index + 1

    facets = []
    for d in range(3):
        a, b = (d + 1) % 3, (d + 2) % 3
        plane = np.zeros((extent[a], extent[b]), dtype=bool)
        plane[idx[:, a] - min_index[a], idx[:, b] - min_index[b]] = True
        for side in (0, 1):
            facets.append(GridFacet(d, side, min_index, max_index, plane.copy()))
    return facets


def dummy_points_from_facet(facet: GridFacet, spacing, origin) -> np.ndarray:
    """
    One dummy point per flagged projection cell, one grid step outside
    the active range along orth_dir.

    Returns:
        (k, 3) array of real-space positions
    """
    spacing = np.asarray(spacing, dtype=float)
    origin = np.asarray(origin, dtype=float)
    d = facet.orth_dir
    a, b = facet.axis_dir

    ua, ub = np.nonzero(facet.flags)
    pts = np.zeros((len(ua), 3))
    if facet.side == 0:
        pts[:, d] = (facet.min_index[d] + 0.5) * spacing[d] - spacing[d]
    else:
        pts[:, d] = (facet.max_index[d] + 0.5) * spacing[d] + spacing[d]
    pts[:, a] = (facet.min_index[a] + ua + 0.5) * spacing[a]
    pts[:, b] = (facet.min_index[b] + ub + 0.5) * spacing[b]
    return pts + origin


def build_dummy_points(cubes: List[Cube], spacing, origin) -> np.ndarray:
    """All dummy points for the six faces of the active-cube box."""
    blocks = [dummy_points_from_facet(f, spacing, origin) for f in create_grid_facets(cubes)]
    dummies = np.vstack(blocks)
    logger.info(f"Created {len(dummies)} dummy points around {len(cubes)} active cubes")
    return dummies
