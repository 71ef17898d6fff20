"""
Delaunay kernel over scipy.spatial (Qhull)
==========================================

Bulk insertion of a point set, per-simplex orientation signs and dual
points (circumcenters), plus the facet normal used for hull rays.

Grid-derived point sets are highly cospherical. Qhull triangulates each
cospherical group ('Qt'), which can leave tetrahedra that are flat in
input coordinates. Those get the circumcenter of an adjacent simplex whose
circumsphere passes through all four of their points, so every member of
a cospherical group maps to the same Voronoi vertex.
"""

import logging
from typing import Optional

import numpy as np
from scipy.spatial import Delaunay, QhullError

from ..spec.constants import EPS_ZERO, FLAT_TOL, SPHERE_TOL
from ..spec.structures import DelaunayFacet, Triangulation

logger = logging.getLogger(__name__)


class DegenerateGeometryError(RuntimeError):
    """The geometry kernel cannot build a valid structure from its input."""


# ═══════════════════════════════════════════════════════════════
# INPUT CHECKS
# ═══════════════════════════════════════════════════════════════

def check_point_set(points: np.ndarray, scale: float) -> None:
    """
    Reject point sets that cannot be triangulated in 3D.

    Raises:
        DegenerateGeometryError: fewer than 4 points, coincident points,
            or all points coplanar
    """
    n = len(points)
    if n < 4:
        raise DegenerateGeometryError(f"Delaunay triangulation needs >= 4 points, got {n}")

    keys = np.round(points / scale, 9)
    n_unique = len(np.unique(keys, axis=0))
    if n_unique != n:
        raise DegenerateGeometryError(f"Point set has {n - n_unique} coincident point(s)")

    centered = points - points.mean(axis=0)
    rank = np.linalg.matrix_rank(centered, tol=FLAT_TOL * scale * max(1.0, np.sqrt(n)))
    if rank < 3:
        raise DegenerateGeometryError(f"Point set spans only {rank} dimension(s)")


# ═══════════════════════════════════════════════════════════════
# SIMPLEX GEOMETRY
# ═══════════════════════════════════════════════════════════════

def simplex_orientation(points: np.ndarray, simplices: np.ndarray, scale: float) -> np.ndarray:
    """
    Sign of det(p1-p0, p2-p0, p3-p0) per simplex; 0 where |det| / scale³ < FLAT_TOL.
    """
    P = points[simplices]
    det = np.linalg.det(P[:, 1:] - P[:, :1])
    signs = np.sign(det).astype(int)
    signs[np.abs(det) < FLAT_TOL * scale ** 3] = 0
    return signs


def _solve_circumcenters(P: np.ndarray) -> np.ndarray:
    """Circumcenters of non-flat tetrahedra P (m, 4, 3): 2(pi-p0)·x = |pi-p0|²."""
    D = P[:, 1:] - P[:, :1]
    A = 2.0 * D
    b = np.sum(D * D, axis=2)
    x = np.linalg.solve(A, b[..., None])[..., 0]
    return P[:, 0] + x


def _circle_center(P: np.ndarray) -> np.ndarray:
    """Least-squares center of a flat tetrahedron (minimum-norm solution)."""
    D = P[1:] - P[0]
    x, *_ = np.linalg.lstsq(2.0 * D, np.sum(D * D, axis=1), rcond=None)
    return P[0] + x


def _on_sphere(center: np.ndarray, radius: float, pts: np.ndarray, scale: float) -> bool:
    d = np.linalg.norm(pts - center, axis=1)
    return bool(np.all(np.abs(d - radius) <= SPHERE_TOL * max(radius, scale)))


def compute_circumcenters(points: np.ndarray, simplices: np.ndarray, neighbors: np.ndarray,
                          orientation: np.ndarray, scale: float) -> np.ndarray:
    """
    Dual point of every simplex.

    Flat simplices (orientation 0) inherit the center of a resolved
    neighbour whose circumsphere passes through their four points;
    repeated until nothing changes. Leftovers get the circle center.
    """
    m = len(simplices)
    centers = np.zeros((m, 3))
    resolved = orientation != 0
    if resolved.any():
        centers[resolved] = _solve_circumcenters(points[simplices[resolved]])

    pending = list(np.flatnonzero(~resolved))
    if pending:
        logger.debug(f"{len(pending)} flat simplices need a shared circumcenter")

    changed = True
    while pending and changed:
        changed = False
        still_pending = []
        for s in pending:
            pts = points[simplices[s]]
            for nb in neighbors[s]:
                if nb < 0 or not resolved[nb]:
                    continue
                c = centers[nb]
                r = np.linalg.norm(points[simplices[nb, 0]] - c)
                if _on_sphere(c, r, pts, scale):
                    centers[s] = c
                    resolved[s] = True
                    changed = True
                    break
            else:
                still_pending.append(s)
        pending = still_pending

    for s in pending:
        centers[s] = _circle_center(points[simplices[s]])
    if pending:
        logger.warning(f"{len(pending)} flat simplices fell back to least-squares centers")

    return centers


# ═══════════════════════════════════════════════════════════════
# TRIANGULATION
# ═══════════════════════════════════════════════════════════════

def build_delaunay(points, is_dummy=None, scale: float = 1.0) -> Triangulation:
    """
    Insert all points at once into a 3D Delaunay triangulation.

    Args:
        points: (n, 3) coordinates
        is_dummy: (n,) bool tags; all False if None
        scale: reference length for tolerances (smallest grid spacing)

    Raises:
        DegenerateGeometryError: input rejected by check_point_set, Qhull
            failure, or Qhull dropping a point from the triangulation
    """
    points = np.asarray(points, dtype=float).reshape(-1, 3)
    if is_dummy is None:
        is_dummy = np.zeros(len(points), dtype=bool)
    is_dummy = np.asarray(is_dummy, dtype=bool)
    if len(is_dummy) != len(points):
        raise ValueError(f"is_dummy has {len(is_dummy)} entries for {len(points)} points")

    check_point_set(points, scale)

    try:
        dt = Delaunay(points)
    except QhullError as e:
        raise DegenerateGeometryError(f"Delaunay triangulation failed: {e}") from e

    simplices = dt.simplices.astype(np.int64)
    used = np.unique(simplices)
    if len(used) != len(points):
        missing = np.setdiff1d(np.arange(len(points)), used)
        raise DegenerateGeometryError(
            f"{len(missing)} point(s) were not inserted (first: {missing[0]})")

    neighbors = dt.neighbors.astype(np.int64)
    orientation = simplex_orientation(points, simplices, scale)
    centers = compute_circumcenters(points, simplices, neighbors, orientation, scale)
    indptr, indices = dt.vertex_neighbor_vertices

    logger.info(f"Delaunay: {len(points)} vertices ({int(is_dummy.sum())} dummy), "
                f"{len(simplices)} cells, {int(np.sum(orientation == 0))} flat")

    return Triangulation(
        points=points,
        is_dummy=is_dummy,
        simplices=simplices,
        neighbors=neighbors,
        orientation=orientation,
        circumcenters=centers,
        scale=float(scale),
        vertex_neighbors=(indptr, indices),
    )


def hull_ray_direction(tri: Triangulation, facet: DelaunayFacet,
                       interior: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Unit normal of a hull facet pointing out of the point set.

    The opposite vertex decides the side; for a flat simplex, whose
    opposite vertex lies in the facet plane, the centroid of all points
    decides instead.
    """
    a, b, c = tri.points[list(facet.corners)]
    n = np.cross(b - a, c - a)
    norm = np.linalg.norm(n)
    if norm < EPS_ZERO * tri.scale ** 2:
        raise DegenerateGeometryError(f"Hull facet {facet.cell}/{facet.opposite} has zero area")
    n = n / norm

    opposite = tri.points[tri.simplices[facet.cell, facet.opposite]]
    side = np.dot(n, opposite - a)
    if abs(side) < FLAT_TOL * tri.scale:
        if interior is None:
            interior = tri.points.mean(axis=0)
        side = np.dot(n, interior - a)
    return -n if side > 0 else n
