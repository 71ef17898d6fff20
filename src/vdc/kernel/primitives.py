"""
Geometric primitives
====================

- clip_ray_to_box / clip_line_to_box: slab clipping against an AABB
- hull_cell_facets: convex-hull facets of a point set, coplanar triangles merged
- halfspace_cell_facets: cell of a site as an intersection of bisector half-spaces
- order_cycle_vertices: cyclic CCW order of coplanar points around a normal
"""

from typing import List, Optional, Tuple

import numpy as np
from scipy.spatial import ConvexHull, HalfspaceIntersection, QhullError

from ..spec.constants import COPLANAR_TOL, EPS_ZERO
from .delaunay import DegenerateGeometryError

# (unordered vertex indices, outward unit normal)
CellFacet = Tuple[List[int], np.ndarray]


# ═══════════════════════════════════════════════════════════════
# CLIPPING
# ═══════════════════════════════════════════════════════════════

def _clip_parameter_range(origin, direction, lo, hi, t_min, t_max) -> Optional[Tuple[float, float]]:
    """Slab method: sub-range of [t_min, t_max] where origin + t*direction is in the box."""
    for d in range(3):
        if abs(direction[d]) < EPS_ZERO:
            if origin[d] < lo[d] or origin[d] > hi[d]:
                return None
            continue
        t1 = (lo[d] - origin[d]) / direction[d]
        t2 = (hi[d] - origin[d]) / direction[d]
        if t1 > t2:
            t1, t2 = t2, t1
        t_min = max(t_min, t1)
        t_max = min(t_max, t2)
        if t_min > t_max:
            return None
    return t_min, t_max


def clip_ray_to_box(origin, direction, lo, hi) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """
    Portion of the ray origin + t*direction (t >= 0) inside [lo, hi].

    Returns:
        (entry_point, exit_point), or None if the ray misses the box
    """
    origin = np.asarray(origin, dtype=float)
    direction = np.asarray(direction, dtype=float)
    rng = _clip_parameter_range(origin, direction, lo, hi, 0.0, np.inf)
    if rng is None:
        return None
    t0, t1 = rng
    return origin + t0 * direction, origin + t1 * direction


def clip_line_to_box(point, direction, lo, hi) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """Portion of the infinite line inside [lo, hi], or None."""
    point = np.asarray(point, dtype=float)
    direction = np.asarray(direction, dtype=float)
    rng = _clip_parameter_range(point, direction, lo, hi, -np.inf, np.inf)
    if rng is None:
        return None
    t0, t1 = rng
    return point + t0 * direction, point + t1 * direction


# ═══════════════════════════════════════════════════════════════
# CELL POLYTOPES
# ═══════════════════════════════════════════════════════════════

def _find(parent: List[int], x: int) -> int:
    while parent[x] != x:
        parent[x] = parent[parent[x]]
        x = parent[x]
    return x


def hull_cell_facets(points: np.ndarray, scale: float = 1.0) -> List[CellFacet]:
    """
    Facets of the convex hull of points.

    Qhull reports triangles; adjacent triangles with the same plane
    equation are merged into one polygonal facet.

    Raises:
        DegenerateGeometryError: fewer than 4 points or a flat point set
    """
    points = np.asarray(points, dtype=float)
    if len(points) < 4:
        raise DegenerateGeometryError(f"Cell hull needs >= 4 vertices, got {len(points)}")
    try:
        hull = ConvexHull(points)
    except QhullError as e:
        raise DegenerateGeometryError(f"Cell hull failed: {e}") from e

    eq = hull.equations
    n_tri = len(hull.simplices)
    parent = list(range(n_tri))
    for t in range(n_tri):
        for u in hull.neighbors[t]:
            if u <= t:
                continue
            same_normal = np.linalg.norm(eq[t, :3] - eq[u, :3]) < COPLANAR_TOL
            same_offset = abs(eq[t, 3] - eq[u, 3]) < COPLANAR_TOL * scale
            if same_normal and same_offset:
                parent[_find(parent, u)] = _find(parent, t)

    groups = {}
    for t in range(n_tri):
        groups.setdefault(_find(parent, t), []).append(t)

    facets = []
    for root in sorted(groups):
        members = groups[root]
        verts = sorted(set(int(v) for t in members for v in hull.simplices[t]))
        normal = eq[root, :3] / np.linalg.norm(eq[root, :3])
        facets.append((verts, normal))
    return facets


def halfspace_cell_facets(site, neighbors) -> Tuple[np.ndarray, List[CellFacet]]:
    """
    Cell of site bounded by the perpendicular bisectors with its neighbours.

    Half-space for neighbour q: (q - p)·x <= (q - p)·(p + q)/2.

    Returns:
        intersections: (k, 3) polytope vertices (may contain near-duplicates)
        facets: per non-redundant half-space, its intersection indices and
            outward unit normal; facets touching fewer than 3 points dropped
    """
    p = np.asarray(site, dtype=float)
    Q = np.atleast_2d(np.asarray(neighbors, dtype=float))
    if len(Q) < 4:
        raise DegenerateGeometryError(f"Half-space cell needs >= 4 neighbours, got {len(Q)}")

    A = Q - p
    b = -np.sum(A * (p + Q) / 2.0, axis=1)
    halfspaces = np.hstack([A, b[:, None]])

    try:
        hs = HalfspaceIntersection(halfspaces, p)
    except QhullError as e:
        raise DegenerateGeometryError(f"Half-space intersection failed: {e}") from e

    by_plane = {}
    for k, planes in enumerate(hs.dual_facets):
        for h in planes:
            by_plane.setdefault(int(h), []).append(k)

    facets = []
    for h in sorted(by_plane):
        ks = by_plane[h]
        if len(ks) < 3:
            continue
        normal = A[h] / np.linalg.norm(A[h])
        facets.append((ks, normal))

    if not facets:
        raise DegenerateGeometryError("Half-space intersection produced no facets")
    return hs.intersections, facets


# ═══════════════════════════════════════════════════════════════
# CYCLE ORDERING
# ═══════════════════════════════════════════════════════════════

def order_cycle_vertices(coords: np.ndarray, normal: np.ndarray) -> List[int]:
    """
    Order coplanar points cyclically, CCW when viewed from the tip of normal.

    Projects onto an orthonormal basis (u, v = normal × u) of the plane and
    sorts by angle around the centroid.
    """
    n = len(coords)
    if n < 3:
        return list(range(n))

    normal = np.asarray(normal, dtype=float)
    norm_len = np.linalg.norm(normal)
    if norm_len < EPS_ZERO:
        return list(range(n))
    normal = normal / norm_len

    centroid = np.mean(coords, axis=0)

    arbitrary = np.array([1.0, 0.0, 0.0])
    if abs(np.dot(normal, arbitrary)) > 0.9:
        arbitrary = np.array([0.0, 1.0, 0.0])
    u = arbitrary - np.dot(arbitrary, normal) * normal
    u = u / np.linalg.norm(u)
    v = np.cross(normal, u)

    rel = np.asarray(coords, dtype=float) - centroid
    angles = np.arctan2(rel @ v, rel @ u)
    return [int(i) for i in np.argsort(angles, kind="stable")]
