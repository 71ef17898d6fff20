"""
Tests for dual triangle assembly
================================

- winding rule and facet orientation (parity vs geometry)
- bipolar rays on the boundary of the point set
- line edges (hand-built diagram)
- single- and multi-mode triangles on a sphere
- sheet selection in cells crossed by several sheets

Run: python -m pytest tests/core/test_dual_triangles.py -v
"""

import numpy as np
import pytest

from vdc import RunConfig, ScalarGrid, run_pipeline
from vdc.analysis.dual_triangles import (
    assemble_multi_triangles,
    assemble_single_triangles,
    bipolar_facets,
    facet_points_along,
    orient_triangle,
)
from vdc.analysis.isovertices import compute_multi_isovertices, compute_single_isovertices
from vdc.builders.cell_edges import resolve_cycle
from vdc.builders.triangulation import construct_delaunay_triangulation
from vdc.builders.voronoi import build_voronoi_diagram
from vdc.kernel.delaunay import build_delaunay, hull_ray_direction
from vdc.spec.constants import EDGE_LINE, EDGE_RAY, MODE_MULTI, MODE_SINGLE
from vdc.spec.structures import IsoSurface, validate_isosurface


def single_mode(grid, iso):
    cubes = grid.find_active_cubes(iso)
    tri, pim = construct_delaunay_triangulation(cubes, grid, MODE_SINGLE)
    vd = build_voronoi_diagram(tri, grid, MODE_SINGLE)
    verts, c2v = compute_single_isovertices(grid, cubes, iso)
    triangles, n_dropped = assemble_single_triangles(vd, tri, grid, pim, c2v, iso)
    return cubes, tri, vd, verts, c2v, triangles, n_dropped


def multi_mode(grid, iso):
    cubes = grid.find_active_cubes(iso)
    tri, _ = construct_delaunay_triangulation(cubes, grid, MODE_MULTI)
    vd = build_voronoi_diagram(tri, grid, MODE_MULTI)
    verts = compute_multi_isovertices(vd, iso)
    triangles, n_dropped = assemble_multi_triangles(vd, tri, grid, iso)
    return tri, vd, verts, triangles, n_dropped


def triangle_normals(verts, triangles):
    T = np.array(triangles)
    a, b, c = verts[T[:, 0]], verts[T[:, 1]], verts[T[:, 2]]
    return np.cross(b - a, c - a), (a + b + c) / 3.0


# =============================================================================
# ORIENTATION
# =============================================================================

class TestOrientation:

    @pytest.mark.parametrize("toward,v1_positive,expected", [
        (True, True, (0, 1, 2)),
        (False, False, (0, 1, 2)),
        (True, False, (0, 2, 1)),
        (False, True, (0, 2, 1)),
    ])
    def test_orient_triangle(self, toward, v1_positive, expected):
        assert orient_triangle((0, 1, 2), toward, v1_positive) == expected

    def test_parity_matches_geometry_on_interior_facets(self):
        tri = build_delaunay(np.random.default_rng(13).random((40, 3)))
        n_checked = 0
        for f in tri.finite_facets():
            if f.neighbor == -1:
                continue
            direction = tri.circumcenters[f.neighbor] - tri.circumcenters[f.cell]
            if np.linalg.norm(direction) < 1e-6:
                continue
            by_parity = facet_points_along(tri, f, direction, use_parity=True)
            by_geometry = facet_points_along(tri, f, direction, use_parity=False)
            assert by_parity == by_geometry
            n_checked += 1
        assert n_checked > 50

    def test_parity_matches_geometry_on_hull_facets(self):
        tri = build_delaunay(np.random.default_rng(17).random((40, 3)))
        for f in tri.finite_facets():
            if f.neighbor != -1:
                continue
            direction = hull_ray_direction(tri, f)
            assert facet_points_along(tri, f, direction) == \
                facet_points_along(tri, f, direction, use_parity=False)


# =============================================================================
# BIPOLAR RAYS (seven cospherical cube centers, one Voronoi vertex)
# =============================================================================

class TestBoundaryRays:

    ISO = 2.9

    def test_only_rays_leaving_toward_lower_values_are_bipolar(self, corner_grid):
        _, tri, vd, _, _, _, _ = single_mode(corner_grid, self.ISO)
        found = list(bipolar_facets(vd, tri, corner_grid, self.ISO))
        assert len(found) == 6
        directions = set()
        for edge, facet, toward, v1_positive in found:
            assert edge.kind == EDGE_RAY
            assert v1_positive
            directions.add(tuple(np.round(edge.geometry.direction, 9)))
        assert directions == {(-1.0, 0.0, 0.0), (0.0, -1.0, 0.0), (0.0, 0.0, -1.0)}

    def test_one_triangle_per_facet(self, corner_grid):
        _, _, vd, verts, _, triangles, n_dropped = single_mode(corner_grid, self.ISO)
        assert len(verts) == 7
        assert len(triangles) == 6
        assert n_dropped == 0
        validate_isosurface(IsoSurface(verts, triangles))

    def test_normals_toward_lower_values(self, corner_grid):
        """Isovertices lie on x+y+z = 2.9; every normal must be along -(1, 1, 1)."""
        _, _, _, verts, _, triangles, _ = single_mode(corner_grid, self.ISO)
        normals, _ = triangle_normals(verts, triangles)
        unit = normals / np.linalg.norm(normals, axis=1)[:, None]
        np.testing.assert_allclose(unit, np.tile(-np.ones(3) / np.sqrt(3), (6, 1)), atol=1e-9)

    def test_adjacent_cubes_share_a_triangle(self, corner_grid):
        """Face-adjacent cubes (0,0,0) and (0,1,0) straddle the surface together."""
        cubes, _, _, _, c2v, triangles, _ = single_mode(corner_grid, self.ISO)
        index = {c.index: n for n, c in enumerate(cubes)}
        a, b = c2v[index[(0, 0, 0)]], c2v[index[(0, 1, 0)]]
        assert any(a in t and b in t for t in triangles)


# =============================================================================
# LINE EDGES (hand-built diagram)
# =============================================================================

class TestLineEdges:

    ISO = 1.5

    def test_bipolar_line_uses_geometry(self, line_edge_case):
        grid, tri, vd = line_edge_case
        found = list(bipolar_facets(vd, tri, grid, self.ISO))
        assert len(found) == 1
        edge, facet, toward, v1_positive = found[0]
        assert edge.index == 0 and edge.kind == EDGE_LINE
        assert toward
        assert not v1_positive

    def test_line_triangle_faces_lower_values(self, line_edge_case):
        """f = x increases along +x, so the triangle normal must point along -x."""
        grid, tri, vd = line_edge_case
        identity = np.arange(tri.n_vertices)
        triangles, n_dropped = assemble_single_triangles(vd, tri, grid, identity, identity, self.ISO)
        assert n_dropped == 0
        assert triangles == [(0, 2, 1)]
        normals, _ = triangle_normals(tri.points, triangles)
        assert normals[0, 0] < 0
        np.testing.assert_allclose(normals[0, 1:], 0.0)

    def test_line_on_one_side_is_skipped(self, line_edge_case):
        grid, tri, vd = line_edge_case
        assert list(bipolar_facets(vd, tri, grid, 5.0)) == []


# =============================================================================
# SPHERE
# =============================================================================

class TestSphereSingle:

    ISO = 3.1

    def test_triangles_valid(self, sphere_grid):
        _, _, _, verts, _, triangles, n_dropped = single_mode(sphere_grid, self.ISO)
        assert len(triangles) > 100
        assert n_dropped == 0
        ok, errors = validate_isosurface(IsoSurface(verts, triangles), strict=False)
        assert ok, errors

    def test_normals_point_inward(self, sphere_grid, sphere_center):
        """The distance field decreases toward the center."""
        _, _, _, verts, _, triangles, _ = single_mode(sphere_grid, self.ISO)
        normals, centroids = triangle_normals(verts, triangles)
        inward = np.einsum('ij,ij->i', normals, sphere_center - centroids) > 0
        assert inward.all()

    def test_dual_contouring_quads(self, sphere_grid):
        """Bipolar grid edges yield triangles joining the cubes around them."""
        cubes, _, _, _, c2v, triangles, _ = single_mode(sphere_grid, self.ISO)
        index = {c.index: n for n, c in enumerate(cubes)}
        tri_sets = [set(t) for t in triangles]
        values = sphere_grid.values
        n_checked = n_found = 0
        for i in range(2, 7):
            for j in range(2, 7):
                for k in range(1, 8):
                    # z-directed grid edge (i, j, k) -> (i, j, k+1)
                    if (values[i, j, k] - self.ISO) * (values[i, j, k + 1] - self.ISO) >= 0:
                        continue
                    ring = [index.get((i - 1, j - 1, k)), index.get((i, j - 1, k)),
                            index.get((i, j, k)), index.get((i - 1, j, k))]
                    assert None not in ring
                    n_checked += 1
                    a, b = c2v[ring[0]], c2v[ring[1]]
                    if any(a in t and b in t for t in tri_sets):
                        n_found += 1
        assert n_checked > 0
        assert n_found >= 0.9 * n_checked

    def test_idempotent(self, sphere_grid):
        first = single_mode(sphere_grid, self.ISO)
        second = single_mode(sphere_grid, self.ISO)
        np.testing.assert_array_equal(first[3], second[3])
        assert first[5] == second[5]


class TestSphereMulti:

    ISO = 3.1

    def test_triangles_valid(self, sphere_grid):
        _, _, verts, triangles, n_dropped = multi_mode(sphere_grid, self.ISO)
        assert len(triangles) > 100
        assert n_dropped <= max(1, 0.02 * len(triangles))
        ok, errors = validate_isosurface(IsoSurface(verts, triangles), strict=False)
        assert ok, errors

    def test_normals_point_inward(self, sphere_grid, sphere_center):
        _, _, verts, triangles, _ = multi_mode(sphere_grid, self.ISO)
        normals, centroids = triangle_normals(verts, triangles)
        inward = np.einsum('ij,ij->i', normals, sphere_center - centroids) > 0
        assert inward.all()

    def test_triangle_corners_in_distinct_cells(self, sphere_grid):
        _, vd, _, triangles, _ = multi_mode(sphere_grid, self.ISO)
        owner = np.repeat([c.index for c in vd.cells], [c.num_iso_vertices for c in vd.cells])
        for t in triangles:
            assert len({owner[v] for v in t}) == 3

    def test_dummy_facets_skipped(self, saddle_cube_grid):
        """A lone active cube only has facets with dummy corners: vertices, no triangles."""
        _, _, verts, triangles, n_dropped = multi_mode(saddle_cube_grid, 0.0)
        assert len(verts) == 2
        assert triangles == []
        assert n_dropped == 0


# =============================================================================
# CELLS CROSSED BY SEVERAL SHEETS
# =============================================================================

def sine_grid(seed, n=10):
    """Sum of three phase-shifted sines; features are about two samples wide."""
    rng = np.random.default_rng(seed)
    w = rng.uniform(1.0, 1.6, 3)
    phase = rng.uniform(0.0, 2.0 * np.pi, 3)
    axis = np.arange(n, dtype=float)
    X, Y, Z = np.meshgrid(axis, axis, axis, indexing='ij')
    return ScalarGrid(np.sin(w[0] * X + phase[0]) + np.sin(w[1] * Y + phase[1])
                      + np.sin(w[2] * Z + phase[2]))


class TestMultiSheetCells:

    ISO = 0.1

    @pytest.fixture(scope="class")
    def sine_runs(self):
        runs = []
        for seed in range(4):
            grid = sine_grid(seed)
            for sep_isov in (False, True):
                config = RunConfig(isovalue=self.ISO, mode=MODE_MULTI, sep_isov=sep_isov)
                runs.append(run_pipeline(grid, config))
        return runs

    def test_several_sheets_occur(self, sine_runs):
        n_cells = sum(1 for r in sine_runs for c in r.diagram.cells if c.num_iso_vertices > 1)
        assert n_cells > 0

    def test_corners_use_the_sheet_crossing_the_edge(self, sine_runs):
        """A corner of a triangle dual to edge e must come from a sheet whose midpoints include e."""
        n_checked = 0
        for result in sine_runs:
            vd, tri = result.diagram, result.triangulation
            for edge, facet, _, _ in bipolar_facets(vd, tri, result.grid, self.ISO):
                for v in facet.corners:
                    c = int(vd.vertex_to_cell[v])
                    if c < 0 or vd.cells[c].num_iso_vertices < 2:
                        continue
                    cell = vd.cells[c]
                    cycle = resolve_cycle(vd, c, edge.index)
                    assert cycle is not None
                    crossed = {cell.midpoints[n].global_edge for n in cell.cycles[cycle].midpoint_indices}
                    assert edge.index in crossed
                    n_checked += 1
        assert n_checked > 0

    def test_surfaces_valid(self, sine_runs):
        for result in sine_runs:
            surface = result.surface
            assert surface.n_triangles > 0
            ok, errors = validate_isosurface(surface, strict=False)
            assert ok, errors
