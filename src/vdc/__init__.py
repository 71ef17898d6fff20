"""
vdc - Voronoi-diagram dual contouring
=====================================

Extracts a triangulated isosurface from a regularly sampled scalar field
through the Voronoi dual of a Delaunay triangulation of active-cube
centers. Multi-isovertex mode places one vertex per surface sheet
passing through a Voronoi cell.

Structure:
    spec/      - Constants and data contract (dataclasses, RunConfig)
    field/     - ScalarGrid, active cubes, dummy points
    kernel/    - Delaunay / hull / half-space primitives over scipy.spatial
    builders/  - Triangulation, Voronoi diagram, cell-edge ring
    analysis/  - Isovertex placement, dual triangles, pipeline
    io/        - Volume loading, OFF/PLY writers, Voronoi diagnostics

Requirements:
    Python >= 3.9
    numpy >= 1.20
    scipy >= 1.11
"""

import sys

# Python version check
if sys.version_info < (3, 9):
    raise ImportError(f"vdc requires Python >= 3.9, got {sys.version}")

# scipy version check (public QhullError, stable HalfspaceIntersection)
import scipy
_scipy_version = tuple(int(p) for p in scipy.__version__.split('.')[:2] if p.isdigit())
if _scipy_version < (1, 11):
    raise ImportError(f"vdc requires scipy >= 1.11, got {scipy.__version__}")

# numpy version check
import numpy as np
_numpy_version = tuple(int(p) for p in np.__version__.split('.')[:2] if p.isdigit())
if _numpy_version < (1, 20):
    raise ImportError(f"vdc requires numpy >= 1.20, got {np.__version__}")

__version__ = "0.1.0"

from .analysis.pipeline import PipelineResult, run_pipeline
from .field.scalar_grid import ScalarGrid
from .kernel.delaunay import DegenerateGeometryError
from .io.volume import VolumeFormatError, load_volume
from .io.mesh_writers import write_mesh
from .spec.structures import IsoSurface, RunConfig, validate_isosurface
