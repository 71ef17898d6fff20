"""File formats: scalar volumes in, meshes and Voronoi diagnostics out."""

from .volume import VolumeFormatError, load_volume, save_volume
from .mesh_writers import write_mesh, write_off, write_ply
from .voronoi_export import dump_voronoi_diagram, export_voronoi_csv, format_voronoi_diagram
