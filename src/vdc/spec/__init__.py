"""Constants and the data contract shared by every stage."""

from .structures import IsoSurface, RunConfig, validate_isosurface
