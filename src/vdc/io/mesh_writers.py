"""
Mesh writers
============

OFF:
    OFF
    nV nF 0
    x y z            (nV lines)
    3 a b c          (nF lines)

PLY (ascii 1.0 or binary_little_endian 1.0):
    element vertex nV   float x, y, z
    element face nF     list uchar int vertex_indices
"""

import logging
import struct
from pathlib import Path

import numpy as np

from ..spec.constants import FORMAT_OFF, FORMAT_PLY, VALID_FORMATS
from ..spec.structures import IsoSurface

logger = logging.getLogger(__name__)


def write_off(path, surface: IsoSurface) -> None:
    with open(path, "w") as f:
        f.write("OFF\n")
        f.write(f"{surface.n_vertices} {surface.n_triangles} 0\n")
        for p in surface.vertices:
            f.write(f"{p[0]} {p[1]} {p[2]}\n")
        for a, b, c in surface.triangles:
            f.write(f"3 {a} {b} {c}\n")


def _ply_header(surface: IsoSurface, fmt: str) -> str:
    return (
        "ply\n"
        f"format {fmt} 1.0\n"
        f"element vertex {surface.n_vertices}\n"
        "property float x\n"
        "property float y\n"
        "property float z\n"
        f"element face {surface.n_triangles}\n"
        "property list uchar int vertex_indices\n"
        "end_header\n"
    )


def write_ply(path, surface: IsoSurface, binary: bool = False) -> None:
    """PLY with float32 coordinates; binary output is little-endian."""
    if not binary:
        with open(path, "w") as f:
            f.write(_ply_header(surface, "ascii"))
            for p in surface.vertices:
                f.write(f"{p[0]} {p[1]} {p[2]}\n")
            for a, b, c in surface.triangles:
                f.write(f"3 {a} {b} {c}\n")
        return

    with open(path, "wb") as f:
        f.write(_ply_header(surface, "binary_little_endian").encode("ascii"))
        f.write(np.asarray(surface.vertices, dtype="<f4").reshape(-1, 3).tobytes())
        for a, b, c in surface.triangles:
            f.write(struct.pack("<Biii", 3, a, b, c))


def write_mesh(path, surface: IsoSurface, fmt: str, binary: bool = False) -> None:
    """
    Write surface in fmt ("off" or "ply").

    Raises:
        ValueError: unsupported format
    """
    fmt = fmt.lower()
    if fmt not in VALID_FORMATS:
        raise ValueError(f"Unsupported output format: {fmt} (expected one of {VALID_FORMATS})")

    if fmt == FORMAT_OFF:
        write_off(path, surface)
    elif fmt == FORMAT_PLY:
        write_ply(path, surface, binary=binary)

    logger.info(f"Wrote {fmt.upper()} {Path(path).name}: "
                f"{surface.n_vertices} vertices, {surface.n_triangles} triangles")
