"""
Scalar volume loading
=====================

.npy  - a bare 3-D array, values[i, j, k] with i along x
.npz  - array under key "data", optional "spacing" and "origin" (3 floats each)

Accepted element types are listed in SUPPORTED_DTYPES; samples are
converted to float64.
"""

import logging
from pathlib import Path
from typing import Optional, Sequence

import numpy as np

from ..field.scalar_grid import ScalarGrid
from ..spec.constants import SUPPORTED_DTYPES

logger = logging.getLogger(__name__)


class VolumeFormatError(ValueError):
    """Unsupported volume file, element type or shape."""


def _check_array(data: np.ndarray, source: str) -> None:
    if data.dtype.name not in SUPPORTED_DTYPES:
        raise VolumeFormatError(
            f"{source}: unsupported element type {data.dtype.name} (expected one of {SUPPORTED_DTYPES})")
    if data.ndim != 3:
        raise VolumeFormatError(f"{source}: expected a 3-D array, got shape {data.shape}")
    if min(data.shape) < 2:
        raise VolumeFormatError(f"{source}: need >= 2 samples per axis, got shape {data.shape}")


def load_volume(path, spacing: Optional[Sequence[float]] = None,
                origin: Optional[Sequence[float]] = None) -> ScalarGrid:
    """
    Load a scalar volume as a ScalarGrid.

    Explicit spacing/origin arguments override values stored in an .npz.

    Raises:
        FileNotFoundError: path does not exist
        VolumeFormatError: unknown extension, missing "data" key,
            unsupported dtype or shape
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Volume file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".npy":
        data = np.load(path, allow_pickle=False)
    elif suffix == ".npz":
        with np.load(path, allow_pickle=False) as archive:
            if "data" not in archive.files:
                raise VolumeFormatError(f"{path}: .npz archive has no 'data' array")
            data = archive["data"]
            if spacing is None and "spacing" in archive.files:
                spacing = archive["spacing"]
            if origin is None and "origin" in archive.files:
                origin = archive["origin"]
    else:
        raise VolumeFormatError(f"{path}: unsupported volume format '{suffix}' (use .npy or .npz)")

    _check_array(data, str(path))

    grid = ScalarGrid(data.astype(np.float64),
                      spacing if spacing is not None else (1.0, 1.0, 1.0),
                      origin if origin is not None else (0.0, 0.0, 0.0))
    logger.info(f"Loaded {path.name}: {data.dtype.name} {grid!r}")
    return grid


def save_volume(path, grid: ScalarGrid) -> None:
    """Write a ScalarGrid as .npz (data, spacing, origin)."""
    np.savez(Path(path), data=grid.values, spacing=grid.spacing, origin=grid.origin)
