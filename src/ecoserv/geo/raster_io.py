#!/usr/bin/env python3
"""ecoserv.geo.raster_io

Single-band float GeoTIFF writing for score rasters.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import rasterio

from ecoserv.errors import WorkspaceError
from ecoserv.geo.grid import RasterGrid


def write_score_raster(path: Path, values: np.ndarray, grid: RasterGrid) -> Path:
    """Write `values` (NaN = no-data) as a float32 GeoTIFF on `grid`."""
    if values.shape != grid.shape:
        raise ValueError(f"Array shape {values.shape} does not match grid {grid.shape}")

    profile = {
        "driver": "GTiff",
        "height": grid.height,
        "width": grid.width,
        "count": 1,
        "dtype": "float32",
        "crs": grid.crs,
        "transform": grid.transform,
        "nodata": np.nan,
        "compress": "deflate",
    }
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WorkspaceError(f"Could not create {path.parent}: {e}", stage="write") from e

    with rasterio.open(path, "w", **profile) as dst:
        dst.write(values.astype("float32"), 1)
    return path
