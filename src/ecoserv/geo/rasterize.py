#!/usr/bin/env python3
"""ecoserv.geo.rasterize

Burning polygons onto a RasterGrid.

Presence rasters are float arrays holding the burn value where a polygon
covers any part of a cell and NaN (no-data) elsewhere. Burning is idempotent:
overlapping or duplicated polygons give the same result as one.
"""

from __future__ import annotations

from typing import Iterable, List

import numpy as np
from rasterio.features import geometry_mask, rasterize
from shapely.geometry.base import BaseGeometry

from ecoserv.geo.grid import RasterGrid


def _usable(geoms: Iterable[BaseGeometry]) -> List[BaseGeometry]:
    return [g for g in geoms if g is not None and not g.is_empty]


def burn_mask(geoms: Iterable[BaseGeometry], grid: RasterGrid) -> np.ndarray:
    """Boolean raster: True where any part of a cell is covered."""
    shapes = _usable(geoms)
    if not shapes:
        return np.zeros(grid.shape, dtype=bool)
    burned = rasterize(
        ((g, 1) for g in shapes),
        out_shape=grid.shape,
        transform=grid.transform,
        fill=0,
        all_touched=True,
        dtype="uint8",
    )
    return burned.astype(bool)


def burn_presence(geoms: Iterable[BaseGeometry], grid: RasterGrid, value: float = 1.0) -> np.ndarray:
    """Float raster: `value` on covered cells, NaN elsewhere."""
    covered = burn_mask(geoms, grid)
    return np.where(covered, float(value), np.nan)


def inside_mask(geom: BaseGeometry, grid: RasterGrid) -> np.ndarray:
    """Boolean raster: True where a cell's centre falls inside `geom`."""
    if geom is None or geom.is_empty:
        return np.zeros(grid.shape, dtype=bool)
    return ~geometry_mask([geom], out_shape=grid.shape, transform=grid.transform, all_touched=False)


def clip_to_geometry(values: np.ndarray, grid: RasterGrid, geom: BaseGeometry) -> np.ndarray:
    """Copy of `values` with cells whose centre is outside `geom` set to NaN."""
    out = values.astype("float64", copy=True)
    out[~inside_mask(geom, grid)] = np.nan
    return out
