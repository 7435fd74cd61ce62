#!/usr/bin/env python3
"""ecoserv.geo.grid

The computation grid: an axis-aligned, square-celled raster template.

A grid is derived once per run from layer bounds and a resolution, and is
never modified afterwards; cropping returns a new grid aligned to the
parent's cell lines.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

from rasterio.transform import Affine, from_origin

from ecoserv.config import BNG_CRS
from ecoserv.errors import GeometryError, InputError

BBox = Tuple[float, float, float, float]

# Bounds that are a whole number of cells wide shouldn't gain a sliver column
# from floating point noise.
_SNAP_TOLERANCE = 1e-9


@dataclass(frozen=True)
class RasterGrid:
    xmin: float
    ymax: float
    res: float
    width: int
    height: int
    crs: str = BNG_CRS

    @property
    def transform(self) -> Affine:
        return from_origin(self.xmin, self.ymax, self.res, self.res)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)

    @property
    def xmax(self) -> float:
        return self.xmin + self.width * self.res

    @property
    def ymin(self) -> float:
        return self.ymax - self.height * self.res

    @property
    def bounds(self) -> BBox:
        return (self.xmin, self.ymin, self.xmax, self.ymax)

    def xy(self, row: int, col: int) -> Tuple[float, float]:
        """Centre of a cell in map coordinates."""
        return (self.xmin + (col + 0.5) * self.res, self.ymax - (row + 0.5) * self.res)

    def rowcol(self, x: float, y: float) -> Tuple[int, int]:
        """Cell containing a map coordinate (may fall outside the grid)."""
        return (int(math.floor((self.ymax - y) / self.res)), int(math.floor((x - self.xmin) / self.res)))


def _cells(extent: float, res: float) -> int:
    return int(math.ceil(extent / res - _SNAP_TOLERANCE))


def build_grid(bounds: BBox, res: float, crs: str = BNG_CRS) -> RasterGrid:
    """Build a grid of `res`-sized cells covering `bounds` exactly.

    The origin is the top-left corner of the bounds; the last row/column is
    extended when the bounds aren't a whole number of cells wide. The cell
    size is never adjusted.
    """
    if not res or res <= 0 or not math.isfinite(res):
        raise InputError(f"Resolution must be a positive number, got {res!r}", stage="grid")
    xmin, ymin, xmax, ymax = (float(v) for v in bounds)
    if not all(math.isfinite(v) for v in (xmin, ymin, xmax, ymax)):
        raise GeometryError(f"Bounds are not finite: {bounds}", stage="grid")
    if xmax - xmin <= 0 or ymax - ymin <= 0:
        raise GeometryError(f"Degenerate bounds (zero width or height): {bounds}", stage="grid")
    return RasterGrid(
        xmin=xmin,
        ymax=ymax,
        res=float(res),
        width=max(1, _cells(xmax - xmin, res)),
        height=max(1, _cells(ymax - ymin, res)),
        crs=crs,
    )


def crop_grid(grid: RasterGrid, bounds: BBox) -> RasterGrid:
    """Sub-grid covering the part of `grid` inside `bounds`.

    Cell edges stay on the parent's lines; partially covered cells are kept.
    """
    bxmin, bymin, bxmax, bymax = (float(v) for v in bounds)
    col0 = max(0, int(math.floor((bxmin - grid.xmin) / grid.res + _SNAP_TOLERANCE)))
    col1 = min(grid.width, _cells(bxmax - grid.xmin, grid.res))
    row0 = max(0, int(math.floor((grid.ymax - bymax) / grid.res + _SNAP_TOLERANCE)))
    row1 = min(grid.height, _cells(grid.ymax - bymin, grid.res))
    if col1 <= col0 or row1 <= row0:
        raise GeometryError(
            f"Bounds {bounds} do not overlap the grid {grid.bounds}", stage="grid"
        )
    return RasterGrid(
        xmin=grid.xmin + col0 * grid.res,
        ymax=grid.ymax - row0 * grid.res,
        res=grid.res,
        width=col1 - col0,
        height=row1 - row0,
        crs=grid.crs,
    )
