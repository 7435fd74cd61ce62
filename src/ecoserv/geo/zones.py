#!/usr/bin/env python3
"""ecoserv.geo.zones

Zones of influence around vegetated patches.

Small patches cool their surroundings less far than large ones, so each
patch is buffered by a width that steps up with its area:

    area <= 20,000 m²             → 20 m
    20,000 < area <= 50,000 m²    → 40 m
    50,000 < area <= 100,000 m²   → 80 m
    area > 100,000 m²             → 100 m

An area exactly on a band edge belongs to the lower band.

Before banding, patches are grown by a few metres and dissolved so that
woodland split by a path or a stream counts as one patch.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Optional

import geopandas as gpd
import numpy as np
import shapely
from shapely.geometry.base import BaseGeometry

from ecoserv.config import BNG_CRS
from ecoserv.geo.grid import RasterGrid
from ecoserv.geo.rasterize import burn_mask
from ecoserv.geo.vectors import polygonal

LOGGER = logging.getLogger(__name__)

GAP_BUFFER = 4.0

# (upper area bound in m², buffer width in m), ascending
AREA_BANDS = (
    (20_000.0, 20.0),
    (50_000.0, 40.0),
    (100_000.0, 80.0),
    (math.inf, 100.0),
)


def band_buffer_width(area: float) -> float:
    for upper, width in AREA_BANDS:
        if area <= upper:
            return width
    return AREA_BANDS[-1][1]


def dissolve_patches(geoms: Iterable[BaseGeometry], gap: float = GAP_BUFFER, crs: str = BNG_CRS) -> gpd.GeoDataFrame:
    """Grow, merge and split patches into disjoint polygons with their area."""
    geoms = [g for g in geoms if g is not None and not g.is_empty]
    if not geoms:
        return gpd.GeoDataFrame({"area": [], "geometry": []}, geometry="geometry", crs=crs)
    merged = polygonal(shapely.union_all(shapely.buffer(np.asarray(geoms, dtype=object), gap)))
    patches = gpd.GeoDataFrame(geometry=[merged], crs=crs).explode(index_parts=False, ignore_index=True)
    patches = patches[~patches.geometry.is_empty].reset_index(drop=True)
    patches["area"] = patches.geometry.area
    return patches


def influence_zone(geoms: Iterable[BaseGeometry], gap: float = GAP_BUFFER) -> Optional[BaseGeometry]:
    """Union of all patches buffered by their area band, or None if there
    are no patches."""
    patches = dissolve_patches(geoms, gap=gap)
    if patches.empty:
        return None
    widths = patches["area"].map(band_buffer_width).to_numpy(dtype="float64")
    for upper, width in AREA_BANDS:
        n = int((widths == width).sum())
        if n:
            LOGGER.debug("%d patches up to %s m² buffered by %s m", n, upper, width)
    buffered = shapely.buffer(patches.geometry.to_numpy(), widths)
    zone = polygonal(shapely.union_all(buffered))
    return None if zone.is_empty else zone


def influence_mask(geoms: Iterable[BaseGeometry], grid: RasterGrid, gap: float = GAP_BUFFER) -> np.ndarray:
    """Boolean raster of the influence zone.

    With no patches at all the mask covers the whole grid, so masking
    becomes a no-op instead of failing.
    """
    zone = influence_zone(geoms, gap=gap)
    if zone is None:
        LOGGER.warning(
            "Study area does not contain climate-regulating features. "
            "If you think this is a mistake, check classification."
        )
        return np.ones(grid.shape, dtype=bool)
    return burn_mask([zone], grid)
