#!/usr/bin/env python3
"""ecoserv.geo.vectors

Reading and validating the vector inputs: basemap, study area, hedgerows.

Everything downstream assumes British National Grid, 2D, valid polygons.
The helpers here get layers into that state or fail with a clear message.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence, Union

import geopandas as gpd
import pandas as pd
import shapely
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry

from ecoserv.config import BNG_CRS, BNG_EPSG
from ecoserv.errors import GeometryError, InputError

LOGGER = logging.getLogger(__name__)

VectorInput = Union[gpd.GeoDataFrame, Sequence[gpd.GeoDataFrame], str, Path]


def read_vector(path: Union[str, Path], *, stage: str = "input") -> gpd.GeoDataFrame:
    path = Path(path)
    if not path.exists():
        raise InputError(f"Vector file not found: {path}", stage=stage)
    try:
        return gpd.read_file(path)
    except Exception as e:
        raise InputError(f"Could not read vector file {path}: {e}", stage=stage) from e


def combine_tiles(tiles: Sequence[gpd.GeoDataFrame], *, stage: str = "input") -> gpd.GeoDataFrame:
    """Recombine a tiled basemap into one layer.

    Tiles must share a CRS; the combined extent covers all tiles.
    """
    tiles = [t for t in tiles if t is not None]
    if not tiles:
        raise GeometryError("Basemap tile list is empty.", stage=stage)
    crs_set = {t.crs.to_string() if t.crs is not None else None for t in tiles}
    if len(crs_set) > 1:
        raise InputError(f"Basemap tiles have mixed CRS: {sorted(map(str, crs_set))}", stage=stage)
    LOGGER.info("Recombining %d basemap tiles", len(tiles))
    geom_col = tiles[0].geometry.name
    renamed = [t.rename_geometry(geom_col) if t.geometry.name != geom_col else t for t in tiles]
    return gpd.GeoDataFrame(pd.concat(renamed, ignore_index=True), geometry=geom_col, crs=tiles[0].crs)


def as_geodataframe(x: VectorInput, *, stage: str = "input") -> gpd.GeoDataFrame:
    """Accept a GeoDataFrame, a list of tiles, or a path to a vector file."""
    if isinstance(x, gpd.GeoDataFrame):
        return x
    if isinstance(x, (str, Path)):
        return read_vector(x, stage=stage)
    if isinstance(x, (list, tuple)):
        return combine_tiles(list(x), stage=stage)
    raise InputError(f"Unsupported vector input type: {type(x).__name__}", stage=stage)


def ensure_crs(gdf: gpd.GeoDataFrame, *, stage: str = "input") -> gpd.GeoDataFrame:
    """Make sure a layer is in British National Grid.

    A layer without CRS can't be placed safely and is rejected; a layer in
    another CRS is reprojected.
    """
    if gdf.crs is None:
        raise InputError(
            "Layer has no CRS (.prj missing or unreadable). "
            f"Assign one before running; expected {BNG_CRS}.",
            stage=stage,
        )
    if gdf.crs.to_epsg() != BNG_EPSG:
        LOGGER.info("Reprojecting layer from %s to %s", gdf.crs.to_string(), BNG_CRS)
        return gdf.to_crs(BNG_CRS)
    return gdf


def drop_z(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    if not gdf.geometry.has_z.any():
        return gdf
    out = gdf.copy()
    out[out.geometry.name] = shapely.force_2d(out.geometry.to_numpy())
    return out


def make_valid(gdf: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
    """Fix invalid geometries and drop empty/missing ones."""
    out = gdf.copy()
    invalid = ~out.geometry.is_valid & out.geometry.notna()
    if invalid.any():
        LOGGER.debug("Repairing %d invalid geometries", int(invalid.sum()))
        repaired = [polygonal(g) for g in out.geometry[invalid].make_valid()]
        out.loc[invalid, out.geometry.name] = gpd.GeoSeries(repaired, index=out.index[invalid], crs=out.crs)
    return out[out.geometry.notna() & ~out.geometry.is_empty].copy()


def polygonal(geom: BaseGeometry) -> BaseGeometry:
    """Keep only the polygon parts of a geometry (unions and repairs can
    leave stray lines/points in a GeometryCollection)."""
    if geom is None or geom.is_empty:
        return Polygon()
    if isinstance(geom, (Polygon, MultiPolygon)):
        return geom
    parts: List[Polygon] = []
    for g in getattr(geom, "geoms", []):
        g = polygonal(g)
        if isinstance(g, Polygon) and not g.is_empty:
            parts.append(g)
        elif isinstance(g, MultiPolygon):
            parts.extend(g.geoms)
    if not parts:
        return Polygon()
    return MultiPolygon(parts) if len(parts) > 1 else parts[0]


def prepare_layer(x: VectorInput, *, stage: str) -> gpd.GeoDataFrame:
    """Load, drop Z, check CRS and repair geometries of one input layer."""
    gdf = as_geodataframe(x, stage=stage)
    gdf = drop_z(gdf)
    gdf = ensure_crs(gdf, stage=stage)
    return make_valid(gdf)


def study_area_geometry(study_area: gpd.GeoDataFrame) -> BaseGeometry:
    """Dissolve the study area into one polygonal geometry."""
    if study_area.empty:
        raise GeometryError("Study area contains no features.", stage="study area")
    geom = polygonal(shapely.union_all(study_area.geometry.to_numpy()))
    if geom.is_empty or geom.area <= 0:
        raise GeometryError("Study area has no polygon area.", stage="study area")
    return geom
