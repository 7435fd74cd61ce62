#!/usr/bin/env python3

from __future__ import annotations

import logging
import sys
from pathlib import Path

import geopandas as gpd
import numpy as np
import pytest
import rasterio
from shapely.geometry import box

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from ecoserv.config import ProjectLog
from ecoserv.errors import GeometryError, InputError
from ecoserv.habitat import load_hab_lookup
from ecoserv.models.pollination import PERFORMANCE_KEY, demand_pollination, pollination_core_codes

# Arable field covering the single cell (199, 200) of a 10 m grid on 0-4000 m
FIELD = box(2001, 2001, 2009, 2009)
SITE = box(0, 0, 4000, 4000)


def _site(geom=SITE):
    return gpd.GeoDataFrame(geometry=[geom], crs="EPSG:27700")


def _run(project_log, lookup, basemap, study_area=None, **kw):
    return demand_pollination(
        basemap,
        _site() if study_area is None else study_area,
        lookup=lookup,
        project_log=project_log,
        run_title="base",
        res=10,
        dist=800,
        **kw,
    )


def _read(path):
    with rasterio.open(path) as src:
        return src.read(1), src.bounds


def test_core_codes():
    codes = pollination_core_codes(load_hab_lookup(ROOT / "config" / "hab_lookup.yaml"))
    for code in ("J11", "J111", "J112", "J12g", "J12a", "A11-O", "A112o", "A112o_T"):
        assert code in codes
    assert "A111" not in codes
    assert "B4" not in codes


def test_linear_decay_from_single_field(project_log, lookup, make_layer):
    run = _run(project_log, lookup, make_layer([("B4", SITE), ("J11", FIELD)]))
    assert run.raw_path.name == "proj_base_pollination_demand.tif"

    raw, _ = _read(run.raw_path)
    assert raw.shape == (400, 400)
    assert raw[199, 200] == 100
    assert raw[199, 280] == 0
    assert np.isnan(raw[199, 281])
    assert np.all(np.diff(raw[199, 200:281]) < 0)
    assert raw[199, 240] == pytest.approx(50)
    assert np.nanmin(raw) >= 0 and np.nanmax(raw) <= 100

    rescaled, _ = _read(run.rescaled_path)
    np.testing.assert_allclose(rescaled, raw, equal_nan=True, rtol=1e-6)
    assert PERFORMANCE_KEY in ProjectLog.load(project_log.path).performance


def test_gardens_count_as_sources(project_log, lookup, make_layer):
    raw, _ = _read(_run(project_log, lookup, make_layer([("B4", SITE), ("J12g", FIELD)])).raw_path)
    assert raw[199, 200] == 100


def test_grid_cropped_to_buffered_study_area(project_log, lookup, make_layer):
    run = _run(
        project_log,
        lookup,
        make_layer([("B4", SITE), ("J11", FIELD)]),
        study_area=_site(box(1000, 1000, 2000, 2000)),
    )
    raw, bounds = _read(run.raw_path)
    assert raw.shape == (200, 200)
    assert tuple(bounds) == (500, 500, 2500, 2500)
    # outside the study area but inside the buffered grid
    assert np.isnan(raw[0, 0])


def test_no_sources_gives_zeros(project_log, lookup, make_layer, caplog):
    with caplog.at_level(logging.WARNING):
        run = _run(project_log, lookup, make_layer([("B4", SITE)]))
    raw, _ = _read(run.raw_path)
    assert np.all(raw == 0)
    assert "land requiring pollination" in caplog.text


def test_bad_parameters(project_log, lookup, make_layer):
    with pytest.raises(InputError):
        _run(project_log, lookup, make_layer([("J11", FIELD)]), study_area_buffer=-1)
    with pytest.raises(InputError):
        demand_pollination(
            make_layer([("J11", FIELD)]), _site(), lookup=lookup, project_log=project_log,
            run_title="base", dist=0,
        )


def test_study_area_outside_basemap_leaves_no_folder(project_log, lookup, make_layer):
    with pytest.raises(GeometryError):
        _run(project_log, lookup, make_layer([("B4", SITE), ("J11", FIELD)]),
             study_area=_site(box(9000, 9000, 9500, 9500)))
    assert not (project_log.projpath / "services_base").exists()
