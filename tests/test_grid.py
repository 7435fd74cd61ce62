#!/usr/bin/env python3

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest
from shapely.geometry import box

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from ecoserv.errors import GeometryError, InputError
from ecoserv.geo.grid import build_grid, crop_grid
from ecoserv.geo.rasterize import burn_mask, burn_presence, clip_to_geometry, inside_mask


# -----------------------------------------------------------------------------
# Grid
# -----------------------------------------------------------------------------

def test_build_grid_exact_bounds():
    g = build_grid((0, 0, 100, 50), 10)
    assert (g.width, g.height) == (10, 5)
    assert g.shape == (5, 10)
    assert g.bounds == (0, 0, 100, 50)
    assert g.crs == "EPSG:27700"
    assert g.transform.a == 10 and g.transform.e == -10


def test_build_grid_extends_last_column():
    g = build_grid((0, 0, 101, 50), 10)
    assert g.width == 11
    assert g.res == 10
    assert g.xmax >= 101


def test_build_grid_rejects_bad_input():
    with pytest.raises(InputError):
        build_grid((0, 0, 100, 100), 0)
    with pytest.raises(GeometryError):
        build_grid((0, 0, 0, 100), 5)
    with pytest.raises(GeometryError):
        build_grid((0, 0, float("nan"), 100), 5)


def test_crop_grid_snaps_outward_to_parent_cells():
    parent = build_grid((0, 0, 1000, 1000), 10)
    g = crop_grid(parent, (95, 95, 205, 305))
    assert g.bounds == (90, 90, 210, 310)
    assert g.res == parent.res


def test_crop_grid_clamps_and_rejects_disjoint():
    parent = build_grid((0, 0, 1000, 1000), 10)
    assert crop_grid(parent, (-500, -500, 1500, 1500)).bounds == parent.bounds
    with pytest.raises(GeometryError):
        crop_grid(parent, (2000, 2000, 3000, 3000))


def test_xy_and_rowcol():
    g = build_grid((0, 0, 100, 100), 10)
    assert g.xy(0, 0) == (5, 95)
    assert g.rowcol(5, 95) == (0, 0)
    assert g.rowcol(*g.xy(7, 3)) == (7, 3)


# -----------------------------------------------------------------------------
# Rasterization
# -----------------------------------------------------------------------------

def test_burn_presence_any_overlap():
    g = build_grid((0, 0, 100, 100), 10)
    r = burn_presence([box(12, 12, 28, 28)], g)
    assert np.nansum(r) == 4
    assert np.all(r[7:9, 1:3] == 1)
    assert np.isnan(r[0, 0])

    # a sliver still marks every cell it touches
    sliver = burn_mask([box(12, 12, 21, 13)], g)
    assert sliver.sum() == 2
    assert sliver[8, 1] and sliver[8, 2]


def test_burn_presence_is_idempotent():
    g = build_grid((0, 0, 100, 100), 10)
    once = burn_presence([box(12, 12, 28, 28)], g)
    twice = burn_presence([box(12, 12, 28, 28), box(12, 12, 28, 28), box(15, 15, 20, 20)], g)
    np.testing.assert_array_equal(once, twice)


def test_burn_presence_empty():
    g = build_grid((0, 0, 100, 100), 10)
    assert np.isnan(burn_presence([], g)).all()


def test_clip_uses_cell_centres():
    g = build_grid((0, 0, 100, 100), 10)
    values = np.ones(g.shape)
    clipped = clip_to_geometry(values, g, box(0, 0, 50, 100))
    assert np.all(clipped[:, :5] == 1)
    assert np.isnan(clipped[:, 5:]).all()
    assert inside_mask(box(0, 0, 50, 100), g).sum() == 50
    assert values.min() == 1
