#!/usr/bin/env python3

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest
from scipy import ndimage

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from ecoserv.errors import InputError
from ecoserv.geo.distance import distance_field, proximity_score


def test_single_source_euclidean_cutoff():
    src = np.zeros((21, 21), dtype=bool)
    src[10, 10] = True
    d = distance_field(src, res=10, cutoff=50)
    assert d[10, 10] == 0
    assert d[10, 15] == 50
    assert np.isnan(d[10, 16])
    assert d[13, 14] == pytest.approx(50)   # 3-4-5, not chessboard or taxicab
    row = d[10, 10:16]
    assert np.all(np.diff(row) > 0)


def test_no_sources_is_all_nodata():
    d = distance_field(np.zeros((10, 10), dtype=bool), res=10, cutoff=100)
    assert np.isnan(d).all()


def test_nan_presence_input():
    src = np.full((5, 5), np.nan)
    src[2, 2] = 1
    d = distance_field(src, res=1, cutoff=10)
    assert d[2, 2] == 0
    assert d[0, 0] == pytest.approx(np.sqrt(8))


def test_windowed_matches_full_transform():
    src = np.zeros((200, 200), dtype=bool)
    src[5, 5] = True
    src[8, 30] = True
    expected = ndimage.distance_transform_edt(~src, sampling=(10, 10))
    expected[expected > 300] = np.nan
    np.testing.assert_allclose(distance_field(src, res=10, cutoff=300), expected, equal_nan=True)


def test_proximity_score():
    d = np.array([0.0, 400.0, 800.0, np.nan])
    s = proximity_score(d, 800)
    np.testing.assert_allclose(s[:3], [100.0, 50.0, 0.0])
    assert np.isnan(s[3])


def test_bad_cutoff():
    with pytest.raises(InputError):
        distance_field(np.ones((2, 2), dtype=bool), res=10, cutoff=0)
    with pytest.raises(InputError):
        proximity_score(np.zeros(2), -1)
