#!/usr/bin/env python3

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from ecoserv.errors import InputError
from ecoserv.geo.focal import disc_kernel, focal_score


def _brute_force(values, kernel):
    k = kernel.shape[0] // 2
    padded = np.pad(values, k)
    out = np.zeros(values.shape)
    for di, dj in zip(*np.nonzero(kernel)):
        out += padded[di:di + values.shape[0], dj:dj + values.shape[1]]
    return out


def test_disc_kernel():
    assert disc_kernel(0, 5).tolist() == [[True]]
    k = disc_kernel(10, 5)
    assert k.shape == (5, 5)
    assert k.sum() == 13
    assert not k[0, 0]
    assert k[0, 2] and k[2, 0]


def test_all_zero_input():
    out = focal_score(np.zeros((20, 20)), radius=50, res=10)
    assert np.all(out == 0)


def test_single_cell_footprint():
    values = np.full((41, 41), np.nan)
    values[20, 20] = 1
    out = focal_score(values, radius=50, res=10)
    assert out[20, 20] == 1
    assert out[20, 25] == 1
    assert out[20, 26] == 0
    assert out[23, 24] == 1   # 50 m away
    assert out[24, 24] == 0   # 56.6 m away
    assert out.sum() == disc_kernel(50, 10).sum()
    assert out.min() >= 0


def test_edges_do_not_wrap():
    values = np.zeros((30, 30))
    values[0, 0] = 1
    out = focal_score(values, radius=30, res=10)
    assert out[0, 0] == 1
    assert out[0, 3] == 1
    assert out[0, -1] == 0
    assert out[-1, 0] == 0


@pytest.mark.parametrize("radius", [35, 100])
def test_matches_brute_force(radius):
    rng = np.random.default_rng(42)
    values = (rng.random((40, 50)) > 0.8).astype(float)
    expected = _brute_force(values, disc_kernel(radius, 5))
    np.testing.assert_allclose(focal_score(values, radius=radius, res=5), expected, atol=1e-9)


def test_mean_counts_only_cells_inside_grid():
    out = focal_score(np.ones((15, 15)), radius=30, res=10, type="mean")
    np.testing.assert_allclose(out, 1.0)


def test_bad_arguments():
    with pytest.raises(InputError):
        focal_score(np.zeros((3, 3)), radius=-1, res=10)
    with pytest.raises(InputError):
        focal_score(np.zeros((3, 3)), radius=10, res=10, type="max")


def test_non_increasing_away_from_cluster():
    values = np.zeros((60, 60))
    values[28:32, 28:32] = 1
    values[30, 33] = 1
    out = focal_score(values, radius=60, res=10)
    ray = out[30, 33:]
    assert np.all(np.diff(ray) <= 0)
    diag = out[np.arange(31, 60), np.arange(31, 60)]
    assert np.all(np.diff(diag) <= 0)
    assert ray[-1] == 0
