#!/usr/bin/env python3
"""ecoserv.geo.distance

Distance from every cell to the nearest source cell, and the linear
distance-decay score built on it.

Distances are exact Euclidean distances between cell centres, in map units
(metres), computed with scipy's exact distance transform. Only cells within
`cutoff` of a source are kept; everything else is no-data.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np
from scipy import ndimage

from ecoserv.errors import InputError

LOGGER = logging.getLogger(__name__)


def _source_window(source: np.ndarray, margin: int) -> Tuple[slice, slice]:
    """Bounding box of the source cells grown by `margin` cells, clipped to
    the array. No cell outside it can be within the cutoff of a source."""
    rows = np.flatnonzero(source.any(axis=1))
    cols = np.flatnonzero(source.any(axis=0))
    r0 = max(0, rows[0] - margin)
    r1 = min(source.shape[0], rows[-1] + margin + 1)
    c0 = max(0, cols[0] - margin)
    c1 = min(source.shape[1], cols[-1] + margin + 1)
    return slice(r0, r1), slice(c0, c1)


def distance_field(source: np.ndarray, res: float, cutoff: float) -> np.ndarray:
    """Distance (map units) to the nearest source cell, NaN beyond `cutoff`.

    Parameters
    ----------
    source : 2D array
        True (or any non-zero, non-NaN value) where a cell is a source.
    res : float
        Cell size in map units.
    cutoff : float
        Maximum distance of interest; farther cells are no-data.
    """
    if cutoff <= 0:
        raise InputError(f"Distance cutoff must be > 0, got {cutoff}", stage="distance")
    if res <= 0:
        raise InputError(f"Resolution must be > 0, got {res}", stage="distance")

    src = np.asarray(source)
    if src.dtype != bool:
        src = np.nan_to_num(src.astype("float64"), nan=0.0) != 0

    out = np.full(src.shape, np.nan)
    if not src.any():
        LOGGER.debug("No source cells; distance field is empty")
        return out

    margin = int(np.ceil(cutoff / res))
    win = _source_window(src, margin)
    LOGGER.debug("Distance transform on %s window of %s grid", src[win].shape, src.shape)

    # distance_transform_edt measures to the nearest zero, so sources are zeros
    dist = ndimage.distance_transform_edt(~src[win], sampling=(res, res))
    dist[dist > cutoff] = np.nan
    out[win] = dist
    return out


def proximity_score(distance: np.ndarray, cutoff: float) -> np.ndarray:
    """Linear decay: 100 at distance 0, 0 at `cutoff`. NaN stays NaN."""
    if cutoff <= 0:
        raise InputError(f"Distance cutoff must be > 0, got {cutoff}", stage="distance")
    return (cutoff - distance) / cutoff * 100.0
