#!/usr/bin/env python3
"""ecoserv.geo.normalize

Rescaling raw scores to 0-100 relative to the study area's maximum.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from ecoserv.errors import ComputationError

LOGGER = logging.getLogger(__name__)


def max_score(values: np.ndarray) -> Optional[float]:
    """Largest defined value, or None when every cell is no-data."""
    defined = values[~np.isnan(values)]
    if defined.size == 0:
        return None
    return float(defined.max())


def rescale(values: np.ndarray) -> np.ndarray:
    """values / max * 100, keeping no-data cells as NaN.

    A zero maximum (nothing scores anywhere) gives zeros rather than NaN;
    an all no-data raster is returned unchanged.
    """
    values = np.asarray(values, dtype="float64")
    if np.isinf(values).any():
        raise ComputationError("Score raster contains infinite values.", stage="rescale")
    maxval = max_score(values)
    if maxval is None:
        LOGGER.warning("Score raster has no data inside the study area; rescaled output is empty.")
        return values.copy()
    if np.nanmin(values) < 0:
        raise ComputationError(
            f"Score raster has negative values (min {np.nanmin(values)}); cannot rescale to 0-100.",
            stage="rescale",
        )
    if maxval == 0:
        LOGGER.warning("Maximum score is 0; rescaled output is all zero.")
        return np.where(np.isnan(values), np.nan, 0.0)
    return values / maxval * 100.0
