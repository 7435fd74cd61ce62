#!/usr/bin/env python3
"""ecoserv.models._pipeline

Pieces shared by every model run: output and scratch folders, study-area
clipping, writing the raw + rescaled pair, and timing.

Outputs are written to the scratch folder first and moved into the output
folder only once both exist, so a failed run never leaves half its outputs
behind. The scratch folder is removed however the run ends.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple

import geopandas as gpd
import numpy as np
from shapely.geometry.base import BaseGeometry

from ecoserv.config import ProjectLog
from ecoserv.errors import GeometryError, InputError, WorkspaceError
from ecoserv.geo.grid import RasterGrid
from ecoserv.geo.normalize import rescale
from ecoserv.geo.raster_io import write_score_raster
from ecoserv.geo.rasterize import clip_to_geometry, inside_mask
from ecoserv.geo.vectors import VectorInput, prepare_layer, study_area_geometry

LOGGER = logging.getLogger(__name__)

SCRATCH_DIRNAME = "ecoserv_scratch"


@dataclass(frozen=True)
class ModelRun:
    """What a finished run produced."""

    model: str
    raw_path: Path
    rescaled_path: Path
    minutes: float


def prepare_output_dir(project_log: ProjectLog, run_title: str, save: Optional[Path] = None) -> Path:
    """Resolve the folder outputs go to.

    Default is `{projpath}/services_{run_title}`, created only when outputs
    are written. A folder passed explicitly must already exist and be
    writable.
    """
    if save is None:
        return Path(project_log.projpath) / f"services_{run_title}"

    save = Path(save)
    if not save.is_dir() or not os.access(save, os.W_OK):
        raise InputError(
            f"Save directory doesn't exist, or you don't have permission to write to it: {save}",
            stage="setup",
        )
    return save


@contextlib.contextmanager
def scratch_dir(project_log: ProjectLog) -> Iterator[Path]:
    scratch = Path(project_log.projpath) / SCRATCH_DIRNAME
    try:
        scratch.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WorkspaceError(f"Could not create scratch folder {scratch}: {e}", stage="setup") from e
    try:
        yield scratch
    finally:
        shutil.rmtree(scratch, ignore_errors=True)
        LOGGER.debug("Removed scratch folder %s", scratch)


def output_paths(save: Path, project_title: str, run_title: str, model_name: str) -> Tuple[Path, Path]:
    stem = "_".join([project_title, run_title, model_name])
    return save / f"{stem}.tif", save / f"{stem}_rescaled.tif"


def load_inputs(basemap: VectorInput, study_area: VectorInput) -> Tuple[gpd.GeoDataFrame, BaseGeometry]:
    """Basemap layer and dissolved study-area geometry, both validated and
    in British National Grid."""
    x = prepare_layer(basemap, stage="basemap")
    if x.empty:
        raise GeometryError("Basemap contains no features.", stage="basemap")
    sa = study_area_geometry(prepare_layer(study_area, stage="study area"))
    return x, sa


def check_overlap(grid: RasterGrid, study_area: BaseGeometry) -> None:
    """Fail before any raster work if no cell centre lies in the study area."""
    if not inside_mask(study_area, grid).any():
        raise GeometryError(
            f"Study area does not overlap the computation grid {grid.bounds}.",
            stage="clip",
        )


def clip_to_study_area(values: np.ndarray, grid: RasterGrid, study_area: BaseGeometry) -> np.ndarray:
    return clip_to_geometry(values, grid, study_area)


def write_outputs(
    raw: np.ndarray,
    grid: RasterGrid,
    *,
    save: Path,
    scratch: Path,
    project_title: str,
    run_title: str,
    model_name: str,
) -> Tuple[Path, Path]:
    """Write the raw raster and its 0-100 rescaled version."""
    raw_path, rescaled_path = output_paths(save, project_title, run_title, model_name)
    staged_raw = write_score_raster(scratch / raw_path.name, raw, grid)
    staged_rescaled = write_score_raster(scratch / rescaled_path.name, rescale(raw), grid)
    try:
        save.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise WorkspaceError(f"Could not create output folder {save}: {e}", stage="write") from e
    shutil.move(str(staged_raw), str(raw_path))
    shutil.move(str(staged_rescaled), str(rescaled_path))
    return raw_path, rescaled_path


class Stopwatch:
    """Wall-clock timer reporting minutes."""

    def __init__(self):
        self.start = time.perf_counter()

    @property
    def minutes(self) -> float:
        return (time.perf_counter() - self.start) / 60.0
