#!/usr/bin/env python3
"""pollination.py

Pollination demand model.

Land that needs insect pollination (arable, gardens, orchards) is burned onto
a grid; every cell within `dist` metres of it gets a score decaying linearly
from 100 on that land to 0 at `dist`. Cells farther away are no-data.

The grid is cropped to the study area buffered by 500 m so that land just
outside the boundary still contributes, then clipped back.

Outputs (in the run's output folder):
- {project}_{run}_pollination_demand.tif           raw scores (0-100)
- {project}_{run}_pollination_demand_rescaled.tif  relative to the area max
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import numpy as np

from ecoserv.config import ProjectLog, format_bbox
from ecoserv.errors import InputError
from ecoserv.geo.distance import distance_field, proximity_score
from ecoserv.geo.grid import build_grid, crop_grid
from ecoserv.geo.rasterize import burn_presence
from ecoserv.geo.vectors import VectorInput
from ecoserv.habitat import CODE_FIELD, HabitatLookup, filter_codes
from ecoserv.models._pipeline import (
    ModelRun,
    Stopwatch,
    check_overlap,
    clip_to_study_area,
    load_inputs,
    prepare_output_dir,
    scratch_dir,
    write_outputs,
)

LOGGER = logging.getLogger(__name__)

MODEL_NAME = "pollination_demand"
PERFORMANCE_KEY = "dem_pollin"

ARABLE_CODE = "J11"
GARDENS_BROAD = "Gardens / Parks / Brownfield"
ORCHARD_CODES = ("A11-O", "A112o_T", "A112o")


def pollination_core_codes(lookup: HabitatLookup) -> List[str]:
    """Habitat codes of land requiring pollinators: arable, gardens, orchards."""
    codes = set(lookup.codes_matching(contains=(ARABLE_CODE,), broad=(GARDENS_BROAD,)))
    codes.update(ORCHARD_CODES)
    return sorted(codes)


def demand_pollination(
    basemap: VectorInput,
    study_area: VectorInput,
    *,
    lookup: HabitatLookup,
    project_log: ProjectLog,
    run_title: str,
    res: float = 10.0,
    dist: float = 800.0,
    study_area_buffer: float = 500.0,
    save: Optional[Path] = None,
    code_field: str = CODE_FIELD,
) -> ModelRun:
    """Run the pollination demand model.

    Args:
        basemap: Classified polygons (GeoDataFrame, list of tiles, or file).
        study_area: Site boundary; outputs are clipped to it.
        lookup: Habitat code → class table.
        project_log: Supplies title and project folder; receives timing.
        run_title: Appended to the project title in output names.
        res: Cell size in metres.
        dist: Distance threshold from land requiring pollination, in metres.
        study_area_buffer: Margin around the study area kept during
            computation to avoid edge effects.
        save: Existing output folder; defaults to {projpath}/services_{run_title}.
        code_field: Basemap attribute holding the habitat code.
    """
    timer = Stopwatch()
    if res <= 0:
        raise InputError(f"res must be > 0, got {res}", stage="setup")
    if dist <= 0:
        raise InputError(f"dist must be > 0, got {dist}", stage="setup")
    if study_area_buffer < 0:
        raise InputError(f"study_area_buffer must be >= 0, got {study_area_buffer}", stage="setup")

    x, sa = load_inputs(basemap, study_area)
    save = prepare_output_dir(project_log, run_title, save)

    with scratch_dir(project_log) as scratch:
        # basemap-wide template cropped to the buffered site
        grid = crop_grid(build_grid(tuple(x.total_bounds), res), sa.buffer(study_area_buffer).bounds)
        check_overlap(grid, sa)
        LOGGER.debug("Grid %dx%d at %s m, bounds %s", grid.width, grid.height, res, format_bbox(grid.bounds))

        LOGGER.info("Creating layer of land requiring pollination")
        x = filter_codes(x, pollination_core_codes(lookup), code_field=code_field)
        pollin_r = burn_presence(x.geometry, grid)
        has_sources = not np.isnan(pollin_r).all()
        del x

        LOGGER.info("Calculating distances...")
        pollin_dist = distance_field(~np.isnan(pollin_r), res=res, cutoff=dist)
        del pollin_r

        LOGGER.info("Distance raster created. Calculating scores...")
        if not has_sources:
            LOGGER.warning(
                "Study area does not contain land requiring pollination. "
                "If you think this is a mistake, check classification."
            )
            scores = np.zeros(grid.shape)
        else:
            scores = proximity_score(pollin_dist, dist)
        del pollin_dist

        LOGGER.info("Saving final pollination demand map.")
        final = clip_to_study_area(scores, grid, sa)
        del scores
        raw_path, rescaled_path = write_outputs(
            final,
            grid,
            save=save,
            scratch=scratch,
            project_title=project_log.title,
            run_title=run_title,
            model_name=MODEL_NAME,
        )

    minutes = timer.minutes
    project_log.record_performance(PERFORMANCE_KEY, minutes)
    LOGGER.info(
        "Pollination demand model finished. Process took %.1f minutes. "
        "Please check output folder for your maps.",
        minutes,
    )
    return ModelRun(model=MODEL_NAME, raw_path=raw_path, rescaled_path=rescaled_path, minutes=minutes)
