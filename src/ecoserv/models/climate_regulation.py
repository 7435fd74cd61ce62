#!/usr/bin/env python3
"""climate_regulation.py

Local climate regulation capacity model.

Scores every cell by how much cooling vegetation and water lies around it:
woodland, scrub, water and green urban surfaces (plus hedgerows) are burned
onto a grid, summed over a circular neighbourhood, and kept only within a
zone of influence around the vegetated patches whose width grows with patch
size.

Outputs (in the run's output folder):
- {project}_{run}_climate_regulation_capacity.tif           raw scores
- {project}_{run}_climate_regulation_capacity_rescaled.tif  0-100

Example:
  python -m ecoserv.models climate-regulation \
    --project-log project/project_log.yaml \
    --basemap project/basemap.gpkg --study-area project/study_area.gpkg
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import geopandas as gpd
import numpy as np

from ecoserv.config import ProjectLog, format_bbox
from ecoserv.errors import InputError
from ecoserv.geo.focal import focal_score
from ecoserv.geo.grid import build_grid
from ecoserv.geo.rasterize import burn_presence
from ecoserv.geo.vectors import VectorInput, prepare_layer
from ecoserv.geo.zones import influence_mask
from ecoserv.habitat import (
    CODE_FIELD,
    HabitatLookup,
    classify_features,
    filter_features,
    with_code,
)
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

MODEL_NAME = "climate_regulation_capacity"
PERFORMANCE_KEY = "cap_clim"

# All woodland, scattered trees, scrub, water and urban greenspace
COOLING_CLASSES = ("Woodland and scrub", "Water", "Green urban surfaces")
HEDGE_CODE = "J21"


def _load_hedges(
    hedges: Optional[VectorInput],
    project_log: ProjectLog,
    lookup: HabitatLookup,
    code_field: str,
) -> gpd.GeoDataFrame:
    source = hedges if hedges is not None else project_log.clean_hedges
    if source is None or (isinstance(source, (str, Path)) and not Path(source).exists()):
        raise InputError(
            "use_hedges is set but no hedgerow layer was found. Check 'clean_hedges' in the project log.",
            stage="hedgerows",
        )
    layer = prepare_layer(source, stage="hedgerows")
    if isinstance(source, (str, Path)):
        LOGGER.info("Loaded hedges from %s", source)
    return with_code(layer, HEDGE_CODE, lookup, code_field=code_field)


def capacity_climate_reg(
    basemap: VectorInput,
    study_area: VectorInput,
    *,
    lookup: HabitatLookup,
    project_log: ProjectLog,
    run_title: str,
    res: float = 5.0,
    local: float = 200.0,
    use_hedges: bool = False,
    hedges: Optional[VectorInput] = None,
    save: Optional[Path] = None,
    code_field: str = CODE_FIELD,
) -> ModelRun:
    """Run the climate regulation capacity model.

    Args:
        basemap: Classified polygons (GeoDataFrame, list of tiles, or file)
            with a habitat code attribute.
        study_area: Site boundary; outputs are clipped to it. For best
            results the basemap extends a few hundred metres beyond it.
        lookup: Habitat code → class table.
        project_log: Supplies title and project folder; receives timing.
        run_title: Appended to the project title in output names.
        res: Cell size in metres (5-10 m recommended).
        local: Focal radius in metres (maximum distance of effect).
        use_hedges: Add a separate hedgerow layer to the cooling features.
        hedges: Hedgerow layer; defaults to the project log's clean_hedges.
        save: Existing output folder; defaults to {projpath}/services_{run_title}.
        code_field: Basemap attribute holding the habitat code.

    Returns:
        ModelRun with the raw and rescaled raster paths.
    """
    timer = Stopwatch()
    if res <= 0:
        raise InputError(f"res must be > 0, got {res}", stage="setup")
    if local < 0:
        raise InputError(f"local must be >= 0, got {local}", stage="setup")

    x, sa = load_inputs(basemap, study_area)
    hedge_layer = _load_hedges(hedges, project_log, lookup, code_field) if use_hedges else None
    save = prepare_output_dir(project_log, run_title, save)

    with scratch_dir(project_log) as scratch:
        x = classify_features(x, lookup, code_field=code_field)

        # raster template with the same extent as the basemap
        grid = build_grid(tuple(x.total_bounds), res)
        check_overlap(grid, sa)
        LOGGER.debug("Grid %dx%d at %s m, bounds %s", grid.width, grid.height, res, format_bbox(grid.bounds))

        LOGGER.info("Extracting basemap features with cooling capacity")
        # hedgerow code is kept whatever class the lookup gives it
        x = filter_features(x, COOLING_CLASSES, always_codes=(HEDGE_CODE,), code_field=code_field)
        patches = list(x.geometry)
        if hedge_layer is not None:
            patches.extend(hedge_layer.geometry)
        del x, hedge_layer

        green = burn_presence(patches, grid)
        clim_score = focal_score(green, radius=local, res=res, type="sum")
        del green

        LOGGER.info("Calculating area of influence around vegetated patches")
        mask = influence_mask(patches, grid)

        # effect is only felt close to greenspaces; no holes outside the mask
        LOGGER.info("Applying mask around regulating patches")
        clim_score = np.where(mask, clim_score, 0.0)
        del mask

        LOGGER.info("Saving final and standardised scores.")
        final = clip_to_study_area(clim_score, grid, sa)
        del clim_score
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
        "Local climate regulation capacity model finished. Process took %.1f minutes. "
        "Please check output folder for your maps.",
        minutes,
    )
    return ModelRun(model=MODEL_NAME, raw_path=raw_path, rescaled_path=rescaled_path, minutes=minutes)
