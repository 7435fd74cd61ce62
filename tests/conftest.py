#!/usr/bin/env python3

from __future__ import annotations

import sys
from pathlib import Path

import geopandas as gpd
import pytest

# Ensure we can import from src/ without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from ecoserv.config import ProjectLog
from ecoserv.habitat import HabitatLookup



def _make_layer(records, crs="EPSG:27700", code_field="HabCode_B"):
    """GeoDataFrame from (code, geometry) pairs."""
    return gpd.GeoDataFrame(
        {code_field: [code for code, _ in records]},
        geometry=[geom for _, geom in records],
        crs=crs,
    )


@pytest.fixture
def make_layer():
    return _make_layer


@pytest.fixture
def lookup():
    return HabitatLookup([
        {"code": "A111", "hab_class": "Woodland and scrub", "hab_broad": "Woodland"},
        {"code": "G1", "hab_class": "Water", "hab_broad": "Standing water"},
        {"code": "J12g", "hab_class": "Green urban surfaces", "hab_broad": "Gardens / Parks / Brownfield"},
        {"code": "J11", "hab_class": "Cultivated/disturbed land", "hab_broad": "Arable"},
        {"code": "B4", "hab_class": "Grassland and marsh", "hab_broad": "Improved grassland"},
        {"code": "J21", "hab_class": "Boundaries", "hab_broad": "Hedgerow"},
    ])


@pytest.fixture
def project_log(tmp_path):
    log = ProjectLog(title="proj", projpath=tmp_path / "project", path=tmp_path / "project_log.yaml")
    log.save()
    return log
