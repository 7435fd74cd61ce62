#!/usr/bin/env python3
"""ecoserv.habitat

Habitat code → broad class lookup, and filtering of basemap features by class.

The lookup is reference data loaded from YAML (config/hab_lookup.yaml by
default) and passed explicitly to whatever needs it, so tests can build
their own small tables.

Expected YAML:
    habitats:
      - code: A111
        hab_class: Woodland and scrub
        hab_broad: Woodland
        name: Broadleaved semi-natural woodland
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import geopandas as gpd
import pandas as pd

from ecoserv.config import load_yaml
from ecoserv.errors import InputError

LOGGER = logging.getLogger(__name__)

NO_CLASS = "Unclassified"
CODE_FIELD = "HabCode_B"
CLASS_FIELD = "HabClass"


def normalize_code(x) -> str:
    """Normalize a habitat code to a comparable string.

    Codes are case-sensitive ("A112o" is not "A112O"); only surrounding
    whitespace is stripped. Returns empty string for missing inputs.
    """
    if x is None:
        return ""
    try:
        if pd.isna(x):
            return ""
    except (TypeError, ValueError):
        pass
    return str(x).strip()


class HabitatLookup:
    """Static code → class table."""

    def __init__(self, records: Iterable[Mapping[str, Any]]):
        rows = []
        seen = set()
        for r in records:
            code = normalize_code(r.get("code"))
            if not code:
                raise InputError(f"Habitat lookup entry missing code: {dict(r)}", stage="lookup")
            if code in seen:
                raise InputError(f"Duplicate habitat code in lookup: {code}", stage="lookup")
            seen.add(code)
            rows.append({
                "code": code,
                "hab_class": str(r.get("hab_class") or NO_CLASS),
                "hab_broad": str(r.get("hab_broad") or ""),
                "name": str(r.get("name") or ""),
            })
        self.table = pd.DataFrame(rows, columns=["code", "hab_class", "hab_broad", "name"])
        self._class_by_code: Dict[str, str] = dict(zip(self.table["code"], self.table["hab_class"]))
        self._broad_by_code: Dict[str, str] = dict(zip(self.table["code"], self.table["hab_broad"]))

    def __len__(self) -> int:
        return len(self.table)

    def __contains__(self, code) -> bool:
        return normalize_code(code) in self._class_by_code

    def hab_class(self, code) -> str:
        return self._class_by_code.get(normalize_code(code), NO_CLASS)

    def hab_broad(self, code) -> str:
        return self._broad_by_code.get(normalize_code(code), "")

    def codes_matching(
        self,
        *,
        contains: Sequence[str] = (),
        broad: Sequence[str] = (),
        classes: Sequence[str] = (),
    ) -> List[str]:
        """Codes whose text contains any of `contains`, or whose broad
        habitat / class is listed."""
        t = self.table
        keep = t["hab_broad"].isin(list(broad)) | t["hab_class"].isin(list(classes))
        for token in contains:
            keep |= t["code"].str.contains(token, regex=False)
        return t.loc[keep, "code"].tolist()


def load_hab_lookup(path: Path) -> HabitatLookup:
    data = load_yaml(path)
    records = data.get("habitats")
    if not isinstance(records, list) or not records:
        raise InputError(f"{path} must have a non-empty top-level 'habitats:' list.", stage="lookup")
    lookup = HabitatLookup(records)
    LOGGER.debug("Loaded %d habitat codes from %s", len(lookup), path)
    return lookup


# -----------------------------------------------------------------------------
# Feature classification and filtering
# -----------------------------------------------------------------------------

def _require_code_field(features: gpd.GeoDataFrame, code_field: str) -> None:
    if code_field not in features.columns:
        raise InputError(
            f"Basemap has no '{code_field}' attribute. Columns: {list(features.columns)}",
            stage="classification",
        )


def classify_features(
    features: gpd.GeoDataFrame,
    lookup: HabitatLookup,
    *,
    code_field: str = CODE_FIELD,
) -> gpd.GeoDataFrame:
    """Attach the broad habitat class to every feature.

    Any existing class column is replaced. Only the code, class and geometry
    columns are kept.
    """
    _require_code_field(features, code_field)
    geom_col = features.geometry.name
    out = features[[code_field, geom_col]].copy()
    out[code_field] = out[code_field].map(normalize_code)
    out[CLASS_FIELD] = out[code_field].map(lookup.hab_class)
    n_unclassified = int((out[CLASS_FIELD] == NO_CLASS).sum())
    if n_unclassified:
        LOGGER.debug("%d features have codes missing from the habitat lookup", n_unclassified)
    return out[[code_field, CLASS_FIELD, geom_col]]


def filter_features(
    features: gpd.GeoDataFrame,
    classes: Iterable[str],
    *,
    always_codes: Iterable[str] = (),
    code_field: str = CODE_FIELD,
    class_field: str = CLASS_FIELD,
) -> gpd.GeoDataFrame:
    """Keep features whose class is in `classes` or whose code is in
    `always_codes` (e.g. hedgerows, which are eligible whatever their class)."""
    _require_code_field(features, code_field)
    if class_field not in features.columns:
        raise InputError(
            f"Features have no '{class_field}' column; run classify_features first.",
            stage="classification",
        )
    codes = features[code_field].map(normalize_code)
    keep = features[class_field].isin(list(classes)) | codes.isin([normalize_code(c) for c in always_codes])
    return features[keep].copy()


def filter_codes(
    features: gpd.GeoDataFrame,
    codes: Iterable[str],
    *,
    code_field: str = CODE_FIELD,
) -> gpd.GeoDataFrame:
    """Keep features whose habitat code is one of `codes`."""
    _require_code_field(features, code_field)
    wanted = {normalize_code(c) for c in codes}
    return features[features[code_field].map(normalize_code).isin(wanted)].copy()


def with_code(
    features: gpd.GeoDataFrame,
    code: str,
    lookup: Optional[HabitatLookup] = None,
    *,
    code_field: str = CODE_FIELD,
) -> gpd.GeoDataFrame:
    """Give every feature the same habitat code (and its class, if a lookup
    is passed). Used to fold a separate hedgerow layer into the basemap."""
    geom_col = features.geometry.name
    out = features[[geom_col]].copy()
    out[code_field] = normalize_code(code)
    cols = [code_field]
    if lookup is not None:
        out[CLASS_FIELD] = lookup.hab_class(code)
        cols.append(CLASS_FIELD)
    return out[cols + [geom_col]]
