#!/usr/bin/env python3
"""ecoserv.config

Shared configuration utilities for the ecoserv models.

This module provides the YAML helpers, the run configuration and the project
log used by ecoserv.models and its CLI.

Design notes:
- YAML loading is strict: files must exist and be valid mappings.
- RunConfig is read-only to the pipeline; models get their parameters
  passed explicitly, never looked up from the caller's scope.
- ProjectLog is the only thing a run writes besides its two rasters.
- All functions are pure (no side effects on import).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from ecoserv.errors import InputError


# -----------------------------------------------------------------------------
# Constants and default paths
# -----------------------------------------------------------------------------
# Centralized so the CLI and the models use the same defaults.

# Every layer is worked in British National Grid; other CRSs are reprojected.
BNG_CRS = "EPSG:27700"
BNG_EPSG = 27700

DEFAULT_HAB_LOOKUP_YAML = Path("config/hab_lookup.yaml")
DEFAULT_RUN_YAML = Path("config/run.yaml")


# -----------------------------------------------------------------------------
# YAML loading
# -----------------------------------------------------------------------------

def load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return as dict.

    Raises InputError on missing file or invalid format (non-mapping).
    """
    path = Path(path)
    if not path.exists():
        raise InputError(f"Config not found: {path}", stage="config")
    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise InputError(f"Invalid YAML in {path}: {e}", stage="config") from e
    if not isinstance(data, dict):
        raise InputError(f"Expected YAML mapping at {path}", stage="config")
    return data


def format_bbox(b: Tuple[float, float, float, float], precision: int = 1) -> str:
    """Format a bbox tuple as a readable string."""
    return f"[{b[0]:.{precision}f}, {b[1]:.{precision}f}, {b[2]:.{precision}f}, {b[3]:.{precision}f}]"


def _positive(name: str, value: Any) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError) as e:
        raise InputError(f"{name} must be a number, got {value!r}", stage="config") from e
    if not out > 0:
        raise InputError(f"{name} must be > 0, got {value!r}", stage="config")
    return out


def _non_negative(name: str, value: Any) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError) as e:
        raise InputError(f"{name} must be a number, got {value!r}", stage="config") from e
    if out < 0:
        raise InputError(f"{name} must be >= 0, got {value!r}", stage="config")
    return out


# -----------------------------------------------------------------------------
# Run configuration
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ClimateParams:
    """Climate regulation capacity parameters (metres)."""

    res: float = 5.0
    local: float = 200.0
    use_hedges: bool = False

    @classmethod
    def from_mapping(cls, data: Optional[Dict[str, Any]]) -> "ClimateParams":
        data = data or {}
        return cls(
            res=_positive("climate_regulation.res", data.get("res", cls.res)),
            local=_non_negative("climate_regulation.local", data.get("local", cls.local)),
            use_hedges=bool(data.get("use_hedges", cls.use_hedges)),
        )


@dataclass(frozen=True)
class PollinationParams:
    """Pollination demand parameters (metres)."""

    res: float = 10.0
    dist: float = 800.0
    study_area_buffer: float = 500.0

    @classmethod
    def from_mapping(cls, data: Optional[Dict[str, Any]]) -> "PollinationParams":
        data = data or {}
        return cls(
            res=_positive("pollination.res", data.get("res", cls.res)),
            dist=_positive("pollination.dist", data.get("dist", cls.dist)),
            study_area_buffer=_non_negative(
                "pollination.study_area_buffer",
                data.get("study_area_buffer", cls.study_area_buffer),
            ),
        )


@dataclass(frozen=True)
class RunConfig:
    """One model run: title, optional output folder and per-model parameters.

    Expects YAML like:
        run_title: baseline
        save: null
        climate_regulation:
          res: 5
          local: 200
          use_hedges: false
        pollination:
          res: 10
          dist: 800
    """

    run_title: str
    save: Optional[Path] = None
    climate_regulation: ClimateParams = field(default_factory=ClimateParams)
    pollination: PollinationParams = field(default_factory=PollinationParams)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "RunConfig":
        run_title = str(data.get("run_title") or "").strip()
        if not run_title:
            raise InputError("Run config must define a non-empty 'run_title'.", stage="config")
        save = data.get("save")
        return cls(
            run_title=run_title,
            save=Path(save) if save else None,
            climate_regulation=ClimateParams.from_mapping(data.get("climate_regulation")),
            pollination=PollinationParams.from_mapping(data.get("pollination")),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "RunConfig":
        return cls.from_mapping(load_yaml(path))


# -----------------------------------------------------------------------------
# Project log
# -----------------------------------------------------------------------------
# The project log is owned by whoever set the project up. A model run only
# reads title/projpath/clean_hedges and records its elapsed time.

@dataclass
class ProjectLog:
    title: str
    projpath: Path
    path: Optional[Path] = None
    clean_hedges: Optional[Path] = None
    performance: Dict[str, float] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path) -> "ProjectLog":
        """Load a project log YAML.

        Relative `projpath` and `clean_hedges` entries are resolved against
        the folder holding the log file.
        """
        path = Path(path)
        data = load_yaml(path)
        title = str(data.get("title") or "").strip()
        if not title:
            raise InputError(f"Project log {path} has no 'title'.", stage="config")
        if not data.get("projpath"):
            raise InputError(f"Project log {path} has no 'projpath'.", stage="config")

        def _resolve(p: Any) -> Path:
            p = Path(p)
            return p if p.is_absolute() else path.parent / p

        hedges = data.get("clean_hedges")
        performance = data.get("performance") or {}
        if not isinstance(performance, dict):
            raise InputError(f"'performance' in {path} must be a mapping.", stage="config")
        return cls(
            title=title,
            projpath=_resolve(data["projpath"]),
            path=path,
            clean_hedges=_resolve(hedges) if hedges else None,
            performance={str(k): float(v) for k, v in performance.items()},
        )

    def to_mapping(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "projpath": str(self.projpath),
            "clean_hedges": str(self.clean_hedges) if self.clean_hedges else None,
            "performance": dict(self.performance),
        }

    def save(self) -> None:
        """Write a fresh log file from this object (used when creating a project)."""
        if self.path is None:
            return
        self._dump(self.to_mapping())

    def _dump(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, sort_keys=False)

    def record_performance(self, key: str, minutes: float) -> None:
        """Set one performance entry in the log file.

        The file is re-read and only `performance[key]` changes; every other
        entry, including ones written by other runs since this log was
        loaded, is written back as found on disk.
        """
        if self.path is None:
            self.performance[key] = float(minutes)
            return
        data = load_yaml(self.path) if self.path.exists() else self.to_mapping()
        performance = data.get("performance") or {}
        if not isinstance(performance, dict):
            raise InputError(f"'performance' in {self.path} must be a mapping.", stage="config")
        performance[key] = float(minutes)
        data["performance"] = performance
        self._dump(data)
        self.performance = {str(k): float(v) for k, v in performance.items()}
