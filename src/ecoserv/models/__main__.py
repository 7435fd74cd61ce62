#!/usr/bin/env python3
"""ecoserv.models

Model-run CLI for ecoserv.

Each subcommand runs one ecosystem-service model for one project:
- climate-regulation  → local climate regulation capacity
- pollination-demand  → pollination demand

Inputs come from three places:
- the project log (title, project folder, hedgerow layer; receives timings)
- the run config YAML (run title, output folder, model parameters)
- the command line (basemap, study area, and optional parameter overrides)

Design notes:
- Command-line values override the run config, which overrides model defaults
- Lazy-imports the model modules to keep CLI startup fast
- All subcommands support --dry-run for safe exploration

Examples:
  # Climate regulation with the defaults from config/run.yaml
  python -m ecoserv.models --project-log project/project_log.yaml \
    climate-regulation --basemap project/basemap.gpkg --study-area project/site.gpkg

  # Pollination demand at 5 m, 1 km threshold
  python -m ecoserv.models --project-log project/project_log.yaml \
    pollination-demand --basemap project/basemap.gpkg --study-area project/site.gpkg \
    --res 5 --dist 1000
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from ecoserv.config import (
    DEFAULT_HAB_LOOKUP_YAML,
    DEFAULT_RUN_YAML,
    ProjectLog,
    RunConfig,
)
from ecoserv.errors import EcoservError


# -----------------------------------------------------------------------------
# CLI structure
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for ecoserv.models."""
    ap = argparse.ArgumentParser(
        prog="ecoserv.models",
        description="Run ecosystem-service models on a classified basemap",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Outputs (per run, in {projpath}/services_{run_title} unless --save is given):
  {title}_{run_title}_climate_regulation_capacity.tif (+ _rescaled.tif)
  {title}_{run_title}_pollination_demand.tif          (+ _rescaled.tif)
        """,
    )

    # --- Global args ---
    ap.add_argument(
        "--project-log",
        required=True,
        type=Path,
        help="Path to the project log YAML (title, projpath, clean_hedges, performance)",
    )
    ap.add_argument(
        "--run-config",
        type=Path,
        default=DEFAULT_RUN_YAML,
        help=f"Path to run config YAML (default: {DEFAULT_RUN_YAML})",
    )
    ap.add_argument(
        "--hab-lookup",
        type=Path,
        default=DEFAULT_HAB_LOOKUP_YAML,
        help=f"Path to habitat lookup YAML (default: {DEFAULT_HAB_LOOKUP_YAML})",
    )
    ap.add_argument(
        "--run-title",
        default=None,
        help="Override the run title from the run config",
    )
    ap.add_argument(
        "--save",
        type=Path,
        default=None,
        help="Existing folder to write outputs to (default: {projpath}/services_{run_title})",
    )
    ap.add_argument(
        "--code-field",
        default="HabCode_B",
        help="Basemap attribute holding the habitat code (default: HabCode_B)",
    )
    ap.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the resolved run without reading layers or writing files",
    )
    ap.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging",
    )

    # --- Subcommands ---
    sub = ap.add_subparsers(dest="command", required=True)

    # --- climate-regulation ---
    clim = sub.add_parser(
        "climate-regulation",
        help="Local climate regulation capacity",
        description="""
Score the cooling capacity of vegetation and water.

This command:
1. Extracts woodland, scrub, water, green urban surfaces and hedgerows
2. Sums them over a circular neighbourhood (--local radius)
3. Keeps scores within a zone of influence sized by patch area
4. Clips to the study area and writes raw and 0-100 rasters
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_layer_args(clim)
    clim.add_argument("--res", type=float, default=None, help="Cell size in metres (default: run config, else 5)")
    clim.add_argument("--local", type=float, default=None, help="Focal radius in metres (default: run config, else 200)")
    clim.add_argument(
        "--use-hedges",
        action="store_true",
        default=None,
        help="Add the hedgerow layer named by clean_hedges in the project log",
    )
    clim.add_argument("--hedges", type=Path, default=None, help="Hedgerow layer to use instead of clean_hedges")

    # --- pollination-demand ---
    poll = sub.add_parser(
        "pollination-demand",
        help="Pollination demand",
        description="""
Score proximity to land requiring insect pollination (arable, gardens, orchards).

Scores decay linearly from 100 on that land to 0 at --dist metres;
farther cells are no-data.
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_layer_args(poll)
    poll.add_argument("--res", type=float, default=None, help="Cell size in metres (default: run config, else 10)")
    poll.add_argument("--dist", type=float, default=None, help="Distance threshold in metres (default: run config, else 800)")

    return ap


def _add_layer_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--basemap", required=True, type=Path, help="Classified basemap (any vector format)")
    p.add_argument("--study-area", required=True, type=Path, help="Study area boundary (any vector format)")


# -----------------------------------------------------------------------------
# Shared setup
# -----------------------------------------------------------------------------

def _load_run_config(args: argparse.Namespace) -> RunConfig:
    """Run config from YAML if present; a --run-title alone is enough."""
    if args.run_config.exists():
        cfg = RunConfig.from_yaml(args.run_config)
        if args.run_title:
            cfg = replace(cfg, run_title=args.run_title)
    elif args.run_title:
        cfg = RunConfig(run_title=args.run_title)
    else:
        raise SystemExit(f"Run config not found: {args.run_config} (or pass --run-title)")
    if args.save is not None:
        cfg = replace(cfg, save=args.save)
    return cfg


def _pick(cli_value, config_value):
    return config_value if cli_value is None else cli_value


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def _handle_climate_regulation(args: argparse.Namespace) -> int:
    cfg = _load_run_config(args)
    params = cfg.climate_regulation
    res = _pick(args.res, params.res)
    local = _pick(args.local, params.local)
    use_hedges = bool(_pick(args.use_hedges, params.use_hedges))

    if args.dry_run:
        print("[dry-run] Would run climate regulation capacity:")
        print(f"  Basemap: {args.basemap}")
        print(f"  Study area: {args.study_area}")
        print(f"  Run title: {cfg.run_title}")
        print(f"  res={res} m, local={local} m, use_hedges={use_hedges}")
        print(f"  Save: {cfg.save or '(project default)'}")
        return 0

    from ecoserv.habitat import load_hab_lookup
    from ecoserv.models.climate_regulation import capacity_climate_reg

    run = capacity_climate_reg(
        args.basemap,
        args.study_area,
        lookup=load_hab_lookup(args.hab_lookup),
        project_log=ProjectLog.load(args.project_log),
        run_title=cfg.run_title,
        res=res,
        local=local,
        use_hedges=use_hedges,
        hedges=args.hedges,
        save=cfg.save,
        code_field=args.code_field,
    )
    _print_run(run)
    return 0


def _handle_pollination_demand(args: argparse.Namespace) -> int:
    cfg = _load_run_config(args)
    params = cfg.pollination
    res = _pick(args.res, params.res)
    dist = _pick(args.dist, params.dist)

    if args.dry_run:
        print("[dry-run] Would run pollination demand:")
        print(f"  Basemap: {args.basemap}")
        print(f"  Study area: {args.study_area}")
        print(f"  Run title: {cfg.run_title}")
        print(f"  res={res} m, dist={dist} m, study area buffer={params.study_area_buffer} m")
        print(f"  Save: {cfg.save or '(project default)'}")
        return 0

    from ecoserv.habitat import load_hab_lookup
    from ecoserv.models.pollination import demand_pollination

    run = demand_pollination(
        args.basemap,
        args.study_area,
        lookup=load_hab_lookup(args.hab_lookup),
        project_log=ProjectLog.load(args.project_log),
        run_title=cfg.run_title,
        res=res,
        dist=dist,
        study_area_buffer=params.study_area_buffer,
        save=cfg.save,
        code_field=args.code_field,
    )
    _print_run(run)
    return 0


def _print_run(run) -> None:
    print(f"Wrote {run.model} -> {run.raw_path}")
    print(f"Wrote {run.model} (rescaled) -> {run.rescaled_path}")
    print(f"  took {run.minutes:.1f} minutes")


# -----------------------------------------------------------------------------
# Main entrypoint
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """Main entrypoint for ecoserv.models CLI."""
    ap = build_parser()
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        stream=sys.stdout,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    handlers = {
        "climate-regulation": _handle_climate_regulation,
        "pollination-demand": _handle_pollination_demand,
    }

    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(f"Unknown command: {args.command}")

    try:
        return handler(args)
    except EcoservError as e:
        raise SystemExit(str(e)) from e


if __name__ == "__main__":
    raise SystemExit(main())
