#!/usr/bin/env python
"""CLI for the turbulence artifacts.

Subcommands:
  shock            Recompute public/turbulence.shock.json from the EOD cache
  gates            Recompute public/turbulence.gates.json from SPX/VIX CSVs
  greenbar         Join shock + gates into public/turbulence.greenbar.json
  health-history   Upsert today's deck health into health-history.json

Examples:
  python scripts/update_turbulence.py shock
  python scripts/update_turbulence.py gates --spx-csv data/stooq/spx.csv --vix-csv data/stooq/vix.csv
  python scripts/update_turbulence.py greenbar
  python scripts/update_turbulence.py --config turbulence.yaml health-history --snapshot public/snapshot.json

Environment Variables (used when --config is not given):
  TURBULENCE_SHOCK_START         Shock analysis start date (default 2019-10-01)
  TURBULENCE_GATES_START         Gate series start date (default 2019-10-01)
  TURBULENCE_SHOCK_Z_THRESHOLD   Green-bar z-score threshold (default 2.0)
  HEALTH_HISTORY_RETENTION_DAYS  Health history retention in days (default 365)
  TURBULENCE_CACHE_DIR           EOD cache directory (default data/marketstack/eod)
  TURBULENCE_PUBLIC_DIR          Artifact directory (default public)
"""
from __future__ import annotations

import argparse
import json
import os
import sys

_SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, os.path.join(_SCRIPT_DIR, "..", "src"))

from common.config import TurbulenceConfig, config_from_env, load_config_from_yaml  # noqa: E402
from common.logging import get_logger, setup_logging  # noqa: E402

logger = get_logger("cli")


def _load_config(args: argparse.Namespace) -> TurbulenceConfig:
    if args.config:
        return load_config_from_yaml(args.config)
    return config_from_env(os.environ)


def cmd_shock(args: argparse.Namespace, cfg: TurbulenceConfig) -> None:
    from turbulence.pipeline import run_shock_pipeline

    run_shock_pipeline(cfg)


def cmd_gates(args: argparse.Namespace, cfg: TurbulenceConfig) -> None:
    from turbulence.pipeline import run_gates_pipeline

    run_gates_pipeline(cfg, args.spx_csv, args.vix_csv)


def cmd_greenbar(args: argparse.Namespace, cfg: TurbulenceConfig) -> None:
    from turbulence.pipeline import run_greenbar_pipeline

    run_greenbar_pipeline(cfg)


def cmd_health_history(args: argparse.Namespace, cfg: TurbulenceConfig) -> None:
    from history.health import point_from_snapshot, upsert_health_history

    with open(args.snapshot, "r", encoding="utf-8") as f:
        snapshot = json.load(f)
    path = args.history or cfg.paths.health_history_path
    upsert_health_history(path, point_from_snapshot(snapshot), cfg.retention.health_history_days)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Turbulence shock / green-bar artifact updater",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", help="YAML config file (default: environment variables)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    sub = parser.add_subparsers(dest="command", help="Subcommand")

    sub.add_parser("shock", help="Compute the correlation shock series")

    gates = sub.add_parser("gates", help="Compute SPX/VIX regime gates")
    gates.add_argument("--spx-csv", required=True, help="SPX daily CSV (Date, Close)")
    gates.add_argument("--vix-csv", required=True, help="VIX daily CSV (Date, Close)")

    sub.add_parser("greenbar", help="Join shock and gates into the green-bar series")

    hh = sub.add_parser("health-history", help="Upsert today's health into history")
    hh.add_argument("--snapshot", required=True, help="Snapshot JSON with asOfDate and health")
    hh.add_argument("--history", help="History file (default: <public_dir>/health-history.json)")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "INFO", json_output=args.json_logs)

    commands = {
        "shock": cmd_shock,
        "gates": cmd_gates,
        "greenbar": cmd_greenbar,
        "health-history": cmd_health_history,
    }

    if not args.command:
        print("Error: specify a subcommand (shock, gates, greenbar, health-history)")
        return 1

    from pydantic import ValidationError

    from turbulence.pipeline import PipelineError

    try:
        cfg = _load_config(args)
        commands[args.command](args, cfg)
    except (PipelineError, ValidationError, ValueError, OSError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
