"""Batch entry points: shock, gates and green-bar artifact updates.

Shock and gate runs recompute from their inputs and merge into the existing
artifact by date; the green-bar run rewrites its artifact from the join. Each
run writes once at the end. A fatal precondition raises before anything is
written, leaving the previous artifact in place.
"""
from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Callable, Optional, Sequence

from pydantic import ValidationError

from common.config import TurbulenceConfig
from common.logging import get_logger
from common.timeseries import merge_and_trim_time_series, trim_time_series
from data.bar_cache import load_bars_by_symbol
from data.universe import recent_universe, resolve_universe
from turbulence.artifacts import (
    ArtifactRecord,
    CompositeSignalPoint,
    GatePoint,
    GateReading,
    RecordT,
    ShockPoint,
    read_artifact,
    record_date,
    write_artifact,
)
from turbulence.gates import compute_gate_series, load_close_csv
from turbulence.greenbar import count_signals, join_shock_and_gates
from turbulence.returns import build_return_frame
from turbulence.shock import compute_shock_series, trim_trailing_nulls

logger = get_logger("pipeline")


class PipelineError(RuntimeError):
    """A run cannot produce its artifact."""


class InsufficientAssetsError(PipelineError):
    pass


class MissingArtifactError(PipelineError):
    pass


class ArtifactFormatError(PipelineError):
    pass


def _load_existing(path: Path, model: type[RecordT]) -> list[RecordT]:
    """Previous artifact for merging; a missing or malformed file starts fresh."""
    if not path.exists():
        return []
    try:
        return read_artifact(path, model)
    except (ValidationError, OSError) as exc:
        logger.warning("Ignoring unreadable artifact %s: %s", path, exc)
        return []


def _require_artifact(path: Path, model: type[RecordT], produced_by: str) -> list[RecordT]:
    if not path.exists():
        raise MissingArtifactError(
            f"{path.name} not found. Run 'scripts/update_turbulence.py {produced_by}' first."
        )
    try:
        return read_artifact(path, model)
    except ValidationError as exc:
        raise ArtifactFormatError(f"{path} is not a valid {model.__name__} array: {exc}") from exc


def _persist(
    path: Path,
    points: Sequence[ArtifactRecord],
    model: type[RecordT],
    retention_days: int,
) -> list[RecordT]:
    existing = _load_existing(path, model)
    merged = merge_and_trim_time_series(existing, points, record_date, retention_days)
    write_artifact(path, merged)
    return merged


def _fmt(value: Optional[float], fmt: str = ".4f") -> str:
    return format(value, fmt) if value is not None else "N/A"


def _log_config(run: str, cfg: TurbulenceConfig) -> None:
    logger.debug("Starting %s run", run, extra={"extra_data": {"config": cfg.to_dict()}})


def run_shock_pipeline(
    cfg: TurbulenceConfig,
    universe: Optional[Callable[[], Sequence[str]]] = None,
) -> list[ShockPoint]:
    """Compute the shock series from the bar cache and persist it.

    Args:
        cfg: Pipeline configuration.
        universe: Primary universe provider; defaults to ``cfg.shock.universe``.

    Raises:
        InsufficientAssetsError: fewer cached symbols than ``min_assets_floor``.
    """
    _log_config("shock", cfg)
    shock_cfg = cfg.shock
    provider = universe if universe is not None else (lambda: shock_cfg.universe)
    symbols = resolve_universe(provider, floor=shock_cfg.min_assets_floor)
    logger.info("Turbulence shock universe: %s", ", ".join(symbols))

    bars_by_symbol = load_bars_by_symbol(symbols, cfg.paths.cache_dir)
    if len(bars_by_symbol) < shock_cfg.min_assets_floor:
        raise InsufficientAssetsError(
            f"Need at least {shock_cfg.min_assets_floor} symbols with EOD cache; "
            f"found {len(bars_by_symbol)}. Refresh the EOD cache in {cfg.paths.cache_dir} first."
        )

    recent = recent_universe(symbols, bars_by_symbol, shock_cfg.recent_window_days)
    logger.info("Recent universe (%d): %s", len(recent), ", ".join(recent))

    returns = build_return_frame(bars_by_symbol, recent, shock_cfg.start)
    points = trim_trailing_nulls(compute_shock_series(returns, recent, shock_cfg))

    path = cfg.paths.shock_path
    persisted = _persist(path, points, ShockPoint, cfg.retention.shock_days)
    _log_shock_summary(path, persisted)
    return persisted


def _log_shock_summary(path: Path, points: Sequence[ShockPoint]) -> None:
    total = len(points)
    raw_vals = [p.shock_raw for p in points if p.shock_raw is not None]
    n_z = sum(1 for p in points if p.shock_z is not None)
    pct_null_raw = (total - len(raw_vals)) / total * 100 if total else 0.0
    pct_null_z = (total - n_z) / total * 100 if total else 0.0
    summary = {
        "points": total,
        "first_date": points[0].date.isoformat() if points else None,
        "last_date": points[-1].date.isoformat() if points else None,
        "shock_raw_non_null": len(raw_vals),
        "shock_z_non_null": n_z,
    }
    logger.info("Wrote %d points to %s", total, path, extra={"extra_data": summary})
    if points:
        logger.info("First: %s, Last: %s", points[0].date, points[-1].date)
    logger.info("shockRaw: %d non-null (%.1f%% null)", len(raw_vals), pct_null_raw)
    logger.info("shockZ: %d non-null (%.1f%% null)", n_z, pct_null_z)
    if raw_vals:
        logger.info("shockRaw range: %s to %s", _fmt(min(raw_vals)), _fmt(max(raw_vals)))


def run_gates_pipeline(
    cfg: TurbulenceConfig,
    spx_csv: str | Path,
    vix_csv: str | Path,
) -> list[GatePoint]:
    """Compute regime gates from local SPX/VIX close exports and persist them."""
    _log_config("gates", cfg)
    spx = load_close_csv(spx_csv, cfg.gates.start)
    vix = load_close_csv(vix_csv, cfg.gates.start)
    points = compute_gate_series(spx, vix, cfg.gates)

    path = cfg.paths.gates_path
    persisted = _persist(path, points, GatePoint, 0)
    logger.info("Wrote %d points to %s", len(persisted), path)
    if persisted:
        last = persisted[-1]
        logger.info(
            "Last %s: spx=%s spx50dma=%s spxAbove50dma=%s vix=%s vixBelow25=%s",
            last.date,
            _fmt(last.spx, ".2f"),
            _fmt(last.spx_50dma, ".2f"),
            last.spx_above_50dma,
            _fmt(last.vix, ".2f"),
            last.vix_below_25,
        )
    return persisted


def run_greenbar_pipeline(
    cfg: TurbulenceConfig,
    today: Optional[dt.date] = None,
) -> list[CompositeSignalPoint]:
    """Join the persisted shock and gate artifacts into the green-bar series.

    Raises:
        MissingArtifactError: an input artifact does not exist.
        ArtifactFormatError: an input artifact fails validation.
    """
    _log_config("greenbar", cfg)
    gates = _require_artifact(cfg.paths.gates_path, GateReading, "gates")
    shock = _require_artifact(cfg.paths.shock_path, ShockPoint, "shock")

    threshold = cfg.greenbar.threshold
    points = join_shock_and_gates(shock, gates, threshold)

    # the shock artifact is already the merged date set, so the join replaces the file
    path = cfg.paths.greenbar_path
    persisted = trim_time_series(points, record_date, cfg.retention.greenbar_days)
    write_artifact(path, persisted)

    today = today or dt.date.today()
    one_year_ago = today - dt.timedelta(days=365)
    last_computed = next((s.date for s in reversed(shock) if s.shock_raw is not None), None)
    last_signal = next((p.date for p in reversed(persisted) if p.is_signal), None)
    summary = {
        "points": len(persisted),
        "threshold": threshold,
        "last_date": persisted[-1].date.isoformat() if persisted else None,
        "last_computed_shock": last_computed.isoformat() if last_computed else None,
        "green_bars_all_time": count_signals(persisted),
        "green_bars_365d": count_signals(persisted, since=one_year_ago),
        "last_green_bar": last_signal.isoformat() if last_signal else None,
    }
    logger.info("Wrote %d points to %s", len(persisted), path, extra={"extra_data": summary})
    logger.info("Threshold: shockZ >= %s", threshold)
    logger.info(
        "Last date: %s (aligned to last computed shock: %s)",
        summary["last_date"] or "N/A",
        summary["last_computed_shock"] or "N/A",
    )
    logger.info(
        "Green bars: %d all-time, %d last 365d",
        summary["green_bars_all_time"],
        summary["green_bars_365d"],
    )
    logger.info("Last green bar: %s", summary["last_green_bar"] or "none")
    return persisted
