"""Market-regime gates: SPX above its 50-day MA and VIX below 25.

Closes come from local daily CSV exports (``Date``/``Close`` columns); the
download itself is done elsewhere.
"""
from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Optional

import polars as pl

from common.config import GatesConfig
from turbulence.artifacts import GatePoint


def load_close_csv(path: str | Path, start: Optional[dt.date] = None) -> dict[dt.date, float]:
    """Read a daily CSV into ``date -> close``.

    Column names are matched case-insensitively. Rows with a missing date or
    a non-finite close are skipped. Raises ``ValueError`` if the file has no
    usable rows or lacks the required columns.
    """
    try:
        df = pl.read_csv(path, infer_schema_length=0)
    except pl.exceptions.NoDataError as exc:
        raise ValueError(f"{path}: parsed 0 valid rows") from exc
    by_lower = {c.strip().lower(): c for c in df.columns}
    if "date" not in by_lower or "close" not in by_lower:
        raise ValueError(f"{path}: CSV missing Date or Close column")
    df = (
        df.select(
            pl.col(by_lower["date"]).str.strip_chars().str.to_date("%Y-%m-%d", strict=False).alias("date"),
            pl.col(by_lower["close"]).str.strip_chars().cast(pl.Float64, strict=False).alias("close"),
        )
        .drop_nulls()
        .filter(pl.col("close").is_finite())
    )
    if start is not None:
        df = df.filter(pl.col("date") >= start)
    closes = dict(zip(df["date"].to_list(), df["close"].to_list()))
    if not closes:
        raise ValueError(f"{path}: parsed 0 valid rows")
    return closes


def moving_average_by_date(
    dates: list[dt.date],
    values: dict[dt.date, float],
    window: int,
) -> dict[dt.date, float]:
    """Trailing mean of the last *window* available values at each date.

    Dates without a value still get the average of the values seen so far,
    once at least *window* have been seen.
    """
    seen: list[float] = []
    result: dict[dt.date, float] = {}
    for d in sorted(dates):
        if d in values:
            seen.append(values[d])
        if len(seen) >= window:
            result[d] = sum(seen[-window:]) / window
    return result


def compute_gate_series(
    spx: dict[dt.date, float],
    vix: dict[dt.date, float],
    cfg: GatesConfig,
) -> list[GatePoint]:
    """Gate points on the union of SPX and VIX dates, ascending."""
    dates = sorted(set(spx) | set(vix))
    spx_ma = moving_average_by_date(dates, spx, cfg.ma_window)
    points: list[GatePoint] = []
    for d in dates:
        spx_close = spx.get(d)
        ma = spx_ma.get(d)
        vix_close = vix.get(d)
        points.append(
            GatePoint(
                date=d,
                spx=spx_close,
                spx_50dma=ma,
                spx_above_50dma=spx_close > ma if spx_close is not None and ma is not None else None,
                vix=vix_close,
                vix_below_25=vix_close < cfg.vix_threshold if vix_close is not None else None,
            )
        )
    return points
