"""Aligned log-return panel built from per-symbol EOD bars."""
from __future__ import annotations

import datetime as dt
from typing import Sequence

import polars as pl

from data.bar_cache import EodBar


def build_date_axis(bars_by_symbol: dict[str, list[EodBar]], start: dt.date) -> list[dt.date]:
    """Sorted union of every loaded symbol's bar dates on or after *start*."""
    dates = {b.date for bars in bars_by_symbol.values() for b in bars if b.date >= start}
    return sorted(dates)


def build_close_frame(
    bars_by_symbol: dict[str, list[EodBar]],
    symbols: Sequence[str],
    axis: Sequence[dt.date],
) -> pl.DataFrame:
    """One row per axis date, one Float64 close column per symbol (null if no bar)."""
    columns: dict[str, pl.Series] = {"date": pl.Series("date", list(axis), dtype=pl.Date)}
    for sym in symbols:
        # later duplicates overwrite earlier ones
        close_by_date = {b.date: b.close for b in bars_by_symbol.get(sym, [])}
        columns[sym] = pl.Series(sym, [close_by_date.get(d) for d in axis], dtype=pl.Float64)
    return pl.DataFrame(columns)


def log_returns(closes: pl.DataFrame, symbols: Sequence[str]) -> pl.DataFrame:
    """Per-symbol ``ln(close_t / close_{t-1})`` along the date axis.

    The previous close is the symbol's close on the previous *axis* date, not
    its previous bar, so a gap in one symbol nulls the return after it. Row 0
    is always null. Missing or non-positive closes yield null.
    """
    exprs = []
    for sym in symbols:
        cur = pl.col(sym)
        prev = pl.col(sym).shift(1)
        exprs.append(
            pl.when(cur.is_not_null() & prev.is_not_null() & (cur > 0) & (prev > 0))
            .then((cur / prev).log())
            .otherwise(None)
            .alias(sym)
        )
    return closes.select(pl.col("date"), *exprs)


def build_return_frame(
    bars_by_symbol: dict[str, list[EodBar]],
    symbols: Sequence[str],
    start: dt.date,
) -> pl.DataFrame:
    """Return panel for *symbols* over the axis spanned by all loaded bars.

    The axis uses every symbol in *bars_by_symbol*, even those not analysed,
    so all columns share one calendar.
    """
    axis = build_date_axis(bars_by_symbol, start)
    closes = build_close_frame(bars_by_symbol, symbols, axis)
    return log_returns(closes, symbols)
