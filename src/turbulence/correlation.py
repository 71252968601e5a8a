"""Rolling short/long correlation matrices over an adaptive active-asset set.

Plain-Python population Pearson, computed pairwise over the samples where both
returns are present. Matrices are nested lists indexed in active-asset order.
"""
from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

import polars as pl

from common.config import ShockConfig

Matrix = list[list[float]]


def _is_valid(v: Optional[float]) -> bool:
    return v is not None and not math.isnan(v)


def pearson_correlation(a: Sequence[Optional[float]], b: Sequence[Optional[float]]) -> float:
    """Population Pearson correlation over indices where both values are valid.

    Returns 0.0 when fewer than two overlapping samples exist or either
    standard deviation is zero.
    """
    pairs = [(x, y) for x, y in zip(a, b) if _is_valid(x) and _is_valid(y)]
    n = len(pairs)
    if n < 2:
        return 0.0
    mean_a = sum(x for x, _ in pairs) / n
    mean_b = sum(y for _, y in pairs) / n
    var_a = sum((x - mean_a) ** 2 for x, _ in pairs) / n
    var_b = sum((y - mean_b) ** 2 for _, y in pairs) / n
    cov = sum((x - mean_a) * (y - mean_b) for x, y in pairs) / n
    std_a = math.sqrt(var_a)
    std_b = math.sqrt(var_b)
    if std_a <= 0 or std_b <= 0:
        return 0.0
    return max(-1.0, min(1.0, cov / (std_a * std_b)))


def correlation_matrix(returns: Sequence[Sequence[Optional[float]]]) -> Matrix:
    """Symmetric correlation matrix for row-wise return windows."""
    n = len(returns)
    corr: Matrix = [[0.0] * n for _ in range(n)]
    for i in range(n):
        corr[i][i] = 1.0
        for j in range(i + 1, n):
            r = pearson_correlation(returns[i], returns[j])
            corr[i][j] = r
            corr[j][i] = r
    return corr


def min_assets_for_date(active_count: int, floor: int, target: int) -> int:
    """Effective minimum active assets: ``max(floor, min(target, active_count))``."""
    return max(floor, min(target, active_count))


def n_pairs(n_assets: int) -> int:
    return n_assets * (n_assets - 1) // 2


def _valid_prefix(values: Sequence[Optional[float]]) -> list[int]:
    prefix = [0]
    for v in values:
        prefix.append(prefix[-1] + (1 if _is_valid(v) else 0))
    return prefix


@dataclass(frozen=True)
class WindowCorrelation:
    """Correlation structure at one evaluation date.

    ``corr_short``/``corr_long`` are None when the active set is below the
    effective minimum for the date.
    """

    date: dt.date
    active: list[str]
    min_assets: int
    corr_short: Optional[Matrix]
    corr_long: Optional[Matrix]

    @property
    def n_assets(self) -> int:
        return len(self.active)

    @property
    def n_pairs(self) -> int:
        return n_pairs(len(self.active))

    @property
    def computed(self) -> bool:
        return self.corr_short is not None and self.corr_long is not None


def rolling_correlations(
    returns: pl.DataFrame,
    symbols: Sequence[str],
    cfg: ShockConfig,
) -> Iterator[WindowCorrelation]:
    """Yield one :class:`WindowCorrelation` per evaluation date.

    Evaluation starts at axis index ``long_window`` (the first index with a
    full long window of possible returns after the null row 0). An asset is
    active at ``t`` when its short window and long window ending at ``t`` are
    both fully populated.
    """
    dates: list[dt.date] = returns["date"].to_list()
    columns = {sym: returns[sym].to_list() for sym in symbols}
    prefixes = {sym: _valid_prefix(col) for sym, col in columns.items()}

    for t in range(cfg.long_window, len(dates)):
        short_start = t - cfg.short_window + 1
        long_start = t - cfg.long_window + 1

        active: list[str] = []
        for sym in symbols:
            prefix = prefixes[sym]
            short_count = prefix[t + 1] - prefix[short_start]
            long_count = prefix[t + 1] - prefix[long_start]
            if short_count >= cfg.short_window and long_count >= cfg.long_window:
                active.append(sym)

        min_assets = min_assets_for_date(len(active), cfg.min_assets_floor, cfg.min_assets_target)
        if len(active) < min_assets:
            yield WindowCorrelation(dates[t], active, min_assets, None, None)
            continue

        short_rets = [columns[sym][short_start : t + 1] for sym in active]
        long_rets = [columns[sym][long_start : t + 1] for sym in active]
        yield WindowCorrelation(
            date=dates[t],
            active=active,
            min_assets=min_assets,
            corr_short=correlation_matrix(short_rets),
            corr_long=correlation_matrix(long_rets),
        )
