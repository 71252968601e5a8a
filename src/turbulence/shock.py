"""Correlation-structure shock: raw distance, trailing z-score, trailing trim."""
from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence

import polars as pl

from common.config import ShockConfig
from common.logging import get_logger
from turbulence.artifacts import ShockPoint
from turbulence.correlation import Matrix, WindowCorrelation, rolling_correlations

logger = get_logger("shock")


def off_diagonal_rms(corr_short: Matrix, corr_long: Matrix) -> float:
    """Root-mean-square of ``short - long`` over the upper-triangle pairs.

    Zero when the matrices have fewer than two assets.
    """
    n = len(corr_short)
    sum_sq = 0.0
    count = 0
    for i in range(n):
        for j in range(i + 1, n):
            d = corr_short[i][j] - corr_long[i][j]
            sum_sq += d * d
            count += 1
    return math.sqrt(sum_sq / count) if count > 0 else 0.0


def trailing_z_scores(
    raw: Sequence[Optional[float]],
    z_window: int,
    min_points: int,
    epsilon: float = 1e-10,
) -> list[Optional[float]]:
    """Z-score of each raw value against the trailing ``z_window`` points.

    The window is positional (up to ``z_window`` points ending at and
    including ``k``) and nulls inside it are dropped. The score is null when
    fewer than ``min_points`` valid samples remain or the value itself is
    null. Population mean/std; std is floored at ``epsilon``.
    """
    scores: list[Optional[float]] = []
    for k, value in enumerate(raw):
        if value is None:
            scores.append(None)
            continue
        window = [v for v in raw[max(0, k - z_window + 1) : k + 1] if v is not None]
        if len(window) < min_points:
            scores.append(None)
            continue
        mean = sum(window) / len(window)
        variance = sum((v - mean) ** 2 for v in window) / len(window)
        std = max(math.sqrt(variance), epsilon)
        scores.append((value - mean) / std)
    return scores


def shock_points(windows: Iterable[WindowCorrelation], cfg: ShockConfig) -> list[ShockPoint]:
    """Reduce per-date correlation pairs to scored :class:`ShockPoint` records."""
    rows = list(windows)
    raw: list[Optional[float]] = [
        off_diagonal_rms(w.corr_short, w.corr_long)
        if w.corr_short is not None and w.corr_long is not None
        else None
        for w in rows
    ]
    z = trailing_z_scores(raw, cfg.z_window, cfg.min_z_points, cfg.std_epsilon)
    return [
        ShockPoint(
            date=w.date,
            n_assets=w.n_assets,
            n_pairs=w.n_pairs,
            shock_raw=r,
            shock_z=zk,
        )
        for w, r, zk in zip(rows, raw, z)
    ]


def compute_shock_series(
    returns: pl.DataFrame,
    symbols: Sequence[str],
    cfg: ShockConfig,
) -> list[ShockPoint]:
    """Full, untrimmed shock series for a return panel."""
    return shock_points(rolling_correlations(returns, symbols, cfg), cfg)


def trim_trailing_nulls(points: Sequence[ShockPoint]) -> list[ShockPoint]:
    """Drop every point after the last one with a computed ``shock_raw``.

    A series with no computed point is returned unchanged.
    """
    for idx in range(len(points) - 1, -1, -1):
        if points[idx].shock_raw is not None:
            trimmed = list(points[: idx + 1])
            dropped = len(points) - len(trimmed)
            if dropped:
                logger.info(
                    "Trimmed %d trailing null rows; last computed: %s",
                    dropped,
                    trimmed[-1].date.isoformat(),
                )
            return trimmed
    return list(points)
