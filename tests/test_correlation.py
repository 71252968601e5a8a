"""Tests for population Pearson and the rolling short/long correlation engine."""
from __future__ import annotations

import datetime as dt
import random

import polars as pl
import pytest

from common.config import ShockConfig
from turbulence.correlation import (
    correlation_matrix,
    min_assets_for_date,
    n_pairs,
    pearson_correlation,
    rolling_correlations,
)


def _panel(columns: dict[str, list], start: dt.date = dt.date(2024, 1, 1)) -> pl.DataFrame:
    n = len(next(iter(columns.values())))
    data = {"date": [start + dt.timedelta(days=i) for i in range(n)]}
    data.update(columns)
    return pl.DataFrame(data, schema={"date": pl.Date, **{k: pl.Float64 for k in columns}})


class TestPearson:
    def test_identical_and_negated_series(self) -> None:
        a = [0.01, -0.02, 0.03]
        b = [0.01, -0.02, 0.03]
        c = [-0.01, 0.02, -0.03]
        corr = correlation_matrix([a, b, c])
        assert corr[0][1] == pytest.approx(1.0)
        assert corr[0][2] == pytest.approx(-1.0)
        assert corr[1][2] == pytest.approx(-1.0)

    def test_fewer_than_two_overlapping_samples(self) -> None:
        assert pearson_correlation([0.01, None, 0.02], [None, 0.03, 0.01]) == 0.0

    def test_zero_variance_gives_zero(self) -> None:
        assert pearson_correlation([0.01, 0.01, 0.01], [0.02, -0.01, 0.03]) == 0.0

    def test_nulls_dropped_pairwise(self) -> None:
        a = [0.01, None, 0.02, 0.03]
        b = [0.02, 0.5, 0.04, 0.06]
        assert pearson_correlation(a, b) == pytest.approx(1.0)

    def test_population_formula(self) -> None:
        a = [1.0, 2.0, 3.0, 4.0]
        b = [2.0, 1.0, 4.0, 3.0]
        # cov = 0.75, var_a = var_b = 1.25 (population)
        assert pearson_correlation(a, b) == pytest.approx(0.6)


class TestCorrelationMatrix:
    def test_diagonal_and_bounds(self) -> None:
        rng = random.Random(7)
        rows = [[rng.gauss(0, 0.01) for _ in range(30)] for _ in range(5)]
        corr = correlation_matrix(rows)
        for i in range(5):
            assert corr[i][i] == 1.0
            for j in range(5):
                assert -1.0 <= corr[i][j] <= 1.0
                assert corr[i][j] == corr[j][i]


class TestAdaptiveMinimum:
    def test_thin_coverage_uses_floor(self) -> None:
        assert min_assets_for_date(3, floor=6, target=8) == 6

    def test_between_floor_and_target(self) -> None:
        assert min_assets_for_date(7, floor=6, target=8) == 7

    def test_above_target(self) -> None:
        assert min_assets_for_date(11, floor=6, target=8) == 8

    def test_pairs(self) -> None:
        assert [n_pairs(n) for n in range(5)] == [0, 0, 1, 3, 6]


class TestRollingCorrelations:
    def _cfg(self) -> ShockConfig:
        return ShockConfig(
            short_window=3,
            long_window=5,
            z_window=10,
            min_z_points=2,
            min_assets_floor=2,
            min_assets_target=3,
        )

    def test_evaluation_starts_at_long_window(self) -> None:
        rng = random.Random(1)
        cols = {s: [None] + [rng.gauss(0, 0.01) for _ in range(9)] for s in ("A", "B", "C")}
        windows = list(rolling_correlations(_panel(cols), ["A", "B", "C"], self._cfg()))
        assert len(windows) == 10 - 5
        assert windows[0].date == dt.date(2024, 1, 6)
        assert all(w.computed for w in windows)
        assert all(w.active == ["A", "B", "C"] for w in windows)

    def test_asset_with_gap_drops_out(self) -> None:
        rng = random.Random(2)
        cols = {s: [None] + [rng.gauss(0, 0.01) for _ in range(9)] for s in ("A", "B", "C")}
        cols["C"][7] = None
        windows = list(rolling_correlations(_panel(cols), ["A", "B", "C"], self._cfg()))
        by_date = {w.date: w for w in windows}
        # index 7 falls inside the short window for t = 7..9
        for t in (7, 8, 9):
            assert by_date[dt.date(2024, 1, 1) + dt.timedelta(days=t)].active == ["A", "B"]
        assert by_date[dt.date(2024, 1, 6)].active == ["A", "B", "C"]

    def test_below_minimum_records_counts_without_matrices(self) -> None:
        rng = random.Random(3)
        cols = {s: [None] + [rng.gauss(0, 0.01) for _ in range(9)] for s in ("A", "B", "C")}
        cols["B"][9] = None
        cols["C"][9] = None
        windows = list(rolling_correlations(_panel(cols), ["A", "B", "C"], self._cfg()))
        last = windows[-1]
        assert last.active == ["A"]
        assert not last.computed
        assert last.n_assets == 1
        assert last.n_pairs == 0

    def test_matrices_share_active_order(self) -> None:
        rng = random.Random(4)
        cols = {s: [None] + [rng.gauss(0, 0.01) for _ in range(9)] for s in ("A", "B", "C")}
        w = list(rolling_correlations(_panel(cols), ["C", "A", "B"], self._cfg()))[-1]
        assert w.active == ["C", "A", "B"]
        assert len(w.corr_short) == len(w.corr_long) == 3
        assert w.corr_short[0][0] == w.corr_long[2][2] == 1.0
