"""Tests for the green-bar join of shock z-scores with regime gates."""
from __future__ import annotations

import datetime as dt

from turbulence.artifacts import GateReading, ShockPoint
from turbulence.greenbar import composite_signal, count_signals, join_shock_and_gates

D1, D2, D3 = dt.date(2024, 3, 1), dt.date(2024, 3, 4), dt.date(2024, 3, 5)


def _shock(d: dt.date, z: float | None, raw: float | None = 0.1) -> ShockPoint:
    return ShockPoint(date=d, n_assets=8, n_pairs=28, shock_raw=raw, shock_z=z)


def _gate(d: dt.date, spx: bool | None, vix: bool | None) -> GateReading:
    return GateReading(date=d, spx_above_50dma=spx, vix_below_25=vix)


class TestCompositeSignal:
    def test_all_conditions_met(self) -> None:
        assert composite_signal(2.5, (True, True), 2.0) is True

    def test_threshold_inclusive(self) -> None:
        assert composite_signal(2.0, (True, True), 2.0) is True

    def test_below_threshold_is_false(self) -> None:
        assert composite_signal(1.9, (True, True), 2.0) is False

    def test_gate_false_is_false(self) -> None:
        assert composite_signal(3.0, (True, False), 2.0) is False

    def test_null_z_with_known_gates_is_false(self) -> None:
        assert composite_signal(None, (True, True), 2.0) is False

    def test_null_gate_propagates(self) -> None:
        assert composite_signal(3.0, (None, True), 2.0) is None
        assert composite_signal(0.0, (False, None), 2.0) is None
        assert composite_signal(None, (None, None), 2.0) is None


class TestJoin:
    def test_shock_dates_are_authoritative(self) -> None:
        shock = [_shock(D2, 2.5), _shock(D1, 1.0)]
        gates = [_gate(D1, True, True), _gate(D3, True, True)]
        points = join_shock_and_gates(shock, gates)
        assert [p.date for p in points] == [D1, D2]

    def test_missing_gate_entry_yields_null_gates_and_signal(self) -> None:
        points = join_shock_and_gates([_shock(D2, 5.0)], [_gate(D1, True, True)])
        p = points[0]
        assert p.spx_above_50dma is None
        assert p.vix_below_25 is None
        assert p.is_signal is None

    def test_values_carried_through(self) -> None:
        points = join_shock_and_gates(
            [_shock(D1, 2.4, raw=0.33)], [_gate(D1, True, False)], threshold=2.0
        )
        p = points[0]
        assert (p.shock_z, p.shock_raw) == (2.4, 0.33)
        assert (p.spx_above_50dma, p.vix_below_25) == (True, False)
        assert p.is_signal is False

    def test_custom_threshold(self) -> None:
        shock = [_shock(D1, 1.6)]
        gates = [_gate(D1, True, True)]
        assert join_shock_and_gates(shock, gates, threshold=2.0)[0].is_signal is False
        assert join_shock_and_gates(shock, gates, threshold=1.5)[0].is_signal is True

    def test_count_signals(self) -> None:
        shock = [_shock(D1, 3.0), _shock(D2, 3.0), _shock(D3, 0.0)]
        gates = [_gate(D1, True, True), _gate(D2, True, True), _gate(D3, True, True)]
        points = join_shock_and_gates(shock, gates)
        assert count_signals(points) == 2
        assert count_signals(points, since=D2) == 1
