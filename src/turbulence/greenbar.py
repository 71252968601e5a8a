"""Green-bar composite: shock z-score conditioned on regime gates."""
from __future__ import annotations

import datetime as dt
from typing import Optional, Sequence

from turbulence.artifacts import CompositeSignalPoint, GateReading, ShockPoint


def composite_signal(
    shock_z: Optional[float],
    gates: Sequence[Optional[bool]],
    threshold: float,
) -> Optional[bool]:
    """True iff the z-score clears *threshold* and every gate is True.

    Any null gate makes the result null: no regime reading, no judgment.
    """
    if any(g is None for g in gates):
        return None
    return shock_z is not None and shock_z >= threshold and all(gates)


def join_shock_and_gates(
    shock: Sequence[ShockPoint],
    gates: Sequence[GateReading],
    threshold: float = 2.0,
) -> list[CompositeSignalPoint]:
    """One composite point per shock date, ascending.

    Shock dates are authoritative; a date with no gate entry gets null gates
    (and therefore a null signal).
    """
    gates_by_date: dict[dt.date, GateReading] = {g.date: g for g in gates}
    shock_by_date: dict[dt.date, ShockPoint] = {s.date: s for s in shock}

    points: list[CompositeSignalPoint] = []
    for d in sorted(shock_by_date):
        s = shock_by_date[d]
        g = gates_by_date.get(d)
        spx_above = g.spx_above_50dma if g is not None else None
        vix_below = g.vix_below_25 if g is not None else None
        points.append(
            CompositeSignalPoint(
                date=d,
                shock_z=s.shock_z,
                shock_raw=s.shock_raw,
                spx_above_50dma=spx_above,
                vix_below_25=vix_below,
                is_signal=composite_signal(s.shock_z, (spx_above, vix_below), threshold),
            )
        )
    return points


def count_signals(points: Sequence[CompositeSignalPoint], since: Optional[dt.date] = None) -> int:
    return sum(1 for p in points if p.is_signal and (since is None or p.date >= since))
