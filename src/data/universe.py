"""Shock universe resolution and staleness filtering."""
from __future__ import annotations

from typing import Callable, Optional, Sequence

from common.logging import get_logger
from data.bar_cache import EodBar

logger = get_logger("universe")

SHOCK_UNIVERSE_FALLBACK: list[str] = [
    "SPY", "XLB", "XLC", "XLE", "XLF", "XLI", "XLK", "XLP", "XLRE", "XLU", "XLV", "XLY",
]


def resolve_universe(
    primary: Optional[Callable[[], Sequence[str]]],
    *,
    floor: int,
    fallback: Sequence[str] = SHOCK_UNIVERSE_FALLBACK,
) -> list[str]:
    """Return the ordered symbol list to analyse.

    The primary provider (typically a deck catalog lookup) is used when it
    yields at least ``floor`` symbols; otherwise, or if it raises, the static
    fallback list is returned.
    """
    if primary is not None:
        try:
            symbols = list(primary())
        except Exception as exc:  # noqa: BLE001
            logger.warning("Primary universe unavailable (%s); using fallback", exc)
        else:
            if len(symbols) >= floor:
                return symbols
            logger.warning(
                "Primary universe has %d symbols (< %d); using fallback", len(symbols), floor
            )
    return list(fallback)


def recent_universe(
    symbols: Sequence[str],
    bars_by_symbol: dict[str, list[EodBar]],
    recent_window_days: int,
) -> list[str]:
    """Keep symbols whose last bar is within ``recent_window_days`` of the
    latest bar across all loaded symbols."""
    last_dates = {sym: bars[-1].date for sym, bars in bars_by_symbol.items() if bars}
    if not last_dates:
        return []
    max_date = max(last_dates.values())
    return [
        sym
        for sym in symbols
        if sym in last_dates and abs((max_date - last_dates[sym]).days) <= recent_window_days
    ]
