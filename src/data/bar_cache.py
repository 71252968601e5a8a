"""File-based EOD bar cache.

One JSON array per symbol under the cache directory, each element an object
with at least ``date`` and ``close``. The fetching client that fills the
cache lives outside this package; here we only read, merge and write.
"""
from __future__ import annotations

import datetime as dt
import json
import os
import re
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from common.logging import get_logger
from common.timeseries import merge_time_series

logger = get_logger("bar_cache")

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


class EodBar(BaseModel):
    """Single end-of-day bar for one symbol."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    date: dt.date
    close: float


_BARS_ADAPTER = TypeAdapter(list[EodBar])


def cache_file_name(symbol: str) -> str:
    """Filesystem-safe cache file name, e.g. ``BRK.B`` -> ``BRK_B.json``."""
    return f"{_UNSAFE_CHARS.sub('_', symbol.replace('.', '_'))}.json"


def load_eod_cache(symbol: str, cache_dir: str | Path) -> Optional[list[EodBar]]:
    """Load cached bars for *symbol*, sorted ascending by date.

    Returns None when the file is missing, unreadable or not a well-formed
    array of bars; callers treat that as "asset unavailable".
    """
    path = Path(cache_dir) / cache_file_name(symbol)
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, ValueError) as exc:
        logger.warning("Failed to read cache for %s: %s", symbol, exc)
        return None
    if not isinstance(payload, list):
        logger.warning("Cache for %s is not an array; skipping", symbol)
        return None
    try:
        bars = _BARS_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        logger.warning("Cache for %s has malformed bars: %s", symbol, exc.error_count())
        return None
    # stable: duplicate dates keep their file order
    return sorted(bars, key=lambda b: b.date)


def merge_bars(existing: list[EodBar], new_bars: list[EodBar]) -> list[EodBar]:
    """Upsert *new_bars* into *existing* by date (new bars win)."""
    return merge_time_series(existing, new_bars, key=lambda b: b.date)


def save_eod_cache(symbol: str, bars: list[EodBar], cache_dir: str | Path) -> Path:
    """Write *bars* ascending by date and return the cache file path."""
    cache_dir = Path(cache_dir)
    cache_dir.mkdir(parents=True, exist_ok=True)
    path = cache_dir / cache_file_name(symbol)
    ordered = sorted(bars, key=lambda b: b.date)
    tmp_path = path.with_suffix(".json.tmp")
    with open(tmp_path, "w", encoding="utf-8") as f:
        f.write(_BARS_ADAPTER.dump_json(ordered, indent=2).decode("utf-8"))
        f.write("\n")
    os.replace(tmp_path, path)
    return path


def load_bars_by_symbol(symbols: list[str], cache_dir: str | Path) -> dict[str, list[EodBar]]:
    """Load every available, non-empty cache among *symbols* (input order kept)."""
    bars_by_symbol: dict[str, list[EodBar]] = {}
    for sym in symbols:
        bars = load_eod_cache(sym, cache_dir)
        if bars:
            bars_by_symbol[sym] = bars
        else:
            logger.debug("No usable cache for %s", sym)
    return bars_by_symbol
