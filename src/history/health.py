"""Daily trend-health history: sanitize and upsert with retention."""
from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from common.logging import get_logger
from common.timeseries import merge_and_trim_time_series
from turbulence.artifacts import write_artifact

logger = get_logger("health_history")

# overextension, coverage and diffusion metrics carried by full deck snapshots
HEALTH_METRIC_FIELDS: tuple[str, ...] = (
    "pctAboveUpperBand",
    "medianDistanceAboveUpperBandPct",
    "stretch200MedianPct",
    "heatScore",
    "knownCount",
    "unknownCount",
    "totalTickers",
    "diffusionPct",
    "diffusionCount",
    "diffusionTotalCompared",
)


class HealthHistoryPoint(BaseModel):
    """One day of deck health. Extra metric fields are kept as-is."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow", frozen=True
    )

    date: dt.date
    green_pct: Optional[float] = None
    yellow_pct: Optional[float] = None
    red_pct: Optional[float] = None
    regime_label: Optional[str] = None

    def has_full_schema(self, required_fields: Iterable[str] = ()) -> bool:
        """Core fields present: non-empty regime label and finite percentages.

        *required_fields* names extra camelCase metric fields that must also
        hold finite numbers, e.g. :data:`HEALTH_METRIC_FIELDS`.
        """
        if not self.regime_label:
            return False
        for value in (self.green_pct, self.yellow_pct, self.red_pct):
            if value is None or not math.isfinite(value):
                return False
        extra = self.model_extra or {}
        for name in required_fields:
            value = extra.get(name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return False
            if not math.isfinite(value):
                return False
        return True


_HISTORY_ADAPTER = TypeAdapter(list[HealthHistoryPoint])


def is_weekend(day: dt.date) -> bool:
    return day.weekday() >= 5


@dataclass(frozen=True)
class SanitizeResult:
    sanitized: list[HealthHistoryPoint]
    removed_weekend: int
    removed_partial: int


def sanitize_health_history(
    history: Sequence[HealthHistoryPoint],
    required_fields: Iterable[str] = (),
) -> SanitizeResult:
    """Drop weekend and partial-schema points, sort, dedupe (last wins).

    Pass :data:`HEALTH_METRIC_FIELDS` as *required_fields* to also drop points
    written before the metric fields existed.
    """
    required_fields = tuple(required_fields)
    removed_weekend = 0
    removed_partial = 0
    kept: list[HealthHistoryPoint] = []
    for point in history:
        if is_weekend(point.date):
            removed_weekend += 1
        elif not point.has_full_schema(required_fields):
            removed_partial += 1
        else:
            kept.append(point)
    by_date = {p.date: p for p in kept}
    return SanitizeResult(
        sanitized=[by_date[d] for d in sorted(by_date)],
        removed_weekend=removed_weekend,
        removed_partial=removed_partial,
    )


def load_health_history(path: str | Path) -> list[HealthHistoryPoint]:
    """Read the history file; a missing or invalid file is an empty history."""
    path = Path(path)
    if not path.exists():
        return []
    try:
        return _HISTORY_ADAPTER.validate_json(path.read_text(encoding="utf-8"))
    except (ValidationError, OSError) as exc:
        logger.warning("Starting fresh; could not read %s: %s", path, exc)
        return []


def save_health_history(path: str | Path, history: Sequence[HealthHistoryPoint]) -> Path:
    return write_artifact(path, sorted(history, key=lambda p: p.date))


def upsert_health_history(
    path: str | Path,
    point: HealthHistoryPoint,
    retention_days: int = 365,
) -> list[HealthHistoryPoint]:
    """Replace or append *point* by date, trim to retention and write back."""
    history = load_health_history(path)
    replaced = any(p.date == point.date for p in history)
    merged = merge_and_trim_time_series(history, [point], lambda p: p.date, retention_days)
    save_health_history(path, merged)
    logger.info(
        "%s entry for %s; total entries: %d",
        "Updated" if replaced else "Added",
        point.date.isoformat(),
        len(merged),
    )
    return merged


def point_from_snapshot(snapshot: dict[str, Any]) -> HealthHistoryPoint:
    """Build today's history point from a deck snapshot payload.

    The snapshot carries ``asOfDate`` and a ``health`` object whose fields
    are copied into the point.
    """
    if "asOfDate" not in snapshot:
        raise ValueError("snapshot has no asOfDate")
    health = dict(snapshot.get("health") or {})
    return HealthHistoryPoint.model_validate({**health, "date": snapshot["asOfDate"]})
