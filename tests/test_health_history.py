"""Tests for health history sanitize and upsert."""
from __future__ import annotations

import datetime as dt
import json
from pathlib import Path

import pytest

from history.health import (
    HEALTH_METRIC_FIELDS,
    HealthHistoryPoint,
    load_health_history,
    point_from_snapshot,
    sanitize_health_history,
    upsert_health_history,
)


def _point(day: str, green: float = 50.0, **extra: object) -> HealthHistoryPoint:
    return HealthHistoryPoint.model_validate(
        {
            "date": day,
            "greenPct": green,
            "yellowPct": 30.0,
            "redPct": 20.0,
            "regimeLabel": "RISK_ON",
            **extra,
        }
    )


class TestUpsert:
    def test_same_date_overwrites(self, tmp_path: Path) -> None:
        path = tmp_path / "health-history.json"
        upsert_health_history(path, _point("2024-01-02", 40.0))
        history = upsert_health_history(path, _point("2024-01-02", 60.0))
        assert len(history) == 1
        assert load_health_history(path)[0].green_pct == 60.0

    def test_new_date_appends_sorted(self, tmp_path: Path) -> None:
        path = tmp_path / "health-history.json"
        upsert_health_history(path, _point("2024-01-03"))
        history = upsert_health_history(path, _point("2024-01-02"))
        assert [p.date for p in history] == [dt.date(2024, 1, 2), dt.date(2024, 1, 3)]
        on_disk = json.loads(path.read_text(encoding="utf-8"))
        assert [p["date"] for p in on_disk] == ["2024-01-02", "2024-01-03"]

    def test_retention(self, tmp_path: Path) -> None:
        path = tmp_path / "health-history.json"
        upsert_health_history(path, _point("2023-01-02"))
        history = upsert_health_history(path, _point("2024-03-01"), retention_days=365)
        assert [p.date for p in history] == [dt.date(2024, 3, 1)]

    def test_extra_fields_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "health-history.json"
        upsert_health_history(path, _point("2024-01-02", heatScore=12.5))
        assert json.loads(path.read_text())[0]["heatScore"] == 12.5

    def test_invalid_file_starts_fresh(self, tmp_path: Path) -> None:
        path = tmp_path / "health-history.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_health_history(path) == []
        assert len(upsert_health_history(path, _point("2024-01-02"))) == 1


class TestSanitize:
    def test_removes_weekends_and_partials(self) -> None:
        history = [
            _point("2024-01-05"),
            _point("2024-01-06"),  # Saturday
            HealthHistoryPoint.model_validate({"date": "2024-01-08", "greenPct": 10.0}),
            _point("2024-01-02"),
        ]
        result = sanitize_health_history(history)
        assert [p.date.isoformat() for p in result.sanitized] == ["2024-01-02", "2024-01-05"]
        assert result.removed_weekend == 1
        assert result.removed_partial == 1

    def test_dedupe_keeps_last(self) -> None:
        result = sanitize_health_history([_point("2024-01-02", 1.0), _point("2024-01-02", 2.0)])
        assert len(result.sanitized) == 1
        assert result.sanitized[0].green_pct == 2.0


class TestSnapshot:
    def test_point_from_snapshot(self) -> None:
        point = point_from_snapshot(
            {
                "asOfDate": "2024-01-02",
                "health": {"greenPct": 55.0, "yellowPct": 25.0, "redPct": 20.0, "regimeLabel": "RISK_ON"},
            }
        )
        assert point.date == dt.date(2024, 1, 2)
        assert point.has_full_schema()

    def test_missing_as_of_date(self) -> None:
        with pytest.raises(ValueError, match="asOfDate"):
            point_from_snapshot({"health": {}})

    def test_required_metric_fields(self) -> None:
        metrics = {name: 1.0 for name in HEALTH_METRIC_FIELDS}
        full = _point("2024-01-02", **metrics)
        missing_heat = _point("2024-01-03", **{**metrics, "heatScore": None})
        core_only = _point("2024-01-04")

        result = sanitize_health_history([full, missing_heat, core_only], HEALTH_METRIC_FIELDS)
        assert [p.date for p in result.sanitized] == [dt.date(2024, 1, 2)]
        assert result.removed_partial == 2
        # the default check still accepts core-only points
        assert len(sanitize_health_history([full, missing_heat, core_only]).sanitized) == 3
