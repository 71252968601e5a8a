"""Date-keyed merge and retention helpers shared by every artifact writer.

A keyed series is any sequence of records plus a function returning the
record's date key, either an ISO ``YYYY-MM-DD`` string or a ``date``.
"""
from __future__ import annotations

import datetime as dt
from typing import Callable, Iterable, TypeVar, Union

T = TypeVar("T")

DateKey = Union[str, dt.date]


def _as_date(key: DateKey) -> dt.date:
    if isinstance(key, dt.datetime):
        return key.date()
    if isinstance(key, dt.date):
        return key
    return dt.date.fromisoformat(key[:10])


def merge_time_series(
    existing: Iterable[T],
    new_points: Iterable[T],
    key: Callable[[T], DateKey],
) -> list[T]:
    """Upsert ``new_points`` into ``existing`` by date key.

    Incoming records replace existing ones with the same key as a whole
    (no field-level merge). Output is sorted ascending with unique keys.
    """
    by_date: dict[dt.date, T] = {}
    for point in existing:
        by_date[_as_date(key(point))] = point
    for point in new_points:
        by_date[_as_date(key(point))] = point
    return [by_date[d] for d in sorted(by_date)]


def trim_time_series(
    points: list[T],
    key: Callable[[T], DateKey],
    retention_days: int,
) -> list[T]:
    """Keep points within ``retention_days`` calendar days of the latest key.

    ``retention_days <= 0`` disables trimming. Points are assumed sorted
    ascending, as returned by :func:`merge_time_series`.
    """
    if not points or retention_days <= 0:
        return list(points)
    latest = max(_as_date(key(p)) for p in points)
    cutoff = latest - dt.timedelta(days=retention_days)
    return [p for p in points if _as_date(key(p)) >= cutoff]


def merge_and_trim_time_series(
    existing: Iterable[T],
    new_points: Iterable[T],
    key: Callable[[T], DateKey],
    retention_days: int,
) -> list[T]:
    merged = merge_time_series(existing, new_points, key)
    return trim_time_series(merged, key, retention_days)
