"""Calendar bucketing functions for index-by aggregation.

Each bucket maps an index value to the start (floor) or end (ceiling) of
the calendar period containing it. Buckets are pure and monotonic
(t1 <= t2 implies bucket(t1) <= bucket(t2)) and carry the Interval of the
periods they produce, so a table aggregated by a bucket is regular at that
period.

Timezone-aware values are bucketed on local wall-clock time.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import pandas as pd

from tstable.table.interval import Interval, IntervalUnit


@dataclass(frozen=True)
class CalendarBucket:
    """Named, monotonic bucketing function with a fixed output period."""

    name: str
    interval: Interval
    func: Callable[[pd.Series], pd.Series]

    def __call__(self, values: Any) -> pd.Series:
        series = values if isinstance(values, pd.Series) else pd.Series(values)
        return self.func(series)


def _on_wall_clock(floor: Callable[[pd.Series], pd.Series]) -> Callable[[pd.Series], pd.Series]:
    def wrapped(values: pd.Series) -> pd.Series:
        tz = values.dt.tz
        if tz is None:
            return floor(values)
        out = floor(values.dt.tz_localize(None))
        return out.dt.tz_localize(tz, ambiguous="NaT", nonexistent="shift_forward")

    return wrapped


def _floor_fixed(freq: str) -> Callable[[pd.Series], pd.Series]:
    return _on_wall_clock(lambda s: s.dt.floor(freq))


def _floor_period(freq: str) -> Callable[[pd.Series], pd.Series]:
    return _on_wall_clock(lambda s: s.dt.to_period(freq).dt.to_timestamp())


def _floor_week(values: pd.Series) -> pd.Series:
    day = values.dt.normalize()
    return day - pd.to_timedelta(day.dt.dayofweek, unit="D")


def _ceiling(floor: Callable[[pd.Series], pd.Series], interval: Interval) -> Callable[[pd.Series], pd.Series]:
    if interval.unit == IntervalUnit.YEAR:
        step = pd.DateOffset(years=int(interval.n))
    elif interval.unit == IntervalUnit.QUARTER:
        step = pd.DateOffset(months=3 * int(interval.n))
    elif interval.unit == IntervalUnit.MONTH:
        step = pd.DateOffset(months=int(interval.n))
    elif interval.unit == IntervalUnit.WEEK:
        step = pd.Timedelta(weeks=interval.n)
    elif interval.unit == IntervalUnit.DAY:
        step = pd.Timedelta(days=interval.n)
    elif interval.unit == IntervalUnit.HOUR:
        step = pd.Timedelta(hours=interval.n)
    else:
        step = pd.Timedelta(minutes=interval.n)

    def ceiling(values: pd.Series) -> pd.Series:
        low = floor(values)
        return low.where(low == values, low + step)

    return ceiling


_FLOORS: dict[str, tuple[Callable[[pd.Series], pd.Series], Interval]] = {
    "minute": (_floor_fixed("min"), Interval(IntervalUnit.MINUTE, 1)),
    "hour": (_floor_fixed("h"), Interval(IntervalUnit.HOUR, 1)),
    "day": (_floor_fixed("D"), Interval(IntervalUnit.DAY, 1)),
    "week": (_on_wall_clock(_floor_week), Interval(IntervalUnit.WEEK, 1)),
    "month": (_floor_period("M"), Interval(IntervalUnit.MONTH, 1)),
    "quarter": (_floor_period("Q"), Interval(IntervalUnit.QUARTER, 1)),
    "year": (_floor_period("Y"), Interval(IntervalUnit.YEAR, 1)),
}

BUCKETS: dict[str, CalendarBucket] = {}
for _unit, (_floor, _interval) in _FLOORS.items():
    BUCKETS[f"floor_{_unit}"] = CalendarBucket(f"floor_{_unit}", _interval, _floor)
    BUCKETS[f"ceiling_{_unit}"] = CalendarBucket(
        f"ceiling_{_unit}", _interval, _ceiling(_floor, _interval)
    )

floor_minute = BUCKETS["floor_minute"]
floor_hour = BUCKETS["floor_hour"]
floor_day = BUCKETS["floor_day"]
floor_week = BUCKETS["floor_week"]
floor_month = BUCKETS["floor_month"]
floor_quarter = BUCKETS["floor_quarter"]
floor_year = BUCKETS["floor_year"]
ceiling_minute = BUCKETS["ceiling_minute"]
ceiling_hour = BUCKETS["ceiling_hour"]
ceiling_day = BUCKETS["ceiling_day"]
ceiling_week = BUCKETS["ceiling_week"]
ceiling_month = BUCKETS["ceiling_month"]
ceiling_quarter = BUCKETS["ceiling_quarter"]
ceiling_year = BUCKETS["ceiling_year"]


def floor_step(width: float) -> CalendarBucket:
    """Bucket a numeric index into consecutive ranges of ``width``."""
    if width <= 0:
        raise ValueError(f"width must be positive, got {width}")

    def floor(values: pd.Series) -> pd.Series:
        return (values // width) * width

    return CalendarBucket(f"floor_step_{width}", Interval(IntervalUnit.STEP, width), floor)


def get_bucket(name: str) -> CalendarBucket:
    """Look up a bucket by name ('week' is short for 'floor_week').

    Raises:
        ValueError: If the name is not in the vocabulary
    """
    key = name if name in BUCKETS else f"floor_{name}"
    if key not in BUCKETS:
        raise ValueError(f"Unknown bucket: {name}. Valid: {sorted(BUCKETS)}")
    return BUCKETS[key]


__all__ = [
    "CalendarBucket",
    "BUCKETS",
    "get_bucket",
    "floor_step",
    "floor_minute",
    "floor_hour",
    "floor_day",
    "floor_week",
    "floor_month",
    "floor_quarter",
    "floor_year",
    "ceiling_minute",
    "ceiling_hour",
    "ceiling_day",
    "ceiling_week",
    "ceiling_month",
    "ceiling_quarter",
    "ceiling_year",
]
