"""Interval inference and regularity.

A regular table has a fixed period: every step between consecutive index
values inside a key group is a whole multiple of it. The period is inferred
as the greatest common divisor of those steps, preferring calendar units
(year, quarter, month) when every timestamp sits on a month start.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from functools import reduce

import numpy as np
import pandas as pd


class IntervalUnit(StrEnum):
    """Unit of a table's period."""

    YEAR = "year"
    QUARTER = "quarter"
    MONTH = "month"
    WEEK = "week"
    DAY = "day"
    HOUR = "hour"
    MINUTE = "minute"
    SECOND = "second"
    NANOSECOND = "nanosecond"
    STEP = "step"
    """Numeric (non-time) index."""

    UNKNOWN = "unknown"
    """Too few observations to infer a period."""

    IRREGULAR = "irregular"


_MONTHS_PER_UNIT = {
    IntervalUnit.YEAR: 12,
    IntervalUnit.QUARTER: 3,
    IntervalUnit.MONTH: 1,
}

_NS_PER_UNIT = {
    IntervalUnit.WEEK: 7 * 86_400 * 10**9,
    IntervalUnit.DAY: 86_400 * 10**9,
    IntervalUnit.HOUR: 3_600 * 10**9,
    IntervalUnit.MINUTE: 60 * 10**9,
    IntervalUnit.SECOND: 10**9,
    IntervalUnit.NANOSECOND: 1,
}

# Float indexes are reduced to integers at this resolution before the gcd.
_STEP_SCALE = 10**6


@dataclass(frozen=True)
class Interval:
    """Period of a time-indexed table: ``n`` multiples of ``unit``."""

    unit: IntervalUnit
    n: float = 1

    @property
    def is_regular(self) -> bool:
        return self.unit != IntervalUnit.IRREGULAR

    @property
    def is_known(self) -> bool:
        return self.unit not in (IntervalUnit.IRREGULAR, IntervalUnit.UNKNOWN)

    def __str__(self) -> str:
        if self.unit == IntervalUnit.IRREGULAR:
            return "irregular"
        if self.unit == IntervalUnit.UNKNOWN:
            return "?"
        n = int(self.n) if float(self.n).is_integer() else self.n
        return f"{n} {self.unit.value}"

    def positions(self, values: pd.Series | pd.Index | np.ndarray) -> np.ndarray:
        """Express index values as (fractional) counts of this interval.

        Consecutive observations one period apart differ by exactly 1.
        """
        if not self.is_known:
            raise ValueError(f"Interval {self} has no fixed period")
        if self.unit == IntervalUnit.STEP:
            return np.asarray(values, dtype="float64") / float(self.n)
        stamps = pd.DatetimeIndex(values)
        if self.unit in _MONTHS_PER_UNIT:
            months = _month_ordinals(stamps)
            return months / float(_MONTHS_PER_UNIT[self.unit] * self.n)
        return _epoch_ns(stamps).astype("float64") / float(_NS_PER_UNIT[self.unit] * self.n)

    def sequence(self, start, end) -> list:
        """All index values from ``start`` to ``end`` (inclusive) one period apart."""
        if not self.is_known:
            raise ValueError(f"Interval {self} has no fixed period")
        if self.unit == IntervalUnit.STEP:
            count = int(round((end - start) / self.n)) + 1
            return [start + i * self.n for i in range(count)]
        start, end = pd.Timestamp(start), pd.Timestamp(end)
        if self.unit in _MONTHS_PER_UNIT:
            months = int(_MONTHS_PER_UNIT[self.unit] * self.n)
            out = []
            current = start
            while current <= end:
                out.append(current)
                current = start + pd.DateOffset(months=months * len(out))
            return out
        step = pd.Timedelta(int(_NS_PER_UNIT[self.unit] * self.n), unit="ns")
        return list(pd.date_range(start=start, end=end, freq=step))


IRREGULAR = Interval(IntervalUnit.IRREGULAR, 0)
UNKNOWN = Interval(IntervalUnit.UNKNOWN, 0)


def _epoch_ns(stamps: pd.DatetimeIndex) -> np.ndarray:
    if stamps.tz is not None:
        stamps = stamps.tz_convert("UTC").tz_localize(None)
    return stamps.as_unit("ns").asi8


def _month_ordinals(stamps: pd.DatetimeIndex) -> np.ndarray:
    return (stamps.year.to_numpy() * 12 + stamps.month.to_numpy() - 1).astype("int64")


def _gcd(values: Iterable[int]) -> int:
    return reduce(math.gcd, (int(v) for v in values), 0)


def _diffs(groups: list[np.ndarray]) -> np.ndarray:
    parts = [np.diff(np.sort(g)) for g in groups if len(g) > 1]
    if not parts:
        return np.array([], dtype="int64")
    out = np.concatenate(parts)
    return out[out > 0]


def _infer_time(groups: list[pd.DatetimeIndex]) -> Interval:
    stamps = groups[0].append(groups[1:]) if len(groups) > 1 else groups[0]
    on_month_start = bool(((stamps == stamps.normalize()) & (stamps.day == 1)).all())
    if on_month_start:
        diffs = _diffs([_month_ordinals(g) for g in groups])
        if len(diffs) == 0:
            return UNKNOWN
        g = _gcd(diffs)
        if g % 12 == 0:
            return Interval(IntervalUnit.YEAR, g // 12)
        if g % 3 == 0:
            return Interval(IntervalUnit.QUARTER, g // 3)
        return Interval(IntervalUnit.MONTH, g)

    diffs = _diffs([_epoch_ns(g) for g in groups])
    if len(diffs) == 0:
        return UNKNOWN
    g = _gcd(diffs)
    for unit, ns in _NS_PER_UNIT.items():
        if g % ns == 0:
            return Interval(unit, g // ns)
    return Interval(IntervalUnit.NANOSECOND, g)


def _infer_numeric(groups: list[np.ndarray]) -> Interval:
    arrays = [np.asarray(g) for g in groups]
    if all(np.issubdtype(a.dtype, np.integer) for a in arrays):
        diffs = _diffs([a.astype("int64") for a in arrays])
        if len(diffs) == 0:
            return UNKNOWN
        return Interval(IntervalUnit.STEP, _gcd(diffs))

    scaled = [np.round(a.astype("float64") * _STEP_SCALE).astype("int64") for a in arrays]
    diffs = _diffs(scaled)
    if len(diffs) == 0:
        return UNKNOWN
    g = _gcd(diffs)
    if g % _STEP_SCALE == 0:
        return Interval(IntervalUnit.STEP, g // _STEP_SCALE)
    return Interval(IntervalUnit.STEP, g / _STEP_SCALE)


def infer_interval(groups: list[pd.Series | np.ndarray | pd.Index]) -> Interval:
    """Infer the period shared by the index values of every key group.

    Args:
        groups: Index values of each key group (any order)

    Returns:
        Interval; UNKNOWN when no group has two distinct values
    """
    groups = [g.dropna() if isinstance(g, (pd.Series, pd.Index)) else g for g in groups]
    groups = [g for g in groups if len(g)]
    if not groups:
        return UNKNOWN
    if pd.api.types.is_datetime64_any_dtype(groups[0]):
        return _infer_time([pd.DatetimeIndex(g) for g in groups])
    return _infer_numeric([np.asarray(g) for g in groups])


__all__ = ["Interval", "IntervalUnit", "IRREGULAR", "UNKNOWN", "infer_interval"]
