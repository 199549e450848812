"""Index-by aggregation.

Re-buckets the rows of each key group into periods (floor of the time to a
week, a month, ...) and reduces every bucket to one row. Because every
bucket is one period apart, the result is regular at the bucket's period
even when the input was irregular.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

import pandas as pd

from tstable.core.config import NAPolicy
from tstable.core.errors import InvalidIndexError, SchemaError
from tstable.time.buckets import CalendarBucket, get_bucket
from tstable.window.reducers import MultiReducer, Reducer, get_reducer

if TYPE_CHECKING:
    from tstable.table.frame import GroupedTable, TSTable

logger = logging.getLogger(__name__)

_BUCKET = "__bucket__"


def _resolve_bucket(bucket: CalendarBucket | str | Callable) -> tuple[Callable, Any]:
    if isinstance(bucket, str):
        bucket = get_bucket(bucket)
    if isinstance(bucket, CalendarBucket):
        return bucket, bucket.interval
    if callable(bucket):
        return bucket, None
    raise TypeError(f"Expected a bucket name, CalendarBucket or callable, got {type(bucket).__name__}")


def _resolve_aggregations(
    aggregations: Mapping[str, tuple[str, Any] | str],
    columns: list[str],
) -> dict[str, tuple[str, Reducer]]:
    if not aggregations:
        raise ValueError("index_by needs at least one aggregation")
    out: dict[str, tuple[str, Reducer]] = {}
    for name, agg in aggregations.items():
        column, reducer = (name, agg) if isinstance(agg, str) else agg
        resolved = get_reducer(reducer)
        if isinstance(resolved, MultiReducer):
            raise TypeError(
                f"Aggregation '{name}' uses multi-column reducer '{resolved.name}'; "
                "index_by reduces one column per output"
            )
        if column not in columns:
            raise SchemaError(
                f"Aggregation '{name}' reads unknown column '{column}'",
                context={"column": column, "available": columns},
            )
        out[name] = (column, resolved)
    return out


def _check_monotonic(
    df: pd.DataFrame,
    key: tuple[str, ...],
    index: str,
    buckets: pd.Series,
) -> None:
    ordered = df.assign(**{_BUCKET: buckets}).sort_values([*key, index], kind="stable")
    if key:
        steps = ordered.groupby(list(key), sort=False, dropna=False)[_BUCKET].diff()
    else:
        steps = ordered[_BUCKET].diff()
    if pd.api.types.is_timedelta64_dtype(steps):
        backwards = steps < pd.Timedelta(0)
    else:
        backwards = steps < 0
    if backwards.any():
        first = ordered.index[backwards.to_numpy()][0]
        raise InvalidIndexError(
            "Bucketing function is not monotonic in the index",
            context={
                "index": df.loc[first, index],
                "bucket": buckets.loc[first],
            },
            fix_hint="Bucket functions must satisfy t1 <= t2 => bucket(t1) <= bucket(t2)",
        )


def index_by(
    grouped: GroupedTable | TSTable,
    bucket: CalendarBucket | str | Callable[[pd.Series], pd.Series],
    aggregations: Mapping[str, tuple[str, Any] | str],
    na_policy: NAPolicy | str = NAPolicy.SKIP,
    name: str | None = None,
) -> TSTable:
    """Aggregate each (key, bucket) pair into a single row.

    Args:
        grouped: GroupedTable (or TSTable, grouped by its key)
        bucket: CalendarBucket, bucket name, or monotonic callable
        aggregations: Output column -> (input column, reducer)
        na_policy: 'skip' (default) drops missing values before reducing;
            'propagate' makes any missing input yield a missing output
        name: Name of the bucket index column (default: the table's index)

    Returns:
        New regular TSTable, one row per (key, bucket), sorted by key then bucket

    Raises:
        SchemaError: If an aggregation reads an unknown column
        InvalidIndexError: If the bucket function is not monotonic
    """
    from tstable.table.frame import TSTable

    if isinstance(grouped, TSTable):
        grouped = grouped.group_by_key()
    table = grouped.table
    key = grouped.key
    name = name or table.index
    if name in key:
        raise SchemaError(f"Bucket column '{name}' clashes with a key column", context={"key": list(key)})

    func, interval = _resolve_bucket(bucket)
    aggs = _resolve_aggregations(aggregations, table.columns)
    clash = [out for out in aggs if out in key or out == name]
    if clash:
        raise SchemaError(f"Aggregation output(s) clash with key/index: {clash}", context={"columns": clash})
    policy = NAPolicy(na_policy)

    df = table.df
    raw = func(df[table.index])
    buckets = raw.set_axis(df.index) if isinstance(raw, pd.Series) else pd.Series(raw, index=df.index)
    _check_monotonic(df, key, table.index, buckets)

    valid = buckets.notna()
    if not valid.all():
        logger.warning("Dropping %d row(s) whose bucket is missing", int((~valid).sum()))

    work = df.loc[valid, list(key)].copy()
    work[_BUCKET] = buckets[valid]
    for column, _ in aggs.values():
        if column not in work.columns:
            work[column] = df.loc[valid, column]

    grouped_rows = work.groupby([*key, _BUCKET], sort=True, dropna=False)
    result = pd.DataFrame({
        out: grouped_rows[column].agg(lambda s, r=reducer: r(s.to_numpy(), policy))
        for out, (column, reducer) in aggs.items()
    })
    result = result.reset_index().rename(columns={_BUCKET: name})
    result = result[[*key, name, *aggs]]
    logger.debug(
        "index_by produced %d row(s) from %d over %d output column(s)",
        len(result),
        len(df),
        len(aggs),
    )
    return TSTable._build(result, key, name, regular=True, interval=interval)


__all__ = ["index_by"]
