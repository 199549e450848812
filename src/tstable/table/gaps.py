"""Implicit missing values in regular tables.

A regular table's index advances by whole periods inside each key group;
a step of more than one period leaves a gap. These helpers report gaps
and make them explicit as rows of missing measures.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

from tstable.core.errors import InvalidIndexError
from tstable.table.groups import group_positions

if TYPE_CHECKING:
    from tstable.table.frame import TSTable


def _require_period(table: TSTable) -> None:
    if not table.is_regular:
        raise InvalidIndexError(
            "Gaps are undefined for an irregular table",
            context={"interval": str(table.interval)},
            fix_hint="Build the table with regular=True, or index_by a calendar bucket first",
        )


def _series(table: TSTable) -> list[tuple[tuple, pd.Series]]:
    return [
        (key, table.df[table.index].iloc[pos].reset_index(drop=True))
        for key, pos in group_positions(table.df, table.key)
    ]


def count_gaps(table: TSTable) -> pd.DataFrame:
    """One row per gap: key columns, ``from`` and ``to`` (first and last
    missing index value) and ``n`` (number of missing periods).
    """
    _require_period(table)
    columns = [*table.key, "from", "to", "n"]
    rows: list[dict[str, Any]] = []
    if table.interval.is_known:
        for key, values in _series(table):
            steps = np.round(np.diff(table.interval.positions(values))).astype("int64")
            for i in np.flatnonzero(steps > 1):
                missing = table.interval.sequence(values.iloc[i], values.iloc[i + 1])[1:-1]
                rows.append({
                    **dict(zip(table.key, key)),
                    "from": missing[0],
                    "to": missing[-1],
                    "n": int(steps[i] - 1),
                })
    return pd.DataFrame(rows, columns=columns)


def has_gaps(table: TSTable) -> dict[tuple, bool]:
    """Whether each key group has at least one gap."""
    _require_period(table)
    out: dict[tuple, bool] = {}
    for key, values in _series(table):
        if not table.interval.is_known or len(values) < 2:
            out[key] = False
            continue
        steps = np.round(np.diff(table.interval.positions(values)))
        out[key] = bool((steps > 1).any())
    return out


def fill_gaps(
    table: TSTable,
    fill: Mapping[str, Any] | None = None,
    full: bool = False,
) -> TSTable:
    """Insert a row for every missing period.

    Args:
        table: Regular table
        fill: Values for measures on inserted rows (default: missing)
        full: Span every group from the table-wide first to last index
            value instead of each group's own range

    Returns:
        New TSTable with no gaps
    """
    _require_period(table)
    if not table.interval.is_known or len(table) == 0:
        return table
    table.require(*(fill or {}))

    index_values = table.df[table.index]
    lo, hi = index_values.min(), index_values.max()
    added = []
    for key, values in _series(table):
        start, end = (lo, hi) if full else (values.iloc[0], values.iloc[-1])
        grid = table.interval.sequence(start, end)
        present = set(np.round(table.interval.positions(values)).astype("int64").tolist())
        positions = np.round(table.interval.positions(pd.Series(grid))).astype("int64")
        new_values = [v for v, p in zip(grid, positions) if p not in present]
        if not new_values:
            continue
        block = pd.DataFrame({table.index: pd.Series(new_values, dtype=index_values.dtype)})
        for column, value in zip(table.key, key):
            block[column] = value
        for column, value in (fill or {}).items():
            block[column] = value
        added.append(block)

    if not added:
        return table
    df = pd.concat([table.df, *added], ignore_index=True)[list(table.df.columns)]
    df = df.sort_values([*table.key, table.index], kind="stable").reset_index(drop=True)
    return table._derive(df)


__all__ = ["count_gaps", "has_gaps", "fill_gaps"]
