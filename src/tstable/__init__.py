"""tstable - time-indexed tables with key/index semantics.

A TSTable is a DataFrame with a designated index (time) column and zero or
more key columns, unique on every (key, index) pair. On top of it sit
calendar-aware re-bucketing (index_by) and per-key rolling computations
(slide, tile, stretch) with pluggable reducers.

Basic usage:
    >>> from tstable import TSTable
    >>> table = TSTable.from_rows(df, key="symbol", index="date")
    >>> weekly = table.index_by("floor_week", {"high": ("high", "mean")})
    >>> ma = table.slide("close", "mean", size=20)

Multi-column reducers:
    >>> from tstable import regression_coefficients
    >>> betas = table.slide(reducer=regression_coefficients("ret", "market"), size=60)

Validation without building a table:
    >>> from tstable import find_duplicates
    >>> report = find_duplicates(df, key="symbol", index="date")
    >>> report.pairs()
"""

__version__ = "0.1.0"

from tstable.core.config import Align, NAPolicy, TableSpec, WindowSpec
from tstable.core.errors import (
    InvalidIndexError,
    SchemaError,
    TSTableError,
    WindowConfigError,
)
from tstable.table.frame import GroupedTable, TSTable
from tstable.table.interval import Interval, IntervalUnit
from tstable.table.rows import ColumnType, RowStore
from tstable.table.validation import find_duplicates, validate_table
from tstable.time.buckets import BUCKETS, CalendarBucket, floor_step, get_bucket
from tstable.window.reducers import MultiReducer, Reducer, regression_coefficients

__all__ = [
    "__version__",
    # Tables
    "TSTable",
    "GroupedTable",
    "RowStore",
    "ColumnType",
    "Interval",
    "IntervalUnit",
    # Validation
    "find_duplicates",
    "validate_table",
    # Config
    "WindowSpec",
    "TableSpec",
    "Align",
    "NAPolicy",
    # Buckets
    "CalendarBucket",
    "BUCKETS",
    "get_bucket",
    "floor_step",
    # Reducers
    "Reducer",
    "MultiReducer",
    "regression_coefficients",
    # Errors
    "TSTableError",
    "SchemaError",
    "InvalidIndexError",
    "WindowConfigError",
]
