"""Table module - row stores, key/index validation and the TSTable itself."""

from tstable.table.frame import GroupedTable, TSTable
from tstable.table.interval import IRREGULAR, UNKNOWN, Interval, IntervalUnit, infer_interval
from tstable.table.rows import ColumnType, RowStore
from tstable.table.validation import (
    DuplicateKey,
    DuplicateReport,
    LayoutIssue,
    ValidationReport,
    find_duplicates,
    validate_table,
)

__all__ = [
    "TSTable",
    "GroupedTable",
    "RowStore",
    "ColumnType",
    "Interval",
    "IntervalUnit",
    "IRREGULAR",
    "UNKNOWN",
    "infer_interval",
    "DuplicateKey",
    "DuplicateReport",
    "LayoutIssue",
    "ValidationReport",
    "find_duplicates",
    "validate_table",
]
