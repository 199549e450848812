"""Key/index validation.

Checks that every (key, index) pair of a row collection is unique and
reports the offending pairs, with the row positions of each repeat, so the
caller can resolve them before building a table. Nothing here mutates the
input.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from tstable.core.errors import InvalidIndexError, SchemaError, get_error_class
from tstable.table.groups import group_positions
from tstable.table.interval import Interval, infer_interval
from tstable.table.rows import RowStore

# Number of duplicate pairs echoed into error messages and contexts.
MAX_REPORTED = 10


@dataclass(frozen=True)
class DuplicateKey:
    """One repeated (key, index) pair and the positions of its rows."""

    key: tuple
    index: Any
    rows: tuple[int, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"key": list(self.key), "index": self.index, "rows": list(self.rows)}


@dataclass(frozen=True)
class DuplicateReport:
    """Result of a duplicate scan.

    Attributes:
        key: Key columns checked
        index: Index column checked
        duplicates: Every repeated (key, index) pair, in row order
    """

    key: tuple[str, ...]
    index: str
    duplicates: list[DuplicateKey] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.duplicates

    @property
    def n_duplicated_rows(self) -> int:
        return sum(len(d.rows) for d in self.duplicates)

    def pairs(self) -> list[tuple[tuple, Any]]:
        """(key, index) of every repeated pair."""
        return [(d.key, d.index) for d in self.duplicates]

    def raise_if_invalid(self) -> None:
        """Raise InvalidIndexError naming the repeated pairs."""
        if self.valid:
            return
        shown = [d.to_dict() for d in self.duplicates[:MAX_REPORTED]]
        raise InvalidIndexError(
            f"Found {len(self.duplicates)} duplicate ({', '.join(self.key) or '<no key>'}, "
            f"{self.index}) pairs: {[(d.key, d.index) for d in self.duplicates[:MAX_REPORTED]]}",
            context={
                "key": list(self.key),
                "index": self.index,
                "num_duplicates": self.n_duplicated_rows,
                "duplicate_keys": shown,
            },
        )


def _as_frame(rows: Any) -> pd.DataFrame:
    if isinstance(rows, RowStore):
        return rows.df
    if isinstance(rows, pd.DataFrame):
        return rows
    return RowStore.coerce(rows).df


def _require(df: pd.DataFrame, columns: Sequence[str]) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise SchemaError(
            f"Missing key/index column(s): {missing}",
            context={"missing": missing, "available": [str(c) for c in df.columns]},
        )


def find_duplicates(rows: Any, key: Sequence[str] | str = (), index: str = "") -> DuplicateReport:
    """Find repeated (key, index) pairs.

    Args:
        rows: RowStore, DataFrame or iterable of records
        key: Key columns (empty means the whole collection is one group)
        index: Index column

    Returns:
        DuplicateReport; ``valid`` is True when every pair is unique

    Raises:
        SchemaError: If a key or index column is absent
    """
    key = (key,) if isinstance(key, str) else tuple(key)
    df = _as_frame(rows)
    subset = [*key, index]
    _require(df, subset)

    positional = df.reset_index(drop=True)
    mask = positional.duplicated(subset=subset, keep=False)
    if not mask.any():
        return DuplicateReport(key=key, index=index)

    dup = positional.loc[mask, subset]
    duplicates = []
    for pair, positions in group_positions(dup, subset):
        duplicates.append(
            DuplicateKey(
                key=pair[:-1],
                index=pair[-1],
                rows=tuple(int(p) for p in dup.index[positions]),
            )
        )
    return DuplicateReport(key=key, index=index, duplicates=duplicates)


@dataclass(frozen=True)
class LayoutIssue:
    """One problem found while checking rows against a key/index layout."""

    code: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ValidationReport:
    """What a table built from the checked rows would look like.

    Attributes:
        key: Key columns checked
        index: Index column checked
        errors: Issues that would stop construction
        warnings: Issues construction resolves by itself (e.g. unsorted rows)
        num_rows: Number of rows
        num_keys: Number of key groups
        interval: Inferred period of the index, None when the index is unusable
        index_range: First and last index value, None for no rows
        duplicates: Duplicate scan, None when it could not run
    """

    key: tuple[str, ...]
    index: str
    errors: tuple[LayoutIssue, ...] = ()
    warnings: tuple[LayoutIssue, ...] = ()
    num_rows: int = 0
    num_keys: int = 0
    interval: Interval | None = None
    index_range: tuple[Any, Any] | None = None
    duplicates: DuplicateReport | None = None

    @property
    def valid(self) -> bool:
        return not self.errors

    def raise_if_invalid(self) -> None:
        """Raise the first error as the TSTableError its code names."""
        if self.errors:
            issue = self.errors[0]
            raise get_error_class(issue.code)(issue.message, context=issue.context)


def validate_table(rows: Any, key: Sequence[str] | str = (), index: str = "") -> ValidationReport:
    """Validate rows against a key/index layout without building a table.

    Checks that:
    1. Key and index columns exist
    2. The index is timestamp or numeric
    3. No (key, index) pair repeats
    4. Rows are sorted by (key, index) (warning only)

    and records row/key counts, the index range and the inferred interval.
    """
    key = (key,) if isinstance(key, str) else tuple(key)

    try:
        df = _as_frame(rows)
        _require(df, [*key, index])
    except SchemaError as e:
        return ValidationReport(key, index, errors=(LayoutIssue(e.error_code, e.message, e.context),))

    index_values = df[index]
    if not (
        pd.api.types.is_datetime64_any_dtype(index_values)
        or (pd.api.types.is_numeric_dtype(index_values) and not pd.api.types.is_bool_dtype(index_values))
    ):
        issue = LayoutIssue(
            SchemaError.error_code,
            f"Index column '{index}' must hold timestamps or numbers",
            {"column": index, "actual_type": str(index_values.dtype)},
        )
        return ValidationReport(key, index, errors=(issue,), num_rows=len(df))

    errors: list[LayoutIssue] = []
    warnings: list[LayoutIssue] = []
    duplicates = find_duplicates(df, key, index)
    if not duplicates.valid:
        errors.append(LayoutIssue(
            InvalidIndexError.error_code,
            f"Found {len(duplicates.duplicates)} duplicate (key, index) pairs",
            {
                "num_duplicates": duplicates.n_duplicated_rows,
                "duplicate_keys": [d.to_dict() for d in duplicates.duplicates[:MAX_REPORTED]],
            },
        ))

    ordered = df.sort_values([*key, index], kind="stable").index
    if not df.index.equals(ordered):
        warnings.append(LayoutIssue(
            "W_UNSORTED",
            f"Rows are not sorted by ({', '.join([*key, index])})",
            {"suggestion": "TSTable construction sorts rows; no action needed"},
        ))

    groups = group_positions(df, key)
    return ValidationReport(
        key,
        index,
        errors=tuple(errors),
        warnings=tuple(warnings),
        num_rows=len(df),
        num_keys=len(groups),
        interval=infer_interval([index_values.iloc[pos] for _, pos in groups]),
        index_range=(index_values.min(), index_values.max()) if len(df) else None,
        duplicates=duplicates,
    )


__all__ = [
    "DuplicateKey",
    "DuplicateReport",
    "LayoutIssue",
    "ValidationReport",
    "find_duplicates",
    "validate_table",
]
