"""TSTable implementation.

Immutable time-indexed table: a DataFrame with a designated index column,
zero or more key columns, and guaranteed uniqueness of (key, index) pairs.
Rows are kept sorted by (key, index). All operations return new instances.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd
from pydantic import ValidationError

from tstable.core.config import NAPolicy, TableSpec, WindowSpec
from tstable.core.errors import InvalidIndexError, SchemaError
from tstable.table.groups import group_positions
from tstable.table.interval import IRREGULAR, Interval, infer_interval
from tstable.table.rows import ColumnType, RowStore, coerce_column, infer_column_type
from tstable.table.validation import MAX_REPORTED, find_duplicates
from tstable.window.engine import as_column, check_length, evaluate, resolve_spec, tile_bounds
from tstable.window.reducers import MultiReducer, Reducer, get_reducer

if TYPE_CHECKING:
    from tstable.time.buckets import CalendarBucket

logger = logging.getLogger(__name__)

ReducerLike = str | Reducer | MultiReducer | Callable


def _as_key(key: Sequence[str] | str | None) -> tuple[str, ...]:
    if key is None:
        return ()
    if isinstance(key, str):
        return (key,)
    return tuple(key)


def _resolve_spec(
    spec: TableSpec | None,
    key: Sequence[str] | str | None,
    index: str | None,
    regular: bool,
    validate: bool,
) -> TableSpec:
    if spec is not None:
        return spec
    if index is None:
        raise SchemaError("An index column is required", fix_hint="Pass index='<column>'")
    try:
        return TableSpec(index=index, key=_as_key(key), regular=regular, validate_index=validate)
    except ValidationError as e:
        raise SchemaError(
            "Invalid key/index specification",
            context={"key": key, "index": index, "error": str(e)},
        ) from e


def _check_index_type(store: RowStore, index: str) -> RowStore:
    column_type = store.column_type(index)
    if column_type in (ColumnType.TIMESTAMP, ColumnType.NUMBER):
        return store
    if column_type == ColumnType.TEXT:
        df = store.df.copy()
        df[index] = coerce_column(df[index], ColumnType.TIMESTAMP)
        return RowStore(df=df, schema={**store.schema, index: ColumnType.TIMESTAMP})
    raise SchemaError(
        f"Index column '{index}' must hold timestamps or numbers",
        context={"column": index, "type": column_type.value},
    )


@dataclass(frozen=True, eq=False, repr=False)
class TSTable:
    """Immutable time-indexed table.

    Attributes:
        df: Rows sorted by (key, index) with a RangeIndex
        key: Key columns identifying each series
        index: Index (time) column
        interval: Period of the index; IRREGULAR when declared irregular
        schema: Column types

    Examples:
        >>> import pandas as pd
        >>> df = pd.DataFrame({
        ...     "sym": ["A", "A", "B", "B"],
        ...     "date": pd.to_datetime(["2024-01-01", "2024-01-02"] * 2),
        ...     "close": [1.0, 2.0, 3.0, 4.0],
        ... })
        >>> table = TSTable.from_rows(df, key="sym", index="date")
        >>> table.interval
        Interval(unit=<IntervalUnit.DAY: 'day'>, n=1)
    """

    df: pd.DataFrame
    key: tuple[str, ...]
    index: str
    interval: Interval
    schema: dict[str, ColumnType]

    @classmethod
    def from_rows(
        cls,
        rows: Any,
        key: Sequence[str] | str | None = None,
        index: str | None = None,
        regular: bool = True,
        validate: bool = True,
        allow_irregular: bool | None = None,
        spec: TableSpec | None = None,
    ) -> TSTable:
        """Build a table from rows.

        Args:
            rows: RowStore, DataFrame, or iterable of records
            key: Key column(s); empty means a single series
            index: Index column (timestamps or numbers; text is parsed as timestamps)
            regular: Infer a fixed period for the index (default: True)
            validate: Check (key, index) uniqueness (default: True). When False
                the caller asserts the rows are already unique; window and
                index-by results on duplicated pairs are then undefined.
            allow_irregular: Alias for ``not regular``
            spec: TableSpec overriding key/index/regular/validate

        Returns:
            New TSTable sorted by (key, index)

        Raises:
            SchemaError: If key/index columns are absent or the index type is unusable
            InvalidIndexError: If validation finds duplicate (key, index) pairs
        """
        if allow_irregular is not None:
            regular = not allow_irregular
        spec = _resolve_spec(spec, key, index, regular, validate)
        if spec.index in spec.key:
            raise SchemaError(
                f"Index column '{spec.index}' cannot also be a key column",
                context={"key": list(spec.key), "index": spec.index},
            )

        store = RowStore.coerce(rows)
        store.require(*spec.key, spec.index)
        store = _check_index_type(store, spec.index)

        if spec.validate_index:
            find_duplicates(store, spec.key, spec.index).raise_if_invalid()
        else:
            logger.debug("Skipping (key, index) uniqueness check for %d rows", len(store))

        df = store.df.sort_values([*spec.key, spec.index], kind="stable").reset_index(drop=True)
        table = cls._build(df, spec.key, spec.index, store.schema, regular=spec.regular)
        logger.debug("Built %r", table)
        return table

    @classmethod
    def _build(
        cls,
        df: pd.DataFrame,
        key: tuple[str, ...],
        index: str,
        schema: Mapping[str, ColumnType] | None = None,
        regular: bool = True,
        interval: Interval | None = None,
    ) -> TSTable:
        """Wrap an already sorted, already unique frame."""
        if schema is None:
            schema = {str(c): infer_column_type(df[c]) for c in df.columns}
        if interval is None:
            if regular:
                interval = infer_interval([df[index].iloc[pos] for _, pos in group_positions(df, key)])
            else:
                interval = IRREGULAR
        return cls(df=df, key=key, index=index, interval=interval, schema=dict(schema))

    def _derive(self, df: pd.DataFrame, schema: Mapping[str, ColumnType] | None = None) -> TSTable:
        return TSTable(
            df=df.reset_index(drop=True),
            key=self.key,
            index=self.index,
            interval=self.interval,
            schema=dict(schema if schema is not None else self.schema),
        )

    # ---------------------------------------------------------------
    # Introspection
    # ---------------------------------------------------------------

    def __repr__(self) -> str:
        keys = f"{', '.join(self.key)} [{self.n_keys}]" if self.key else "<none>"
        return (
            f"TSTable: {len(self.df)} x {len(self.df.columns)} [{self.interval}] "
            f"index: {self.index}, key: {keys}"
        )

    def __len__(self) -> int:
        return len(self.df)

    @property
    def columns(self) -> list[str]:
        return list(self.schema)

    @property
    def measures(self) -> list[str]:
        """Columns that are neither key nor index."""
        return [c for c in self.schema if c not in self.key and c != self.index]

    @property
    def is_regular(self) -> bool:
        return self.interval.is_regular

    @property
    def n_keys(self) -> int:
        if not self.key:
            return 1 if len(self.df) else 0
        return len(self.df.drop_duplicates(list(self.key)))

    def key_values(self) -> list[tuple]:
        """Distinct key tuples, in table order."""
        return [k for k, _ in group_positions(self.df, self.key)]

    def require(self, *columns: str) -> None:
        """Raise SchemaError if any column is unknown."""
        missing = [c for c in columns if c not in self.schema]
        if missing:
            raise SchemaError(
                f"Unknown column(s): {missing}",
                context={"missing": missing, "available": self.columns},
            )

    def column(self, name: str) -> pd.Series:
        self.require(name)
        return self.df[name].copy()

    def records(self) -> Iterator[dict[str, Any]]:
        """Iterate over rows as dicts in (key, index) order."""
        columns = list(self.df.columns)
        for row in self.df.itertuples(index=False, name=None):
            yield dict(zip(columns, row))

    def to_frame(self) -> pd.DataFrame:
        return self.df.copy()

    def get_series(self, *key_value: Any) -> pd.DataFrame:
        """Rows of one key group."""
        if len(key_value) != len(self.key):
            raise SchemaError(
                f"Expected {len(self.key)} key value(s), got {len(key_value)}",
                context={"key": list(self.key)},
            )
        mask = np.ones(len(self.df), dtype=bool)
        for column, value in zip(self.key, key_value):
            mask &= (self.df[column] == value).to_numpy()
        return self.df[mask].reset_index(drop=True)

    # ---------------------------------------------------------------
    # Row and column operations
    # ---------------------------------------------------------------

    def filter(self, predicate: Callable[[dict[str, Any]], bool]) -> TSTable:
        """Keep rows for which ``predicate(record)`` is true; order and interval are kept."""
        mask = np.fromiter((bool(predicate(r)) for r in self.records()), dtype=bool, count=len(self.df))
        return self._derive(self.df[mask])

    def filter_index(self, start: Any = None, end: Any = None) -> TSTable:
        """Keep rows whose index lies in [start, end]; either bound may be open."""
        values = self.df[self.index]
        mask = np.ones(len(self.df), dtype=bool)
        if start is not None:
            mask &= (values >= self._index_bound(start)).to_numpy()
        if end is not None:
            mask &= (values <= self._index_bound(end)).to_numpy()
        return self._derive(self.df[mask])

    def _index_bound(self, bound: Any) -> Any:
        values = self.df[self.index]
        if not pd.api.types.is_datetime64_any_dtype(values):
            return bound
        bound = pd.Timestamp(bound)
        if values.dt.tz is not None and bound.tzinfo is None:
            bound = bound.tz_localize(values.dt.tz)
        return bound

    def select(self, *columns: str) -> TSTable:
        """Keep the given measures; key and index columns are always kept."""
        self.require(*columns)
        keep = [c for c in self.df.columns if c in self.key or c == self.index or c in columns]
        return self._derive(self.df[keep], {c: self.schema[c] for c in keep})

    def rename(self, mapping: Mapping[str, str]) -> TSTable:
        """Rename columns; key and index designations follow their columns."""
        self.require(*mapping)
        names = [mapping.get(c, c) for c in self.df.columns]
        if len(set(names)) != len(names):
            raise SchemaError("Renaming would duplicate column names", context={"columns": names})
        return TSTable(
            df=self.df.rename(columns=dict(mapping)),
            key=tuple(mapping.get(k, k) for k in self.key),
            index=mapping.get(self.index, self.index),
            interval=self.interval,
            schema={mapping.get(c, c): t for c, t in self.schema.items()},
        )

    def mutate(self, name: str, func: Callable[[pd.DataFrame], Any]) -> TSTable:
        """Add (or replace) a column computed from the existing ones.

        ``func`` receives a copy of the table's DataFrame and returns one value
        per row (or a scalar, broadcast to every row). Replacing a key or index
        column re-validates the table.

        Raises:
            SchemaError: If the result does not have one value per row
        """
        values = func(self.to_frame())
        if np.ndim(values) == 0:
            values = [values] * len(self.df)
        if len(values) != len(self.df):
            raise SchemaError(
                f"mutate('{name}') returned {len(values)} values for {len(self.df)} rows",
                context={"column": name, "rows": len(self.df), "values": len(values)},
            )
        df = self.to_frame()
        df[name] = values.to_numpy() if isinstance(values, pd.Series) else values
        if name in self.key or name == self.index:
            return TSTable.from_rows(df, key=self.key, index=self.index, regular=self.is_regular)
        return self._derive(df, {**self.schema, name: infer_column_type(df[name])})

    def with_columns(self, columns: Mapping[str, Any]) -> TSTable:
        """Append measure columns aligned by row position."""
        clash = [c for c in columns if c in self.key or c == self.index]
        if clash:
            raise SchemaError(
                f"Cannot overwrite key/index column(s): {clash}",
                context={"columns": clash},
            )
        df = self.to_frame()
        schema = dict(self.schema)
        for column, values in columns.items():
            df[column] = values
            schema[column] = infer_column_type(df[column])
        return self._derive(df, schema)

    def update_key(self, key: Sequence[str] | str | None) -> TSTable:
        """Re-key the table; uniqueness is validated against the new key."""
        return TSTable.from_rows(self.df, key=key, index=self.index, regular=self.is_regular)

    # ---------------------------------------------------------------
    # Grouped operations
    # ---------------------------------------------------------------

    def group_by_key(self, key: Sequence[str] | str | None = None) -> GroupedTable:
        """Scope subsequent operations to key groups.

        Args:
            key: Override key columns (default: the table key)
        """
        groups = self.key if key is None else _as_key(key)
        self.require(*groups)
        return GroupedTable(table=self, key=groups)

    def index_by(
        self,
        bucket: CalendarBucket | str | Callable[[pd.Series], pd.Series],
        aggregations: Mapping[str, tuple[str, ReducerLike] | str],
        na_policy: NAPolicy | str = NAPolicy.SKIP,
        name: str | None = None,
    ) -> TSTable:
        """Aggregate rows into calendar buckets per key; see ``GroupedTable.index_by``."""
        return self.group_by_key().index_by(bucket, aggregations, na_policy=na_policy, name=name)

    def slide(
        self,
        column: str | None = None,
        reducer: ReducerLike = "mean",
        spec: WindowSpec | None = None,
        **kwargs: Any,
    ) -> TSTable:
        """Moving-window statistic per key group; see ``GroupedTable.slide``."""
        return self.group_by_key().slide(column, reducer, spec, **kwargs)

    def tile(
        self,
        column: str | None = None,
        reducer: ReducerLike = "mean",
        spec: WindowSpec | None = None,
        **kwargs: Any,
    ) -> TSTable:
        """Block statistic per key group; see ``GroupedTable.tile``."""
        return self.group_by_key().tile(column, reducer, spec, **kwargs)

    def stretch(
        self,
        column: str | None = None,
        reducer: ReducerLike = "mean",
        spec: WindowSpec | None = None,
        **kwargs: Any,
    ) -> TSTable:
        """Expanding statistic per key group; see ``GroupedTable.stretch``."""
        return self.group_by_key().stretch(column, reducer, spec, **kwargs)

    # ---------------------------------------------------------------
    # Gaps
    # ---------------------------------------------------------------

    def has_gaps(self) -> dict[tuple, bool]:
        from tstable.table.gaps import has_gaps

        return has_gaps(self)

    def count_gaps(self) -> pd.DataFrame:
        from tstable.table.gaps import count_gaps

        return count_gaps(self)

    def fill_gaps(self, fill: Mapping[str, Any] | None = None, full: bool = False) -> TSTable:
        from tstable.table.gaps import fill_gaps

        return fill_gaps(self, fill=fill, full=full)


def _map_groups(
    func: Callable[[np.ndarray], pd.DataFrame],
    groups: list[np.ndarray],
    n_jobs: int | None,
) -> list[pd.DataFrame]:
    if n_jobs is None or n_jobs <= 1 or len(groups) <= 1:
        return [func(pos) for pos in groups]
    with ThreadPoolExecutor(max_workers=n_jobs) as executor:
        return list(executor.map(func, groups))


@dataclass(frozen=True, eq=False)
class GroupedTable:
    """A table scoped to key groups.

    Holds a reference to the table and an explicit key list; grouping never
    changes the rows. Window and index-by operations run independently per
    group and never cross group boundaries.
    """

    table: TSTable
    key: tuple[str, ...]

    def __repr__(self) -> str:
        return f"GroupedTable(key={list(self.key)}, groups={self.n_groups}, table={self.table!r})"

    @property
    def n_groups(self) -> int:
        return len(self.positions())

    def ungroup(self) -> TSTable:
        return self.table

    def positions(self) -> list[tuple[tuple, np.ndarray]]:
        """Row positions of each group, ordered by the index inside the group."""
        df = self.table.df
        index_values = df[self.table.index].to_numpy()
        out = []
        for key, pos in group_positions(df, self.key):
            order = np.argsort(index_values[pos], kind="stable")
            out.append((key, pos[order]))
        return out

    def groups(self) -> Iterator[tuple[tuple, pd.DataFrame]]:
        """Iterate over (key tuple, rows) pairs."""
        for key, pos in self.positions():
            yield key, self.table.df.iloc[pos].reset_index(drop=True)

    def index_by(
        self,
        bucket: CalendarBucket | str | Callable[[pd.Series], pd.Series],
        aggregations: Mapping[str, tuple[str, ReducerLike] | str],
        na_policy: NAPolicy | str = NAPolicy.SKIP,
        name: str | None = None,
    ) -> TSTable:
        """Aggregate each (group, bucket) pair into one row.

        Args:
            bucket: CalendarBucket, bucket name ('week', 'floor_month', ...),
                or a monotonic callable mapping the index Series to bucket values
            aggregations: Output column -> (input column, reducer); a bare
                reducer name means the output column is also the input column
            na_policy: Missing-value policy for every reduction
            name: Name of the bucket index column (default: the current index name)

        Returns:
            Regular TSTable keyed by the group key and indexed by bucket
        """
        from tstable.table.index_by import index_by

        return index_by(self, bucket, aggregations, na_policy=na_policy, name=name)

    def _window_input(self, column: str | None, reducer: ReducerLike) -> tuple[Reducer | MultiReducer, Any, str]:
        resolved = get_reducer(reducer)
        if isinstance(resolved, MultiReducer):
            self.table.require(*resolved.columns)
            return resolved, self.table.df[list(resolved.columns)], resolved.name
        if column is None:
            raise SchemaError(
                f"Reducer '{resolved.name}' needs an input column",
                fix_hint="Pass column='<name>'",
            )
        self.table.require(column)
        return resolved, self.table.df[column].to_numpy(), f"{column}_{resolved.name}"

    def _output_names(self, reducer: Reducer | MultiReducer, default: str, name: str | None) -> list[str]:
        if isinstance(reducer, MultiReducer):
            prefix = f"{name}_" if name else ""
            return [f"{prefix}{o}" for o in reducer.outputs]
        return [name or default]

    def _run(
        self,
        column: str | None,
        reducer: ReducerLike,
        spec: WindowSpec,
        kind: str,
        n_jobs: int | None,
        check: bool = True,
    ) -> tuple[Reducer | MultiReducer, str, list[tuple[tuple, np.ndarray, pd.DataFrame]]]:
        resolved, data, default = self._window_input(column, reducer)
        groups = self.positions()
        if check:
            for key, pos in groups:
                check_length(len(pos), spec, label=str(key))

        def run(pos: np.ndarray) -> pd.DataFrame:
            window = data.iloc[pos].reset_index(drop=True) if isinstance(data, pd.DataFrame) else data[pos]
            return evaluate(window, resolved, kind, spec)

        results = _map_groups(run, [pos for _, pos in groups], n_jobs)
        logger.debug("Evaluated %s %s over %d group(s)", kind, resolved.name, len(groups))
        return resolved, default, [(key, pos, res) for (key, pos), res in zip(groups, results)]

    def _aligned(
        self,
        resolved: Reducer | MultiReducer,
        default: str,
        name: str | None,
        results: list[tuple[tuple, np.ndarray, pd.DataFrame]],
    ) -> TSTable:
        names = self._output_names(resolved, default, name)
        out = [np.full(len(self.table), None, dtype=object) for _ in names]
        for _, pos, res in results:
            for j, column in enumerate(out):
                column[pos] = res.iloc[:, j].to_numpy(dtype=object)
        return self.table.with_columns({n: as_column(out[j]) for j, n in enumerate(names)})

    def slide(
        self,
        column: str | None = None,
        reducer: ReducerLike = "mean",
        spec: WindowSpec | None = None,
        *,
        name: str | None = None,
        n_jobs: int | None = None,
        **overrides: Any,
    ) -> TSTable:
        """Append a moving-window statistic, one value per row.

        Args:
            column: Input column (omit for a MultiReducer, which names its own)
            reducer: Reducer, reducer name, or callable (default: 'mean')
            spec: WindowSpec; keyword overrides such as size=, align=,
                partial=, step=, na_policy=, strict= are applied on top
            name: Output column name (default: '<column>_<reducer>'); for a
                MultiReducer a prefix for its output names
            n_jobs: Evaluate groups on a thread pool of this size

        Raises:
            WindowConfigError: On invalid sizes, or in strict mode when a group
                is shorter than the window (raised before any reduction runs)
        """
        spec = resolve_spec(spec, overrides)
        resolved, default, results = self._run(column, reducer, spec, "slide", n_jobs)
        return self._aligned(resolved, default, name, results)

    def stretch(
        self,
        column: str | None = None,
        reducer: ReducerLike = "mean",
        spec: WindowSpec | None = None,
        *,
        name: str | None = None,
        n_jobs: int | None = None,
        **overrides: Any,
    ) -> TSTable:
        """Append an expanding statistic, one value per row.

        Uses ``min_periods`` and ``init`` from the WindowSpec; see ``slide`` for arguments.
        """
        spec = resolve_spec(spec, overrides)
        resolved, default, results = self._run(column, reducer, spec, "stretch", n_jobs, check=False)
        return self._aligned(resolved, default, name, results)

    def tile(
        self,
        column: str | None = None,
        reducer: ReducerLike = "mean",
        spec: WindowSpec | None = None,
        *,
        name: str | None = None,
        broadcast: bool = False,
        n_jobs: int | None = None,
        **overrides: Any,
    ) -> TSTable:
        """Reduce consecutive non-overlapping blocks of ``size`` rows per group.

        Args:
            broadcast: If True, return the original table with each block's
                result repeated on its member rows (rows of a dropped partial
                block get missing values). Otherwise return one row per
                (group, block), indexed by the block's first index value.

        See ``slide`` for the remaining arguments.
        """
        spec = resolve_spec(spec, overrides)
        resolved, default, results = self._run(column, reducer, spec, "tile", n_jobs)
        names = self._output_names(resolved, default, name)

        if broadcast:
            out = [np.full(len(self.table), None, dtype=object) for _ in names]
            for _, pos, res in results:
                for block, (start, stop) in enumerate(tile_bounds(len(pos), spec)):
                    for j, column in enumerate(out):
                        column[pos[start:stop]] = res.iat[block, j]
            return self.table.with_columns({n: as_column(out[j]) for j, n in enumerate(names)})

        index_values = self.table.df[self.table.index]
        frames = []
        for key, pos, res in results:
            starts = [pos[start] for start, _ in tile_bounds(len(pos), spec)]
            block = res.set_axis(names, axis=1).astype(object)
            block.insert(0, self.table.index, index_values.iloc[starts].reset_index(drop=True))
            for i, (column_name, value) in enumerate(zip(self.key, key)):
                block.insert(i, column_name, value)
            frames.append(block)

        columns = [*self.key, self.table.index, *names]
        df = pd.concat(frames, ignore_index=True) if frames else pd.DataFrame(columns=columns)
        for n in names:
            df[n] = as_column(df[n].to_numpy(dtype=object))
        df = df[columns].sort_values([*self.key, self.table.index], kind="stable").reset_index(drop=True)

        duplicates = find_duplicates(df, self.key, self.table.index)
        if not duplicates.valid:
            raise InvalidIndexError(
                f"Tile blocks of {len(duplicates.duplicates)} (key, index) pair(s) share a start index",
                context={
                    "key": list(self.key),
                    "duplicate_keys": [d.to_dict() for d in duplicates.duplicates[:MAX_REPORTED]],
                },
                fix_hint="Group by a key at least as fine as the table key, or pass broadcast=True",
            )
        return TSTable._build(df, self.key, self.table.index, regular=True)


__all__ = ["TSTable", "GroupedTable"]
