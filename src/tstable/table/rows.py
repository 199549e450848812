"""Row store: an ordered collection of typed records.

Every record in a store shares one column set. Column types are fixed when
the store is built (declared or inferred) and values are coerced to them, so
downstream code can rely on the schema instead of probing values.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import pandas as pd

from tstable.core.errors import SchemaError


class ColumnType(StrEnum):
    """Scalar types a column may hold."""

    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"


_INFERRED_TYPES: dict[str, ColumnType] = {
    "datetime64": ColumnType.TIMESTAMP,
    "datetime": ColumnType.TIMESTAMP,
    "date": ColumnType.TIMESTAMP,
    "boolean": ColumnType.BOOLEAN,
    "integer": ColumnType.NUMBER,
    "floating": ColumnType.NUMBER,
    "mixed-integer-float": ColumnType.NUMBER,
    "decimal": ColumnType.NUMBER,
}


def infer_column_type(series: pd.Series) -> ColumnType:
    """Infer the column type of a Series from its dtype and values."""
    if pd.api.types.is_datetime64_any_dtype(series):
        return ColumnType.TIMESTAMP
    if pd.api.types.is_bool_dtype(series):
        return ColumnType.BOOLEAN
    if pd.api.types.is_numeric_dtype(series):
        return ColumnType.NUMBER
    kind = pd.api.types.infer_dtype(series, skipna=True)
    return _INFERRED_TYPES.get(kind, ColumnType.TEXT)


def coerce_column(series: pd.Series, column_type: ColumnType) -> pd.Series:
    """Coerce a Series to the given column type.

    Raises:
        SchemaError: If the values cannot be represented as ``column_type``
    """
    name = series.name
    try:
        if column_type == ColumnType.TIMESTAMP:
            if pd.api.types.is_datetime64_any_dtype(series):
                return series
            return pd.to_datetime(series, format="mixed")
        if column_type == ColumnType.NUMBER:
            if pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
                return series
            return pd.to_numeric(series)
        if column_type == ColumnType.BOOLEAN:
            if pd.api.types.is_bool_dtype(series):
                return series
            return series.astype("boolean")
    except (TypeError, ValueError) as e:
        raise SchemaError(
            f"Column '{name}' cannot be coerced to {column_type.value}",
            context={"column": name, "dtype": str(series.dtype), "error": str(e)},
        ) from e

    out = series.astype(object)
    present = out.notna()
    out[present] = out[present].map(str)
    return out


@dataclass(frozen=True)
class RowStore:
    """Typed, ordered collection of records backed by a DataFrame.

    Attributes:
        df: Column data, one row per record, in insertion order
        schema: Ordered mapping of column name to ColumnType
    """

    df: pd.DataFrame
    schema: dict[str, ColumnType]

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        schema: Mapping[str, ColumnType | str] | None = None,
    ) -> RowStore:
        """Build a store from a DataFrame, coercing each column to its type.

        Args:
            df: Input data, one row per record
            schema: Optional declared column types; must name exactly the
                DataFrame's columns. Inferred from the data when omitted.

        Raises:
            SchemaError: If the schema and the columns disagree, or a value
                cannot be coerced
        """
        data = df.reset_index(drop=True).copy()
        if len(set(data.columns)) != len(data.columns):
            raise SchemaError(
                "Column names must be unique",
                context={"columns": list(map(str, data.columns))},
            )

        if schema is None:
            resolved = {str(c): infer_column_type(data[c]) for c in data.columns}
        else:
            resolved = {str(c): ColumnType(t) for c, t in schema.items()}
            missing = [c for c in resolved if c not in data.columns]
            extra = [c for c in data.columns if c not in resolved]
            if missing or extra:
                raise SchemaError(
                    "Declared schema does not match the data columns",
                    context={"missing": missing, "undeclared": extra},
                )
            data = data[list(resolved)]

        for column, column_type in resolved.items():
            data[column] = coerce_column(data[column], column_type)

        return cls(df=data, schema=resolved)

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Any]],
        schema: Mapping[str, ColumnType | str] | None = None,
    ) -> RowStore:
        """Build a store from an iterable of mappings sharing one column set.

        Raises:
            SchemaError: If a record's column set differs from the first one
        """
        rows = [dict(r) for r in records]
        if not rows:
            columns = list(schema) if schema is not None else []
            return cls.from_frame(pd.DataFrame(columns=columns), schema)

        columns = list(rows[0])
        expected = set(columns)
        for position, row in enumerate(rows):
            if set(row) != expected:
                raise SchemaError(
                    f"Record {position} does not share the column set of record 0",
                    context={
                        "position": position,
                        "expected": sorted(expected),
                        "found": sorted(row),
                    },
                )

        return cls.from_frame(pd.DataFrame.from_records(rows, columns=columns), schema)

    @classmethod
    def coerce(cls, rows: Any) -> RowStore:
        """Accept a RowStore, a DataFrame, or an iterable of records."""
        if isinstance(rows, RowStore):
            return rows
        if isinstance(rows, pd.DataFrame):
            return cls.from_frame(rows)
        return cls.from_records(rows)

    @property
    def columns(self) -> list[str]:
        return list(self.schema)

    def __len__(self) -> int:
        return len(self.df)

    def column_type(self, name: str) -> ColumnType:
        self.require(name)
        return self.schema[name]

    def column(self, name: str) -> pd.Series:
        """Return a copy of one column.

        Raises:
            SchemaError: If the column is not part of the schema
        """
        self.require(name)
        return self.df[name].copy()

    def require(self, *names: str) -> None:
        """Raise SchemaError if any of ``names`` is not a column."""
        missing = [n for n in names if n not in self.schema]
        if missing:
            raise SchemaError(
                f"Unknown column(s): {missing}",
                context={"missing": missing, "available": self.columns},
            )

    def records(self) -> Iterator[dict[str, Any]]:
        """Iterate over records as plain dicts, in store order."""
        for row in self.df.itertuples(index=False, name=None):
            yield dict(zip(self.columns, row))

    def to_frame(self) -> pd.DataFrame:
        return self.df.copy()


__all__ = ["ColumnType", "RowStore", "infer_column_type", "coerce_column"]
