"""Tests for the row store.

Tests type inference, coercion, and column-set checks.
"""

from __future__ import annotations

from datetime import datetime

import pandas as pd
import pytest

from tstable import ColumnType, RowStore, SchemaError
from tstable.table.rows import coerce_column, infer_column_type


@pytest.fixture
def records():
    """Three records sharing one column set."""
    return [
        {"sym": "X", "date": datetime(2020, 1, 1), "close": 1.5, "halted": False},
        {"sym": "X", "date": datetime(2020, 1, 2), "close": 2.5, "halted": True},
        {"sym": "Y", "date": datetime(2020, 1, 1), "close": 3.0, "halted": False},
    ]


class TestInference:
    """Test column type inference."""

    def test_inferred_schema(self, records):
        """Types are inferred from the values."""
        store = RowStore.from_records(records)
        assert store.schema == {
            "sym": ColumnType.TEXT,
            "date": ColumnType.TIMESTAMP,
            "close": ColumnType.NUMBER,
            "halted": ColumnType.BOOLEAN,
        }

    def test_integer_is_number(self):
        assert infer_column_type(pd.Series([1, 2, 3])) == ColumnType.NUMBER

    def test_mixed_object_is_text(self):
        assert infer_column_type(pd.Series(["a", 1])) == ColumnType.TEXT


class TestCoercion:
    """Test declared schemas."""

    def test_declared_schema_coerces(self):
        """Strings are coerced to the declared types."""
        store = RowStore.from_records(
            [{"date": "2020-01-01", "value": "1.5"}, {"date": "2020-01-02", "value": "2"}],
            schema={"date": "timestamp", "value": "number"},
        )
        assert pd.api.types.is_datetime64_any_dtype(store.df["date"])
        assert store.column("value").tolist() == [1.5, 2.0]

    def test_uncoercible_value(self):
        """A value that cannot take the declared type is a schema error."""
        with pytest.raises(SchemaError, match="cannot be coerced to number"):
            coerce_column(pd.Series(["1", "abc"], name="v"), ColumnType.NUMBER)

    def test_text_coercion_keeps_missing(self):
        out = coerce_column(pd.Series([1, None, 3], dtype=object), ColumnType.TEXT)
        assert out.iloc[0] == "1"
        assert pd.isna(out.iloc[1])

    def test_schema_must_match_columns(self):
        """Declared schema must name exactly the data columns."""
        df = pd.DataFrame({"a": [1], "b": [2]})
        with pytest.raises(SchemaError, match="does not match"):
            RowStore.from_frame(df, schema={"a": "number"})


class TestRecords:
    """Test record-level behaviour."""

    def test_column_set_mismatch(self):
        """Every record shares the column set of the first."""
        with pytest.raises(SchemaError) as exc_info:
            RowStore.from_records([{"a": 1, "b": 2}, {"a": 3}])
        assert exc_info.value.context["position"] == 1

    def test_records_round_order(self, records):
        """Records come back in insertion order."""
        store = RowStore.from_records(records)
        out = list(store.records())
        assert [r["close"] for r in out] == [1.5, 2.5, 3.0]
        assert len(store) == 3

    def test_unknown_column(self, records):
        """Unknown column lookups raise instead of returning nulls."""
        store = RowStore.from_records(records)
        with pytest.raises(SchemaError, match="Unknown column"):
            store.column("open")

    def test_empty_store_with_schema(self):
        store = RowStore.from_records([], schema={"date": "timestamp", "v": "number"})
        assert len(store) == 0
        assert store.columns == ["date", "v"]

    def test_to_frame_is_a_copy(self, records):
        store = RowStore.from_records(records)
        frame = store.to_frame()
        frame.loc[0, "close"] = 99.0
        assert store.df.loc[0, "close"] == 1.5

    def test_coerce_accepts_frame(self):
        store = RowStore.coerce(pd.DataFrame({"a": [1.0]}))
        assert store.schema == {"a": ColumnType.NUMBER}
        assert RowStore.coerce(store) is store
