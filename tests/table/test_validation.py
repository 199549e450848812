"""Tests for key/index validation.

Tests duplicate detection and the validation report.
"""

from __future__ import annotations

import pandas as pd
import pytest

from tstable import InvalidIndexError, RowStore, SchemaError, find_duplicates, validate_table
from tstable.table import Interval, IntervalUnit


@pytest.fixture
def store():
    """Five rows keyed by sym with (X, 2020-01-01) repeated."""
    return RowStore.from_records([
        {"sym": "X", "date": pd.Timestamp("2020-01-01"), "close": 1.0},
        {"sym": "X", "date": pd.Timestamp("2020-01-02"), "close": 2.0},
        {"sym": "Y", "date": pd.Timestamp("2020-01-01"), "close": 3.0},
        {"sym": "X", "date": pd.Timestamp("2020-01-01"), "close": 4.0},
        {"sym": "Y", "date": pd.Timestamp("2020-01-02"), "close": 5.0},
    ])


class TestFindDuplicates:
    """Test duplicate detection."""

    def test_reports_exactly_the_repeated_pair(self, store):
        """Only (X, 2020-01-01) is reported."""
        report = find_duplicates(store, key="sym", index="date")
        assert not report.valid
        assert report.pairs() == [(("X",), pd.Timestamp("2020-01-01"))]
        assert report.duplicates[0].rows == (0, 3)
        assert report.n_duplicated_rows == 2

    def test_unique_rows_are_valid(self, store):
        """Widening the key makes every pair unique."""
        report = find_duplicates(store, key=["sym", "close"], index="date")
        assert report.valid
        assert report.duplicates == []
        report.raise_if_invalid()

    def test_raise_names_pair(self, store):
        report = find_duplicates(store, key="sym", index="date")
        with pytest.raises(InvalidIndexError) as exc_info:
            report.raise_if_invalid()
        err = exc_info.value
        assert "X" in err.message
        assert err.context["num_duplicates"] == 2
        assert err.context["duplicate_keys"][0]["rows"] == [0, 3]

    def test_empty_key_is_one_group(self, store):
        """Without a key, dates repeat across symbols."""
        report = find_duplicates(store, key=(), index="date")
        assert {index for _, index in report.pairs()} == {
            pd.Timestamp("2020-01-01"),
            pd.Timestamp("2020-01-02"),
        }
        assert all(key == () for key, _ in report.pairs())

    def test_accepts_frames_and_records(self, store):
        assert not find_duplicates(store.to_frame(), "sym", "date").valid
        assert not find_duplicates(list(store.records()), "sym", "date").valid

    def test_missing_column(self, store):
        with pytest.raises(SchemaError, match="Missing key/index"):
            find_duplicates(store, key="ticker", index="date")

    def test_does_not_mutate(self, store):
        before = store.to_frame()
        find_duplicates(store, key="sym", index="date")
        pd.testing.assert_frame_equal(store.df, before)


class TestValidateTable:
    """Test the validation report."""

    def test_valid_frame(self, prices_df):
        report = validate_table(prices_df, key="symbol", index="date")
        assert report.valid
        assert report.errors == ()
        assert report.num_rows == 30
        assert report.num_keys == 3
        assert report.interval == Interval(IntervalUnit.DAY, 1)
        assert report.index_range == (pd.Timestamp("2020-01-06"), pd.Timestamp("2020-01-17"))
        assert report.duplicates.valid
        report.raise_if_invalid()

    def test_duplicates_are_errors(self, store):
        report = validate_table(store.to_frame(), key="sym", index="date")
        assert not report.valid
        assert report.errors[0].code == "E_INVALID_INDEX"
        assert report.errors[0].context["num_duplicates"] == 2
        assert report.duplicates.pairs() == [(("X",), pd.Timestamp("2020-01-01"))]
        with pytest.raises(InvalidIndexError):
            report.raise_if_invalid()

    def test_unsorted_is_warning(self, prices_df):
        shuffled = prices_df.iloc[::-1]
        report = validate_table(shuffled, key="symbol", index="date")
        assert report.valid
        assert [w.code for w in report.warnings] == ["W_UNSORTED"]

    def test_missing_column(self, prices_df):
        report = validate_table(prices_df, key="ticker", index="date")
        assert not report.valid
        assert report.errors[0].code == "E_SCHEMA"
        assert report.duplicates is None
        assert report.interval is None
        with pytest.raises(SchemaError):
            report.raise_if_invalid()

    def test_text_index_rejected(self):
        df = pd.DataFrame({"t": ["a", "b"], "v": [1, 2]})
        report = validate_table(df, index="t")
        assert not report.valid
        assert report.num_rows == 2
        assert "timestamps or numbers" in report.errors[0].message

    def test_empty_rows(self):
        df = pd.DataFrame({"t": pd.Series([], dtype="float64")})
        report = validate_table(df, index="t")
        assert report.valid
        assert report.num_rows == 0
        assert report.index_range is None

    def test_report_is_frozen(self, prices_df):
        report = validate_table(prices_df, key="symbol", index="date")
        with pytest.raises(AttributeError):
            report.num_rows = 0
