"""Tests for gap detection and filling."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from tstable import InvalidIndexError, SchemaError, TSTable


@pytest.fixture
def monthly():
    """Monthly series with March and April missing."""
    return TSTable.from_rows(
        pd.DataFrame({
            "d": pd.to_datetime(["2020-01-01", "2020-02-01", "2020-05-01"]),
            "v": [1.0, 2.0, 5.0],
        }),
        index="d",
    )


class TestGapReports:
    """Test has_gaps and count_gaps."""

    def test_weekends_are_gaps(self, prices):
        assert prices.has_gaps() == {("A",): True, ("B",): True, ("C",): True}

    def test_count_gaps(self, prices):
        gaps = prices.count_gaps()
        assert list(gaps.columns) == ["symbol", "from", "to", "n"]
        assert len(gaps) == 3
        row = gaps.iloc[0]
        assert row["from"] == pd.Timestamp("2020-01-11")
        assert row["to"] == pd.Timestamp("2020-01-12")
        assert row["n"] == 2

    def test_monthly_gap(self, monthly):
        gaps = monthly.count_gaps()
        assert gaps[["from", "to", "n"]].values.tolist() == [
            [pd.Timestamp("2020-03-01"), pd.Timestamp("2020-04-01"), 2]
        ]

    def test_no_gaps(self, daily_df):
        table = TSTable.from_rows(daily_df, index="ds")
        assert table.has_gaps() == {(): False}
        assert table.count_gaps().empty

    def test_irregular_rejected(self, prices_df):
        table = TSTable.from_rows(prices_df, key="symbol", index="date", regular=False)
        with pytest.raises(InvalidIndexError, match="irregular"):
            table.has_gaps()


class TestFillGaps:
    """Test fill_gaps."""

    def test_fills_weekends(self, prices):
        filled = prices.fill_gaps()
        assert len(filled) == 36
        assert not any(filled.has_gaps().values())
        a = filled.get_series("A")
        assert np.isnan(a.loc[a["date"] == pd.Timestamp("2020-01-11"), "high"]).all()

    def test_fill_values(self, monthly):
        filled = monthly.fill_gaps(fill={"v": 0.0})
        assert filled.df["v"].tolist() == [1.0, 2.0, 0.0, 0.0, 5.0]
        assert filled.df["d"].dt.month.tolist() == [1, 2, 3, 4, 5]

    def test_full_range(self):
        table = TSTable.from_rows(
            pd.DataFrame({
                "k": ["a"] * 5 + ["b"] * 3,
                "t": [1, 2, 3, 4, 5, 3, 4, 5],
                "v": np.arange(8, dtype="float64"),
            }),
            key="k",
            index="t",
        )
        assert len(table.fill_gaps()) == 8
        full = table.fill_gaps(full=True)
        assert len(full) == 10
        assert full.get_series("b")["t"].tolist() == [1, 2, 3, 4, 5]

    def test_unknown_fill_column(self, monthly):
        with pytest.raises(SchemaError, match="Unknown column"):
            monthly.fill_gaps(fill={"w": 0.0})

    def test_original_untouched(self, monthly):
        monthly.fill_gaps()
        assert len(monthly) == 3
