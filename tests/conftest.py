"""Shared fixtures for tstable tests."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from tstable import TSTable


@pytest.fixture
def prices_df():
    """Three symbols over ten business days starting Monday 2020-01-06.

    Symbol A has high = 1..10, B = 11..20, C = 21..30.
    """
    dates = pd.bdate_range("2020-01-06", periods=10)
    frames = []
    for offset, sym in enumerate(["A", "B", "C"]):
        frames.append(pd.DataFrame({
            "symbol": sym,
            "date": dates,
            "high": np.arange(1, 11, dtype="float64") + 10 * offset,
            "volume": np.arange(10, dtype="int64") * 100,
        }))
    return pd.concat(frames, ignore_index=True)


@pytest.fixture
def prices(prices_df):
    """TSTable keyed by symbol, indexed by date."""
    return TSTable.from_rows(prices_df, key="symbol", index="date")


@pytest.fixture
def daily_df():
    """Single series of 30 consecutive days with y = 0..29."""
    return pd.DataFrame({
        "ds": pd.date_range("2024-01-01", periods=30, freq="D"),
        "y": np.arange(30, dtype="float64"),
    })
