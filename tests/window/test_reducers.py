"""Tests for reducers and multi-column reducers."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from tstable.window.engine import slide, tile
from tstable.window.reducers import (
    BUILTIN_REDUCERS,
    MultiReducer,
    Reducer,
    get_reducer,
    regression_coefficients,
)


class TestBuiltins:
    """Test builtin reducers."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("mean", 2.5),
            ("sum", 10.0),
            ("count", 4),
            ("min", 1.0),
            ("max", 4.0),
            ("median", 2.5),
            ("prod", 24.0),
            ("first", 1.0),
            ("last", 4.0),
        ],
    )
    def test_values(self, name, expected):
        assert BUILTIN_REDUCERS[name](np.array([1.0, 2.0, 3.0, 4.0])) == expected

    def test_std_uses_sample_variance(self):
        assert BUILTIN_REDUCERS["var"](np.array([1.0, 2.0, 3.0])) == pytest.approx(1.0)

    def test_std_needs_two_observations(self):
        assert np.isnan(BUILTIN_REDUCERS["std"](np.array([1.0])))

    def test_empty_input(self):
        """Empty windows yield missing, count yields zero."""
        assert np.isnan(BUILTIN_REDUCERS["mean"](np.array([])))
        assert BUILTIN_REDUCERS["count"](np.array([])) == 0

    def test_propagate(self):
        assert np.isnan(BUILTIN_REDUCERS["count"](np.array([1.0, np.nan]), "propagate"))


class TestGetReducer:
    """Test reducer resolution."""

    def test_by_name(self):
        assert get_reducer("mean") is BUILTIN_REDUCERS["mean"]

    def test_callable(self):
        def spread(values):
            return values.max() - values.min()

        reducer = get_reducer(spread)
        assert isinstance(reducer, Reducer)
        assert reducer.name == "spread"

    def test_unknown_name(self):
        with pytest.raises(ValueError, match="Unknown reducer"):
            get_reducer("mode")

    def test_bad_type(self):
        with pytest.raises(TypeError):
            get_reducer(42)


class TestRegressionCoefficients:
    """Test the OLS multi-column reducer."""

    @pytest.fixture
    def frame(self):
        """y = 2 + 3x exactly."""
        x = np.arange(10, dtype="float64")
        return pd.DataFrame({"x": x, "y": 2.0 + 3.0 * x})

    def test_outputs(self):
        beta = regression_coefficients("y", ["x", "z"])
        assert beta.outputs == ("intercept", "x", "z")
        assert beta.columns == ("y", "x", "z")
        assert beta.min_obs == 3

    def test_no_intercept(self):
        beta = regression_coefficients("y", "x", intercept=False)
        assert beta.outputs == ("x",)

    def test_exact_fit(self, frame):
        coef = regression_coefficients("y", "x")(frame)
        np.testing.assert_allclose(coef, [2.0, 3.0], atol=1e-9)

    def test_sliding_fit(self, frame):
        out = slide(frame, regression_coefficients("y", "x"), size=4)
        assert list(out.columns) == ["intercept", "x"]
        assert out.iloc[:3].isna().all().all()
        np.testing.assert_allclose(out["x"].iloc[3:], 3.0, atol=1e-9)

    def test_tile_fit(self, frame):
        out = tile(frame, regression_coefficients("y", "x"), size=5)
        assert len(out) == 2
        np.testing.assert_allclose(out["intercept"], 2.0, atol=1e-9)

    def test_too_few_rows(self, frame):
        coef = regression_coefficients("y", "x")(frame.iloc[:1])
        assert np.isnan(coef).all()

    def test_missing_rows_skipped(self, frame):
        frame.loc[3, "y"] = np.nan
        coef = regression_coefficients("y", "x")(frame)
        np.testing.assert_allclose(coef, [2.0, 3.0], atol=1e-9)

    def test_wrong_output_length(self):
        bad = MultiReducer("bad", ("a",), ("one", "two"), lambda w: [1.0])
        with pytest.raises(ValueError, match="returned 1 values"):
            bad(pd.DataFrame({"a": [1.0]}))

    def test_mapping_result(self):
        spread = MultiReducer(
            "spread",
            ("a", "b"),
            ("diff",),
            lambda w: {"diff": float((w["a"] - w["b"]).mean())},
        )
        out = spread(pd.DataFrame({"a": [3.0, 5.0], "b": [1.0, 1.0]}))
        np.testing.assert_array_equal(out, [3.0])
