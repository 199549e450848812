"""Pluggable reductions for windows and index-by aggregation.

A ``Reducer`` turns one column's window into a scalar. A ``MultiReducer``
consumes several columns of a window at once and returns a fixed set of
named outputs (for example the coefficients of a regression fitted on the
window). Both honour the missing-value policy and yield NaN when too few
usable observations remain.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from tstable.core.config import NAPolicy


@dataclass(frozen=True)
class Reducer:
    """Scalar reduction over a sequence of values.

    Attributes:
        name: Reducer name, used for default output column names
        func: Callable taking a 1-D numpy array of usable values
        min_obs: Minimum usable observations; fewer yields NaN
        rolling: Name of the equivalent pandas rolling/expanding method, if any
    """

    name: str
    func: Callable[[np.ndarray], Any]
    min_obs: int = 1
    rolling: str | None = None

    @classmethod
    def from_callable(cls, func: Callable[[np.ndarray], Any], name: str | None = None, min_obs: int = 1) -> Reducer:
        return cls(name=name or getattr(func, "__name__", "custom"), func=func, min_obs=min_obs)

    @property
    def outputs(self) -> tuple[str, ...]:
        return (self.name,)

    def __call__(self, values: Any, na_policy: NAPolicy | str = NAPolicy.SKIP) -> Any:
        arr = np.asarray(values)
        missing = pd.isna(arr)
        if missing.any():
            if NAPolicy(na_policy) == NAPolicy.PROPAGATE:
                return np.nan
            arr = arr[~missing]
        if len(arr) < self.min_obs:
            return np.nan
        return self.func(arr)


@dataclass(frozen=True)
class MultiReducer:
    """Vector-valued reduction over several columns of a window.

    Attributes:
        name: Reducer name
        columns: Input columns the reduction reads
        outputs: Names of the values it returns, in order
        func: Callable taking the window as a DataFrame of ``columns`` and
            returning a sequence (or mapping keyed by ``outputs``)
        min_obs: Minimum complete rows; fewer yields all-NaN outputs
    """

    name: str
    columns: tuple[str, ...]
    outputs: tuple[str, ...]
    func: Callable[[pd.DataFrame], Sequence[Any] | Mapping[str, Any]]
    min_obs: int = 1

    def __call__(self, window: pd.DataFrame, na_policy: NAPolicy | str = NAPolicy.SKIP) -> np.ndarray:
        empty = np.full(len(self.outputs), np.nan)
        data = window[list(self.columns)]
        missing = data.isna().any(axis=1)
        if missing.any():
            if NAPolicy(na_policy) == NAPolicy.PROPAGATE:
                return empty
            data = data[~missing]
        if len(data) < self.min_obs:
            return empty
        result = self.func(data)
        if isinstance(result, Mapping):
            result = [result[o] for o in self.outputs]
        out = np.asarray(result, dtype="float64").ravel()
        if len(out) != len(self.outputs):
            raise ValueError(
                f"Reducer '{self.name}' returned {len(out)} values, expected {len(self.outputs)}"
            )
        return out


def _first(values: np.ndarray) -> Any:
    return values[0]


def _last(values: np.ndarray) -> Any:
    return values[-1]


BUILTIN_REDUCERS: dict[str, Reducer] = {
    "mean": Reducer("mean", lambda v: float(np.mean(v)), rolling="mean"),
    "sum": Reducer("sum", lambda v: np.sum(v), rolling="sum"),
    "count": Reducer("count", len, min_obs=0, rolling="count"),
    "min": Reducer("min", lambda v: np.min(v), rolling="min"),
    "max": Reducer("max", lambda v: np.max(v), rolling="max"),
    "median": Reducer("median", lambda v: float(np.median(v)), rolling="median"),
    "std": Reducer("std", lambda v: float(np.std(v, ddof=1)), min_obs=2, rolling="std"),
    "var": Reducer("var", lambda v: float(np.var(v, ddof=1)), min_obs=2, rolling="var"),
    "prod": Reducer("prod", lambda v: np.prod(v)),
    "first": Reducer("first", _first),
    "last": Reducer("last", _last),
}


def get_reducer(reducer: str | Reducer | MultiReducer | Callable) -> Reducer | MultiReducer:
    """Resolve a reducer name or callable.

    Raises:
        ValueError: If ``reducer`` names no builtin reducer
    """
    if isinstance(reducer, (Reducer, MultiReducer)):
        return reducer
    if isinstance(reducer, str):
        if reducer not in BUILTIN_REDUCERS:
            raise ValueError(
                f"Unknown reducer: {reducer}. Valid: {sorted(BUILTIN_REDUCERS)}"
            )
        return BUILTIN_REDUCERS[reducer]
    if callable(reducer):
        return Reducer.from_callable(reducer)
    raise TypeError(f"Expected a reducer name, Reducer or callable, got {type(reducer).__name__}")


def regression_coefficients(
    y: str,
    x: str | Sequence[str],
    intercept: bool = True,
) -> MultiReducer:
    """Ordinary least squares coefficients of ``y`` on ``x`` over a window.

    Outputs are ``intercept`` (when requested) followed by one slope per
    regressor, named after the regressor column.

    Example:
        >>> beta = regression_coefficients("ret", "market")
        >>> table.slide(beta, size=60)  # adds 'intercept' and 'market' columns
    """
    regressors = (x,) if isinstance(x, str) else tuple(x)
    outputs = (("intercept",) if intercept else ()) + regressors

    def _ols(window: pd.DataFrame) -> np.ndarray:
        design = window[list(regressors)].to_numpy(dtype="float64")
        if intercept:
            design = np.column_stack([np.ones(len(window)), design])
        target = window[y].to_numpy(dtype="float64")
        coef, *_ = np.linalg.lstsq(design, target, rcond=None)
        return coef

    return MultiReducer(
        name=f"ols_{y}",
        columns=(y, *regressors),
        outputs=outputs,
        func=_ols,
        min_obs=len(outputs),
    )


__all__ = [
    "Reducer",
    "MultiReducer",
    "BUILTIN_REDUCERS",
    "get_reducer",
    "regression_coefficients",
]
