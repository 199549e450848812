"""Window engine over a single ordered sequence.

Three disciplines, evaluated on values already ordered by the index:

- slide: fixed-size moving window, one output per position
- tile: disjoint consecutive blocks, one output per block
- stretch: expanding window from the start, one output per position

Builtin reducers over numeric values run on pandas rolling/expanding
windows. Custom callables, multi-column reducers and non-numeric values
(timestamps, text) are reduced window by window, and the output keeps the
dtype of what the reducer returns. Positions whose window is incomplete or
too sparse hold a missing value.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from typing import Any

import numpy as np
import pandas as pd

from tstable.core.config import NAPolicy, WindowSpec
from tstable.core.errors import WindowConfigError
from tstable.window.reducers import MultiReducer, Reducer, get_reducer

Bounds = tuple[int, int] | None


def resolve_spec(spec: WindowSpec | None, overrides: dict[str, Any]) -> WindowSpec:
    if spec is None:
        return WindowSpec(**overrides)
    return replace(spec, **overrides) if overrides else spec


def check_length(n: int, spec: WindowSpec, label: str = "sequence") -> None:
    """Raise WindowConfigError in strict mode when ``n`` cannot fill one window."""
    if spec.strict and n < spec.size:
        raise WindowConfigError(
            f"Window size {spec.size} exceeds the {n} observations of {label}",
            context={"size": spec.size, "observations": n, "group": label},
            fix_hint="Lower the window size, or pass strict=False to get missing values instead",
        )


def slide_bounds(n: int, spec: WindowSpec) -> list[Bounds]:
    """Window [start, stop) for each position, or None where no value is produced."""
    out: list[Bounds] = []
    for i in range(n):
        if i % spec.step:
            out.append(None)
            continue
        start = i - spec.offset
        stop = start + spec.size
        if start < 0 or stop > n:
            if not spec.partial:
                out.append(None)
                continue
            start, stop = max(start, 0), min(stop, n)
        out.append((start, stop))
    return out


def tile_bounds(n: int, spec: WindowSpec) -> list[Bounds]:
    """[start, stop) of each block; the trailing partial block is kept unless dropped."""
    out: list[Bounds] = [(start, min(start + spec.size, n)) for start in range(0, n, spec.size)]
    if out and spec.drop_partial and out[-1][1] - out[-1][0] < spec.size:
        out.pop()
    return out


def stretch_bounds(n: int, spec: WindowSpec) -> list[Bounds]:
    return [(0, i + 1) if i + 1 >= spec.init else None for i in range(n)]


WINDOW_BOUNDS: dict[str, Callable[[int, WindowSpec], list[Bounds]]] = {
    "slide": slide_bounds,
    "tile": tile_bounds,
    "stretch": stretch_bounds,
}


def _is_missing(value: Any) -> bool:
    return value is None or (np.ndim(value) == 0 and bool(pd.isna(value)))


def as_column(values: Any) -> pd.Series:
    """Build an output column from reduced values, letting pandas pick the dtype.

    Missing results become None before inference, so timestamps come back as
    datetimes with NaT, text as objects with None, and numbers as floats.
    A column with no value at all is float NaN.
    """
    cleaned = [None if _is_missing(v) else v for v in values]
    if all(v is None for v in cleaned):
        return pd.Series(np.nan, index=range(len(cleaned)), dtype="float64")
    return pd.Series(cleaned)


def _observed(values: Any, start: int, stop: int) -> int:
    if isinstance(values, pd.DataFrame):
        return int((~values.iloc[start:stop].isna().any(axis=1)).sum())
    return int((~pd.isna(values[start:stop])).sum())


def _rollable(values: Any, reducer: Reducer | MultiReducer) -> bool:
    return (
        isinstance(reducer, Reducer)
        and reducer.rolling is not None
        and isinstance(values, np.ndarray)
        and np.issubdtype(values.dtype, np.number)
    )


def _windowed(values: np.ndarray, method: str, kind: str, spec: WindowSpec) -> np.ndarray:
    """Apply a pandas rolling/expanding method, one output per position."""
    if kind == "stretch":
        return getattr(pd.Series(values).expanding(min_periods=0), method)().to_numpy()
    # Trailing windows over a NaN-padded tail, shifted back so each
    # output sits at its window's start + offset.
    lead = spec.size - 1 - spec.offset
    padded = pd.Series(np.concatenate([values, np.full(lead, np.nan)]))
    rolled = getattr(padded.rolling(window=spec.size, min_periods=0), method)()
    return rolled.shift(-lead).to_numpy()[: len(values)]


def _rolled(
    values: np.ndarray,
    reducer: Reducer,
    kind: str,
    spec: WindowSpec,
    bounds: list[Bounds],
    min_periods: int,
) -> pd.DataFrame:
    data = values.astype("float64")
    present = np.where(np.isnan(data), 0.0, 1.0)
    result = _windowed(data, reducer.rolling, kind, spec)
    n_obs = _windowed(present, "sum", kind, spec)

    skipped = np.array([b is None for b in bounds], dtype=bool)
    skipped |= n_obs < max(reducer.min_obs, min_periods)
    if spec.na_policy == NAPolicy.PROPAGATE:
        skipped |= n_obs < _windowed(np.ones(len(data)), "sum", kind, spec)
    return pd.DataFrame({reducer.name: np.where(skipped, np.nan, result)})


def _looped(
    values: Any,
    reducer: Reducer | MultiReducer,
    spec: WindowSpec,
    bounds: list[Bounds],
    min_periods: int,
) -> pd.DataFrame:
    results: list[Any] = []
    for window in bounds:
        if window is None:
            results.append(None)
            continue
        start, stop = window
        if min_periods and _observed(values, start, stop) < min_periods:
            results.append(None)
        elif isinstance(reducer, MultiReducer):
            results.append(reducer(values.iloc[start:stop], spec.na_policy))
        else:
            results.append(reducer(values[start:stop], spec.na_policy))

    if isinstance(reducer, MultiReducer):
        data = np.full((len(results), len(reducer.outputs)), np.nan)
        for i, row in enumerate(results):
            if row is not None:
                data[i] = row
        return pd.DataFrame(data, columns=list(reducer.outputs))
    return as_column(results).to_frame(reducer.name)


def evaluate(
    values: Any,
    reducer: Reducer | MultiReducer,
    kind: str,
    spec: WindowSpec,
) -> pd.DataFrame:
    """Reduce every window of one discipline over an ordered sequence.

    Args:
        values: 1-D values, or a DataFrame for a MultiReducer
        reducer: Resolved reducer
        kind: 'slide', 'tile' or 'stretch'
        spec: Window configuration

    Returns:
        DataFrame with one column per reducer output and one row per
        position (slide, stretch) or block (tile)
    """
    if isinstance(reducer, MultiReducer) and not isinstance(values, pd.DataFrame):
        raise TypeError(f"Reducer '{reducer.name}' needs a DataFrame window")
    bounds = WINDOW_BOUNDS[kind](len(values), spec)
    min_periods = spec.min_periods if kind == "stretch" else 0
    if kind != "tile" and _rollable(values, reducer):
        return _rolled(values, reducer, kind, spec, bounds, min_periods)
    return _looped(values, reducer, spec, bounds, min_periods)


def _package(result: pd.DataFrame, reducer: Reducer | MultiReducer) -> pd.Series | pd.DataFrame:
    if isinstance(reducer, MultiReducer):
        return result
    return result.iloc[:, 0]


def _prepare(values: Any, reducer: str | Reducer | MultiReducer | Callable) -> tuple[Any, Reducer | MultiReducer]:
    resolved = get_reducer(reducer)
    if isinstance(resolved, MultiReducer):
        if not isinstance(values, pd.DataFrame):
            raise TypeError(f"Reducer '{resolved.name}' needs a DataFrame of {list(resolved.columns)}")
        return values.reset_index(drop=True), resolved
    if isinstance(values, pd.DataFrame):
        raise TypeError(f"Reducer '{resolved.name}' reduces a single column, got a DataFrame")
    if isinstance(values, (pd.Series, pd.Index)):
        return values.to_numpy(), resolved
    return np.asarray(values), resolved


def slide(
    values: Any,
    reducer: str | Reducer | MultiReducer | Callable,
    spec: WindowSpec | None = None,
    **overrides: Any,
) -> pd.Series | pd.DataFrame:
    """Moving-window reduction, one output per position.

    Args:
        values: Ordered 1-D values, or a DataFrame for a MultiReducer
        reducer: Reducer, reducer name, or callable
        spec: Window configuration; keyword overrides (size, align, partial,
            step, na_policy, strict) are applied on top

    Returns:
        Series of len(values), or DataFrame of named outputs
    """
    spec = resolve_spec(spec, overrides)
    values, resolved = _prepare(values, reducer)
    check_length(len(values), spec)
    return _package(evaluate(values, resolved, "slide", spec), resolved)


def tile(
    values: Any,
    reducer: str | Reducer | MultiReducer | Callable,
    spec: WindowSpec | None = None,
    **overrides: Any,
) -> pd.Series | pd.DataFrame:
    """Block reduction over consecutive, non-overlapping windows.

    Returns one output per block. A final block shorter than ``size`` is
    reduced unless ``drop_partial`` is set.
    """
    spec = resolve_spec(spec, overrides)
    values, resolved = _prepare(values, reducer)
    check_length(len(values), spec)
    return _package(evaluate(values, resolved, "tile", spec), resolved)


def stretch(
    values: Any,
    reducer: str | Reducer | MultiReducer | Callable,
    spec: WindowSpec | None = None,
    **overrides: Any,
) -> pd.Series | pd.DataFrame:
    """Expanding reduction: output[i] reduces values[0..i].

    Positions before ``init`` or with fewer than ``min_periods`` usable
    observations hold a missing value.
    """
    spec = resolve_spec(spec, overrides)
    values, resolved = _prepare(values, reducer)
    return _package(evaluate(values, resolved, "stretch", spec), resolved)


__all__ = [
    "slide",
    "tile",
    "stretch",
    "slide_bounds",
    "tile_bounds",
    "stretch_bounds",
    "WINDOW_BOUNDS",
    "evaluate",
    "as_column",
    "check_length",
    "resolve_spec",
]
