"""Row positions of key groups."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import pandas as pd


def key_tuple(name) -> tuple:
    return name if isinstance(name, tuple) else (name,)


def group_positions(df: pd.DataFrame, key: Sequence[str]) -> list[tuple[tuple, np.ndarray]]:
    """Split row positions of ``df`` by the values of the ``key`` columns.

    Groups are returned in order of their first row; positions inside a
    group keep frame order. An empty key is a single group holding every row.
    """
    if len(df) == 0:
        return []
    if not key:
        return [((), np.arange(len(df)))]
    grouped = df.groupby(list(key), sort=False, dropna=False)
    out = [(key_tuple(name), np.asarray(pos)) for name, pos in grouped.indices.items()]
    out.sort(key=lambda item: item[1][0])
    return out


__all__ = ["group_positions", "key_tuple"]
