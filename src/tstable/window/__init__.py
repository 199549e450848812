"""Window module - reducers and the slide/tile/stretch engine."""

from tstable.window.engine import slide, stretch, tile
from tstable.window.reducers import (
    BUILTIN_REDUCERS,
    MultiReducer,
    Reducer,
    get_reducer,
    regression_coefficients,
)

__all__ = [
    "slide",
    "tile",
    "stretch",
    "Reducer",
    "MultiReducer",
    "BUILTIN_REDUCERS",
    "get_reducer",
    "regression_coefficients",
]
