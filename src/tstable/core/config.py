"""Configuration for tables and window evaluation.

Window behaviour is collected into a single frozen ``WindowSpec`` with
sensible defaults and presets; table layout is described declaratively by
the pydantic ``TableSpec``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from numbers import Integral
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tstable.core.errors import WindowConfigError


class NAPolicy(StrEnum):
    """How reductions treat missing input values."""

    SKIP = "skip"
    """Drop missing values and reduce over the remainder."""

    PROPAGATE = "propagate"
    """Any missing value in the input makes the output missing."""


class Align(StrEnum):
    """Where a sliding window sits relative to its output position."""

    RIGHT = "right"
    """Trailing window ending at the position."""

    LEFT = "left"
    """Leading window starting at the position."""

    CENTER = "center"
    """Window centred on the position (w // 2 values before it)."""


def _positive(name: str, value: Any) -> int:
    if not isinstance(value, Integral) or isinstance(value, bool) or value < 1:
        raise WindowConfigError(
            f"{name} must be a positive integer, got {value!r}",
            context={name: value},
        )
    return int(value)


@dataclass(frozen=True)
class WindowSpec:
    """Window configuration shared by slide, tile and stretch.

    Args:
        size: Window size (slide, tile) in observations
        align: Slide alignment - 'right' (trailing), 'left' (leading), 'center'
        partial: Reduce clipped windows at sequence edges instead of yielding missing
        step: Evaluate every ``step``-th slide position (others are missing)
        drop_partial: Drop the final incomplete tile block instead of reducing it
        min_periods: Minimum usable observations before stretch yields a value
        init: Size of the first stretch window
        na_policy: Missing-value policy for reductions ('skip' or 'propagate')
        strict: Raise WindowConfigError when a group is shorter than ``size``
    """

    size: int = 1
    align: Align = Align.RIGHT
    partial: bool = False
    step: int = 1
    drop_partial: bool = False
    min_periods: int = 1
    init: int = 1
    na_policy: NAPolicy = NAPolicy.SKIP
    strict: bool = False

    def __post_init__(self) -> None:
        for name in ("size", "step", "min_periods", "init"):
            object.__setattr__(self, name, _positive(name, getattr(self, name)))
        try:
            object.__setattr__(self, "align", Align(self.align))
        except ValueError as e:
            raise WindowConfigError(
                f"Unknown alignment: {self.align!r}",
                context={"valid": [a.value for a in Align]},
            ) from e
        try:
            object.__setattr__(self, "na_policy", NAPolicy(self.na_policy))
        except ValueError as e:
            raise WindowConfigError(
                f"Unknown NA policy: {self.na_policy!r}",
                context={"valid": [p.value for p in NAPolicy]},
            ) from e

    @classmethod
    def trailing(cls, size: int, **kwargs: Any) -> WindowSpec:
        """Window ending at each position (the usual moving average)."""
        return cls(size=size, align=Align.RIGHT, **kwargs)

    @classmethod
    def leading(cls, size: int, **kwargs: Any) -> WindowSpec:
        """Window starting at each position."""
        return cls(size=size, align=Align.LEFT, **kwargs)

    @classmethod
    def centered(cls, size: int, **kwargs: Any) -> WindowSpec:
        """Window centred on each position."""
        return cls(size=size, align=Align.CENTER, **kwargs)

    @classmethod
    def expanding(cls, min_periods: int = 1, **kwargs: Any) -> WindowSpec:
        """Cumulative window for stretch."""
        return cls(min_periods=min_periods, **kwargs)

    @property
    def offset(self) -> int:
        """Number of positions the window extends before its output position."""
        if self.align == Align.RIGHT:
            return self.size - 1
        if self.align == Align.CENTER:
            return self.size // 2
        return 0


class TableSpec(BaseModel):
    """Declarative key/index layout of a time-indexed table."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    index: str
    key: tuple[str, ...] = Field(default_factory=tuple)
    regular: bool = True
    validate_index: bool = True

    @field_validator("key", mode="before")
    @classmethod
    def _coerce_key(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return (value,)
        return tuple(value)

    @field_validator("key")
    @classmethod
    def _check_key(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if len(set(value)) != len(value):
            raise ValueError(f"key columns must be distinct, got {list(value)}")
        return value


__all__ = ["NAPolicy", "Align", "WindowSpec", "TableSpec"]
