"""Tests for WindowSpec and TableSpec.

Tests configuration validation, presets, and properties.
"""

from __future__ import annotations

import numpy as np
import pytest
from pydantic import ValidationError

from tstable import Align, NAPolicy, TableSpec, WindowConfigError, WindowSpec


class TestWindowSpecValidation:
    """Test window spec validation."""

    def test_defaults(self):
        """Default spec is a size-1 trailing window."""
        spec = WindowSpec()
        assert spec.size == 1
        assert spec.align == Align.RIGHT
        assert spec.na_policy == NAPolicy.SKIP
        assert spec.partial is False
        assert spec.strict is False

    @pytest.mark.parametrize("field", ["size", "step", "min_periods", "init"])
    def test_non_positive_rejected(self, field):
        """Sizes must be positive."""
        with pytest.raises(WindowConfigError, match=f"{field} must be a positive integer"):
            WindowSpec(**{field: 0})

    def test_negative_size(self):
        """Negative size is rejected."""
        with pytest.raises(WindowConfigError):
            WindowSpec(size=-3)

    def test_float_size_rejected(self):
        """Size must be an integer."""
        with pytest.raises(WindowConfigError):
            WindowSpec(size=2.5)

    def test_bool_size_rejected(self):
        """Booleans are not sizes."""
        with pytest.raises(WindowConfigError):
            WindowSpec(size=True)

    def test_numpy_integers_accepted(self):
        """Sizes computed with numpy are plain ints on the spec."""
        spec = WindowSpec(size=np.int64(3), step=np.int32(2))
        assert spec.size == 3
        assert type(spec.size) is int
        assert type(spec.step) is int

    def test_numpy_bool_rejected(self):
        with pytest.raises(WindowConfigError):
            WindowSpec(size=np.bool_(True))

    def test_string_enums_coerced(self):
        """String align/na_policy are coerced to enums."""
        spec = WindowSpec(size=3, align="center", na_policy="propagate")
        assert spec.align is Align.CENTER
        assert spec.na_policy is NAPolicy.PROPAGATE

    def test_unknown_align(self):
        """Unknown alignment is a config error."""
        with pytest.raises(WindowConfigError, match="Unknown alignment"):
            WindowSpec(size=3, align="middle")

    def test_unknown_na_policy(self):
        """Unknown NA policy is a config error."""
        with pytest.raises(WindowConfigError, match="Unknown NA policy"):
            WindowSpec(na_policy="drop")

    def test_frozen(self):
        """Specs are immutable."""
        spec = WindowSpec(size=3)
        with pytest.raises(AttributeError):
            spec.size = 4


class TestWindowSpecPresets:
    """Test presets and offsets."""

    def test_trailing(self):
        spec = WindowSpec.trailing(5)
        assert spec.align == Align.RIGHT
        assert spec.offset == 4

    def test_leading(self):
        spec = WindowSpec.leading(5)
        assert spec.align == Align.LEFT
        assert spec.offset == 0

    def test_centered(self):
        """Center offset is size // 2."""
        assert WindowSpec.centered(5).offset == 2
        assert WindowSpec.centered(4).offset == 2

    def test_expanding(self):
        spec = WindowSpec.expanding(min_periods=3)
        assert spec.min_periods == 3

    def test_preset_kwargs(self):
        """Presets accept extra fields."""
        spec = WindowSpec.trailing(3, partial=True, step=2)
        assert spec.partial is True
        assert spec.step == 2


class TestTableSpec:
    """Test declarative table layout."""

    def test_key_from_string(self):
        spec = TableSpec(index="date", key="symbol")
        assert spec.key == ("symbol",)

    def test_key_none(self):
        spec = TableSpec(index="date", key=None)
        assert spec.key == ()

    def test_defaults(self):
        spec = TableSpec(index="date")
        assert spec.regular is True
        assert spec.validate_index is True

    def test_duplicate_key_columns(self):
        with pytest.raises(ValidationError):
            TableSpec(index="date", key=["a", "a"])

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            TableSpec(index="date", frequency="D")

    def test_frozen(self):
        spec = TableSpec(index="date")
        with pytest.raises(ValidationError):
            spec.index = "other"
