"""Core error types with rich context.

Every error raised by tstable derives from ``TSTableError`` and carries a
stable ``error_code``, a human-readable message, a context dict, and an
actionable fix hint.
"""

# ruff: noqa: N818

from __future__ import annotations

from typing import Any


class TSTableError(Exception):
    """Base exception with rich context.

    Attributes:
        error_code: Unique error code string for programmatic handling
        message: Human-readable error message
        context: Additional context data for debugging
        fix_hint: Actionable hint for resolving the error
    """

    error_code: str = "E_UNKNOWN"
    fix_hint: str = ""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        fix_hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        if fix_hint:
            self.fix_hint = fix_hint

    def __str__(self) -> str:
        parts = [f"[{self.error_code}] {self.message}"]
        if self.context:
            parts.append(f"(context: {self.context})")
        if self.fix_hint:
            parts.append(f"[hint: {self.fix_hint}]")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Return a structured dict with error_code, message, fix_hint and context."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "fix_hint": self.fix_hint,
            "context": self.context,
        }


class SchemaError(TSTableError):
    """A referenced column is absent or has an unusable type."""

    error_code = "E_SCHEMA"
    fix_hint = "Check column names against table.columns; key and index must exist in every record"


class InvalidIndexError(TSTableError):
    """Duplicate (key, index) pairs, or a non-monotonic bucketing of the index."""

    error_code = "E_INVALID_INDEX"
    fix_hint = (
        "Inspect find_duplicates(rows, key, index) and resolve repeats, "
        "or widen the key so each (key, index) pair is unique"
    )


class WindowConfigError(TSTableError):
    """Window size, step or observation count cannot be honoured."""

    error_code = "E_WINDOW_CONFIG"
    fix_hint = "Window size, step and min_periods must be positive integers"


ERROR_REGISTRY: dict[str, type[TSTableError]] = {
    "E_SCHEMA": SchemaError,
    "E_INVALID_INDEX": InvalidIndexError,
    "E_WINDOW_CONFIG": WindowConfigError,
}


def get_error_class(error_code: str) -> type[TSTableError]:
    """Get error class by code."""
    return ERROR_REGISTRY.get(error_code, TSTableError)


__all__ = [
    "TSTableError",
    "SchemaError",
    "InvalidIndexError",
    "WindowConfigError",
    "ERROR_REGISTRY",
    "get_error_class",
]
