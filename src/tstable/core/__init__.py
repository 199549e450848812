"""Core module - errors and configuration shared by every tstable layer."""

from tstable.core.config import Align, NAPolicy, TableSpec, WindowSpec
from tstable.core.errors import (
    ERROR_REGISTRY,
    InvalidIndexError,
    SchemaError,
    TSTableError,
    WindowConfigError,
    get_error_class,
)

__all__ = [
    # Config
    "Align",
    "NAPolicy",
    "TableSpec",
    "WindowSpec",
    # Errors
    "TSTableError",
    "SchemaError",
    "InvalidIndexError",
    "WindowConfigError",
    "ERROR_REGISTRY",
    "get_error_class",
]
