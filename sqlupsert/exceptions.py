from __future__ import annotations

from typing import Any


class UpsertError(Exception):
    """Base exception for upsert helper operations."""


class ConfigurationError(UpsertError, ValueError):
    """Raised when a class map or call argument is unusable; always raised before any I/O."""


class PropertyWriteError(UpsertError):
    """Raised when a property cannot be encoded into a table-valued parameter row."""

    def __init__(self, property_name: str, row: Any) -> None:
        super().__init__(f"Could not write property '{property_name}' of row {row!r}")
        self.property_name = property_name
        self.row = row


class StatementExecutionError(UpsertError):
    """Raised when generated SQL fails to execute; carries the offending statement."""

    def __init__(self, sql: str, message: str | None = None) -> None:
        super().__init__(message or f"Could not execute SQL {sql}")
        self.sql = sql
