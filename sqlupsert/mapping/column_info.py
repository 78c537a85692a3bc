"""Semantic SQL Server column types used when generating table and table-type DDL."""

from __future__ import annotations

import types
import typing
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Union
from uuid import UUID

from sqlupsert.exceptions import ConfigurationError

MAX = "MAX"


@dataclass(frozen=True)
class ColumnInfo:
    sql_type: str
    size: int | str | None = None
    precision: int | None = None
    scale: int | None = None

    def __post_init__(self) -> None:
        normalized = (self.sql_type or "").strip().upper()
        if not normalized:
            raise ConfigurationError("Column SQL type must not be empty")
        object.__setattr__(self, "sql_type", normalized)

    def render(self) -> str:
        if self.size is not None:
            size = MAX if self.size == -1 or str(self.size).upper() == MAX else str(int(self.size))
            return f"{self.sql_type}({size})"
        if self.precision is not None and self.scale is not None:
            return f"{self.sql_type}({self.precision},{self.scale})"
        if self.precision is not None:
            return f"{self.sql_type}({self.precision})"
        return self.sql_type

    def __str__(self) -> str:
        return self.render()

    @classmethod
    def for_python_type(cls, python_type: Any) -> "ColumnInfo":
        """Return the default column type for a Python annotation."""

        resolved = unwrap_optional(python_type)

        if isinstance(resolved, type) and issubclass(resolved, Enum):
            value_types = {type(member.value) for member in resolved}
            if value_types == {int}:
                return int_()
            if value_types == {str}:
                return nvarchar()
            raise ConfigurationError(f"Enum {resolved.__name__} must have only int or only str values to be mapped")

        # bool before int, datetime before date: both are subclasses
        for candidate, factory in _PYTHON_TYPE_DEFAULTS:
            if isinstance(resolved, type) and issubclass(resolved, candidate):
                return factory()

        raise ConfigurationError(f"No default SQL column type for {python_type!r}; declare a ColumnInfo explicitly")


def unwrap_optional(python_type: Any) -> Any:
    origin = typing.get_origin(python_type)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(python_type) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
        raise ConfigurationError(f"Cannot map union type {python_type!r} to a single SQL column type")
    return python_type


def nvarchar(size: int | str = 256) -> ColumnInfo:
    return ColumnInfo("NVARCHAR", size=size)


def varchar(size: int | str = 256) -> ColumnInfo:
    return ColumnInfo("VARCHAR", size=size)


def decimal(precision: int = 15, scale: int = 5) -> ColumnInfo:
    return ColumnInfo("DECIMAL", precision=precision, scale=scale)


def int_() -> ColumnInfo:
    return ColumnInfo("INT")


def bigint() -> ColumnInfo:
    return ColumnInfo("BIGINT")


def bit() -> ColumnInfo:
    return ColumnInfo("BIT")


def float_() -> ColumnInfo:
    return ColumnInfo("FLOAT", precision=53)


def datetime2(precision: int = 7) -> ColumnInfo:
    return ColumnInfo("DATETIME2", precision=precision)


def datetimeoffset(precision: int = 3) -> ColumnInfo:
    return ColumnInfo("DATETIMEOFFSET", precision=precision)


def date_() -> ColumnInfo:
    return ColumnInfo("DATE")


def time_() -> ColumnInfo:
    return ColumnInfo("TIME")


def uniqueidentifier() -> ColumnInfo:
    return ColumnInfo("UNIQUEIDENTIFIER")


def varbinary(size: int | str = MAX) -> ColumnInfo:
    return ColumnInfo("VARBINARY", size=size)


_PYTHON_TYPE_DEFAULTS = (
    (bool, bit),
    (int, bigint),
    (float, float_),
    (Decimal, decimal),
    (str, nvarchar),
    (datetime, datetime2),
    (date, date_),
    (time, time_),
    (UUID, uniqueidentifier),
    (bytes, varbinary),
)
