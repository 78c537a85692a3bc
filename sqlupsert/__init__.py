"""Set-based upsert of typed rows into SQL Server through generated MERGE procedures."""

import logging

from sqlupsert.config import Settings, get_settings
from sqlupsert.database import SqlConnectionFactory
from sqlupsert.exceptions import (
    ConfigurationError,
    PropertyWriteError,
    StatementExecutionError,
    UpsertError,
)
from sqlupsert.mapping import AutoMapper, ClassMap, ColumnInfo, PropertyMapping, append_only, mapped, update_criteria
from sqlupsert.schemas import IsolationLevel, SchemaObject, UpsertResult
from sqlupsert.services import UpsertHelper

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AutoMapper",
    "ClassMap",
    "ColumnInfo",
    "ConfigurationError",
    "IsolationLevel",
    "PropertyMapping",
    "PropertyWriteError",
    "SchemaObject",
    "Settings",
    "SqlConnectionFactory",
    "StatementExecutionError",
    "UpsertError",
    "UpsertHelper",
    "UpsertResult",
    "__version__",
    "append_only",
    "get_settings",
    "mapped",
    "update_criteria",
]
