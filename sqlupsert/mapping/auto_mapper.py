"""Build class maps from dataclass declarations.

Options are attached once, at class definition time, through ``mapped()`` field
metadata and the ``update_criteria`` / ``append_only`` class decorators::

    @update_criteria("[S].[Revision] > [T].[Revision]")
    @dataclass
    class Customer:
        customer_id: int = mapped(key=True)
        name: str = mapped(column=nvarchar(100))
        revision: int = 0
"""

from __future__ import annotations

import dataclasses
import logging
import typing
from enum import Enum
from typing import Any, Callable, Optional
from uuid import UUID

from sqlupsert.exceptions import ConfigurationError
from sqlupsert.mapping.class_map import ClassMap, PropertyMapping
from sqlupsert.mapping.column_info import ColumnInfo, unwrap_optional

logger = logging.getLogger(__name__)

_METADATA_KEY = "sqlupsert"
_CRITERIA_ATTRIBUTE = "__sqlupsert_update_criteria__"
_APPEND_ONLY_ATTRIBUTE = "__sqlupsert_append_only__"
_CONVENTIONAL_KEY_NAME = "id"


@dataclasses.dataclass(frozen=True)
class _FieldOptions:
    key: bool = False
    column: Optional[ColumnInfo] = None
    to_db: Optional[Callable[[Any], Any]] = None
    from_db: Optional[Callable[[Any], Any]] = None
    ignore: bool = False


def mapped(
    *,
    key: bool = False,
    column: ColumnInfo | None = None,
    to_db: Callable[[Any], Any] | None = None,
    from_db: Callable[[Any], Any] | None = None,
    ignore: bool = False,
    **field_kwargs: Any,
) -> Any:
    """``dataclasses.field`` carrying the column options for the auto mapper."""

    metadata = dict(field_kwargs.pop("metadata", None) or {})
    metadata[_METADATA_KEY] = _FieldOptions(key=key, column=column, to_db=to_db, from_db=from_db, ignore=ignore)
    return dataclasses.field(metadata=metadata, **field_kwargs)


def update_criteria(criteria: str):
    """Only update matched rows satisfying ``criteria`` (``S`` is the incoming row, ``T`` the stored one)."""

    def decorator(cls):
        setattr(cls, _CRITERIA_ATTRIBUTE, criteria)
        return cls

    return decorator


def append_only(cls):
    setattr(cls, _APPEND_ONLY_ATTRIBUTE, True)
    return cls


class AutoMapper:
    def get_map(self, cls: type) -> ClassMap:
        if cls is None:
            raise ConfigurationError("A type is required to build a class map")
        if not dataclasses.is_dataclass(cls) or not isinstance(cls, type):
            raise ConfigurationError(
                f"Could not find any properties to map on {getattr(cls, '__name__', cls)!r}; "
                "declare it as a dataclass or pass an explicit ClassMap"
            )

        hints = typing.get_type_hints(cls)
        fields = [field for field in dataclasses.fields(cls) if not self._options(field).ignore]
        is_append_only = bool(getattr(cls, _APPEND_ONLY_ATTRIBUTE, False))
        explicit_keys = any(self._options(field).key for field in fields)

        properties: list[PropertyMapping] = []
        for field in fields:
            options = self._options(field)
            if is_append_only:
                is_key = False
            elif explicit_keys:
                is_key = options.key
            else:
                is_key = field.name.lower() == _CONVENTIONAL_KEY_NAME

            python_type = hints.get(field.name, field.type)
            column = options.column or ColumnInfo.for_python_type(python_type)
            default_to_db, default_from_db = _default_converters(python_type)
            properties.append(
                PropertyMapping(
                    name=field.name,
                    column_info=column,
                    is_key=is_key,
                    to_db=options.to_db or default_to_db,
                    from_db=options.from_db or default_from_db,
                )
            )

        class_map = ClassMap(
            cls,
            properties,
            extra_criteria=getattr(cls, _CRITERIA_ATTRIBUTE, None),
            append_only=is_append_only,
        )
        logger.debug("Mapped %s", class_map)
        return class_map

    @staticmethod
    def _options(field: dataclasses.Field) -> _FieldOptions:
        return field.metadata.get(_METADATA_KEY) or _FieldOptions()


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _to_uuid(value: Any) -> UUID:
    # pyodbc returns UNIQUEIDENTIFIER as text unless pyodbc.native_uuid is set
    return value if isinstance(value, UUID) else UUID(str(value))


def _default_converters(python_type: Any) -> tuple[Optional[Callable[[Any], Any]], Optional[Callable[[Any], Any]]]:
    """Converters for annotations the driver cannot bind or return as-is. NULL never reaches ``from_db``."""

    try:
        resolved = unwrap_optional(python_type)
    except ConfigurationError:
        return None, None
    if not isinstance(resolved, type):
        return None, None
    if issubclass(resolved, Enum):
        return _enum_value, resolved
    if issubclass(resolved, UUID):
        return None, _to_uuid
    return None, None
