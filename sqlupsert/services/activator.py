from __future__ import annotations

import dataclasses
from typing import Any, Generic, Mapping, TypeVar

from sqlupsert.exceptions import ConfigurationError
from sqlupsert.mapping.class_map import MISSING, ClassMap

T = TypeVar("T")


class ResultRowLookup:
    """Column lookup over the current result row; columns absent from the result set read as ``MISSING``."""

    def __init__(self, row: Mapping[str, Any] | None = None) -> None:
        self._row: Mapping[str, Any] = row if row is not None else {}

    def advance(self, row: Mapping[str, Any]) -> "ResultRowLookup":
        self._row = row
        return self

    def get_value(self, name: str) -> Any:
        if name not in self._row:
            return MISSING
        return self._row[name]


class Activator(Generic[T]):
    """Create instances of a mapped type from result rows without calling its constructor.

    Properties missing from the row receive the dataclass field default when one is
    declared and ``None`` otherwise. Values are not coerced beyond the mapping's own
    ``from_db`` converter.
    """

    def __init__(self, type_: type[T], class_map: ClassMap) -> None:
        if type_ is None:
            raise ConfigurationError("A type is required to activate instances")
        self.type = type_
        self._properties = class_map.properties
        self._defaults = _field_defaults(type_)

    def create_instance(self, lookup: ResultRowLookup) -> T:
        instance = self.type.__new__(self.type)

        for prop in self._properties:
            value = prop.read(lookup)
            if value is MISSING:
                value = self._default_for(prop.name)
            # object.__setattr__ also populates frozen dataclasses
            object.__setattr__(instance, prop.name, value)

        return instance

    def _default_for(self, name: str) -> Any:
        field = self._defaults.get(name)
        if field is None:
            return None
        if field.default is not dataclasses.MISSING:
            return field.default
        if field.default_factory is not dataclasses.MISSING:
            return field.default_factory()
        return None


def _field_defaults(type_: type) -> dict[str, dataclasses.Field]:
    if not dataclasses.is_dataclass(type_):
        return {}
    return {field.name: field for field in dataclasses.fields(type_)}
