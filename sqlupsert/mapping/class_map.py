from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from sqlupsert.exceptions import ConfigurationError
from sqlupsert.mapping.column_info import ColumnInfo


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def quote_identifier(identifier: str) -> str:
    escaped = identifier.replace("]", "]]")
    return f"[{escaped}]"


@dataclass(frozen=True)
class PropertyMapping:
    """How one attribute of a mapped type is stored in one column."""

    name: str
    column_info: ColumnInfo
    is_key: bool = False
    to_db: Optional[Callable[[Any], Any]] = None
    from_db: Optional[Callable[[Any], Any]] = None
    getter: Optional[Callable[[Any], Any]] = None
    ordinal: int = -1

    @property
    def quoted_name(self) -> str:
        return quote_identifier(self.name)

    def column_sql(self) -> str:
        nullability = "NOT NULL" if self.is_key else "NULL"
        return f"{self.quoted_name} {self.column_info.render()} {nullability}"

    def get_value(self, source: Any) -> Any:
        value = self.getter(source) if self.getter is not None else getattr(source, self.name)
        if self.to_db is not None:
            value = self.to_db(value)
        return value

    def write(self, record: list[Any], source: Any) -> None:
        record[self.ordinal] = self.get_value(source)

    def read(self, lookup: Any) -> Any:
        value = lookup.get_value(self.name)
        if value is MISSING:
            return MISSING
        if value is not None and self.from_db is not None:
            return self.from_db(value)
        return value

    def __str__(self) -> str:
        return f"{self.name} ({self.column_info.render()})"


class ClassMap:
    """Ordered, immutable description of a type's persisted columns.

    Property order is the single source of truth for table DDL, table-type DDL,
    the MERGE procedure and the positional shape of each table-valued parameter row.
    """

    def __init__(
        self,
        type_: type,
        properties: Iterable[PropertyMapping],
        *,
        extra_criteria: str | None = None,
        append_only: bool = False,
    ) -> None:
        if type_ is None:
            raise ConfigurationError("A mapped type is required to build a class map")

        ordered = list(properties or ())
        if not ordered:
            raise ConfigurationError(f"Could not find any properties to map on {type_.__name__}")

        seen: set[str] = set()
        for mapping in ordered:
            if mapping.name in seen:
                raise ConfigurationError(f"Property '{mapping.name}' is mapped more than once on {type_.__name__}")
            seen.add(mapping.name)

        if append_only and any(mapping.is_key for mapping in ordered):
            raise ConfigurationError(f"Append-only map for {type_.__name__} must not declare key properties")
        if not append_only and not any(mapping.is_key for mapping in ordered):
            raise ConfigurationError(
                f"Class map for {type_.__name__} has no key properties; mark at least one property as key"
                " or declare the type append-only"
            )

        criteria = (extra_criteria or "").strip() or None

        self.type = type_
        self.extra_criteria = criteria
        self.append_only = append_only
        self._properties: tuple[PropertyMapping, ...] = tuple(
            replace(mapping, ordinal=index) for index, mapping in enumerate(ordered)
        )
        self._by_name: Mapping[str, PropertyMapping] = {mapping.name: mapping for mapping in self._properties}

    @property
    def properties(self) -> tuple[PropertyMapping, ...]:
        return self._properties

    @property
    def key_properties(self) -> tuple[PropertyMapping, ...]:
        return tuple(mapping for mapping in self._properties if mapping.is_key)

    @property
    def value_properties(self) -> tuple[PropertyMapping, ...]:
        return tuple(mapping for mapping in self._properties if not mapping.is_key)

    @property
    def property_names(self) -> tuple[str, ...]:
        return tuple(mapping.name for mapping in self._properties)

    def get_property(self, name: str) -> PropertyMapping:
        try:
            return self._by_name[name]
        except KeyError:
            raise ConfigurationError(f"{self.type.__name__} has no mapped property '{name}'") from None

    def new_record(self) -> list[Any]:
        return [None] * len(self._properties)

    def __len__(self) -> int:
        return len(self._properties)

    def __iter__(self):
        return iter(self._properties)

    def __repr__(self) -> str:
        columns: Sequence[str] = [str(mapping) for mapping in self._properties]
        return f"ClassMap({self.type.__name__}: {', '.join(columns)})"
