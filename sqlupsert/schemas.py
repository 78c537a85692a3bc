from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class IsolationLevel(str, Enum):
    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"
    SNAPSHOT = "SNAPSHOT"


class SchemaObject(str, Enum):
    TABLE = "table"
    TYPE = "type"
    PROCEDURE = "procedure"


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of an upsert call; an empty input is a no-op, not an error."""

    row_count: int
    batch_count: int

    @property
    def is_empty(self) -> bool:
        return self.row_count == 0
