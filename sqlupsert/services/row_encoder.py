from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator

from sqlupsert.exceptions import ConfigurationError, PropertyWriteError
from sqlupsert.mapping.class_map import ClassMap

logger = logging.getLogger(__name__)


class RowEncoder:
    """Turn a lazy row sequence into table-valued parameter rows in a single pass."""

    def __init__(self, class_map: ClassMap) -> None:
        self._class_map = class_map

    def encode(self, rows: Iterable[Any]) -> Iterator[tuple[Any, ...]]:
        properties = self._class_map.properties

        for row in rows:
            record = self._class_map.new_record()
            for prop in properties:
                try:
                    prop.write(record, row)
                except Exception as exc:
                    raise PropertyWriteError(prop.name, row) from exc
            yield tuple(record)

    def iter_batches(self, rows: Iterable[Any], batch_size: int) -> Iterator[list[tuple[Any, ...]]]:
        """Yield lists of at most ``batch_size`` encoded rows; an empty source yields nothing."""

        if batch_size < 1:
            raise ConfigurationError(f"Batch size must be at least 1, got {batch_size}")

        batch: list[tuple[Any, ...]] = []
        for record in self.encode(rows):
            batch.append(record)
            if len(batch) >= batch_size:
                yield batch
                batch = []

        if batch:
            yield batch
