from __future__ import annotations

import logging
from itertools import chain
from typing import Any, Generic, Iterable, Iterator, Optional, TypeVar

from sqlalchemy import text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError

from sqlupsert.config import Settings, get_settings
from sqlupsert.database import SqlConnectionFactory
from sqlupsert.exceptions import ConfigurationError, StatementExecutionError
from sqlupsert.mapping.auto_mapper import AutoMapper
from sqlupsert.mapping.class_map import ClassMap
from sqlupsert.schemas import SchemaObject, UpsertResult
from sqlupsert.services.activator import Activator, ResultRowLookup
from sqlupsert.services.criteria import bind_criteria
from sqlupsert.services.row_encoder import RowEncoder
from sqlupsert.services.schema_manager import SchemaManager

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UpsertHelper(Generic[T]):
    """Upsert, load and delete rows of one mapped type.

    ``connection`` may be an SQLAlchemy URL, an ``Engine`` or any object exposing
    ``open_transaction(isolation_level)`` such as ``SqlConnectionFactory``. A factory
    built without a command timeout takes ``settings.command_timeout_seconds``. The table
    name defaults to the type's name; the table type and procedure are named
    ``<Table>Type`` and ``<Table>Upsert``.
    """

    def __init__(
        self,
        connection: str | URL | Engine | SqlConnectionFactory,
        row_type: type[T],
        *,
        class_map: Optional[ClassMap] = None,
        table_name: Optional[str] = None,
        schema: Optional[str] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        if row_type is None:
            raise ConfigurationError("row_type is required")

        self.settings = settings or get_settings()
        self.class_map = class_map if class_map is not None else AutoMapper().get_map(row_type)
        if self.class_map.type is not row_type:
            raise ConfigurationError(
                f"Class map describes {self.class_map.type.__name__}, not {row_type.__name__}"
            )

        if isinstance(connection, (str, URL, Engine)):
            self._factory = SqlConnectionFactory(
                connection,
                command_timeout_seconds=self.settings.command_timeout_seconds,
            )
        else:
            if isinstance(connection, SqlConnectionFactory) and connection.command_timeout_seconds is None:
                connection.command_timeout_seconds = self.settings.command_timeout_seconds
            self._factory = connection

        self.schema_manager = build_schema_manager(
            self._factory,
            self.class_map,
            table_name=table_name,
            schema=schema,
            settings=self.settings,
        )
        self._activator: Activator[T] = Activator(row_type, self.class_map)
        self._encoder = RowEncoder(self.class_map)

    # Schema ---------------------------------------------------------------------

    def create_schema(
        self,
        create_procedure: bool = True,
        create_type: bool = True,
        create_table: bool = True,
    ) -> list[SchemaObject]:
        """Create the table, table type and procedure when missing. Existing objects are not migrated."""

        return self.schema_manager.create_schema(create_procedure, create_type, create_table)

    def drop_schema(
        self,
        drop_procedure: bool = False,
        drop_type: bool = False,
        drop_table: bool = False,
    ) -> list[SchemaObject]:
        return self.schema_manager.drop_schema(drop_procedure, drop_type, drop_table)

    # Writes ---------------------------------------------------------------------

    def upsert(self, rows: Iterable[T]) -> UpsertResult:
        """Insert new rows and update existing ones (matched on the key columns) in one transaction.

        ``rows`` is consumed once and lazily, one table-valued parameter batch at a time.
        An empty sequence returns an empty result without touching the database.
        """

        if rows is None:
            raise ConfigurationError("rows is required")

        batches = self._encoder.iter_batches(rows, self.settings.upsert_batch_size)
        first_batch = next(batches, None)
        if first_batch is None:
            logger.debug("No rows supplied for %s; skipping upsert", self.schema_manager.qualified_table_name)
            return UpsertResult(row_count=0, batch_count=0)

        call_sql = self.schema_manager.procedure_call_sql
        row_count = 0
        batch_count = 0

        with self._factory.open_transaction(self.settings.transaction_isolation_level) as connection:
            for batch in chain([first_batch], batches):
                try:
                    # the whole batch binds to the procedure's single table-valued parameter
                    connection.exec_driver_sql(call_sql, (batch,))
                except SQLAlchemyError as exc:
                    logger.error(
                        "Failed to upsert %d rows into %s: %s",
                        len(batch),
                        self.schema_manager.qualified_table_name,
                        exc,
                    )
                    raise StatementExecutionError(call_sql) from exc
                row_count += len(batch)
                batch_count += 1

        logger.info(
            "Upserted %d rows into %s in %d batch(es)",
            row_count,
            self.schema_manager.qualified_table_name,
            batch_count,
        )
        return UpsertResult(row_count=row_count, batch_count=batch_count)

    def delete_where(self, criteria: str, args: Any = None) -> int:
        """Delete rows matching ``criteria``, e.g. ``"[Region] = @region"`` with ``{"region": "EU"}``."""

        fragment, params = bind_criteria(criteria, args)
        sql = self.schema_manager.get_delete_command(fragment)

        with self._factory.open_transaction(self.settings.transaction_isolation_level) as connection:
            try:
                result = connection.execute(text(sql), params)
            except SQLAlchemyError as exc:
                logger.error("Failed to delete rows from %s: %s", self.schema_manager.qualified_table_name, exc)
                raise StatementExecutionError(sql) from exc
            deleted = result.rowcount

        logger.info("Deleted %s rows from %s", deleted, self.schema_manager.qualified_table_name)
        return deleted

    # Reads ----------------------------------------------------------------------

    def load_all(self) -> Iterator[T]:
        """Stream every row; instances are produced as the cursor advances, never buffered."""

        return self._stream(self.schema_manager.get_query(), {})

    def load_where(self, criteria: str, args: Any = None) -> list[T]:
        """Load every row matching ``criteria``; the result is materialized into a list."""

        fragment, params = bind_criteria(criteria, args)
        sql = self.schema_manager.get_query(fragment)
        return list(self._stream(sql, params))

    def _stream(self, sql: str, params: dict[str, Any]) -> Iterator[T]:
        with self._factory.open_transaction(self.settings.transaction_isolation_level) as connection:
            try:
                result = connection.execute(text(sql), params)
            except SQLAlchemyError as exc:
                logger.error("Failed to query %s: %s", self.schema_manager.qualified_table_name, exc)
                raise StatementExecutionError(sql) from exc

            lookup = ResultRowLookup()
            rows = iter(result.mappings())
            while True:
                try:
                    row = next(rows, None)
                except SQLAlchemyError as exc:
                    raise StatementExecutionError(sql) from exc
                if row is None:
                    break
                yield self._activator.create_instance(lookup.advance(row))


def build_schema_manager(
    connection_factory: Optional[SqlConnectionFactory],
    class_map: ClassMap,
    *,
    table_name: Optional[str] = None,
    schema: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> SchemaManager:
    resolved_settings = settings or get_settings()
    upsert_table_name = (table_name or "").strip() or class_map.type.__name__
    return SchemaManager(
        connection_factory,
        table_name=upsert_table_name,
        type_name=f"{upsert_table_name}Type",
        procedure_name=f"{upsert_table_name}Upsert",
        key_properties=class_map.key_properties,
        properties=class_map.properties,
        schema=(schema or "").strip() or resolved_settings.default_schema,
        extra_criteria=class_map.extra_criteria,
        isolation_level=resolved_settings.transaction_isolation_level,
    )
