"""Generation and lifecycle of the table, table type and MERGE procedure backing an upsert helper."""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from sqlupsert.exceptions import ConfigurationError, StatementExecutionError
from sqlupsert.mapping.class_map import PropertyMapping, quote_identifier
from sqlupsert.schemas import IsolationLevel, SchemaObject

logger = logging.getLogger(__name__)

_SOURCE_ALIAS = "S"
_TARGET_ALIAS = "T"
_DATA_PARAMETER = "@data"

# Creation follows dependencies; dropping walks the same list backwards.
_CREATE_ORDER = (SchemaObject.TABLE, SchemaObject.TYPE, SchemaObject.PROCEDURE)
_DROP_ORDER = tuple(reversed(_CREATE_ORDER))


class SchemaManager:
    def __init__(
        self,
        connection_factory,
        table_name: str,
        type_name: str,
        procedure_name: str,
        key_properties: Iterable[PropertyMapping],
        properties: Iterable[PropertyMapping],
        schema: str = "dbo",
        extra_criteria: str | None = None,
        isolation_level: IsolationLevel = IsolationLevel.READ_COMMITTED,
    ) -> None:
        self._factory = connection_factory
        self.schema = schema
        self.table_name = table_name
        self.type_name = type_name
        self.procedure_name = procedure_name
        self.properties: tuple[PropertyMapping, ...] = tuple(sorted(properties, key=lambda p: p.ordinal))
        self.key_properties: tuple[PropertyMapping, ...] = tuple(key_properties)
        self.extra_criteria = extra_criteria
        self.isolation_level = isolation_level

        if not self.properties:
            raise ConfigurationError(f"Cannot manage schema for {table_name} without any mapped properties")

        key_names = {prop.name for prop in self.key_properties}
        self._value_properties = tuple(prop for prop in self.properties if prop.name not in key_names)

    # Names ----------------------------------------------------------------------

    @property
    def qualified_table_name(self) -> str:
        return self._qualify(self.table_name)

    @property
    def qualified_type_name(self) -> str:
        return self._qualify(self.type_name)

    @property
    def qualified_procedure_name(self) -> str:
        return self._qualify(self.procedure_name)

    @property
    def procedure_call_sql(self) -> str:
        return f"{{CALL {self.qualified_procedure_name} (?)}}"

    # Lifecycle ------------------------------------------------------------------

    def create_schema(
        self,
        create_procedure: bool = True,
        create_type: bool = True,
        create_table: bool = True,
    ) -> list[SchemaObject]:
        """Create whichever requested objects are missing; existing objects are never altered."""

        requested = {
            SchemaObject.TABLE: create_table,
            SchemaObject.TYPE: create_type,
            SchemaObject.PROCEDURE: create_procedure,
        }
        created: list[SchemaObject] = []

        with self._factory.open_transaction(self.isolation_level) as connection:
            existing = self._existing_objects(connection)
            for kind in _CREATE_ORDER:
                if not requested[kind]:
                    continue
                if kind in existing:
                    logger.debug("Skipping creation of %s %s; it already exists", kind.value, self._name_for(kind))
                    continue
                logger.info("Creating %s %s", kind.value, self._name_for(kind))
                self._execute(connection, self._create_sql_for(kind))
                created.append(kind)

        return created

    def drop_schema(
        self,
        drop_procedure: bool = False,
        drop_type: bool = False,
        drop_table: bool = False,
    ) -> list[SchemaObject]:
        requested = {
            SchemaObject.TABLE: drop_table,
            SchemaObject.TYPE: drop_type,
            SchemaObject.PROCEDURE: drop_procedure,
        }
        dropped: list[SchemaObject] = []

        with self._factory.open_transaction(self.isolation_level) as connection:
            for kind in _DROP_ORDER:
                if not requested[kind]:
                    continue
                logger.info("Dropping %s %s", kind.value, self._name_for(kind))
                self._execute(connection, self._drop_sql_for(kind))
                dropped.append(kind)

        return dropped

    # DDL ------------------------------------------------------------------------

    def get_create_table_sql(self) -> str:
        definitions = [prop.column_sql() for prop in self.properties]
        if self.key_properties:
            key_columns = ", ".join(prop.quoted_name for prop in self.key_properties)
            definitions.append(f"PRIMARY KEY ({key_columns})")
        body = ",\n    ".join(definitions)
        return f"CREATE TABLE {self.qualified_table_name} (\n    {body}\n)"

    def get_create_type_sql(self) -> str:
        body = ",\n    ".join(prop.column_sql() for prop in self.properties)
        return f"CREATE TYPE {self.qualified_type_name} AS TABLE (\n    {body}\n)"

    def get_create_procedure_sql(self) -> str:
        return (
            f"CREATE PROCEDURE {self.qualified_procedure_name}\n"
            f"    {_DATA_PARAMETER} {self.qualified_type_name} READONLY\n"
            "AS\n"
            "BEGIN\n"
            "    SET NOCOUNT ON;\n"
            "\n"
            f"{self._merge_sql(indent='    ')}\n"
            "END"
        )

    def get_drop_table_sql(self) -> str:
        return f"DROP TABLE {self.qualified_table_name}"

    def get_drop_type_sql(self) -> str:
        return f"DROP TYPE {self.qualified_type_name}"

    def get_drop_procedure_sql(self) -> str:
        return f"DROP PROCEDURE {self.qualified_procedure_name}"

    def get_existing_objects_sql(self) -> str:
        return (
            "SELECT 'table' AS kind FROM sys.tables AS o "
            "JOIN sys.schemas AS s ON o.schema_id = s.schema_id "
            "WHERE s.name = :schema_name AND o.name = :table_name\n"
            "UNION ALL\n"
            "SELECT 'type' AS kind FROM sys.table_types AS o "
            "JOIN sys.schemas AS s ON o.schema_id = s.schema_id "
            "WHERE s.name = :schema_name AND o.name = :type_name\n"
            "UNION ALL\n"
            "SELECT 'procedure' AS kind FROM sys.procedures AS o "
            "JOIN sys.schemas AS s ON o.schema_id = s.schema_id "
            "WHERE s.name = :schema_name AND o.name = :procedure_name"
        )

    # DML ------------------------------------------------------------------------

    def get_query(self, criteria: str | None = None) -> str:
        columns = ", ".join(prop.quoted_name for prop in self.properties)
        sql = f"SELECT {columns} FROM {self.qualified_table_name}"
        if criteria is not None and criteria.strip():
            sql = f"{sql} WHERE {criteria}"
        return sql

    def get_delete_command(self, criteria: str) -> str:
        if criteria is None or not criteria.strip():
            raise ConfigurationError("A criteria is required to delete rows; full table deletes are not supported")
        return f"DELETE FROM {self.qualified_table_name} WHERE {criteria}"

    # Internal helpers -----------------------------------------------------------

    def _merge_sql(self, *, indent: str = "") -> str:
        lines = [
            f"MERGE INTO {self.qualified_table_name} AS {_TARGET_ALIAS}",
            f"USING {_DATA_PARAMETER} AS {_SOURCE_ALIAS}",
            f"ON {self._match_condition()}",
        ]

        if self.key_properties and self._value_properties:
            matched = "WHEN MATCHED"
            if self.extra_criteria:
                matched = f"{matched} AND ({self.extra_criteria})"
            assignments = ",\n        ".join(
                f"{_TARGET_ALIAS}.{prop.quoted_name} = {_SOURCE_ALIAS}.{prop.quoted_name}"
                for prop in self._value_properties
            )
            lines.append(f"{matched} THEN")
            lines.append(f"    UPDATE SET\n        {assignments}")

        insert_columns = ", ".join(prop.quoted_name for prop in self.properties)
        insert_values = ", ".join(f"{_SOURCE_ALIAS}.{prop.quoted_name}" for prop in self.properties)
        lines.append("WHEN NOT MATCHED THEN")
        lines.append(f"    INSERT ({insert_columns})")
        lines.append(f"    VALUES ({insert_values});")

        return "\n".join(f"{indent}{line}".replace("\n", f"\n{indent}") for line in lines)

    def _match_condition(self) -> str:
        if not self.key_properties:
            # Append-only maps never match, so every incoming row is inserted.
            return "1 = 0"
        return " AND ".join(
            f"{_TARGET_ALIAS}.{prop.quoted_name} = {_SOURCE_ALIAS}.{prop.quoted_name}"
            for prop in self.key_properties
        )

    def _existing_objects(self, connection) -> set[SchemaObject]:
        sql = self.get_existing_objects_sql()
        params = {
            "schema_name": self.schema,
            "table_name": self.table_name,
            "type_name": self.type_name,
            "procedure_name": self.procedure_name,
        }
        try:
            rows = connection.execute(text(sql), params).fetchall()
        except SQLAlchemyError as exc:
            logger.error("Failed to inspect existing schema objects for %s: %s", self.qualified_table_name, exc)
            raise StatementExecutionError(sql) from exc
        return {SchemaObject(row[0]) for row in rows}

    def _execute(self, connection, sql: str) -> None:
        try:
            # DDL carries no bind parameters
            connection.exec_driver_sql(sql)
        except SQLAlchemyError as exc:
            logger.error("Failed to execute schema statement for %s: %s", self.qualified_table_name, exc)
            raise StatementExecutionError(sql) from exc

    def _create_sql_for(self, kind: SchemaObject) -> str:
        if kind is SchemaObject.TABLE:
            return self.get_create_table_sql()
        if kind is SchemaObject.TYPE:
            return self.get_create_type_sql()
        return self.get_create_procedure_sql()

    def _drop_sql_for(self, kind: SchemaObject) -> str:
        if kind is SchemaObject.TABLE:
            return self.get_drop_table_sql()
        if kind is SchemaObject.TYPE:
            return self.get_drop_type_sql()
        return self.get_drop_procedure_sql()

    def _name_for(self, kind: SchemaObject) -> str:
        if kind is SchemaObject.TABLE:
            return self.qualified_table_name
        if kind is SchemaObject.TYPE:
            return self.qualified_type_name
        return self.qualified_procedure_name

    def _qualify(self, name: str) -> str:
        return f"{quote_identifier(self.schema)}.{quote_identifier(name)}"
