import argparse
import importlib
import logging
from typing import Optional

from sqlupsert.config import Settings, get_settings
from sqlupsert.database import SqlConnectionFactory
from sqlupsert.mapping import AutoMapper
from sqlupsert.services import UpsertHelper
from sqlupsert.services.upsert_helper import build_schema_manager


def load_type(target: str) -> type:
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise ValueError(f"Expected a 'package.module:ClassName' target, got '{target}'")

    module = importlib.import_module(module_name)
    resolved = module
    for part in attribute.split("."):
        resolved = getattr(resolved, part)
    if not isinstance(resolved, type):
        raise ValueError(f"'{target}' does not name a class")
    return resolved


def render_schema_sql(row_type: type, *, table_name: Optional[str] = None, schema: Optional[str] = None, settings: Optional[Settings] = None) -> str:
    resolved_settings = settings or get_settings()
    class_map = AutoMapper().get_map(row_type)
    manager = build_schema_manager(None, class_map, table_name=table_name, schema=schema, settings=resolved_settings)
    statements = [
        manager.get_create_table_sql(),
        manager.get_create_type_sql(),
        manager.get_create_procedure_sql(),
    ]
    return "\nGO\n\n".join(statements) + "\nGO\n"


def apply_schema(row_type: type, *, table_name: Optional[str] = None, schema: Optional[str] = None, settings: Optional[Settings] = None) -> list[str]:
    resolved_settings = settings or get_settings()
    if not resolved_settings.database_url:
        raise RuntimeError("SQLUPSERT_DATABASE_URL must be set to apply the schema")

    factory = SqlConnectionFactory(
        resolved_settings.database_url,
        command_timeout_seconds=resolved_settings.command_timeout_seconds,
    )
    try:
        helper = UpsertHelper(factory, row_type, table_name=table_name, schema=schema, settings=resolved_settings)
        created = helper.create_schema()
    finally:
        factory.dispose()
    return [kind.value for kind in created]


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Print or create the upsert schema for a mapped dataclass.")
    parser.add_argument("target", help="Mapped type as 'package.module:ClassName'")
    parser.add_argument("--table", default=None, help="Table name (defaults to the class name)")
    parser.add_argument("--schema", default=None, help="Database schema (defaults to SQLUPSERT_DEFAULT_SCHEMA)")
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Create missing objects in the database configured by SQLUPSERT_DATABASE_URL instead of printing DDL",
    )

    args = parser.parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO))

    row_type = load_type(args.target)
    if args.apply:
        created = apply_schema(row_type, table_name=args.table, schema=args.schema, settings=settings)
        if created:
            print(f"Created: {', '.join(created)}")
        else:
            print("Schema already present; nothing created")
        return

    print(render_schema_sql(row_type, table_name=args.table, schema=args.schema, settings=settings))


if __name__ == "__main__":
    main()
