from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Connection, Engine, make_url

from sqlupsert.schemas import IsolationLevel

logger = logging.getLogger(__name__)

_DEFAULT_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"


def create_engine_for_url(url: str | URL) -> Engine:
    parsed = make_url(url)
    engine_kwargs: dict[str, object] = {"pool_pre_ping": True}

    if parsed.drivername.startswith("mssql+pyodbc") and "driver" not in parsed.query and "odbc_connect" not in parsed.query:
        parsed = parsed.update_query_dict({"driver": _DEFAULT_ODBC_DRIVER})

    return create_engine(parsed, **engine_kwargs)


class SqlConnectionFactory:
    """Opens transactional connections; the only piece of the library that touches the transport."""

    def __init__(self, target: str | URL | Engine, *, command_timeout_seconds: int | None = None) -> None:
        self.engine = create_engine_for_url(target) if isinstance(target, (str, URL)) else target
        self.command_timeout_seconds = command_timeout_seconds

    @contextmanager
    def open_transaction(self, isolation_level: IsolationLevel | str) -> Iterator[Connection]:
        """Yield a connection inside a transaction; commit on exit, roll back on exception.

        The pooled DBAPI connection gets its previous timeout back when the transaction ends.
        """

        level = isolation_level.value if isinstance(isolation_level, IsolationLevel) else str(isolation_level)
        with self.engine.connect() as connection:
            connection = connection.execution_options(isolation_level=level)
            previous_timeout = self._apply_command_timeout(connection)
            try:
                with connection.begin():
                    yield connection
            finally:
                if previous_timeout is not None:
                    connection.connection.dbapi_connection.timeout = previous_timeout

    def dispose(self) -> None:
        self.engine.dispose()

    def _apply_command_timeout(self, connection: Connection) -> int | None:
        """Set the pyodbc query timeout and return the value it replaced, or ``None`` when untouched."""

        if not self.command_timeout_seconds:
            return None
        if connection.dialect.driver != "pyodbc":
            logger.debug("Command timeout is only applied to pyodbc connections; driver is %s", connection.dialect.driver)
            return None
        # pyodbc exposes the per-statement query timeout on the DBAPI connection
        dbapi_connection = connection.connection.dbapi_connection
        previous_timeout = dbapi_connection.timeout
        dbapi_connection.timeout = self.command_timeout_seconds
        return previous_timeout
