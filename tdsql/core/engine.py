"""Query engine clients.

The console only talks to an EngineClient: run a statement, get back a
cursor with column names and rows, switch database, close. Anything that
implements this surface (a remote service client, a test double) can be
injected. DuckDBClient is the engine bundled with tdsql.
"""
from __future__ import annotations
from typing import Any, Iterator, List, Optional, Tuple
import logging
import re

import duckdb

from tdsql.core.cancellation import CancelToken
from tdsql.core.errors import (
    EngineConnectionError, QueryCancelled, ScanError, StatementError, TDSQLException
)
from tdsql.utils.constants import DEFAULT_DATABASE
from tdsql.utils.string_utils import escape_identifier, escape_literal, unquote_identifier

logger = logging.getLogger(__name__)

Row = Tuple[Any, ...]


class QueryCursor:
    """Rows of one executed statement. Iterating scans one row at a time."""

    columns: List[str] = []

    def __iter__(self) -> Iterator[Row]:
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self) -> "QueryCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class EngineClient:
    """Client handle bound to one database of a query engine."""

    database: str = DEFAULT_DATABASE

    def query(self, sql: str, token: Optional[CancelToken] = None) -> QueryCursor:
        raise NotImplementedError

    def with_database(self, database: str) -> "EngineClient":
        """Return a client bound to another database."""
        raise NotImplementedError

    def close(self) -> None:
        pass

    def ping(self, token: Optional[CancelToken] = None) -> None:
        with self.query("SELECT 1", token) as cursor:
            for _ in cursor:
                pass

    def list_tables(self, database: str, token: Optional[CancelToken] = None) -> List[str]:
        return self._first_column(f"SHOW TABLES FROM {escape_identifier(database)}", token)

    def list_databases(self, token: Optional[CancelToken] = None) -> List[str]:
        return self._first_column("SHOW SCHEMAS", token)

    def _first_column(self, sql: str, token: Optional[CancelToken]) -> List[str]:
        names = []
        with self.query(sql, token) as cursor:
            for row in cursor:
                if row:
                    names.append(str(row[0]))
        return names

    def __enter__(self) -> "EngineClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# --------------------------------------------------
# DuckDB
# --------------------------------------------------

_IDENT = r'("(?:[^"]|"")+"|[A-Za-z_][A-Za-z0-9_]*)'
SHOW_SCHEMAS_RE = re.compile(r'^\s*SHOW\s+SCHEMAS\s*$', re.IGNORECASE)
SHOW_TABLES_RE = re.compile(
    r'^\s*SHOW\s+TABLES(?:\s+FROM\s+' + _IDENT + r')?(?:\s+LIMIT\s+(\d+))?\s*$', re.IGNORECASE
)

_SCHEMAS_SQL = (
    'SELECT schema_name AS "Schema" FROM information_schema.schemata '
    'WHERE catalog_name = current_database() ORDER BY schema_name'
)
_TABLES_SQL = (
    'SELECT table_name AS "Table" FROM information_schema.tables '
    'WHERE table_catalog = current_database() AND table_schema = ? ORDER BY table_name'
)
_SCHEMA_EXISTS_SQL = (
    'SELECT count(*) FROM information_schema.schemata '
    'WHERE catalog_name = current_database() AND schema_name = ?'
)


def _wrap_duckdb_error(e: Exception) -> TDSQLException:
    if isinstance(e, duckdb.InterruptException):
        return QueryCancelled()
    if isinstance(e, (duckdb.IOException, duckdb.ConnectionException)):
        return EngineConnectionError(str(e))
    return StatementError(str(e))


class DuckDBCursor(QueryCursor):
    def __init__(self, cursor: duckdb.DuckDBPyConnection, fetch_size: int = 1024):
        self._cur = cursor
        self.fetch_size = fetch_size
        description = cursor.description or []
        self.columns = [d[0] for d in description]

    def __iter__(self) -> Iterator[Row]:
        if not self.columns or self._cur is None:
            return
        while True:
            try:
                batch = self._cur.fetchmany(self.fetch_size)
            except duckdb.InterruptException as e:
                raise QueryCancelled() from e
            except duckdb.Error as e:
                raise ScanError(f"Failed to scan row: {e}") from e
            if not batch:
                return
            yield from batch

    def close(self) -> None:
        if self._cur is not None:
            try:
                self._cur.close()
            except duckdb.Error as e:
                logger.debug(f"Closing DuckDB cursor failed: {e}")
            self._cur = None


class DuckDBClient(EngineClient):
    """EngineClient over a DuckDB database; a "database" is a DuckDB schema.

    Each statement runs on its own DuckDB cursor so the prompt thread can
    interrupt it. Clients derived through with_database() share the same
    connection; the newest one owns (and eventually closes) it.
    """

    def __init__(self, path: str = ':memory:', database: str = DEFAULT_DATABASE,
                 *, read_only: bool = False,
                 connection: Optional[duckdb.DuckDBPyConnection] = None):
        self.path = path
        self.database = database or DEFAULT_DATABASE
        self._owns_connection = connection is None
        if connection is None:
            try:
                connection = duckdb.connect(database=path, read_only=read_only)
            except duckdb.Error as e:
                raise EngineConnectionError(f"Cannot open DuckDB database '{path}': {e}") from e
        self._con: Optional[duckdb.DuckDBPyConnection] = connection

    @property
    def closed(self) -> bool:
        return self._con is None

    def query(self, sql: str, token: Optional[CancelToken] = None) -> QueryCursor:
        if self._con is None:
            raise EngineConnectionError("DuckDB client is closed")
        if token is not None:
            token.raise_if_cancelled()
        try:
            cur = self._con.cursor()
        except duckdb.Error as e:
            raise EngineConnectionError(f"Cannot open DuckDB cursor: {e}") from e
        if token is not None:
            token.on_cancel(cur.interrupt)
        try:
            cur.execute(f"SET schema = {escape_literal(self.database)}")
            statement, params = self._translate(cur, sql)
            if params:
                cur.execute(statement, params)
            else:
                cur.execute(statement)
        except Exception as e:
            cur.close()
            if token is not None and token.cancelled:
                raise QueryCancelled() from e
            if isinstance(e, TDSQLException):
                raise
            if isinstance(e, duckdb.Error):
                raise _wrap_duckdb_error(e) from e
            raise
        logger.debug(f"Executed on DuckDB ({self.database}): {sql}")
        return DuckDBCursor(cur)

    def _translate(self, cur: duckdb.DuckDBPyConnection, sql: str) -> tuple[str, list]:
        """Map the console's canonical SHOW statements onto information_schema."""
        if SHOW_SCHEMAS_RE.match(sql):
            return _SCHEMAS_SQL, []
        m = SHOW_TABLES_RE.match(sql)
        if not m:
            return sql, []
        schema = unquote_identifier(m.group(1)) if m.group(1) else self.database
        exists = cur.execute(_SCHEMA_EXISTS_SQL, [schema]).fetchone()
        if not exists or not exists[0]:
            raise StatementError(f"Schema '{schema}' does not exist")
        statement = _TABLES_SQL
        if m.group(2):
            statement += f" LIMIT {int(m.group(2))}"
        return statement, [schema]

    def with_database(self, database: str) -> "DuckDBClient":
        if self._con is None:
            raise EngineConnectionError("DuckDB client is closed")
        other = DuckDBClient(self.path, database, connection=self._con)
        other._owns_connection = self._owns_connection
        self._owns_connection = False
        return other

    def close(self) -> None:
        if self._con is None:
            return
        if self._owns_connection:
            try:
                self._con.close()
            except duckdb.Error as e:
                logger.warning(f"Failed to close DuckDB connection: {e}")
        self._con = None
