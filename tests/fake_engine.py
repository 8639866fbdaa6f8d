"""In-memory engine doubles shared by the console tests."""
from __future__ import annotations
import re
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from tdsql.core.cancellation import CancelToken
from tdsql.core.engine import EngineClient, QueryCursor
from tdsql.core.errors import QueryCancelled, StatementError
from tdsql.utils.string_utils import unquote_identifier

_SHOW_TABLES_FROM = re.compile(r'^SHOW TABLES FROM ("(?:[^"]|"")+"|\w+)(?: LIMIT (\d+))?$')


class FakeCursor(QueryCursor):
    def __init__(self, columns: Sequence[str], rows: Sequence[Tuple[Any, ...]]):
        self.columns = list(columns)
        self._rows = list(rows)
        self.closed = False

    def __iter__(self):
        return iter(self._rows)

    def close(self) -> None:
        self.closed = True


class FakeClient(EngineClient):
    """Answers SHOW SCHEMAS / SHOW TABLES from a catalog and anything else from results.

    Every statement is appended to ``log`` as (database, sql); clients made by
    with_database() share the catalog, results and log.
    """

    def __init__(self, database: str = 'main',
                 catalog: Optional[Dict[str, List[str]]] = None,
                 results: Optional[Dict[str, Tuple[List[str], List[tuple]]]] = None,
                 errors: Optional[Dict[str, Exception]] = None,
                 log: Optional[List[Tuple[str, str]]] = None):
        self.database = database
        self.catalog = catalog if catalog is not None else {'main': []}
        self.results = results if results is not None else {}
        self.errors = errors if errors is not None else {}
        self.log = log if log is not None else []
        self.closed = False

    @property
    def statements(self) -> List[str]:
        return [sql for _, sql in self.log]

    def query(self, sql: str, token: Optional[CancelToken] = None) -> QueryCursor:
        if token is not None:
            token.raise_if_cancelled()
        self.log.append((self.database, sql))
        if sql in self.errors:
            raise self.errors[sql]
        if sql == 'SHOW SCHEMAS':
            return FakeCursor(['Schema'], [(name,) for name in sorted(self.catalog)])
        if sql == 'SHOW TABLES':
            return FakeCursor(['Table'], [(t,) for t in self.catalog.get(self.database, [])])
        m = _SHOW_TABLES_FROM.match(sql)
        if m:
            name = unquote_identifier(m.group(1))
            if name not in self.catalog:
                raise StatementError(f"Schema '{name}' does not exist")
            tables = self.catalog[name]
            if m.group(2):
                tables = tables[:int(m.group(2))]
            return FakeCursor(['Table'], [(t,) for t in tables])
        columns, rows = self.results.get(sql, (['result'], []))
        return FakeCursor(columns, rows)

    def with_database(self, database: str) -> 'FakeClient':
        return FakeClient(database, self.catalog, self.results, self.errors, self.log)

    def close(self) -> None:
        self.closed = True


class BlockingClient(FakeClient):
    """query() blocks until the token is cancelled, then raises QueryCancelled."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.started = threading.Event()
        self.interrupted = threading.Event()

    def query(self, sql: str, token: Optional[CancelToken] = None) -> QueryCursor:
        self.log.append((self.database, sql))
        token.on_cancel(self.interrupted.set)
        self.started.set()
        self.interrupted.wait(5)
        raise QueryCancelled()
