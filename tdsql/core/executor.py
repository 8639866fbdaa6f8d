"""Run one statement on a worker thread and make it cancellable.

The caller's thread waits on two signals: the worker finishing, and an
interrupt request (SIGINT while a statement is in flight, or a host calling
interrupt()). An interrupt cancels the token handed to the engine and then
still waits for the worker to unwind, so two statements never overlap.
"""
from __future__ import annotations
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, TextIO, Union
import logging
import signal
import sys
import threading
import time

from tdsql.core.cancellation import CancelToken
from tdsql.core.engine import EngineClient, QueryCursor
from tdsql.core.errors import QueryCancelled

logger = logging.getLogger(__name__)

# Renders a cursor on the worker thread; returns the number of rows emitted.
RowHandler = Callable[[QueryCursor, CancelToken], int]


@dataclass
class Success:
    columns: List[str] = field(default_factory=list)
    row_count: int = 0
    elapsed: float = 0.0


@dataclass
class Failure:
    error: BaseException
    elapsed: float = 0.0


@dataclass
class Cancelled:
    elapsed: float = 0.0


QueryOutcome = Union[Success, Failure, Cancelled]


class QueryExecutor:
    """Executes statements one at a time with cooperative cancellation."""

    def __init__(self, out: Optional[TextIO] = None, poll_interval: float = 0.05,
                 handle_sigint: bool = True):
        self.out = out or sys.stdout
        self.poll_interval = poll_interval
        self.handle_sigint = handle_sigint
        self._interrupt = threading.Event()
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def interrupt(self) -> None:
        """Request cancellation of the statement in flight (no effect when idle)."""
        if self.busy:
            self._interrupt.set()

    def execute(self, client: EngineClient, sql: str, handler: RowHandler) -> QueryOutcome:
        if not self._lock.acquire(blocking=False):
            raise RuntimeError("A query is already running in this session")
        try:
            return self._execute(client, sql, handler)
        finally:
            self._interrupt.clear()
            self._lock.release()

    def _execute(self, client: EngineClient, sql: str, handler: RowHandler) -> QueryOutcome:
        token = CancelToken()
        done = threading.Event()
        result: Dict[str, Any] = {}
        start = time.monotonic()

        def work() -> None:
            try:
                cursor = client.query(sql, token)
                try:
                    result['columns'] = list(cursor.columns)
                    result['rows'] = handler(cursor, token)
                finally:
                    cursor.close()
            except Exception as e:
                result['error'] = e
            except KeyboardInterrupt:
                token.cancel()
            finally:
                done.set()

        worker = threading.Thread(target=work, name='tdsql-query', daemon=True)
        worker.start()

        with self._route_sigint():
            while not done.wait(self.poll_interval):
                if self._interrupt.is_set():
                    self.out.write("\n\nReceived interrupt, cancelling query...\n")
                    self.out.flush()
                    logger.info(f"Cancelling query: {sql}")
                    token.cancel()
                    done.wait()
                    break
        worker.join()
        elapsed = time.monotonic() - start

        error = result.get('error')
        if token.cancelled or isinstance(error, QueryCancelled):
            return Cancelled(elapsed)
        if error is not None:
            return Failure(error, elapsed)
        return Success(result.get('columns', []), result.get('rows', 0), elapsed)

    @contextmanager
    def _route_sigint(self) -> Iterator[None]:
        """Turn SIGINT into an interrupt request while a statement runs."""
        if not self.handle_sigint or threading.current_thread() is not threading.main_thread():
            yield
            return

        def _on_sigint(signum, frame):
            self._interrupt.set()

        previous = signal.signal(signal.SIGINT, _on_sigint)
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, previous)
