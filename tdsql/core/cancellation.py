"""Cooperative cancellation primitives shared by the executor and engine clients."""
from __future__ import annotations
import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, List

from tdsql.core.errors import QueryCancelled

logger = logging.getLogger(__name__)


class CancelToken:
    """A one-shot cancellation flag with callbacks.

    Engine clients register a callback (for example "interrupt this cursor")
    through on_cancel(); the executor calls cancel() from the prompt thread.
    Cancelling only asks the work to stop, it never kills the worker.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for cb in callbacks:
            self._run(cb)

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Register callback; runs immediately if already cancelled."""
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        self._run(callback)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise QueryCancelled()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    @staticmethod
    def _run(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.debug(f"Cancel callback failed: {e}")


@contextmanager
def cancel_after(seconds: float) -> Iterator[CancelToken]:
    """Yield a token that is cancelled automatically once the deadline passes."""
    token = CancelToken()
    timer = threading.Timer(seconds, token.cancel)
    timer.daemon = True
    timer.start()
    try:
        yield token
    finally:
        timer.cancel()
