"""Streaming result writers (table, json, csv).

Rows are pulled from the cursor one at a time and written through a bounded
buffer, so memory use does not depend on the size of the result set.
"""
from __future__ import annotations
from typing import Any, Iterable, Iterator, List, Optional, Sequence, TextIO
import csv
import io
import json
import logging
import math

from tdsql.core.cancellation import CancelToken
from tdsql.core.errors import ScanError, TDSQLException, UserInputError
from tdsql.core.pager import PageAction, Pager
from tdsql.utils.constants import (
    FLUSH_EVERY_ROWS, NULL_TEXT, OUTPUT_BUFFER_SIZE, SUPPORTED_OUTPUT_FORMATS,
    UNBOUNDED_FLUSH_EVERY_ROWS,
)

logger = logging.getLogger(__name__)


class BufferedOutput:
    """Fixed-capacity text buffer in front of a stream.

    Writes accumulate until the next write would exceed the capacity, then
    the buffer is drained to the stream and reused.
    """

    def __init__(self, stream: TextIO, capacity: int = OUTPUT_BUFFER_SIZE):
        self.stream = stream
        self.capacity = capacity
        self._buf = io.StringIO()
        self._size = 0
        self.high_water = 0

    def write(self, text: str) -> int:
        n = len(text)
        if self._size + n > self.capacity:
            self._drain()
        if n > self.capacity:
            self.stream.write(text)
            return n
        self._buf.write(text)
        self._size += n
        if self._size > self.high_water:
            self.high_water = self._size
        return n

    def _drain(self) -> None:
        if self._size:
            self.stream.write(self._buf.getvalue())
            self._buf.seek(0)
            self._buf.truncate(0)
            self._size = 0

    def flush(self) -> None:
        self._drain()
        flush = getattr(self.stream, 'flush', None)
        if flush is not None:
            flush()


def normalize_format(fmt: Optional[str]) -> str:
    name = (fmt or 'table').lower()
    if name not in SUPPORTED_OUTPUT_FORMATS:
        raise UserInputError(
            f"Unsupported output format: {fmt} (expected one of {', '.join(SUPPORTED_OUTPUT_FORMATS)})"
        )
    return name


def scan_rows(rows: Iterable[Sequence[Any]], token: Optional[CancelToken] = None) -> Iterator[Sequence[Any]]:
    """Iterate rows, honouring cancellation and wrapping driver errors as ScanError."""
    it = iter(rows)
    while True:
        if token is not None:
            token.raise_if_cancelled()
        try:
            row = next(it)
        except StopIteration:
            return
        except TDSQLException:
            raise
        except Exception as e:
            raise ScanError(f"Failed to scan row: {e}") from e
        yield row


def _text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return value.decode('utf-8', errors='replace')
    return str(value)


def _json_value(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return value.decode('utf-8', errors='replace')
    # NaN and the infinities have no JSON spelling
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def write_table(rows: Iterable[Sequence[Any]], columns: Sequence[str], stream: TextIO, *,
                limit: Optional[int] = None, pager: Optional[Pager] = None,
                token: Optional[CancelToken] = None) -> int:
    """Tab-separated table with header and separator; optional interactive paging.

    Returns the number of data rows written.
    """
    out = BufferedOutput(stream)
    out.write('\t'.join(columns) + '\n')
    out.write('\t'.join('-' * len(c) for c in columns) + '\n')
    out.flush()

    line = io.StringIO()
    count = 0
    for row in scan_rows(rows, token):
        if limit and limit > 0 and count >= limit:
            break
        line.seek(0)
        line.truncate(0)
        for i, val in enumerate(row):
            if i:
                line.write('\t')
            line.write(NULL_TEXT if val is None else _text(val))
        line.write('\n')
        out.write(line.getvalue())
        count += 1

        if pager is None:
            if count % FLUSH_EVERY_ROWS == 0:
                out.flush()
            continue
        if pager.row_emitted():
            out.flush()
            if pager.prompt() is PageAction.QUIT:
                return count
        elif pager.unbounded and count % UNBOUNDED_FLUSH_EVERY_ROWS == 0:
            out.flush()
    out.flush()
    return count


def write_json(rows: Iterable[Sequence[Any]], columns: Sequence[str], stream: TextIO, *,
               limit: Optional[int] = None, token: Optional[CancelToken] = None) -> int:
    """Stream a JSON array, one object per row; nothing is accumulated between rows."""
    out = BufferedOutput(stream)
    out.write('[\n')
    count = 0
    for row in scan_rows(rows, token):
        if limit and limit > 0 and count >= limit:
            break
        record = {col: _json_value(row[i]) for i, col in enumerate(columns)}
        if count:
            out.write(',\n')
        out.write('  ' + json.dumps(record, default=str, ensure_ascii=False, allow_nan=False))
        count += 1
        if count % FLUSH_EVERY_ROWS == 0:
            out.flush()
    out.write('\n]\n')
    out.flush()
    return count


def write_csv(rows: Iterable[Sequence[Any]], columns: Sequence[str], stream: TextIO, *,
              limit: Optional[int] = None, token: Optional[CancelToken] = None) -> int:
    """Stream CSV: header first (flushed at once), then one record per row."""
    out = BufferedOutput(stream)
    writer = csv.writer(out, lineterminator='\n')
    writer.writerow(columns)
    out.flush()

    record: List[str] = [''] * len(columns)
    count = 0
    for row in scan_rows(rows, token):
        if limit and limit > 0 and count >= limit:
            break
        for i in range(len(record)):
            val = row[i]
            record[i] = '' if val is None else _text(val)
        writer.writerow(record)
        count += 1
        if count % FLUSH_EVERY_ROWS == 0:
            out.flush()
    out.flush()
    return count


def stream_result(cursor: Any, stream: TextIO, output_format: str = 'table', *,
                  limit: Optional[int] = None, pager: Optional[Pager] = None,
                  token: Optional[CancelToken] = None) -> int:
    """Write a cursor (``columns`` + row iteration) in the requested format."""
    fmt = normalize_format(output_format)
    columns = list(cursor.columns)
    if fmt == 'json':
        count = write_json(cursor, columns, stream, limit=limit, token=token)
    elif fmt == 'csv':
        count = write_csv(cursor, columns, stream, limit=limit, token=token)
    else:
        count = write_table(cursor, columns, stream, limit=limit, pager=pager, token=token)
    logger.debug(f"Streamed {count} rows as {fmt}")
    return count
