"""Context-aware SQL completion: keywords, table names and database names."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence
import logging
import re

from tdsql.core.cancellation import cancel_after
from tdsql.utils.constants import COMPLETION_TIMEOUT, SQL_KEYWORDS

logger = logging.getLogger(__name__)

FROM_CONTEXT_RE = re.compile(r'\bFROM\s+\w*$', re.ASCII)
USE_CONTEXT_RE = re.compile(r'^\s*USE\s+\w*$', re.ASCII)


def is_word_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == '_')


def current_word(line: str, pos: int) -> str:
    """Return the run of word characters ending at pos ('' when there is none)."""
    if pos <= 0 or pos > len(line):
        return ''
    if not is_word_char(line[pos - 1]):
        return ''
    start = pos - 1
    while start > 0 and is_word_char(line[start - 1]):
        start -= 1
    return line[start:pos]


def is_from_context(line: str) -> bool:
    return FROM_CONTEXT_RE.search(line.upper()) is not None


def is_use_context(line: str) -> bool:
    return USE_CONTEXT_RE.match(line.upper()) is not None


def unique_sorted(items: Sequence[str]) -> List[str]:
    return sorted(set(items))


@dataclass
class Completion:
    candidates: List[str] = field(default_factory=list)
    replace_length: int = 0


class SQLCompleter:
    """Completion engine bound to a session.

    The session supplies ``client`` (the current engine client), ``database``
    and ``identifier_cache``; database switches on the session are therefore
    visible here without any extra bookkeeping.
    """

    def __init__(self, session: Any, keywords: Optional[Sequence[str]] = None,
                 timeout: float = COMPLETION_TIMEOUT):
        self.session = session
        self.keywords = list(keywords) if keywords is not None else list(SQL_KEYWORDS)
        self.timeout = timeout

    def complete(self, line: str, pos: Optional[int] = None) -> Completion:
        if pos is None:
            pos = len(line)
        word = current_word(line, pos)
        if not word:
            return Completion()
        suggestions = self.suggestions(word, line[:pos])
        if not suggestions:
            return Completion()
        return Completion(suggestions, len(word))

    def suggestions(self, word: str, line: str) -> List[str]:
        if not word:
            return []
        up = word.upper()
        found = [kw for kw in self.keywords if kw.startswith(up)]
        if is_from_context(line):
            found.extend(self.table_suggestions(up))
        if is_use_context(line):
            found.extend(self.database_suggestions(up))
        return unique_sorted(found)

    def table_suggestions(self, prefix: str) -> List[str]:
        cache = self.session.identifier_cache
        tables = cache.tables_for(self.session.database, self._load_tables)
        prefix = prefix.upper()
        return [t for t in tables if t.upper().startswith(prefix)]

    def database_suggestions(self, prefix: str) -> List[str]:
        client = self.session.client
        if client is None:
            return []
        try:
            with cancel_after(self.timeout) as token:
                databases = client.list_databases(token)
        except Exception as e:
            logger.debug(f"Listing databases for completion failed: {e}")
            return []
        prefix = prefix.upper()
        return [db for db in databases if db.upper().startswith(prefix)]

    def _load_tables(self, database: str) -> List[str]:
        client = self.session.client
        if client is None:
            return []
        with cancel_after(self.timeout) as token:
            return client.list_tables(database, token)
