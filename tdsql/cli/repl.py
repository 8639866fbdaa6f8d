"""Interactive SQL console.

Reads one line at a time, handles the session commands below, and hands
everything else to the query executor; results stream back through the
table/json/csv writers (table output is paged).

  quit, exit                 leave the console
  help                       print help
  clear, cls                 clear the screen
  show databases|schemas     SHOW SCHEMAS
  show tables [from <db>]    SHOW TABLES [FROM "<db>"]
  use <db>                   switch database (validated first)
  show current database      print the current database
  select database()          same as above
  describe <table>           DESCRIBE "<current db>"."<table>"

Ctrl-C cancels a running query; on an empty prompt it exits.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, TextIO
import os
import sys
import re
import logging
import tempfile

from tdsql.core.cancellation import CancelToken
from tdsql.core.completion import SQLCompleter
from tdsql.core.engine import EngineClient, QueryCursor
from tdsql.core.errors import QueryCancelled, TDSQLException
from tdsql.core.executor import Cancelled, Failure, QueryExecutor, QueryOutcome, Success
from tdsql.core.output_writer import normalize_format, stream_result
from tdsql.core.pager import Pager
from tdsql.utils.cache_manager import IdentifierCache
from tdsql.utils.constants import (
    COMPLETION_TIMEOUT, DEFAULT_PAGE_SIZE, HISTORY_DIR_NAME, HISTORY_FILE_NAME,
    HISTORY_LIMIT, TABLE_CACHE_TTL,
)
from tdsql.utils.string_utils import escape_identifier, format_duration, strip_quotes

try:
    import readline  # type: ignore
except Exception:  # pragma: no cover
    readline = None
# Attempt gnureadline fallback if readline missing
if readline is None:
    try:
        import gnureadline as readline  # type: ignore
    except Exception:  # pragma: no cover
        readline = None

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = "tdsql:{database}> "
CLEAR_SCREEN = "\033[H\033[2J"
# Everything except word characters separates completion words
COMPLETER_DELIMS = ''.join(chr(c) for c in range(32, 127) if not (chr(c).isalnum() or chr(c) == '_')) + '\t\n'

HELP_TEXT = """
Interactive commands:
  quit, exit               - Exit the interactive session
  help                     - Show this help message
  clear, cls               - Clear the screen

Database Commands:
  show databases           - List all available databases
  show schemas             - Same as show databases
  use <database>           - Switch to a different database
  show current database    - Show the current database name
  show tables              - List tables in current database
  show tables from <db>    - List tables in specified database

SQL Commands:
  SELECT ...               - Execute SELECT queries
  DESCRIBE <table>         - Show table structure (uses current database)
  DESCRIBE <db>.<table>    - Show table structure from specific database
  SHOW SCHEMAS             - List all schemas/databases
  SHOW TABLES              - List tables in current schema
  SHOW TABLES FROM <db>    - List tables from specific database

Enhanced Features:
  Command History          - Use Up/Down arrows to navigate command history
  Auto-completion          - Press Tab for SQL keyword and table name completion
  Query Cancellation       - Press Ctrl+C to cancel running queries

Keyboard Shortcuts:
  Tab                      - Auto-complete current word
  Up/Down Arrow            - Navigate command history
  Ctrl+A                   - Move to beginning of line
  Ctrl+E                   - Move to end of line
  Ctrl+K                   - Delete from cursor to end of line
  Ctrl+U                   - Delete from cursor to beginning of line
  Ctrl+C                   - Cancel current query (during execution)
  Ctrl+C (empty line)      - Exit interactive session

Pagination Controls (table output):
  Enter                    - Show next page
  q, quit                  - Stop query and exit pagination
  a, all                   - Show all remaining rows without pagination

Examples:
  use sample_datasets;
  show tables;
  SELECT COUNT(*) FROM nasdaq;
  DESCRIBE sample_datasets.nasdaq;
  SELECT * FROM nasdaq LIMIT 10;
"""

_SHOW_TABLES_FROM_RE = re.compile(r'^show\s+tables\s+from\s+(.+)$', re.IGNORECASE)
_USE_RE = re.compile(r'^use(?:\s+(.*))?$', re.IGNORECASE)
_DESCRIBE_RE = re.compile(r'^describe\s+(.+)$', re.IGNORECASE)


class CommandKind(Enum):
    EMPTY = 'empty'
    QUIT = 'quit'
    HELP = 'help'
    CLEAR = 'clear'
    USE = 'use'
    CURRENT_DATABASE = 'current_database'
    SQL = 'sql'


@dataclass
class Command:
    kind: CommandKind
    argument: str = ''


def _collapse(text: str) -> str:
    return ' '.join(text.split()).lower()


def qualify_table(name: str, database: str) -> str:
    """Qualify a bare table name with database; dotted names pass through."""
    if '.' in name:
        return name
    return f"{escape_identifier(database)}.{escape_identifier(strip_quotes(name))}"


def parse_command(line: str, database: str) -> Command:
    """Classify one input line and apply the convenience rewrites.

    For CommandKind.SQL the argument is the statement to run; for USE it is
    the unquoted database name (possibly empty).
    """
    text = line.strip()
    while text.endswith(';'):
        text = text[:-1].rstrip()
    if not text:
        return Command(CommandKind.EMPTY)

    lowered = _collapse(text)
    if lowered in ('quit', 'exit'):
        return Command(CommandKind.QUIT)
    if lowered == 'help':
        return Command(CommandKind.HELP)
    if lowered in ('clear', 'cls'):
        return Command(CommandKind.CLEAR)
    if lowered in ('show databases', 'show schemas'):
        return Command(CommandKind.SQL, 'SHOW SCHEMAS')
    if lowered == 'show tables':
        return Command(CommandKind.SQL, 'SHOW TABLES')
    if lowered in ('show current database', 'select database()'):
        return Command(CommandKind.CURRENT_DATABASE)

    m = _SHOW_TABLES_FROM_RE.match(text)
    if m:
        return Command(CommandKind.SQL, f"SHOW TABLES FROM {escape_identifier(strip_quotes(m.group(1)))}")
    m = _USE_RE.match(text)
    if m:
        return Command(CommandKind.USE, strip_quotes(m.group(1) or ''))
    m = _DESCRIBE_RE.match(text)
    if m:
        return Command(CommandKind.SQL, f"DESCRIBE {qualify_table(m.group(1).strip(), database)}")
    return Command(CommandKind.SQL, text)


def read_page_answer(prompt: str) -> str:
    """Read a pagination answer straight from stdin, bypassing readline history."""
    sys.stdout.write(prompt)
    sys.stdout.flush()
    line = sys.stdin.readline()
    if not line:
        raise EOFError
    return line.rstrip('\n')


class Session:
    """State for one interactive console: engine client, database and completion."""

    def __init__(self, client: EngineClient, *, output_format: str = 'table',
                 page_size: int = DEFAULT_PAGE_SIZE, limit: Optional[int] = None,
                 out: Optional[TextIO] = None,
                 pager_reader: Optional[Callable[[str], str]] = None,
                 cache_ttl: float = TABLE_CACHE_TTL,
                 completion_timeout: float = COMPLETION_TIMEOUT,
                 handle_sigint: bool = True):
        self.client: Optional[EngineClient] = client
        self.output_format = normalize_format(output_format)
        self.page_size = page_size
        self.limit = limit
        self.out = out or sys.stdout
        self.pager_reader = pager_reader or read_page_answer
        self.identifier_cache = IdentifierCache(ttl=cache_ttl)
        self.completer = SQLCompleter(self, timeout=completion_timeout)
        self.executor = QueryExecutor(out=self.out, handle_sigint=handle_sigint)

    @property
    def database(self) -> str:
        return self.client.database if self.client is not None else ''

    @property
    def prompt(self) -> str:
        return PROMPT_TEMPLATE.format(database=self.database)

    def switch_database(self, name: str) -> None:
        """Validate name against the engine, then move the session onto it.

        On failure the error propagates and the current client stays active.
        """
        check = f"SHOW TABLES FROM {escape_identifier(name)} LIMIT 1"
        outcome = self.executor.execute(self.client, check, lambda cursor, token: 0)
        if isinstance(outcome, Cancelled):
            raise QueryCancelled()
        if isinstance(outcome, Failure):
            raise outcome.error
        new_client = self.client.with_database(name)
        old_client, self.client = self.client, new_client
        try:
            old_client.close()
        except Exception as e:
            logger.debug(f"Closing previous client failed: {e}")
        self.identifier_cache.invalidate()
        logger.info(f"Switched database to {name}")

    def run_statement(self, sql: str) -> QueryOutcome:
        return self.executor.execute(self.client, sql, self._render)

    def _render(self, cursor: QueryCursor, token: CancelToken) -> int:
        pager = None
        if self.output_format == 'table' and self.page_size > 0:
            pager = Pager(self.page_size, reader=self.pager_reader, out=self.out)
        return stream_result(cursor, self.out, self.output_format,
                             limit=self.limit, pager=pager, token=token)

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None


def report_outcome(outcome: QueryOutcome, out: TextIO) -> None:
    if isinstance(outcome, Success):
        out.write(f"\n(Query completed in {format_duration(outcome.elapsed)}, {outcome.row_count} rows total)\n\n")
    elif isinstance(outcome, Cancelled):
        out.write(f"Query cancelled after {format_duration(outcome.elapsed)}\n\n")
    elif isinstance(outcome, Failure):
        out.write(f"Error: {outcome.error}\n")
    out.flush()


def handle_line(session: Session, line: str) -> bool:
    """Process one input line. Returns False when the session should end."""
    out = session.out
    cmd = parse_command(line, session.database)
    if cmd.kind is CommandKind.EMPTY:
        return True
    if cmd.kind is CommandKind.QUIT:
        out.write("Goodbye!\n")
        return False
    if cmd.kind is CommandKind.HELP:
        out.write(HELP_TEXT)
    elif cmd.kind is CommandKind.CLEAR:
        out.write(CLEAR_SCREEN)
    elif cmd.kind is CommandKind.CURRENT_DATABASE:
        out.write(f"Current database: {session.database}\n")
    elif cmd.kind is CommandKind.USE:
        if not cmd.argument:
            out.write("Error: Database name required. Usage: USE database_name\n")
        else:
            try:
                session.switch_database(cmd.argument)
                out.write(f"Database changed to '{cmd.argument}'\n")
            except Exception as e:
                out.write(f"Error: Cannot switch to database '{cmd.argument}': {e}\n")
    else:
        report_outcome(session.run_statement(cmd.argument), out)
    out.flush()
    return True


class _ReadlineCompleter:
    """Adapts SQLCompleter to readline's (text, state) protocol."""

    def __init__(self, completer: SQLCompleter):
        self.completer = completer
        self._matches: List[str] = []

    def __call__(self, text: str, state: int) -> Optional[str]:
        if state == 0:
            try:
                line = readline.get_line_buffer() if readline else text
                end = readline.get_endidx() if readline else len(text)
                self._matches = self.completer.complete(line, end).candidates
            except Exception as e:  # pragma: no cover
                logger.debug(f"Completion failed: {e}")
                self._matches = []
        if state < len(self._matches):
            return self._matches[state]
        return None


def _history_file(path: Optional[str] = None) -> str:
    """History file path; the directory is created, falling back to the temp dir."""
    if path:
        return os.path.expanduser(path)
    directory = os.path.join(os.path.expanduser("~"), HISTORY_DIR_NAME)
    try:
        os.makedirs(directory, exist_ok=True)
    except OSError as e:
        logger.debug(f"Cannot create {directory}: {e}")
        directory = tempfile.gettempdir()
    return os.path.join(directory, HISTORY_FILE_NAME)


def _setup_readline(session: Session, history_path: str, history_limit: int) -> None:
    if not readline:
        return
    try:
        readline.set_completer(_ReadlineCompleter(session.completer))
        readline.set_completer_delims(COMPLETER_DELIMS)
        # libedit (macOS default) needs a different binding than GNU readline
        docstr = getattr(readline, '__doc__', '') or ''
        if 'libedit' in docstr.lower():
            readline.parse_and_bind('bind ^I rl_complete')
        else:
            readline.parse_and_bind('tab: complete')
        readline.parse_and_bind('set completion-ignore-case on')
        readline.set_history_length(history_limit)
        if os.path.exists(history_path):
            readline.read_history_file(history_path)
    except Exception as e:  # pragma: no cover
        logger.debug(f"Readline setup failed: {e}")


def _save_history(history_path: str) -> None:
    if not readline:
        return
    try:
        readline.write_history_file(history_path)
    except Exception as e:
        logger.warning(f"Failed to save history to {history_path}: {e}")


def _pending_input() -> str:
    if not readline:
        return ''
    try:
        return readline.get_line_buffer()
    except Exception:  # pragma: no cover
        return ''


def repl_loop(session: Session, read_line: Callable[[str], str]) -> None:
    """Read and handle lines until quit, end of input, or Ctrl-C on an empty prompt."""
    out = session.out
    while True:
        try:
            line = read_line(session.prompt)
        except EOFError:
            out.write("\nGoodbye!\n")
            break
        except KeyboardInterrupt:
            if _pending_input().strip():
                out.write("^C\n")
                continue
            out.write("\nGoodbye!\n")
            break
        try:
            if not handle_line(session, line):
                break
        except KeyboardInterrupt:
            out.write("^C\n")
        except TDSQLException as e:
            out.write(f"Error: {e}\n")
        except Exception as e:
            logger.exception(f"Unexpected error handling input: {e}")
            out.write(f"Error: {e}\n")
    out.flush()


def print_banner(session: Session) -> None:
    out = session.out
    out.write("tdsql interactive session\n")
    out.write("Type 'quit' or 'exit' to exit, 'help' for help\n")
    out.write(f"Database: {session.database}\n\n")
    out.flush()


def start_repl(client: EngineClient, *, output_format: str = 'table',
               page_size: int = DEFAULT_PAGE_SIZE, limit: Optional[int] = None,
               history_file: Optional[str] = None, history_limit: int = HISTORY_LIMIT,
               show_banner: bool = True, cache_ttl: float = TABLE_CACHE_TTL,
               completion_timeout: float = COMPLETION_TIMEOUT,
               out: Optional[TextIO] = None) -> int:
    """Run the interactive console on client until the user leaves.

    The connection is checked before anything else; returns 1 when that
    check fails, 0 otherwise.
    """
    out = out or sys.stdout
    try:
        client.ping()
    except Exception as e:
        logger.error(f"Connection test failed: {e}")
        out.write(f"Error: Connection test failed: {e}\n")
        out.flush()
        client.close()
        return 1
    session = Session(client, output_format=output_format, page_size=page_size, limit=limit,
                      out=out, cache_ttl=cache_ttl, completion_timeout=completion_timeout)
    history_path = _history_file(history_file)
    _setup_readline(session, history_path, history_limit)
    if show_banner:
        print_banner(session)
    try:
        repl_loop(session, input)
    finally:
        _save_history(history_path)
        session.close()
    return 0
