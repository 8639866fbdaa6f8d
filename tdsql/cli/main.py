"""CLI entry for tdsql with subcommands.

Subcommands:
  repl     Start the interactive SQL console
  query    Run one statement and print the result
  ping     Check that the engine answers
  config   View or update configuration
  banner   Show the ASCII banner
"""
from __future__ import annotations
import argparse
import sys
import time
import logging
from typing import Optional

from tdsql.cli.repl import start_repl
from tdsql.core.engine import DuckDBClient
from tdsql.core.errors import ConfigError, UserInputError
from tdsql.core.executor import Cancelled, Failure, QueryExecutor
from tdsql.core.output_writer import normalize_format, stream_result
from tdsql.utils.config import config
from tdsql.utils.constants import HISTORY_LIMIT, LOG_LEVELS, SUPPORTED_OUTPUT_FORMATS
from tdsql.utils.logging_setup import configure_logging
from tdsql.utils.string_utils import format_duration

logger = logging.getLogger(__name__)

ASCII_BANNER = r"""
 _      _           _
| |_ __| |___  __ _| |
| __/ _` / __|/ _` | |
| || (_| \__ \ (_| | |
 \__\__,_|___/\__, |_|
                 |_|
    Interactive SQL console
"""


# --- Helpers shared across subcommands ---

def _open_client(args: argparse.Namespace) -> DuckDBClient:
    path = getattr(args, 'db', None) or config.get('db_path', ':memory:')
    database = getattr(args, 'database', None) or config.get('database')
    return DuckDBClient(path, database)


def _positive_or_none(value: Optional[int]) -> Optional[int]:
    if value is None or value <= 0:
        return None
    return value


# --- Subcommand handlers ---

def cmd_repl(args: argparse.Namespace) -> int:
    logging.getLogger().setLevel(args.log_level)
    output_format = normalize_format(args.output_format or config.get('output_format'))
    page_size = args.page_size if args.page_size is not None else (config.get_int('page_size') or 0)
    if page_size < 0:
        raise UserInputError(f"Page size must be zero or positive, got {page_size}")
    limit = args.limit if args.limit is not None else config.get_int('limit')
    if not args.no_banner:
        print(ASCII_BANNER)
    client = _open_client(args)
    return start_repl(
        client,
        output_format=output_format,
        page_size=page_size,
        limit=_positive_or_none(limit),
        history_file=args.history_file or config.get('history_file'),
        history_limit=config.get_int('history_limit') or HISTORY_LIMIT,
        show_banner=not args.no_banner,
        cache_ttl=float(config.get('cache_ttl')),
        completion_timeout=float(config.get('completion_timeout')),
    )


def cmd_query(args: argparse.Namespace) -> int:
    logging.getLogger().setLevel(args.log_level)
    output_format = normalize_format(args.output_format or config.get('output_format'))
    limit = _positive_or_none(args.limit if args.limit is not None else config.get_int('limit'))
    stream = open(args.output, 'w', encoding='utf-8', newline='') if args.output else sys.stdout
    client = _open_client(args)
    try:
        executor = QueryExecutor(out=sys.stderr)
        outcome = executor.execute(
            client, args.sql,
            lambda cursor, token: stream_result(cursor, stream, output_format, limit=limit, token=token),
        )
    finally:
        client.close()
        if stream is not sys.stdout:
            stream.close()
    if isinstance(outcome, Cancelled):
        logger.warning(f"Query cancelled after {format_duration(outcome.elapsed)}")
        return 130
    if isinstance(outcome, Failure):
        logger.error(f"Query failed: {outcome.error}")
        return 1
    logger.info(f"Query completed in {format_duration(outcome.elapsed)}, {outcome.row_count} rows")
    if args.output:
        logger.info(f"Wrote {outcome.row_count} rows to {args.output}")
    return 0


def cmd_ping(args: argparse.Namespace) -> int:
    logging.getLogger().setLevel(args.log_level)
    print("Testing connection...")
    start = time.monotonic()
    client = _open_client(args)
    try:
        client.ping()
    except Exception as e:
        logger.error(f"Connection test failed: {e}")
        return 1
    finally:
        client.close()
    print(f"Connection successful (took {format_duration(time.monotonic() - start)})")
    print(f"Database: {client.database}")
    return 0


def cmd_banner(_args: argparse.Namespace) -> int:
    print(ASCII_BANNER)
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Handle configuration commands."""
    logging.getLogger().setLevel(args.log_level)

    if args.list:
        for key, value in config.settings.items():
            print(f"{key} = {value}")
    elif args.get:
        value = config.get(args.get)
        print(f"{args.get} = {value}")
    elif args.set and args.value is not None:
        # Convert value to appropriate type
        value = args.value
        if value.lower() == 'true':
            value = True
        elif value.lower() == 'false':
            value = False
        elif value.lower() in ('none', 'null'):
            value = None
        elif value.isdigit():
            value = int(value)

        config.set(args.set, value)
        config.save()
        print(f"Set {args.set} = {value}")
    else:
        print(f"Configuration file: {config.config_file}")

    return 0

# --- Parser construction ---

def _add_connection_args(p: argparse.ArgumentParser) -> None:
    p.add_argument('--db', help='DuckDB database file (default from config, :memory:)')
    p.add_argument('--database', help='Database (schema) to start in')


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog='tdsql', description='Interactive SQL console')
    sub = p.add_subparsers(dest='command', required=True)

    # repl
    repl_p = sub.add_parser('repl', help='Start the interactive console')
    _add_connection_args(repl_p)
    repl_p.add_argument('--page-size', type=int, help='Rows per page for table output (0 disables paging)')
    repl_p.add_argument('--format', dest='output_format', choices=SUPPORTED_OUTPUT_FORMATS, help='Output format')
    repl_p.add_argument('--limit', type=int, help='Maximum rows to print per query')
    repl_p.add_argument('--history-file', help='Readline history file')
    repl_p.add_argument('--no-banner', action='store_true', help='Suppress banners on start')
    repl_p.add_argument('--log-level', default='WARNING', choices=LOG_LEVELS)

    # query
    query_p = sub.add_parser('query', help='Run one statement')
    query_p.add_argument('sql', help='SQL statement')
    _add_connection_args(query_p)
    query_p.add_argument('--format', dest='output_format', choices=SUPPORTED_OUTPUT_FORMATS, help='Output format')
    query_p.add_argument('--limit', type=int, help='Maximum rows to print')
    query_p.add_argument('--output', help='Write the result to this file instead of stdout')
    query_p.add_argument('--log-level', default='INFO', choices=LOG_LEVELS)

    # ping
    ping_p = sub.add_parser('ping', help='Test the engine connection')
    _add_connection_args(ping_p)
    ping_p.add_argument('--log-level', default='INFO', choices=LOG_LEVELS)

    # banner
    sub.add_parser('banner', help='Show ASCII logo banner')

    # config management
    config_p = sub.add_parser('config', help='View or update configuration')
    config_p.add_argument('--list', action='store_true', help='List all configuration values')
    config_p.add_argument('--get', metavar='KEY', help='Get specific configuration value')
    config_p.add_argument('--set', metavar='KEY', help='Set configuration value')
    config_p.add_argument('--value', help='Value to set (used with --set)')
    config_p.add_argument('--log-level', default='INFO', choices=LOG_LEVELS)

    return p

# --- Main entry ---

def main(argv: Optional[list] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging first
    if hasattr(args, 'log_level'):
        configure_logging(args.log_level)

    # Handle command
    try:
        if args.command == 'repl':
            code = cmd_repl(args)
        elif args.command == 'query':
            code = cmd_query(args)
        elif args.command == 'ping':
            code = cmd_ping(args)
        elif args.command == 'banner':
            code = cmd_banner(args)
        elif args.command == 'config':
            code = cmd_config(args)
        else:
            parser.error('Unknown command')
            return
        sys.exit(code)
    except (UserInputError, ConfigError) as e:
        logging.error(f"Invalid input: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        logging.warning("Operation interrupted by user")
        sys.exit(130)
    except Exception as e:
        logging.error(f"Unhandled error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
