"""String helpers for SQL identifiers, literals and console messages."""
from __future__ import annotations
from typing import Set

# Collection of quote characters accepted around user-typed names
QUOTE_CHARS: Set[str] = {'"', "'", '`', '“', '”', '‘', '’'}

def strip_quotes(s: str) -> str:
    """Strip surrounding quote characters (and whitespace) from a name."""
    if not s:
        return s
    s2 = s.strip()
    while s2 and s2[0] in QUOTE_CHARS:
        s2 = s2[1:]
    while s2 and s2[-1] in QUOTE_CHARS:
        s2 = s2[:-1]
    return s2.strip()

def escape_identifier(name: str) -> str:
    """Quote an identifier for SQL, doubling embedded double quotes."""
    return '"' + name.replace('"', '""') + '"'

def escape_literal(value: str) -> str:
    """Quote a string literal for SQL, doubling embedded single quotes."""
    return "'" + value.replace("'", "''") + "'"

def unquote_identifier(token: str) -> str:
    """Inverse of escape_identifier for a single (possibly bare) identifier."""
    token = token.strip()
    if len(token) >= 2 and token[0] == '"' and token[-1] == '"':
        return token[1:-1].replace('""', '"')
    return token

def format_duration(seconds: float) -> str:
    """Human-readable elapsed time (e.g. 512ms, 3.21s, 2m05.3s)."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, rest = divmod(seconds, 60)
    return f"{int(minutes)}m{rest:04.1f}s"
