# Error taxonomy for the console and the one-shot commands.
from __future__ import annotations
from enum import Enum, auto

class ErrorCategory(Enum):
    CONNECTION = auto()
    STATEMENT = auto()
    CANCELLED = auto()
    CACHE = auto()
    SCAN = auto()
    USER_INPUT = auto()
    CONFIG = auto()
    INTERNAL = auto()

class TDSQLException(Exception):
    category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(self, message: str, *, category: ErrorCategory | None = None):
        super().__init__(message)
        if category:
            self.category = category

class EngineConnectionError(TDSQLException):
    """The remote engine could not be reached (fatal to the operation only)."""
    category = ErrorCategory.CONNECTION

class StatementError(TDSQLException):
    """The engine rejected the statement."""
    category = ErrorCategory.STATEMENT

class QueryCancelled(TDSQLException):
    category = ErrorCategory.CANCELLED

    def __init__(self, message: str = "Query cancelled", **kwargs):
        super().__init__(message, **kwargs)

class CacheRefreshError(TDSQLException):
    category = ErrorCategory.CACHE

class ScanError(TDSQLException):
    """A row could not be read; aborts the current result stream only."""
    category = ErrorCategory.SCAN

class UserInputError(TDSQLException):
    category = ErrorCategory.USER_INPUT

class ConfigError(TDSQLException):
    category = ErrorCategory.CONFIG

__all__ = [
    'ErrorCategory','TDSQLException','EngineConnectionError','StatementError',
    'QueryCancelled','CacheRefreshError','ScanError','UserInputError','ConfigError'
]
