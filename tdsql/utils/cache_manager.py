"""Identifier cache backing table-name completion."""
from __future__ import annotations
from typing import Callable, Dict, List, Optional
import logging
import time

from tdsql.core.errors import CacheRefreshError
from tdsql.utils.constants import TABLE_CACHE_TTL

logger = logging.getLogger(__name__)

TableLoader = Callable[[str], List[str]]


class IdentifierCache:
    """Per-database table names with one refresh timestamp for the whole cache.

    The cache is advisory: a failed refresh leaves whatever was there before
    (possibly nothing) and never raises into the caller.
    """

    def __init__(self, ttl: float = TABLE_CACHE_TTL, clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self.clock = clock
        self.tables: Dict[str, List[str]] = {}
        self.last_refresh: float = 0.0
        self.refresh_count = 0
        self.last_error: Optional[CacheRefreshError] = None

    def is_stale(self) -> bool:
        return self.clock() - self.last_refresh > self.ttl

    def refresh(self, database: str, loader: TableLoader) -> bool:
        """Reload the table list for database. Returns False when the load failed."""
        try:
            tables = list(loader(database))
        except Exception as e:
            self.last_error = CacheRefreshError(f"Table cache refresh for {database} failed: {e}")
            logger.debug(str(self.last_error))
            return False
        self.last_error = None
        self.tables[database] = tables
        self.last_refresh = self.clock()
        self.refresh_count += 1
        logger.debug(f"Cached {len(tables)} table names for {database}")
        return True

    def tables_for(self, database: Optional[str], loader: TableLoader) -> List[str]:
        """Table names for database, refreshing first when the cache is stale."""
        if not database:
            return []
        if self.is_stale():
            self.refresh(database, loader)
        return list(self.tables.get(database, []))

    def invalidate(self) -> None:
        """Force a refresh on the next lookup."""
        self.last_refresh = 0.0
