"""
SQL Cache Base

Shared plumbing for the database-backed caches:
- CacheIOError wraps every SQLAlchemy failure
- Synchronous unit-of-work helpers run in a worker thread so the event
  loop never blocks on the database
- In-process hit/miss/write/error counters

Public cache methods catch CacheIOError and degrade (miss on read,
False on write). Only the private helpers raise it.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from counsellor.cache.config import CacheConfig, get_cache_config
from counsellor.database.models import utcnow
from counsellor.database.session import session_scope

logger = logging.getLogger(__name__)


class CacheIOError(Exception):
    """Cache store read or write failed."""

    def __init__(self, message: str, operation: str = None):
        super().__init__(message)
        self.operation = operation


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps (SQLite returns these) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SqlCache:
    """Base for caches stored in the application database."""

    backend = "sql"

    def __init__(
        self,
        session_factory: sessionmaker,
        config: Optional[CacheConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._session_factory = session_factory
        self.config = config or get_cache_config()
        self._clock = clock or utcnow
        self._stats = {
            "hits": 0,
            "misses": 0,
            "writes": 0,
            "errors": 0,
        }

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def now(self) -> datetime:
        return as_utc(self._clock())

    async def _run(self, operation: str, fn: Callable[..., Any], *args) -> Any:
        """Run fn(db, *args) in a worker thread inside one transaction."""
        return await asyncio.to_thread(self._unit_of_work, operation, fn, *args)

    def _unit_of_work(self, operation: str, fn: Callable[..., Any], *args) -> Any:
        for attempt in range(2):
            try:
                with session_scope(self._session_factory) as db:
                    return fn(db, *args)
            except IntegrityError as e:
                # A concurrent writer inserted the same key; retry as an update
                if attempt == 0:
                    logger.debug(f"Cache {operation} conflict, retrying: {e.orig}")
                    continue
                raise CacheIOError(str(e), operation=operation) from e
            except SQLAlchemyError as e:
                raise CacheIOError(str(e), operation=operation) from e

    def _record_error(self, operation: str, error: Exception) -> None:
        self._stats["errors"] += 1
        logger.error(f"Cache {operation} error: {error}")

    def counters(self) -> Dict[str, Any]:
        """In-process counters with hit rate."""
        total = self._stats["hits"] + self._stats["misses"]
        hit_rate = (self._stats["hits"] / total * 100) if total > 0 else 0
        return {
            **self._stats,
            "hit_rate_percent": round(hit_rate, 2),
        }
