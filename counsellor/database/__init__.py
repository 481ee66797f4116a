"""
Database Module

SQLAlchemy tables for the enrichment and analysis caches, plus engine
and session helpers for PostgreSQL and SQLite.
"""

from .models import (
    Base,
    EnrichmentRecord,
    AnalysisRecord,
    normalize_key,
    utcnow,
)
from .session import (
    get_database_url,
    create_db_engine,
    get_session_factory,
    session_scope,
    init_db,
    check_db_connection,
)

__all__ = [
    "Base",
    "EnrichmentRecord",
    "AnalysisRecord",
    "normalize_key",
    "utcnow",
    "get_database_url",
    "create_db_engine",
    "get_session_factory",
    "session_scope",
    "init_db",
    "check_db_connection",
]
