"""
Database Session Management

Handles engine creation, session lifecycle, and table initialization.
Designed for both hosted PostgreSQL and local development (SQLite).

Engines and session factories are built explicitly and injected into
the caches, so tests can point them at a throwaway SQLite file.
"""

import os
import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from .models import Base

logger = logging.getLogger(__name__)

# =============================================================================
# DATABASE URL CONFIGURATION
# =============================================================================

def _normalize_postgres_url(url: str) -> str:
    # Hosted PostgreSQL URLs use postgres:// but SQLAlchemy needs postgresql://
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def get_database_url(explicit: Optional[str] = None) -> str:
    """
    Resolve the database URL.

    Priority:
    1. explicit argument (Settings.DATABASE_URL)
    2. DATABASE_URL
    3. POSTGRES_URL (alternative)
    4. SQLite fallback for local development
    """
    url = explicit or os.getenv("DATABASE_URL")
    if url:
        return _normalize_postgres_url(url)

    url = os.getenv("POSTGRES_URL")
    if url:
        logger.info("Using PostgreSQL database from POSTGRES_URL")
        return _normalize_postgres_url(url)

    sqlite_path = os.getenv("SQLITE_PATH", "counsellor_dev.db")
    logger.warning(f"No DATABASE_URL found, using SQLite: {sqlite_path}")
    return f"sqlite:///{sqlite_path}"


# =============================================================================
# ENGINE CONFIGURATION
# =============================================================================

def create_db_engine(url: Optional[str] = None) -> Engine:
    """
    Create database engine with appropriate settings.

    PostgreSQL: Connection pooling, pre-ping
    SQLite: Thread-shareable connections, writers serialised with
        BEGIN IMMEDIATE so worker-thread upserts do not deadlock
    """
    url = get_database_url(url)
    echo = os.getenv("SQL_DEBUG", "false").lower() == "true"

    if url.startswith("postgresql"):
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=5,                # Base connections
            max_overflow=10,            # Additional connections under load
            pool_timeout=30,            # Wait for connection
            pool_recycle=1800,          # Recycle connections after 30 min
            pool_pre_ping=True,         # Verify connections before use
            echo=echo,
        )
        logger.info("Created PostgreSQL engine with connection pooling")
        return engine

    engine = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": 30},
        echo=echo,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        # Let SQLAlchemy issue BEGIN itself (see below)
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    logger.info("Created SQLite engine")
    return engine


# =============================================================================
# SESSION MANAGEMENT
# =============================================================================

def get_session_factory(engine: Engine) -> sessionmaker:
    """Build a session factory bound to engine."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,  # Don't expire objects after commit
    )


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for one unit of work.

    Usage:
        with session_scope(factory) as db:
            db.add(record)
        # Commits at end, rollback on exception
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# =============================================================================
# DATABASE INITIALIZATION
# =============================================================================

def init_db(engine: Engine, drop_all: bool = False) -> None:
    """
    Create all cache tables.

    Args:
        engine: Target engine
        drop_all: If True, drop all tables first (USE WITH CAUTION!)
    """
    if drop_all:
        logger.warning("Dropping all cache tables!")
        Base.metadata.drop_all(bind=engine)

    logger.info("Creating cache tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Cache tables created successfully")


def check_db_connection(engine: Engine) -> bool:
    """
    Check if database connection is working.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
