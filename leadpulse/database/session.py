"""
Database Session Management

Two databases:
- Read replica (MySQL): holds the per-product lead tables. Small fixed
  pool, queried through ReadReplica which runs the synchronous driver in
  a worker thread so the event loop never blocks.
- Write store: holds clients and table mappings, accessed through a
  regular SQLAlchemy session factory.

Both fall back to SQLite for local development when no URL is configured.
"""

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Mapping, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from leadpulse.utils.config import Settings
from .models import Base

logger = logging.getLogger(__name__)


# =============================================================================
# DATABASE URL CONFIGURATION
# =============================================================================

def _normalize_url(url: str) -> str:
    # mysql:// means the default MySQLdb driver to SQLAlchemy; use PyMySQL
    if url.startswith("mysql://"):
        return url.replace("mysql://", "mysql+pymysql://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def get_read_replica_url(settings: Settings) -> str:
    """READ_REPLICA_DATABASE_URL, or a local SQLite file when unset."""
    url = settings.READ_REPLICA_DATABASE_URL
    if url:
        logger.info("Using read replica from READ_REPLICA_DATABASE_URL")
        return _normalize_url(url)

    logger.warning("No READ_REPLICA_DATABASE_URL found, using SQLite: leadpulse_replica.db")
    return "sqlite:///leadpulse_replica.db"


def get_write_database_url(settings: Settings) -> str:
    """WRITE_DATABASE_URL, or a local SQLite file when unset."""
    url = settings.WRITE_DATABASE_URL
    if url:
        logger.info("Using write store from WRITE_DATABASE_URL")
        return _normalize_url(url)

    logger.warning("No WRITE_DATABASE_URL found, using SQLite: leadpulse_dev.db")
    return "sqlite:///leadpulse_dev.db"


# =============================================================================
# ENGINE CONFIGURATION
# =============================================================================

def _create_sqlite_engine(url: str, echo: bool) -> Engine:
    engine = create_engine(
        url,
        connect_args={"check_same_thread": False},  # Accessed from worker threads
        echo=echo,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    logger.info("Created SQLite engine")
    return engine


def create_read_replica_engine(settings: Settings, url: Optional[str] = None) -> Engine:
    """
    Create the read-replica engine.

    The pool is deliberately tiny (two connections, no overflow). Waiting
    for a connection longer than READ_REPLICA_POOL_TIMEOUT raises
    "QueuePool limit ... reached", which the fan-out executor retries.
    """
    url = url or get_read_replica_url(settings)

    if url.startswith("sqlite"):
        return _create_sqlite_engine(url, settings.SQL_DEBUG)

    engine = create_engine(
        url,
        poolclass=QueuePool,
        pool_size=settings.READ_REPLICA_POOL_SIZE,
        max_overflow=0,                             # Hard cap on replica connections
        pool_timeout=settings.READ_REPLICA_POOL_TIMEOUT,
        pool_recycle=1800,                          # Recycle connections after 30 min
        pool_pre_ping=True,                         # Verify connections before use
        echo=settings.SQL_DEBUG,
    )
    logger.info(
        f"Created read replica engine (pool_size={settings.READ_REPLICA_POOL_SIZE}, "
        f"timeout={settings.READ_REPLICA_POOL_TIMEOUT}s)"
    )
    return engine


def create_write_engine(settings: Settings, url: Optional[str] = None) -> Engine:
    """Create the write-store engine and make sure the mapping tables exist."""
    url = url or get_write_database_url(settings)

    if url.startswith("sqlite"):
        engine = _create_sqlite_engine(url, settings.SQL_DEBUG)
    else:
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,
            pool_pre_ping=True,
            echo=settings.SQL_DEBUG,
        )
        logger.info("Created write store engine with connection pooling")

    Base.metadata.create_all(bind=engine)
    return engine


# =============================================================================
# READ REPLICA
# =============================================================================

class ReadReplica:
    """
    Async query-execution interface over a synchronous SQLAlchemy engine.

    Usage:
        replica = ReadReplica(create_read_replica_engine(settings))
        rows = await replica.execute("SELECT COUNT(*) AS count FROM `t`", {})
        # [{"count": 42}]
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def _execute_sync(self, sql: str, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        with self.engine.connect() as conn:
            result = conn.execute(text(sql), dict(params))
            return [dict(row) for row in result.mappings().all()]

    async def execute(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run one statement in a worker thread and return its rows as dicts."""
        return await asyncio.to_thread(self._execute_sync, sql, params or {})

    __call__ = execute

    async def ping(self) -> bool:
        """Check connectivity with SELECT 1."""
        try:
            await self.execute("SELECT 1 AS ok")
            return True
        except Exception as e:
            logger.warning(f"Read replica ping failed: {e}")
            return False

    def get_pool_status(self) -> Dict[str, Any]:
        pool = self.engine.pool
        status = {"pool_class": type(pool).__name__}
        if isinstance(pool, QueuePool):
            status.update({
                "size": pool.size(),
                "checked_out": pool.checkedout(),
                "overflow": pool.overflow(),
            })
        return status

    def dispose(self):
        """Close every pooled connection."""
        self.engine.dispose()
        logger.info("Read replica engine disposed")


# =============================================================================
# WRITE STORE SESSIONS
# =============================================================================

def get_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to the write store."""
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,  # Don't expire objects after commit
    )


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for write-store sessions.

    Usage:
        with session_scope(factory) as db:
            db.query(TableMapping).all()
    """
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
