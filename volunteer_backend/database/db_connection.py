"""
PostgreSQL connection helper.
Provides get_db() and the configured table identifiers for the repositories.
"""

import os
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2
from psycopg2 import sql
from psycopg2.extras import DictCursor
from psycopg2.pool import ThreadedConnectionPool
from dotenv import load_dotenv

# Load .env variables from the project root
load_dotenv()

logger = logging.getLogger(__name__)

_pool: Optional[ThreadedConnectionPool] = None
_pool_lock = threading.Lock()


def require_env(name: str) -> str:
    """
    Read a required environment variable.

    Raises:
        RuntimeError: If the variable is not set.
    """
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"{name} is not set. Please set the environment variable.")
    return value


def _get_pool() -> ThreadedConnectionPool:
    global _pool
    with _pool_lock:
        if _pool is None:
            database_url = require_env("DATABASE_URL")
            _pool = ThreadedConnectionPool(
                int(os.getenv("DB_POOL_MIN", 1)),
                int(os.getenv("DB_POOL_MAX", 10)),
                dsn=database_url,
                cursor_factory=DictCursor,
            )
            logger.info("Database connection pool created")
        return _pool


@contextmanager
def get_db() -> Iterator["psycopg2.extensions.connection"]:
    """
    Borrow a pooled connection with dictionary-based row access.

    The transaction is committed when the block exits normally and rolled
    back when it raises. The connection always goes back to the pool.

    Usage:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(...)

    Raises:
        psycopg2.Error: If the connection or a statement fails.
    """
    pool = _get_pool()
    conn = pool.getconn()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)


def close_pool() -> None:
    """Close every pooled connection. Used on shutdown and by tests."""
    global _pool
    with _pool_lock:
        if _pool is not None:
            _pool.closeall()
            _pool = None


def users_table() -> sql.Identifier:
    return sql.Identifier(require_env("USERS_COLLECTION_NAME"))


def events_table() -> sql.Identifier:
    return sql.Identifier(require_env("EVENTS_COLLECTION_NAME"))
