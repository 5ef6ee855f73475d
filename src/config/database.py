"""
Database connection pool factory.

The pool is created explicitly by the application and handed to the
search layer; nothing in this module holds a process-wide instance.
"""

from typing import Optional

import psycopg2
from pgvector.psycopg2 import register_vector
from psycopg2.pool import ThreadedConnectionPool

from config.settings import Settings, get_settings
from core.logging import get_logger

logger = get_logger(__name__)


class DatabasePoolError(Exception):
    """Raised when the connection pool cannot be created."""
    pass


def create_connection_pool(settings: Optional[Settings] = None) -> ThreadedConnectionPool:
    """
    Create a thread-safe connection pool for the product catalog.

    Every connection gets the configured statement_timeout so runaway
    sub-queries are cancelled server-side. The pgvector adapter is
    registered globally from the first connection, which makes numpy
    arrays bindable as ``vector`` parameters on all connections.

    Args:
        settings: Settings to use (defaults to get_settings())

    Returns:
        ThreadedConnectionPool: The connection pool

    Raises:
        DatabasePoolError: If the pool cannot be created
    """
    settings = settings or get_settings()

    options = None
    if settings.db_statement_timeout_ms:
        options = f"-c statement_timeout={settings.db_statement_timeout_ms}"

    try:
        pool = ThreadedConnectionPool(
            settings.db_pool_min_size,
            settings.db_pool_max_size,
            dsn=settings.database_url,
            options=options,
        )
    except psycopg2.Error as e:
        raise DatabasePoolError(f"Failed to create connection pool: {e}") from e

    conn = pool.getconn()
    try:
        register_vector(conn, globally=True)
        conn.commit()
    except psycopg2.Error as e:
        pool.putconn(conn)
        pool.closeall()
        raise DatabasePoolError(f"Failed to register pgvector types: {e}") from e
    pool.putconn(conn)

    logger.info(
        "Connection pool created",
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        statement_timeout_ms=settings.db_statement_timeout_ms,
    )
    return pool
