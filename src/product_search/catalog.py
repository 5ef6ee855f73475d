"""
Catalog store: pooled, parameterised query execution.

Wraps an injected psycopg2 connection pool. Every query checks out its
own connection, so independent reads of one request can run on separate
threads. Driver failures surface as CatalogError; nothing is retried.
"""

import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional

import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import AbstractConnectionPool, PoolError

from core.logging import get_logger
from product_search.errors import CatalogError

logger = get_logger(__name__)

Row = Dict[str, Any]


class CatalogStore:
    """
    Read-only query executor over a connection pool.

    Args:
        pool: A psycopg2 pool (usually ThreadedConnectionPool) created by
              config.database.create_connection_pool().
    """

    def __init__(self, pool: AbstractConnectionPool):
        self._pool = pool

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Check out a connection and return it to the pool afterwards."""
        try:
            conn = self._pool.getconn()
        except PoolError as e:
            raise CatalogError(f"No catalog connection available: {e}") from e

        try:
            yield conn
        finally:
            # Reads run inside an implicit transaction; end it before reuse.
            broken = bool(conn.closed)
            if not broken:
                try:
                    conn.rollback()
                except psycopg2.Error:
                    broken = True
            self._pool.putconn(conn, close=broken)

    def fetch_all(
        self,
        name: str,
        query: Any,
        params: Optional[Mapping[str, Any]] = None,
    ) -> List[Row]:
        """
        Run a query and return every row as a dict.

        Args:
            name: Short query name used in logs and error messages.
            query: SQL text or psycopg2.sql.Composable.
            params: Named parameters bound by the driver.

        Raises:
            CatalogError: If the connection or query fails.
        """
        t0 = time.time()
        try:
            with self.connection() as conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(query, params)
                    rows = cur.fetchall()
        except psycopg2.Error as e:
            logger.error("Catalog query failed", query_name=name, error=str(e))
            raise CatalogError(f"{name} query failed: {e}") from e

        logger.debug(
            "Catalog query completed",
            query_name=name,
            row_count=len(rows),
            elapsed_ms=int((time.time() - t0) * 1000),
        )
        return [dict(row) for row in rows]

    def fetch_one(
        self,
        name: str,
        query: Any,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Optional[Row]:
        """Run a query and return its first row, or None."""
        rows = self.fetch_all(name, query, params)
        return rows[0] if rows else None

    def fetch_count(
        self,
        name: str,
        query: Any,
        params: Optional[Mapping[str, Any]] = None,
    ) -> int:
        """Run a ``SELECT COUNT(*) AS count`` style query."""
        row = self.fetch_one(name, query, params)
        if row is None:
            return 0
        return int(row["count"] or 0)

    def close(self) -> None:
        """Close every pooled connection."""
        self._pool.closeall()
        logger.info("Catalog connection pool closed")
