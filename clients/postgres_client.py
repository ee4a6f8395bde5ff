"""
PostgreSQL client with connection pooling and context-bound transactions.

Uses psycopg2 with ThreadedConnectionPool. Outside a transaction every
statement runs on its own pooled connection and commits immediately.
Inside `transaction()` one connection is bound to the current context and
every execute* call on this client reuses it until the block exits.
"""

import logging
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, List, Tuple

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

# Connection bound by transaction(): (database_url, connection)
_transaction_connection: ContextVar[tuple[str, Any] | None] = ContextVar(
    "transaction_connection", default=None
)


class PostgresClient:
    """
    PostgreSQL client returning rows as dicts.

    Usage:
        db = PostgresClient(database_url)

        rows = db.execute("SELECT * FROM spaces ORDER BY number")

        # Multi-statement atomic unit
        with db.transaction():
            db.execute_returning("UPDATE spaces SET status = 'reserved' ...")
            db.execute_returning("INSERT INTO tickets ...")
    """

    # Class-level connection pools shared across instances
    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(
        self,
        database_url: str,
        min_connections: int = 2,
        max_connections: int = 20,
        connect_timeout: int = 30,
    ):
        self._database_url = database_url
        self._min_connections = min_connections
        self._max_connections = max_connections
        self._connect_timeout = connect_timeout
        self._ensure_connection_pool()

    def _ensure_connection_pool(self) -> None:
        """Create connection pool if it doesn't exist."""
        with self._pools_lock:
            if self._database_url not in self._connection_pools:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self._min_connections,
                    maxconn=self._max_connections,
                    dsn=self._database_url,
                    connect_timeout=self._connect_timeout,
                )
                psycopg2.extras.register_default_jsonb(globally=True)
                self._connection_pools[self._database_url] = pool
                logger.info("Connection pool created")

    def _bound_connection(self):
        """Connection bound by an enclosing transaction() for this client, if any."""
        bound = _transaction_connection.get()
        if bound is not None and bound[0] == self._database_url:
            return bound[1]
        return None

    @property
    def in_transaction(self) -> bool:
        return self._bound_connection() is not None

    @contextmanager
    def get_connection(self):
        """Yield the transaction's connection, or borrow one from the pool."""
        bound = self._bound_connection()
        if bound is not None:
            yield bound
            return

        if self._database_url not in self._connection_pools:
            self._ensure_connection_pool()

        pool = self._connection_pools[self._database_url]
        conn = None
        try:
            conn = pool.getconn()
            if conn is None:
                raise RuntimeError("Could not get connection from pool")
            yield conn
        finally:
            if conn:
                pool.putconn(conn)

    @contextmanager
    def transaction(self):
        """
        Run the enclosed statements as one atomic unit.

        Commits when the block exits normally, rolls back on any exception.
        Nested calls join the outer transaction.
        """
        if self.in_transaction:
            yield
            return

        with self.get_connection() as conn:
            token = _transaction_connection.set((self._database_url, conn))
            try:
                yield
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                _transaction_connection.reset(token)

    def _commit(self, conn) -> None:
        """Commit unless an enclosing transaction() owns the connection."""
        if not self.in_transaction:
            conn.commit()

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no results."""
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                rows = [dict(row) for row in cur.fetchall()] if cur.description else []
                self._commit(conn)
                return rows

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_scalar(self, query: str, params: Tuple | Dict | None = None) -> Any:
        """Execute query, return first value of first row or None."""
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                result = cur.fetchone()
                self._commit(conn)
                return result[0] if result else None

    def execute_returning(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Execute INSERT/UPDATE/DELETE with RETURNING, return affected rows."""
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(query, params)
                rows = [dict(row) for row in cur.fetchall()]
                self._commit(conn)
                return rows

    def close(self) -> None:
        """Close connection pool."""
        with self._pools_lock:
            if self._database_url in self._connection_pools:
                self._connection_pools[self._database_url].closeall()
                del self._connection_pools[self._database_url]

    @classmethod
    def close_all_pools(cls) -> None:
        """Close all connection pools."""
        with cls._pools_lock:
            for pool in cls._connection_pools.values():
                pool.closeall()
            cls._connection_pools.clear()
