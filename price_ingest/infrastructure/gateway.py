"""
Persistence gateway: the relational-store handle shared by all workers.

The gateway owns a psycopg `ConnectionPool` and is passed explicitly to the
run coordinator and each worker; there is no module-level pool. Workers do
not share connections: each opens a `Session`, which checks one connection
out of the pool for as long as the worker runs, prepares its statements on
that connection and scopes one transaction per Record.

Example
-------
    with PersistenceGateway(settings=get_settings()) as gateway:
        gateway.create_tables()
        with gateway.session() as session:
            insert = session.prepare(INSERT_SERVICE)
            with session.transaction():
                (service_id,) = insert.execute(params)
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generator, Optional, Sequence

import psycopg
from psycopg import Connection
from psycopg_pool import ConnectionPool, PoolTimeout
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from price_ingest.config import Settings, get_settings
from price_ingest.infrastructure.db_factory import build_dsn
from price_ingest.infrastructure.schema import (
    COUNT_RATES,
    COUNT_SERVICES,
    CREATE_RATES_TABLE,
    CREATE_SERVICES_TABLE,
)
from price_ingest.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class TableCounts:
    services: int
    rates: int


class PreparedStatement:
    """
    A parameterized statement bound to one session's connection.

    Executions use psycopg's `prepare=True`, so the server parses and plans
    the statement once per connection and reuses the plan afterwards.
    """

    def __init__(self, conn: Connection, query: str) -> None:
        self._conn = conn
        self.query = query

    def execute(self, params: Sequence[Any]) -> Optional[tuple]:
        """Execute with `params`; return the first result row, if any."""
        with self._conn.cursor() as cur:
            cur.execute(self.query, params, prepare=True)
            if cur.description is None:
                return None
            return cur.fetchone()


class Session:
    """
    One pooled connection dedicated to a single worker.

    Use as a context manager; the connection goes back to the pool on exit.
    """

    def __init__(self, pool: ConnectionPool, timeout: Optional[float] = None) -> None:
        self._pool = pool
        self._timeout = timeout
        self._conn: Optional[Connection] = None

    def __enter__(self) -> "Session":
        self._conn = self._pool.getconn(timeout=self._timeout)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._conn is not None:
            self._pool.putconn(self._conn)
            self._conn = None

    def _connection(self) -> Connection:
        if self._conn is None or self._conn.closed:
            raise psycopg.InterfaceError("session has no open connection")
        return self._conn

    @property
    def broken(self) -> bool:
        """True once the underlying connection can no longer be used."""
        return self._conn is None or self._conn.broken or bool(self._conn.closed)

    def prepare(self, query: str) -> PreparedStatement:
        return PreparedStatement(self._connection(), query)

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """Commit on normal exit, roll back and re-raise on any exception."""
        with self._connection().transaction():
            yield


class PersistenceGateway:
    """
    Owner of the connection pool used by one ingestion run.

    Parameters
    ----------
    conninfo : str, optional
        libpq connection string; built from settings when omitted.
    settings : Settings, optional
        Source of the pool limits and connection parameters.
    """

    def __init__(self, conninfo: Optional[str] = None, settings: Optional[Settings] = None) -> None:
        settings = settings or get_settings()
        self.max_size = settings.db_pool_max_size
        self.timeout = settings.db_pool_timeout
        self._pool = ConnectionPool(
            conninfo=conninfo or build_dsn(settings),
            min_size=min(settings.db_pool_min_size, settings.db_pool_max_size),
            max_size=settings.db_pool_max_size,
            max_lifetime=settings.db_pool_max_lifetime,
            max_idle=settings.db_pool_max_idle,
            timeout=settings.db_pool_timeout,
            name="price-ingest",
            open=False,
        )

    def __enter__(self) -> "PersistenceGateway":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        """Open the pool and verify the server is reachable."""
        self._pool.open(wait=False)
        try:
            self._ping()
        except Exception:
            self._pool.close()
            raise
        log.info(
            "Connection pool ready",
            extra={"pool_max_size": self.max_size, "pool_timeout": self.timeout},
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((psycopg.OperationalError, PoolTimeout)),
        reraise=True,
    )
    def _ping(self) -> None:
        with self._pool.connection() as conn:
            conn.execute("SELECT 1;")

    def close(self) -> None:
        self._pool.close()

    def session(self) -> Session:
        return Session(self._pool, timeout=self.timeout)

    def create_tables(self) -> None:
        """Create both tables and their indexes if they do not exist."""
        log.info("Creating database tables")
        with self._pool.connection() as conn:
            conn.execute(CREATE_SERVICES_TABLE)
            conn.execute(CREATE_RATES_TABLE)
        log.info("Database tables ready")

    def table_counts(self) -> TableCounts:
        with self._pool.connection() as conn:
            (services,) = conn.execute(COUNT_SERVICES).fetchone()
            (rates,) = conn.execute(COUNT_RATES).fetchone()
        return TableCounts(services=services, rates=rates)


__all__ = ["PersistenceGateway", "PreparedStatement", "Session", "TableCounts"]
