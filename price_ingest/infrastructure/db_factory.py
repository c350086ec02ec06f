"""
Connection helpers for one-off database work.

Builds libpq connection strings from settings and provides dedicated
(non-pooled) connections for the connection-test and database-bootstrap
utilities. Transient connection failures are retried with tenacity.
Ingestion itself goes through `PersistenceGateway` and its pool.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import psycopg
from psycopg import Connection, sql
from psycopg.conninfo import make_conninfo
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from price_ingest.config import Settings, get_settings
from price_ingest.utils.logging import get_logger

log = get_logger(__name__)

MAINTENANCE_DB = "postgres"


def build_dsn(settings: Optional[Settings] = None, dbname: Optional[str] = None) -> str:
    """
    Compose a libpq connection string from settings.

    `DB_SSL=true` requires TLS; otherwise libpq's `prefer` default applies.
    """
    settings = settings or get_settings()
    return make_conninfo(
        host=settings.db_host,
        port=settings.db_port,
        user=settings.db_user,
        password=settings.db_password,
        dbname=dbname or settings.db_name,
        sslmode="require" if settings.db_ssl else "prefer",
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None, autocommit: bool = False) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    return psycopg.connect(dsn or build_dsn(), autocommit=autocommit)


@dataclass(frozen=True)
class ServerInfo:
    version: str
    database: str
    user: str


def server_info(dsn: Optional[str] = None) -> ServerInfo:
    """Connect once and report the server version and current database."""
    with get_sync_connection(dsn) as conn:
        with conn.cursor() as cur:
            cur.execute("SELECT version(), current_database(), current_user;")
            version, database, user = cur.fetchone()
    return ServerInfo(version=version, database=database, user=user)


def create_database(name: Optional[str] = None, settings: Optional[Settings] = None) -> bool:
    """
    Create the target database if it does not exist yet.

    Connects to the `postgres` maintenance database (CREATE DATABASE cannot
    run inside a transaction, hence autocommit). Returns True when the
    database was created, False when it already existed.
    """
    settings = settings or get_settings()
    target = name or settings.db_name
    dsn = build_dsn(settings, dbname=MAINTENANCE_DB)

    with get_sync_connection(dsn, autocommit=True) as conn:
        exists = conn.execute(
            "SELECT 1 FROM pg_database WHERE datname = %s;", (target,)
        ).fetchone()
        if exists:
            log.info(f"Database '{target}' already exists", extra={"database": target})
            return False
        conn.execute(
            sql.SQL("CREATE DATABASE {} ENCODING 'UTF8'").format(sql.Identifier(target))
        )

    # Verify by connecting to the new database.
    with get_sync_connection(build_dsn(settings, dbname=target)) as conn:
        conn.execute("SELECT 1;")
    log.info(f"Database '{target}' created", extra={"database": target})
    return True


__all__ = [
    "MAINTENANCE_DB",
    "ServerInfo",
    "build_dsn",
    "create_database",
    "get_sync_connection",
    "server_info",
]
