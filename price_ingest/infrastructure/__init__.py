"""
Infrastructure package for the price ingestion pipeline.

Centralizes database concerns: connection strings, the pooled persistence
gateway shared by the workers, and the schema/statement SQL. Keep this layer
focused on I/O and resource management, decoupled from pipeline logic.
"""

from price_ingest.infrastructure.db_factory import (
    build_dsn,
    create_database,
    get_sync_connection,
    server_info,
)
from price_ingest.infrastructure.gateway import (
    PersistenceGateway,
    PreparedStatement,
    Session,
    TableCounts,
)

__all__ = [
    "PersistenceGateway",
    "PreparedStatement",
    "Session",
    "TableCounts",
    "build_dsn",
    "create_database",
    "get_sync_connection",
    "server_info",
]
