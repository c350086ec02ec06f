"""
price_ingest - concurrent streaming ingestion of healthcare price files.

Loads newline-delimited JSON (optionally gzip-compressed) files of insurance
services and their negotiated rates into PostgreSQL:

- A streaming source that never holds a whole file in memory
- A tolerant line decoder (single object or array per line)
- A bounded work distributor providing backpressure
- A pool of workers persisting one service and all its rates per transaction
- A run coordinator that aggregates per-file and per-store statistics
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from price_ingest.config import Settings, get_settings
from price_ingest.domain.models import InsuranceService, NegotiatedPrice, NegotiatedRate
from price_ingest.infrastructure.gateway import PersistenceGateway, TableCounts
from price_ingest.orchestrator import (
    FileResult,
    IngestConfig,
    RunSummary,
    ingest_file,
    run_ingestion,
)
from price_ingest.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Domain
    "InsuranceService",
    "NegotiatedPrice",
    "NegotiatedRate",
    # Persistence
    "PersistenceGateway",
    "TableCounts",
    # Orchestration
    "FileResult",
    "IngestConfig",
    "RunSummary",
    "ingest_file",
    "run_ingestion",
    # Logging
    "configure_logging",
    "get_logger",
]
