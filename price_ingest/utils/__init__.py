"""
Utilities package for the price ingestion pipeline.

Exports shared helpers for logging and profiling. Keep this package
lightweight and free of domain-specific logic.
"""

from price_ingest.utils.logging import configure_logging, get_logger
from price_ingest.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
