"""
Pipeline package for the price ingestion pipeline.

Re-exports the streaming stages so downstream code can import from
`price_ingest.pipeline` directly: stream source, line decoder, work
distributor and persistence worker.
"""

from price_ingest.pipeline.decoder import DecodeKind, DecodeResult, decode_line
from price_ingest.pipeline.distributor import (
    DistributorClosedError,
    NoConsumersError,
    WorkDistributor,
)
from price_ingest.pipeline.source import (
    LineTooLongError,
    SourceLine,
    StreamError,
    iter_lines,
    open_stream,
)
from price_ingest.pipeline.worker import PersistenceWorker, WorkerStats, serialize_array

__all__ = [
    # Decoding
    "DecodeKind",
    "DecodeResult",
    "decode_line",
    # Distribution
    "DistributorClosedError",
    "NoConsumersError",
    "WorkDistributor",
    # Streaming
    "LineTooLongError",
    "SourceLine",
    "StreamError",
    "iter_lines",
    "open_stream",
    # Persistence
    "PersistenceWorker",
    "WorkerStats",
    "serialize_array",
]
