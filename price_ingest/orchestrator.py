"""
Run coordinator: drive files through the ingestion pipeline and collect statistics.

For each file the coordinator starts the worker pool, streams and decodes the
file into the work distributor on the calling thread, closes the distributor
once the stream is exhausted (or has failed), waits for every worker to drain
and then folds the per-worker statistics into a `FileResult`.

Usage (example from CLI):
    from price_ingest.orchestrator import IngestConfig, run_ingestion

    summary = run_ingestion(IngestConfig(directory="data/", workers=10))
    print(summary.counts)

Re-running the same file inserts its Records again; there is no de-duplication.
"""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import psycopg

from price_ingest.config import ONE_MIB, get_settings
from price_ingest.infrastructure.gateway import PersistenceGateway, TableCounts
from price_ingest.pipeline.decoder import DecodeKind, decode_line
from price_ingest.pipeline.distributor import NoConsumersError, WorkDistributor
from price_ingest.pipeline.source import StreamError, iter_lines
from price_ingest.pipeline.worker import PersistenceWorker, WorkerStats
from price_ingest.utils.logging import get_logger
from price_ingest.utils.profiler import profile_block

log = get_logger(__name__)

DEFAULT_PATTERN = "*.json*"


@dataclass
class IngestConfig:
    """
    Parameters of one ingestion run. Unset numeric fields fall back to settings.
    """

    file: Optional[Union[Path, str]] = None
    directory: Optional[Union[Path, str]] = None
    workers: Optional[int] = None
    queue_capacity: Optional[int] = None
    max_line_bytes: Optional[int] = None
    progress_every: Optional[int] = None
    pattern: str = DEFAULT_PATTERN
    persist: bool = False
    results_dir: Union[Path, str] = "results"


@dataclass
class FileResult:
    path: str
    lines: int = 0
    malformed_lines: int = 0
    records: int = 0
    committed: int = 0
    failed: int = 0
    rate_rows: int = 0
    worker_errors: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0
    peak_rss_bytes: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RunSummary:
    files: List[FileResult]
    counts: Optional[TableCounts] = None

    @property
    def failed_files(self) -> List[FileResult]:
        return [result for result in self.files if not result.ok]

    def totals(self) -> Dict[str, int]:
        keys = ("lines", "malformed_lines", "records", "committed", "failed", "rate_rows")
        return {key: sum(getattr(result, key) for result in self.files) for key in keys}

    def as_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "files": [result.as_dict() for result in self.files],
            "totals": self.totals(),
            "counts": asdict(self.counts) if self.counts else None,
        }


def discover_files(directory: Union[Path, str], pattern: str = DEFAULT_PATTERN) -> List[Path]:
    """Matching regular files in `directory`, in name order."""
    return sorted(path for path in Path(directory).glob(pattern) if path.is_file())


def resolve_targets(config: IngestConfig) -> List[Path]:
    """
    Files to ingest for `config`. A file target wins over a directory target.

    Raises
    ------
    ValueError
        If neither target is given, or the directory does not exist.
    """
    if config.file:
        if config.directory:
            log.info("Both a file and a directory were given; ingesting the file only")
        return [Path(config.file)]
    if config.directory:
        directory = Path(config.directory)
        if not directory.is_dir():
            raise ValueError(f"Not a directory: {directory}")
        files = discover_files(directory, config.pattern)
        if not files:
            log.warning(
                f"No files matching '{config.pattern}' in {directory}",
                extra={"directory": str(directory)},
            )
        return files
    raise ValueError("Please specify either a file or a directory to ingest")


def _produce(
    path: Path,
    distributor: WorkDistributor,
    result: FileResult,
    max_line_bytes: int,
    progress_every: int,
) -> None:
    """Stream, decode and queue every Record in `path`."""
    for line in iter_lines(path, max_line_bytes=max_line_bytes):
        decoded = decode_line(line.data)
        if not decoded.counted:
            continue
        result.lines += 1

        if decoded.kind is DecodeKind.MALFORMED:
            result.malformed_lines += 1
            log.warning(
                f"Failed to parse line {line.number}: {decoded.error}",
                extra={"file": str(path), "line": line.number},
            )

        for record in decoded.records:
            distributor.put(record)
            result.records += 1

        if result.lines % progress_every == 0:
            log.info(
                f"Processed {result.lines} lines, {result.records} services "
                f"({distributor.pending} queued)",
                extra={
                    "file": str(path),
                    "lines": result.lines,
                    "records": result.records,
                    "queued": distributor.pending,
                },
            )


def _merge_worker_stats(result: FileResult, worker_stats: Sequence[WorkerStats]) -> None:
    for stats in worker_stats:
        result.committed += stats.committed
        result.failed += stats.failed
        result.rate_rows += stats.rate_rows
        if stats.error:
            result.worker_errors.append(f"{stats.name}: {stats.error}")


def ingest_file(
    gateway: PersistenceGateway,
    path: Union[Path, str],
    workers: int = 10,
    queue_capacity: Optional[int] = None,
    max_line_bytes: Optional[int] = None,
    progress_every: int = 1000,
) -> FileResult:
    """
    Ingest one file end to end and return its statistics.

    A stream failure (unreadable file, bad gzip data, oversized line) stops
    reading but is not raised: Records already queued are still persisted and
    the failure is reported on `FileResult.error`.
    """
    path = Path(path)
    result = FileResult(path=str(path))
    distributor = WorkDistributor(capacity=queue_capacity or workers * 2, consumers=workers)
    line_limit = max_line_bytes or ONE_MIB

    log.info(
        f"[FILE START] {path}",
        extra={"file": str(path), "workers": workers, "queue_capacity": distributor.capacity},
    )
    with profile_block(path.name) as stats:
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest-worker") as pool:
            futures = [
                pool.submit(PersistenceWorker(gateway, distributor, name=f"worker-{index}").run)
                for index in range(workers)
            ]
            try:
                _produce(path, distributor, result, line_limit, progress_every)
            except (StreamError, NoConsumersError) as exc:
                result.error = str(exc)
                log.error(f"[FILE FAILED] {path}: {exc}", extra={"file": str(path)})
            finally:
                distributor.close()
            worker_stats = [future.result() for future in futures]

    _merge_worker_stats(result, worker_stats)
    result.duration_seconds = round(stats.duration_seconds, 2)
    result.peak_rss_bytes = stats.peak_rss_bytes

    log.info(
        f"[FILE COMPLETE] {path}: {result.lines} lines, {result.records} services "
        f"({result.committed} committed, {result.failed} failed, "
        f"{result.malformed_lines} malformed lines)",
        extra={
            "file": str(path),
            "lines": result.lines,
            "records": result.records,
            "committed": result.committed,
            "failed": result.failed,
            "duration": result.duration_seconds,
        },
    )
    return result


def _persist_results(payload: dict, results_dir: Path) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    for target in (latest_path, archive_path):
        with target.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, sort_keys=True)

    log.info(
        "Run report persisted",
        extra={"latest": str(latest_path), "archive": str(archive_path)},
    )


def run_ingestion(
    config: IngestConfig, gateway: Optional[PersistenceGateway] = None
) -> RunSummary:
    """
    Ingest a file or every matching file in a directory.

    Parameters
    ----------
    config : IngestConfig
        Targets and tuning for this run.
    gateway : PersistenceGateway, optional
        An already-open gateway. When omitted one is built from settings,
        opened for the run and closed afterwards.

    Returns
    -------
    RunSummary
        Per-file results plus the store's row counts after the run.

    Raises
    ------
    ValueError
        If no target was given.
    psycopg.Error
        If the database is unreachable or the tables cannot be created.
    """
    settings = get_settings()
    targets = resolve_targets(config)
    workers = config.workers or settings.ingest_workers

    owns_gateway = gateway is None
    if gateway is None:
        gateway = PersistenceGateway(settings=settings)
        gateway.open()

    results: List[FileResult] = []
    counts: Optional[TableCounts] = None
    try:
        gateway.create_tables()
        if workers > gateway.max_size:
            log.warning(
                f"{workers} workers exceed the connection pool size ({gateway.max_size}); "
                "some workers will wait for a connection",
                extra={"workers": workers, "pool_max_size": gateway.max_size},
            )

        for index, path in enumerate(targets, start=1):
            log.info(f"[FILE {index}/{len(targets)}] {path}", extra={"file": str(path)})
            results.append(
                ingest_file(
                    gateway,
                    path,
                    workers=workers,
                    queue_capacity=config.queue_capacity,
                    max_line_bytes=config.max_line_bytes or settings.ingest_max_line_bytes,
                    progress_every=config.progress_every or settings.ingest_progress_every,
                )
            )

        try:
            counts = gateway.table_counts()
        except psycopg.Error as exc:
            log.warning(f"Failed to get statistics: {exc}")
    finally:
        if owns_gateway:
            gateway.close()

    summary = RunSummary(files=results, counts=counts)
    if config.persist:
        _persist_results(summary.as_dict(), Path(config.results_dir))

    log.info(
        f"[RUN COMPLETE] {len(results)} file(s), {len(summary.failed_files)} failed",
        extra={"files": len(results), **summary.totals()},
    )
    return summary


__all__ = [
    "DEFAULT_PATTERN",
    "FileResult",
    "IngestConfig",
    "RunSummary",
    "discover_files",
    "ingest_file",
    "resolve_targets",
    "run_ingestion",
]
