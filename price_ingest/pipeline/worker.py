"""
Persistence worker: pull Records from the distributor and write each one atomically.

Each worker owns one gateway session (a dedicated pooled connection) and the
two statements it prepares on it. Every Record is written in its own
transaction: the service row, then one rate row per (rate group, price) pair.
A failing Record is rolled back as a whole and logged; the worker moves on.
Only a failure to open the session or prepare the statements ends a worker.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from price_ingest.domain.models import InsuranceService
from price_ingest.infrastructure.gateway import PersistenceGateway, PreparedStatement, Session
from price_ingest.infrastructure.schema import INSERT_RATE, INSERT_SERVICE
from price_ingest.pipeline.distributor import WorkDistributor
from price_ingest.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class WorkerStats:
    """Counters owned by one worker; read only after the worker has finished."""

    name: str
    committed: int = 0
    failed: int = 0
    rate_rows: int = 0
    reconnects: int = 0
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def serialize_array(values: List[Any]) -> str:
    """Compact, order-preserving JSON text for an array column."""
    return json.dumps(values, separators=(",", ":"))


class PersistenceWorker:
    """
    One unit of the worker pool.

    Parameters
    ----------
    gateway : PersistenceGateway
        Shared store handle; the worker opens its own session on it.
    distributor : WorkDistributor
        Queue the worker drains until it is closed and empty.
    name : str
        Identifier used in logs and statistics.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        distributor: WorkDistributor,
        name: str = "worker",
    ) -> None:
        self._gateway = gateway
        self._distributor = distributor
        self.stats = WorkerStats(name=name)

    def run(self) -> WorkerStats:
        """Drain the distributor; returns this worker's statistics."""
        drained = False
        try:
            while not drained:
                with self._gateway.session() as session:
                    drained = self._consume(session)
        except Exception as exc:  # noqa: BLE001 - worker-fatal, reported via stats
            self.stats.error = f"{type(exc).__name__}: {exc}"
            log.error(
                f"[WORKER EXIT] {self.stats.name} stopped: {self.stats.error}",
                extra={"worker": self.stats.name},
            )
            self._distributor.detach()
        return self.stats

    def _consume(self, session: Session) -> bool:
        """
        Persist Records until the distributor is drained (True) or the
        session's connection breaks and has to be replaced (False).
        """
        insert_service = session.prepare(INSERT_SERVICE)
        insert_rate = session.prepare(INSERT_RATE)

        for record in self._distributor:
            try:
                rows = self._persist(session, insert_service, insert_rate, record)
            except Exception as exc:  # noqa: BLE001 - one bad Record must not stop the worker
                self.stats.failed += 1
                log.error(
                    f"Failed to process service {record.name!r} "
                    f"({record.price_count} prices): {exc}",
                    extra={
                        "worker": self.stats.name,
                        "service": record.name,
                        "billing_code": record.billing_code,
                        "prices": record.price_count,
                        "error_type": type(exc).__name__,
                    },
                )
                if session.broken:
                    self.stats.reconnects += 1
                    log.warning(
                        f"{self.stats.name}: connection lost, opening a new session",
                        extra={"worker": self.stats.name},
                    )
                    return False
                continue
            self.stats.committed += 1
            self.stats.rate_rows += rows
        return True

    @staticmethod
    def _persist(
        session: Session,
        insert_service: PreparedStatement,
        insert_rate: PreparedStatement,
        record: InsuranceService,
    ) -> int:
        """Write one Record in a single transaction; returns the rate rows written."""
        rows = 0
        with session.transaction():
            row = insert_service.execute(
                (
                    record.negotiation_arrangement,
                    record.name,
                    record.billing_code_type,
                    record.billing_code_type_version,
                    record.billing_code,
                    record.description,
                )
            )
            if row is None:
                raise RuntimeError("insert did not return a service id")
            service_id = row[0]

            for rate in record.negotiated_rates:
                provider_references = serialize_array(rate.provider_references)
                for price in rate.negotiated_prices:
                    insert_rate.execute(
                        (
                            service_id,
                            provider_references,
                            price.negotiated_type,
                            price.negotiated_rate,
                            price.expiration_date,
                            serialize_array(price.service_codes),
                            price.billing_class,
                        )
                    )
                    rows += 1
        return rows


__all__ = ["PersistenceWorker", "WorkerStats", "serialize_array"]
